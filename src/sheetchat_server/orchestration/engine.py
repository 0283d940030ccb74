"""Chat engine: the two-round tool-call orchestration loop.

Per user turn the engine records the utterance, asks the model what to do,
runs any proposed tool calls concurrently against the spreadsheet host, feeds
the results back for a second round, and records the final reply. Failures
of individual tool calls become tool-result text; only a missing credential
or a failed model round ends a turn early, and neither affects the next turn.
"""

import asyncio
import logging
from typing import Any, Callable

from sheetchat_server.capabilities.adapter import CapabilityAdapter
from sheetchat_server.capabilities.registry import CapabilityRegistry
from sheetchat_server.conversation.store import ConversationStore
from sheetchat_server.conversation.types import (
    InvocationRequest,
    InvocationResult,
    Turn,
    TurnRole,
)
from sheetchat_server.errors import ConfigurationError, GatewayError, GatewayErrorKind
from sheetchat_server.gateway.client import ModelGateway
from sheetchat_server.gateway.types import DirectReply
from sheetchat_server.orchestration.embedding import SheetEmbedder
from sheetchat_server.orchestration.prompts import build_system_instruction
from sheetchat_server.orchestration.state import TurnOutcome, TurnState
from sheetchat_server.workbook.host import SelectionInfo, SpreadsheetHost

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[str | None], ModelGateway]
TurnCallback = Callable[[Turn], Any]
StateCallback = Callable[[TurnState], Any]

MISSING_CREDENTIAL_MESSAGE = "Please set your API key in the settings."
INVALID_CREDENTIAL_MESSAGE = "Invalid API key. Please check your settings."
GENERIC_ERROR_MESSAGE = "Sorry, I encountered an error. Please try again."
EMPTY_REPLY_MESSAGE = "Sorry, I didn't get a response. Please try again."


def describe_gateway_error(error: GatewayError) -> str:
    """User-facing text for a failed model round."""
    if error.kind is GatewayErrorKind.UNAUTHORIZED:
        return INVALID_CREDENTIAL_MESSAGE
    if error.detail:
        return f"Error: {error.detail}"
    return GENERIC_ERROR_MESSAGE


def summarize_results(results: list[InvocationResult]) -> str:
    """Fallback reply when the second round produced no text."""
    lines = [
        "I carried out the requested actions but could not compose a final reply. Results:"
    ]
    lines += [f"- {result.name}: {result.content}" for result in results]
    return "\n".join(lines)


class ChatEngine:
    """Runs user turns for a single conversation.

    The engine is the only writer of its conversation store. It owns the
    model gateway as an explicit value and replaces it when the credential
    changes. Turns run one at a time.

    Attributes:
        host: Spreadsheet host capabilities run against
        registry: Capability catalog exposed to the model every round
        store: Append-only transcript
        gateway: Current model gateway
        embedder: Best-effort sheet embedding pre-step
        active_sheet: Last known active worksheet name
        state: Current turn state
    """

    def __init__(
        self,
        host: SpreadsheetHost,
        registry: CapabilityRegistry,
        gateway_factory: GatewayFactory,
        api_key: str | None = None,
        require_api_key: bool = True,
        store: ConversationStore | None = None,
    ) -> None:
        self.host = host
        self.registry = registry
        self.adapter = CapabilityAdapter(registry, host)
        self.store = store if store is not None else ConversationStore()
        self.embedder = SheetEmbedder(host)
        self.require_api_key = require_api_key
        self.active_sheet = ""
        self.state = TurnState.IDLE

        self._gateway_factory = gateway_factory
        self._api_key = api_key
        self.gateway = gateway_factory(api_key)
        self._turn_lock = asyncio.Lock()

        host.add_active_sheet_listener(self._on_active_sheet_changed)

    # --- Configuration ---

    @property
    def has_credential(self) -> bool:
        return bool(self._api_key) or not self.require_api_key

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if no credential is configured."""
        if not self.has_credential:
            raise ConfigurationError("No API key configured for the model service")

    def update_credential(self, api_key: str | None) -> None:
        """Replace the credential and rebuild the gateway with it.

        A turn already in flight keeps the gateway it started with.
        """
        self._api_key = api_key or None
        self.gateway = self._gateway_factory(self._api_key)
        logger.info(f"Model gateway rebuilt (credential configured: {self.has_credential})")

    # --- Active sheet tracking ---

    def _on_active_sheet_changed(self, sheet_name: str) -> None:
        logger.debug(f"Active sheet changed to {sheet_name}")
        self.active_sheet = sheet_name

    async def refresh_active_sheet(self) -> str:
        """Read the active worksheet name from the host."""
        try:
            self.active_sheet = await self.host.get_active_worksheet_name()
        except Exception as e:
            logger.warning(f"Could not read active worksheet, using last known: {e}")
        return self.active_sheet

    async def current_selection(self) -> SelectionInfo | None:
        try:
            return await self.host.get_selected_range_info()
        except Exception as e:
            logger.warning(f"Could not read selection for tool descriptions: {e}")
            return None

    # --- Turn execution ---

    async def handle_utterance(
        self,
        text: str,
        tagged_sheets: list[str] | None = None,
        on_turn: TurnCallback | None = None,
        on_state: StateCallback | None = None,
    ) -> TurnOutcome:
        """Run one user turn to completion.

        Args:
            text: What the user typed
            tagged_sheets: Sheets (or "workbook") to embed before round 1
            on_turn: Called with every turn appended during this turn
            on_state: Called with every state entered during this turn

        Returns:
            TurnOutcome describing the turn
        """
        async with self._turn_lock:
            turn = _TurnRun(self, on_turn, on_state)
            try:
                await turn.run(text, tagged_sheets or [])
            finally:
                self.state = TurnState.IDLE
            return turn.outcome

    async def execute_all(self, requests: list[InvocationRequest]) -> list[InvocationResult]:
        """Execute a batch concurrently.

        Results are positionally aligned with ``requests``; a task that fails
        unexpectedly still yields an error result in its slot.
        """
        gathered = await asyncio.gather(
            *(self.adapter.execute(request) for request in requests),
            return_exceptions=True,
        )

        results: list[InvocationResult] = []
        for request, item in zip(requests, gathered):
            if isinstance(item, InvocationResult):
                results.append(item)
            elif isinstance(item, Exception):
                logger.error(f"Invocation {request.id} ({request.name}) escaped the adapter: {item}")
                results.append(
                    InvocationResult(
                        id=request.id,
                        name=request.name,
                        content=f"Error: {item}",
                        is_error=True,
                    )
                )
            else:
                raise item
        return results


class _TurnRun:
    """State for one pass through ``ChatEngine.handle_utterance``."""

    def __init__(
        self,
        engine: ChatEngine,
        on_turn: TurnCallback | None,
        on_state: StateCallback | None,
    ) -> None:
        self.engine = engine
        self.on_turn = on_turn
        self.on_state = on_state
        self.outcome = TurnOutcome()

    def append(self, turn: Turn) -> None:
        self.engine.store.append(turn)
        self.outcome.turns.append(turn)
        if turn.role is TurnRole.ASSISTANT and not turn.is_proposal:
            self.outcome.reply = turn.content
        if self.on_turn is not None:
            self.on_turn(turn)

    def enter(self, state: TurnState) -> None:
        self.engine.state = state
        self.outcome.states.append(state)
        self.outcome.final_state = state
        if self.on_state is not None:
            self.on_state(state)

    def fail(self, error: GatewayError) -> None:
        self.outcome.error = error
        self.append(Turn.assistant(describe_gateway_error(error)))
        self.enter(TurnState.FAILED)

    async def submit(self, gateway: ModelGateway, proposing: bool, tools: list[dict]):
        self.enter(TurnState.SUBMITTING)
        self.outcome.gateway_calls += 1
        instruction = build_system_instruction(self.engine.active_sheet, proposing=proposing)
        return await gateway.complete(instruction, list(self.engine.store.snapshot()), tools)

    async def run(self, text: str, tagged_sheets: list[str]) -> None:
        engine = self.engine

        active_sheet = await engine.refresh_active_sheet()
        self.append(Turn.user(f"[Active Worksheet: {active_sheet}] {text}"))

        try:
            engine.ensure_configured()
        except ConfigurationError as e:
            logger.warning(f"Turn rejected: {e}")
            self.append(Turn.assistant(MISSING_CREDENTIAL_MESSAGE))
            self.enter(TurnState.FAILED)
            return

        gateway = engine.gateway

        if tagged_sheets:
            for notice in await engine.embedder.prime(gateway, tagged_sheets):
                self.append(Turn.assistant(notice))

        tools = engine.registry.to_tools(await engine.current_selection())

        try:
            first = await self.submit(gateway, proposing=True, tools=tools)
        except GatewayError as e:
            self.fail(e)
            return

        if isinstance(first, DirectReply):
            self.append(Turn.assistant(first.text or EMPTY_REPLY_MESSAGE))
            self.enter(TurnState.REPLIED_DIRECT)
            return

        self.enter(TurnState.AWAITING_TOOL_EXECUTION)
        self.append(Turn.proposal(first.invocations, content=first.content))

        self.enter(TurnState.EXECUTING_TOOLS)
        results = await engine.execute_all(first.invocations)
        self.outcome.results = results
        for result in results:
            self.append(Turn.tool_result(result))

        try:
            second = await self.submit(gateway, proposing=False, tools=tools)
        except GatewayError as e:
            self.fail(e)
            return

        if isinstance(second, DirectReply) and second.text.strip():
            self.append(Turn.assistant(second.text))
        else:
            # Only one follow-up round is run; further proposals are not executed.
            logger.warning("Second round produced no reply; summarizing tool results")
            self.append(Turn.assistant(summarize_results(results)))
        self.enter(TurnState.REPLIED_FINAL)
