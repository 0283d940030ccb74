"""Unit tests for the chat engine's two-round orchestration loop."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from sheetchat_server.capabilities import build_default_registry
from sheetchat_server.capabilities.adapter import UNSUPPORTED_MESSAGE
from sheetchat_server.conversation import InvocationRequest, InvocationResult, TurnRole
from sheetchat_server.errors import GatewayError, GatewayErrorKind
from sheetchat_server.gateway import DirectReply, ProposedInvocations
from sheetchat_server.orchestration import ChatEngine, TurnState
from sheetchat_server.orchestration.engine import (
    INVALID_CREDENTIAL_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
)
from sheetchat_server.orchestration.prompts import ORDERING_HINT, build_system_instruction


def proposal(*calls) -> ProposedInvocations:
    """Round-1 response proposing the given (name, arguments) calls."""
    return ProposedInvocations(
        invocations=[
            InvocationRequest(
                id=f"call_{index}",
                name=name,
                raw_arguments=arguments if isinstance(arguments, str) else json.dumps(arguments),
            )
            for index, (name, arguments) in enumerate(calls)
        ]
    )


def roles(turns) -> list[str]:
    return [
        "proposal" if turn.is_proposal else turn.role.value
        for turn in turns
    ]


class TestDirectReply:
    """Round 1 answers without proposing tools."""

    @pytest.mark.asyncio
    async def test_direct_reply_skips_adapter(self, engine, mock_gateway):
        """Test that a direct reply makes one gateway call and no adapter calls."""
        mock_gateway.complete.side_effect = [DirectReply(text="Hello!")]
        engine.adapter.execute = AsyncMock()

        outcome = await engine.handle_utterance("Hi")

        assert outcome.final_state is TurnState.REPLIED_DIRECT
        assert outcome.reply == "Hello!"
        assert outcome.gateway_calls == 1
        assert mock_gateway.complete.await_count == 1
        engine.adapter.execute.assert_not_awaited()
        assert roles(engine.store.snapshot()) == ["user", "assistant"]
        assert outcome.states == [TurnState.SUBMITTING, TurnState.REPLIED_DIRECT]
        assert engine.state is TurnState.IDLE

    @pytest.mark.asyncio
    async def test_user_turn_is_prefixed_with_active_sheet(self, engine, mock_gateway):
        """Test the active worksheet prefix on the recorded user turn."""
        mock_gateway.complete.side_effect = [DirectReply(text="ok")]

        await engine.handle_utterance("Hi")

        assert engine.store.snapshot()[0].content == "[Active Worksheet: Sheet1] Hi"

    @pytest.mark.asyncio
    async def test_round_one_gets_full_catalog_and_instruction(self, engine, mock_gateway):
        """Test what round 1 submits."""
        mock_gateway.complete.side_effect = [DirectReply(text="ok")]

        await engine.handle_utterance("Hi")

        instruction, turns, tools = mock_gateway.complete.call_args.args
        assert instruction == build_system_instruction("Sheet1", proposing=True)
        assert instruction.endswith(ORDERING_HINT)
        assert [t.role for t in turns] == [TurnRole.USER]
        assert [t["function"]["name"] for t in tools] == engine.registry.names()

    @pytest.mark.asyncio
    async def test_selection_is_rendered_into_catalog(self, engine, workbook, mock_gateway):
        """Test that the live selection parameterizes write_selected_range."""
        await workbook.select_range("B2:C3")
        mock_gateway.complete.side_effect = [DirectReply(text="ok")]

        await engine.handle_utterance("Fill the selection")

        tools = mock_gateway.complete.call_args.args[2]
        description = next(
            t["function"]["description"]
            for t in tools
            if t["function"]["name"] == "write_selected_range"
        )
        assert "B2:C3" in description
        assert "2x2" in description

    @pytest.mark.asyncio
    async def test_empty_direct_reply_gets_fallback_text(self, engine, mock_gateway):
        """Test that an empty round-1 reply still leaves a visible turn."""
        mock_gateway.complete.side_effect = [DirectReply(text="")]

        outcome = await engine.handle_utterance("Hi")

        assert outcome.final_state is TurnState.REPLIED_DIRECT
        assert outcome.reply
        assert roles(engine.store.snapshot()) == ["user", "assistant"]


class TestToolRounds:
    """Round 1 proposes tools, round 2 synthesizes."""

    @pytest.mark.asyncio
    async def test_read_cell_scenario(self, engine, mock_gateway):
        """Test: "What's in A1?" -> read_cell -> reply quoting the value."""
        mock_gateway.complete.side_effect = [
            proposal(("read_cell", {"cellAddress": "A1"})),
            DirectReply(text="Cell A1 contains 42."),
        ]

        outcome = await engine.handle_utterance("What's in A1?")

        assert outcome.final_state is TurnState.REPLIED_FINAL
        assert outcome.gateway_calls == 2
        assert outcome.reply == "Cell A1 contains 42."
        assert [r.content for r in outcome.results] == ['The value in cell A1 is "42"']

        transcript = engine.store.snapshot()
        assert roles(transcript) == ["user", "proposal", "tool", "assistant"]
        assert transcript[2].correlation_id == "call_0"
        assert transcript[2].tool_name == "read_cell"
        assert outcome.states == [
            TurnState.SUBMITTING,
            TurnState.AWAITING_TOOL_EXECUTION,
            TurnState.EXECUTING_TOOLS,
            TurnState.SUBMITTING,
            TurnState.REPLIED_FINAL,
        ]

    @pytest.mark.asyncio
    async def test_round_two_sees_proposal_then_results(self, engine, mock_gateway):
        """Test the ordering of the transcript sent to round 2."""
        mock_gateway.complete.side_effect = [
            proposal(("read_cell", {"cellAddress": "A1"}), ("read_cell", {"cellAddress": "A2"})),
            DirectReply(text="A1 is 42 and A2 is 7."),
        ]

        await engine.handle_utterance("Read A1 and A2")

        instruction, turns, tools = mock_gateway.complete.call_args_list[1].args
        assert roles(turns) == ["user", "proposal", "tool", "tool"]
        assert [t.correlation_id for t in turns[2:]] == ["call_0", "call_1"]
        assert [t.content for t in turns[2:]] == [
            'The value in cell A1 is "42"',
            'The value in cell A2 is "7"',
        ]
        assert not instruction.endswith(ORDERING_HINT)
        assert len(tools) == len(engine.registry)

    @pytest.mark.asyncio
    async def test_sort_scenario(self, engine, workbook, mock_gateway):
        """Test: sort A1:C10 by column 0 ascending -> success -> confirmation."""
        await workbook.write_range("A1", [[3, "c"], [1, "a"], [2, "b"]])
        mock_gateway.complete.side_effect = [
            proposal(
                (
                    "sort_data",
                    {"range": "A1:C10", "sortFields": [{"key": 0, "ascending": True}]},
                )
            ),
            DirectReply(text="Sorted."),
        ]

        outcome = await engine.handle_utterance("Sort A1:C10 by column 0 ascending")

        assert outcome.results[0].content == "Range A1:C10 sorted successfully."
        assert outcome.results[0].is_error is False
        assert outcome.reply == "Sorted."
        assert (await workbook.get_range_data("A1:A3")).values == [[1], [2], [3]]

    @pytest.mark.asyncio
    async def test_one_result_per_request_matched_by_id(self, engine, mock_gateway):
        """Test that tool-result turns equal the proposed requests, one-to-one."""
        mock_gateway.complete.side_effect = [
            proposal(
                ("list_worksheet_names", {}),
                ("get_active_worksheet_name", {}),
                ("read_cell", {"cellAddress": "B2"}),
            ),
            DirectReply(text="done"),
        ]

        outcome = await engine.handle_utterance("Tell me about the workbook")

        tool_turns = [t for t in outcome.turns if t.role is TurnRole.TOOL_RESULT]
        assert [t.correlation_id for t in tool_turns] == ["call_0", "call_1", "call_2"]
        assert [r.id for r in outcome.results] == ["call_0", "call_1", "call_2"]

    @pytest.mark.asyncio
    async def test_unknown_capability_is_isolated(self, engine, mock_gateway):
        """Test that one unknown name does not affect its siblings."""
        mock_gateway.complete.side_effect = [
            proposal(
                ("read_cell", {"cellAddress": "A1"}),
                ("delete_everything", {}),
                ("list_worksheet_names", {}),
            ),
            DirectReply(text="I could not delete everything."),
        ]

        outcome = await engine.handle_utterance("Read A1 and delete everything")

        contents = [r.content for r in outcome.results]
        assert contents == [
            'The value in cell A1 is "42"',
            UNSUPPORTED_MESSAGE,
            "The worksheets in this workbook are: Sheet1, Sales",
        ]
        assert outcome.final_state is TurnState.REPLIED_FINAL

    @pytest.mark.asyncio
    async def test_malformed_arguments_scenario(self, engine, mock_gateway):
        """Test: one valid call and one missing dataRange -> both results, round 2 runs."""
        mock_gateway.complete.side_effect = [
            proposal(("list_worksheet_names", {}), ("add_chart", {"chartType": "Pie"})),
            DirectReply(text="I listed the sheets but the chart needs a range."),
        ]

        outcome = await engine.handle_utterance("List sheets and add a pie chart")

        listed, chart = outcome.results
        assert listed.content == "The worksheets in this workbook are: Sheet1, Sales"
        assert chart.is_error is True
        assert chart.content.startswith("Error:")
        assert "dataRange" in chart.content
        assert outcome.gateway_calls == 2
        assert outcome.final_state is TurnState.REPLIED_FINAL

    @pytest.mark.asyncio
    async def test_empty_round_two_appends_summary(self, engine, mock_gateway):
        """Test the fallback when round 2 returns no content."""
        mock_gateway.complete.side_effect = [
            proposal(("read_cell", {"cellAddress": "A1"})),
            DirectReply(text="   "),
        ]

        outcome = await engine.handle_utterance("What's in A1?")

        assert outcome.final_state is TurnState.REPLIED_FINAL
        assert 'read_cell: The value in cell A1 is "42"' in outcome.reply
        assert roles(engine.store.snapshot())[-1] == "assistant"

    @pytest.mark.asyncio
    async def test_round_two_proposals_are_not_executed(self, engine, mock_gateway):
        """Test that no third round happens when round 2 proposes again."""
        mock_gateway.complete.side_effect = [
            proposal(("read_cell", {"cellAddress": "A1"})),
            proposal(("write_range", {"startCell": "A1", "values": [["overwritten"]]})),
        ]

        outcome = await engine.handle_utterance("What's in A1?")

        assert outcome.gateway_calls == 2
        assert mock_gateway.complete.await_count == 2
        assert len(outcome.results) == 1
        assert await engine.host.read_cell("A1") == 42
        assert outcome.final_state is TurnState.REPLIED_FINAL


class TestFailures:
    """Configuration and gateway failures end the turn, not the session."""

    @pytest.mark.asyncio
    async def test_missing_credential(self, workbook, gateway_factory, mock_gateway):
        """Test: no credential -> zero gateway calls, one explanatory turn."""
        engine = ChatEngine(
            host=workbook,
            registry=build_default_registry(),
            gateway_factory=gateway_factory,
            api_key=None,
        )

        outcome = await engine.handle_utterance("What's in A1?")

        mock_gateway.complete.assert_not_awaited()
        assert outcome.gateway_calls == 0
        assert outcome.final_state is TurnState.FAILED
        assert roles(engine.store.snapshot()) == ["user", "assistant"]
        assert outcome.reply == MISSING_CREDENTIAL_MESSAGE
        assert engine.state is TurnState.IDLE

    @pytest.mark.asyncio
    async def test_credential_not_required(self, workbook, gateway_factory, mock_gateway):
        """Test that a keyless local model service can be allowed."""
        engine = ChatEngine(
            host=workbook,
            registry=build_default_registry(),
            gateway_factory=gateway_factory,
            require_api_key=False,
        )
        mock_gateway.complete.side_effect = [DirectReply(text="hi")]

        outcome = await engine.handle_utterance("Hi")

        assert outcome.final_state is TurnState.REPLIED_DIRECT

    @pytest.mark.asyncio
    async def test_round_one_unauthorized(self, engine, mock_gateway):
        """Test: round-1 failure -> one assistant turn, zero adapter calls."""
        mock_gateway.complete.side_effect = [
            GatewayError(GatewayErrorKind.UNAUTHORIZED, "invalid api key")
        ]
        engine.adapter.execute = AsyncMock()

        outcome = await engine.handle_utterance("What's in A1?")

        assert outcome.final_state is TurnState.FAILED
        assert outcome.reply == INVALID_CREDENTIAL_MESSAGE
        assert outcome.error.kind is GatewayErrorKind.UNAUTHORIZED
        assert roles(outcome.turns) == ["user", "assistant"]
        engine.adapter.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_round_one_generic_error(self, engine, mock_gateway):
        """Test that other failures quote their detail."""
        mock_gateway.complete.side_effect = [
            GatewayError(GatewayErrorKind.RATE_LIMITED, "Too many requests")
        ]

        outcome = await engine.handle_utterance("Hi")

        assert outcome.reply == "Error: Too many requests"

    @pytest.mark.asyncio
    async def test_round_two_failure_keeps_tool_results(self, engine, mock_gateway):
        """Test that a round-2 failure still reports after tools ran."""
        mock_gateway.complete.side_effect = [
            proposal(("write_range", {"startCell": "D1", "values": [["x"]]})),
            GatewayError(GatewayErrorKind.UNKNOWN, "connection reset"),
        ]

        outcome = await engine.handle_utterance("Write x to D1")

        assert outcome.final_state is TurnState.FAILED
        assert outcome.reply == "Error: connection reset"
        assert roles(outcome.turns) == ["user", "proposal", "tool", "assistant"]
        assert await engine.host.read_cell("D1") == "x"

    @pytest.mark.asyncio
    async def test_failure_does_not_affect_next_turn(self, engine, mock_gateway):
        """Test that errors are turn-scoped."""
        mock_gateway.complete.side_effect = [
            GatewayError(GatewayErrorKind.UNKNOWN, "boom"),
            DirectReply(text="Back again."),
        ]

        first = await engine.handle_utterance("Hi")
        second = await engine.handle_utterance("Hi again")

        assert first.final_state is TurnState.FAILED
        assert second.final_state is TurnState.REPLIED_DIRECT
        assert second.reply == "Back again."
        assert len(engine.store) == 4


class TestFanOut:
    """Concurrent execution of a batch."""

    @pytest.mark.asyncio
    async def test_results_aligned_regardless_of_completion_order(self, engine):
        """Test positional alignment when later calls finish first."""
        delays = {"call_0": 0.03, "call_1": 0.0, "call_2": 0.01}
        finished: list[str] = []

        async def execute(request):
            await asyncio.sleep(delays[request.id])
            finished.append(request.id)
            return InvocationResult(id=request.id, name=request.name, content=request.id)

        engine.adapter.execute = execute
        requests = proposal(("a", {}), ("b", {}), ("c", {})).invocations

        results = await engine.execute_all(requests)

        assert finished == ["call_1", "call_2", "call_0"]
        assert [r.id for r in results] == ["call_0", "call_1", "call_2"]

    @pytest.mark.asyncio
    async def test_escaped_exception_becomes_error_result(self, engine):
        """Test that an unexpected failure still fills its slot."""

        async def execute(request):
            if request.id == "call_1":
                raise RuntimeError("host vanished")
            return InvocationResult(id=request.id, name=request.name, content="ok")

        engine.adapter.execute = execute
        requests = proposal(("a", {}), ("b", {}), ("c", {})).invocations

        results = await engine.execute_all(requests)

        assert [r.content for r in results] == ["ok", "Error: host vanished", "ok"]
        assert results[1].is_error is True
        assert results[1].id == "call_1"


class TestEmbeddingPreStep:
    """Tagged sheets are embedded before round 1."""

    @pytest.mark.asyncio
    async def test_tagged_sheet_notice(self, engine, mock_gateway):
        """Test that a successful embedding adds a notice before the reply."""
        mock_gateway.complete.side_effect = [DirectReply(text="ok")]

        outcome = await engine.handle_utterance("Summarize", tagged_sheets=["Sales"])

        assert [t.content for t in outcome.turns[1:]] == [
            'Embedding for worksheet "Sales" created successfully.',
            "ok",
        ]
        assert "Sales" in engine.embedder.vectors

    @pytest.mark.asyncio
    async def test_embedding_failure_does_not_block(self, engine, mock_gateway):
        """Test that embedding errors are reported and round 1 still runs."""
        mock_gateway.embed.side_effect = GatewayError(GatewayErrorKind.UNKNOWN, "no model")
        mock_gateway.complete.side_effect = [DirectReply(text="ok")]

        outcome = await engine.handle_utterance("Summarize", tagged_sheets=["Sales"])

        assert outcome.turns[1].content == "Error creating embedding. Please try again."
        assert outcome.reply == "ok"
        assert outcome.gateway_calls == 1


class TestSessionState:
    """Active sheet tracking, credentials and serialization."""

    @pytest.mark.asyncio
    async def test_active_sheet_change_between_turns(self, engine, workbook, mock_gateway):
        """Test that the next turn reflects a sheet switch."""
        mock_gateway.complete.side_effect = [DirectReply(text="a"), DirectReply(text="b")]
        await engine.handle_utterance("first")

        await workbook.set_active_worksheet("Sales")
        assert engine.active_sheet == "Sales"
        await engine.handle_utterance("second")

        assert engine.store.snapshot()[2].content == "[Active Worksheet: Sales] second"
        instruction = mock_gateway.complete.call_args.args[0]
        assert '"Sales"' in instruction

    @pytest.mark.asyncio
    async def test_active_sheet_read_failure_uses_last_known(self, engine, workbook):
        """Test the fallback when the host cannot report the active sheet."""
        await engine.refresh_active_sheet()
        workbook.get_active_worksheet_name = AsyncMock(side_effect=RuntimeError("gone"))

        assert await engine.refresh_active_sheet() == "Sheet1"

    @pytest.mark.asyncio
    async def test_current_selection(self, engine, workbook):
        """Test reading the live selection, and None when the host fails."""
        await workbook.select_range("A1:B2")

        selection = await engine.current_selection()
        assert selection.address == "A1:B2"

        workbook.get_selected_range_info = AsyncMock(side_effect=RuntimeError("gone"))
        assert await engine.current_selection() is None

    def test_update_credential_rebuilds_gateway(self, engine, gateway_factory):
        """Test that changing the key builds a new gateway through the factory."""
        replacement = MagicMock()
        gateway_factory.return_value = replacement

        engine.update_credential("new-key")

        gateway_factory.assert_called_with("new-key")
        assert engine.gateway is replacement
        assert engine.has_credential

    @pytest.mark.asyncio
    async def test_clearing_credential_fails_next_turn(self, engine, mock_gateway):
        """Test that removing the key makes the next turn fail fast."""
        engine.update_credential("")

        outcome = await engine.handle_utterance("Hi")

        assert outcome.reply == MISSING_CREDENTIAL_MESSAGE
        mock_gateway.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_callbacks_observe_turns_and_states(self, engine, mock_gateway):
        """Test the on_turn and on_state hooks."""
        mock_gateway.complete.side_effect = [DirectReply(text="ok")]
        seen_turns, seen_states = [], []

        await engine.handle_utterance(
            "Hi", on_turn=seen_turns.append, on_state=seen_states.append
        )

        assert [t.role for t in seen_turns] == [TurnRole.USER, TurnRole.ASSISTANT]
        assert seen_states == [TurnState.SUBMITTING, TurnState.REPLIED_DIRECT]

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_serialized(self, engine, mock_gateway):
        """Test that a second turn waits for the first to finish."""

        async def slow_reply(instruction, turns, tools):
            await asyncio.sleep(0.01)
            return DirectReply(text=f"reply to {turns[-1].content}")

        mock_gateway.complete.side_effect = slow_reply

        await asyncio.gather(
            engine.handle_utterance("one"),
            engine.handle_utterance("two"),
        )

        contents = [t.content for t in engine.store.snapshot()]
        assert contents == [
            "[Active Worksheet: Sheet1] one",
            "reply to [Active Worksheet: Sheet1] one",
            "[Active Worksheet: Sheet1] two",
            "reply to [Active Worksheet: Sheet1] two",
        ]
