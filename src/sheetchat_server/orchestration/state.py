"""Turn states and outcomes for the chat engine."""

from dataclasses import dataclass, field
from enum import Enum

from sheetchat_server.conversation.types import InvocationResult, Turn
from sheetchat_server.errors import GatewayError


class TurnState(str, Enum):
    """States a user turn moves through.

    Idle -> Submitting -> RepliedDirect -> Idle, or
    Idle -> Submitting -> AwaitingToolExecution -> ExecutingTools ->
    Submitting -> RepliedFinal -> Idle. Failed is reachable from the
    credential guard and from either Submitting state.
    """

    IDLE = "idle"
    SUBMITTING = "submitting"
    REPLIED_DIRECT = "replied_direct"
    AWAITING_TOOL_EXECUTION = "awaiting_tool_execution"
    EXECUTING_TOOLS = "executing_tools"
    REPLIED_FINAL = "replied_final"
    FAILED = "failed"


@dataclass
class TurnOutcome:
    """What happened during one user turn.

    Attributes:
        final_state: The terminal state the turn reached
        reply: Text of the last assistant turn appended, if any
        turns: Turns appended during this user turn, in order
        results: Invocation results, aligned with the proposed requests
        gateway_calls: Number of model round trips attempted
        states: Every state entered, in order
        error: The gateway failure that ended the turn, if any
    """

    final_state: TurnState = TurnState.IDLE
    reply: str | None = None
    turns: list[Turn] = field(default_factory=list)
    results: list[InvocationResult] = field(default_factory=list)
    gateway_calls: int = 0
    states: list[TurnState] = field(default_factory=list)
    error: GatewayError | None = None
