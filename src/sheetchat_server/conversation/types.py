"""Data types for the conversation transcript.

This module defines turns, the unit of conversation history, and the
invocation request/result pair exchanged between the model and the
capability adapter within a single user turn.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _turn_id() -> str:
    return uuid.uuid4().hex[:10]


class TurnRole(str, Enum):
    """Who produced a turn. Values match the model service's message roles."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL_RESULT = "tool"


@dataclass(frozen=True)
class InvocationRequest:
    """A tool call proposed by the model.

    ``raw_arguments`` is the serialized JSON text; it is parsed and validated
    against the capability's schema only when dispatched.
    """

    id: str
    name: str
    raw_arguments: str


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of one invocation, correlated to its request by ``id``."""

    id: str
    name: str
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class Turn:
    """One immutable entry of conversation history.

    An assistant turn carrying ``invocations`` is the model's tool-call
    proposal; it is kept in the transcript so later rounds see the
    tool results in the order the model expects.
    """

    role: TurnRole
    content: str = ""
    correlation_id: str | None = None
    tool_name: str | None = None
    invocations: tuple[InvocationRequest, ...] = ()
    turn_id: str = field(default_factory=_turn_id)
    timestamp: str = field(default_factory=_now)

    @property
    def is_proposal(self) -> bool:
        return self.role is TurnRole.ASSISTANT and bool(self.invocations)

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(role=TurnRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Turn":
        return cls(role=TurnRole.ASSISTANT, content=content)

    @classmethod
    def proposal(cls, invocations: list[InvocationRequest], content: str = "") -> "Turn":
        return cls(role=TurnRole.ASSISTANT, content=content, invocations=tuple(invocations))

    @classmethod
    def tool_result(cls, result: InvocationResult) -> "Turn":
        return cls(
            role=TurnRole.TOOL_RESULT,
            content=result.content,
            correlation_id=result.id,
            tool_name=result.name,
        )
