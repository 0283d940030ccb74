"""Type definitions for model gateway responses.

A single model round trip yields exactly one of two shapes: a direct
natural-language reply, or a batch of proposed tool invocations.
"""

from dataclasses import dataclass, field

from sheetchat_server.conversation.types import InvocationRequest


@dataclass(frozen=True)
class DirectReply:
    """The model answered in text."""

    text: str


@dataclass(frozen=True)
class ProposedInvocations:
    """The model asked for one or more tool calls.

    Attributes:
        invocations: Proposed calls in the order the model listed them
        content: Any text the model sent alongside the calls
    """

    invocations: list[InvocationRequest] = field(default_factory=list)
    content: str = ""


ModelResponse = DirectReply | ProposedInvocations
