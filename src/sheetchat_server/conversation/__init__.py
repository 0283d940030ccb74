"""Conversation transcript for sheetchat-server.

This package provides the turn data model and the append-only store that
forms the prompt context sent to the model service.
"""

from sheetchat_server.conversation.store import ConversationStore
from sheetchat_server.conversation.types import (
    InvocationRequest,
    InvocationResult,
    Turn,
    TurnRole,
)

__all__ = [
    "ConversationStore",
    "InvocationRequest",
    "InvocationResult",
    "Turn",
    "TurnRole",
]
