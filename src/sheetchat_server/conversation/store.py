"""Append-only conversation store.

The store is the single record of a session's transcript. Only the chat
engine appends to it; any number of readers may take snapshots at the same
time (for example the transcript endpoint while a turn is in flight).
"""

import logging
import threading

from sheetchat_server.conversation.types import Turn

logger = logging.getLogger(__name__)


class ConversationStore:
    """Ordered, append-only sequence of turns for one session.

    Turns are never reordered, edited or removed. ``snapshot()`` returns an
    immutable tuple, so a reader observes the transcript either before or
    after an append, never in between.
    """

    def __init__(self) -> None:
        self._turns: list[Turn] = []
        self._lock = threading.Lock()

    def append(self, turn: Turn) -> None:
        """Append a turn to the end of the transcript.

        Args:
            turn: The turn to record

        Raises:
            TypeError: If ``turn`` is not a Turn
        """
        if not isinstance(turn, Turn):
            raise TypeError(f"Expected Turn, got {type(turn).__name__}")
        with self._lock:
            self._turns.append(turn)
        logger.debug(f"Appended {turn.role.value} turn {turn.turn_id} ({len(self)} total)")

    def snapshot(self) -> tuple[Turn, ...]:
        """Get a read-only view of the transcript in append order."""
        with self._lock:
            return tuple(self._turns)

    def __len__(self) -> int:
        with self._lock:
            return len(self._turns)
