"""Chat orchestration for sheetchat-server.

This package provides the chat engine that runs the two-round tool-call
loop, its turn states, the system instruction, and the best-effort sheet
embedding step.
"""

from sheetchat_server.orchestration.embedding import SheetEmbedder
from sheetchat_server.orchestration.engine import ChatEngine
from sheetchat_server.orchestration.state import TurnOutcome, TurnState

__all__ = ["ChatEngine", "SheetEmbedder", "TurnOutcome", "TurnState"]
