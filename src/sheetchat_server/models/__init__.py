"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from sheetchat_server.models.chat import (
    ChatRequest,
    ChatResponse,
    TranscriptResponse,
    TurnResponse,
)
from sheetchat_server.models.health import HealthResponse
from sheetchat_server.models.settings import CredentialRequest, CredentialResponse
from sheetchat_server.models.workbook import (
    SelectionRequest,
    SelectionResponse,
    SetActiveSheetRequest,
    WorksheetListResponse,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "CredentialRequest",
    "CredentialResponse",
    "HealthResponse",
    "SelectionRequest",
    "SelectionResponse",
    "SetActiveSheetRequest",
    "TranscriptResponse",
    "TurnResponse",
    "WorksheetListResponse",
]
