"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject common dependencies like settings, the chat
engine and the workbook.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from sheetchat_server.config import SheetchatSettings
from sheetchat_server.orchestration import ChatEngine
from sheetchat_server.workbook import SpreadsheetHost


@lru_cache
def get_settings() -> SheetchatSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the SHEETCHAT_ prefix.

    Returns:
        SheetchatSettings: The application configuration settings.
    """
    return SheetchatSettings()


def _not_initialized(component: str) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={
            "error": {
                "code": "not_initialized",
                "message": f"{component} not initialized",
                "details": {},
            }
        },
    )


def get_engine(request: Request) -> ChatEngine:
    """Get the chat engine from app state.

    Raises:
        HTTPException: If the engine is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "engine"):
        raise _not_initialized("Chat engine")
    return request.app.state.engine


def get_workbook(request: Request) -> SpreadsheetHost:
    """Get the spreadsheet host from app state.

    Raises:
        HTTPException: If the workbook is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "workbook"):
        raise _not_initialized("Workbook")
    return request.app.state.workbook
