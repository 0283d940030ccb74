"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for startup/shutdown
and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sheetchat_server.capabilities import build_default_registry
from sheetchat_server.config import SheetchatSettings
from sheetchat_server.gateway import ModelGateway
from sheetchat_server.orchestration import ChatEngine
from sheetchat_server.routers import chat, health, settings as settings_router, workbook
from sheetchat_server.workbook import InMemoryWorkbook

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    The workbook, the capability registry and the chat engine are created
    once at startup and stored in app.state for reuse across all requests.
    The engine owns its model gateway and rebuilds it through the factory
    whenever the credential changes.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: SheetchatSettings = app.state.settings

    def gateway_factory(api_key: str | None) -> ModelGateway:
        return ModelGateway(
            host=settings.ollama_host,
            model=settings.model,
            embedding_model=settings.embedding_model,
            api_key=api_key,
        )

    app.state.workbook = InMemoryWorkbook(settings.initial_sheets)
    app.state.engine = ChatEngine(
        host=app.state.workbook,
        registry=build_default_registry(),
        gateway_factory=gateway_factory,
        api_key=settings.api_key,
        require_api_key=settings.require_api_key,
    )
    logger.info(
        f"Initialized chat engine with {len(app.state.engine.registry)} capabilities "
        f"and worksheets: {', '.join(settings.initial_sheets)}"
    )

    if not app.state.engine.has_credential:
        logger.warning("No API key configured - chat turns will be rejected until one is set")

    # Check initial connectivity
    connected = await app.state.engine.gateway.check_connection()
    if connected:
        logger.info("Successfully connected to the model service")
    else:
        logger.warning("Could not connect to the model service - check if it is running")

    yield

    # Shutdown: Clean up resources
    if hasattr(app.state, "engine"):
        await app.state.engine.gateway.close()
        logger.info("Model gateway closed")


def create_app(settings: SheetchatSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional SheetchatSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from sheetchat_server.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="sheetchat-server",
        description="Conversational spreadsheet assistant driven by LLM tool calls",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(chat.router)
    app.include_router(workbook.router)
    app.include_router(settings_router.router)

    return app
