"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from sheetchat_server.models.health import HealthResponse
from sheetchat_server.orchestration import ChatEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns the current health status and version of the sheetchat-server.
    Also checks connectivity to the model service if the engine is initialized.

    Args:
        request: The FastAPI request object.

    Returns:
        HealthResponse: Health status and version information.
    """
    ollama_connected = None
    ollama_host = None
    model = None
    credential_configured = False

    if hasattr(request.app.state, "engine"):
        engine: ChatEngine = request.app.state.engine
        ollama_host = engine.gateway.host
        model = engine.gateway.model
        credential_configured = engine.has_credential

        try:
            ollama_connected = await engine.gateway.check_connection()
            logger.debug(f"Model service connectivity check: {ollama_connected}")
        except Exception as e:
            logger.warning(f"Model service connectivity check failed: {e}")
            ollama_connected = False

    return HealthResponse(
        status="ok",
        version="0.1.0",
        ollama_connected=ollama_connected,
        ollama_host=ollama_host,
        model=model,
        credential_configured=credential_configured,
    )
