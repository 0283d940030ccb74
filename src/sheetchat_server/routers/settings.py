"""Settings API endpoints."""

import logging

from fastapi import APIRouter, Depends

from sheetchat_server.dependencies import get_engine
from sheetchat_server.models.settings import CredentialRequest, CredentialResponse
from sheetchat_server.orchestration import ChatEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


@router.put("/credential", response_model=CredentialResponse)
async def update_credential(
    request_body: CredentialRequest,
    engine: ChatEngine = Depends(get_engine),
) -> CredentialResponse:
    """Set or clear the model service API key.

    The engine builds a new model gateway with the key; the next turn uses it.
    """
    engine.update_credential(request_body.api_key)
    logger.info("Model service credential updated")
    return CredentialResponse(credential_configured=engine.has_credential)
