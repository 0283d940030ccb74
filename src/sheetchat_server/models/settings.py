"""Pydantic models for the settings endpoints."""

from pydantic import BaseModel, Field


class CredentialRequest(BaseModel):
    """Request body for PUT /api/v1/settings/credential.

    An empty or null key clears the credential.
    """

    api_key: str | None = Field(default=None, description="API key for the model service")


class CredentialResponse(BaseModel):
    """Whether a credential is configured after the update."""

    credential_configured: bool
