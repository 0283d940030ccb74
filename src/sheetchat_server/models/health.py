"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of sheetchat-server.
        ollama_connected: Whether the model service answered a connectivity check.
        ollama_host: The model service URL.
        model: Chat model used for both rounds.
        credential_configured: Whether chat turns can reach the model service.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of sheetchat-server")
    ollama_connected: bool | None = Field(
        default=None,
        description="Whether the model service is connected",
    )
    ollama_host: str | None = Field(
        default=None,
        description="Model service host URL",
    )
    model: str | None = Field(default=None, description="Chat model name")
    credential_configured: bool = Field(
        default=False,
        description="Whether an API key is configured",
    )
