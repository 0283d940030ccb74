"""Configuration module for sheetchat-server using pydantic-settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SheetchatSettings(BaseSettings):
    """Main configuration settings for sheetchat-server.

    All settings can be overridden via environment variables with the SHEETCHAT_ prefix.
    For example, SHEETCHAT_API_KEY will override the api_key setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Model service
    ollama_host: str = "http://localhost:11434"
    api_key: str | None = None
    require_api_key: bool = True
    model: str = "llama3.1:latest"
    embedding_model: str = "nomic-embed-text"

    # Workbook
    initial_sheets: list[str] = Field(default_factory=lambda: ["Sheet1"])

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="SHEETCHAT_")
