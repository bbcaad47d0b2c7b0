"""Configuration settings for the ride ledger."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Hosted backend
    backend_url: str = Field(
        default="http://localhost:54321", validation_alias="BACKEND_URL"
    )
    backend_anon_key: SecretStr = Field(..., validation_alias="BACKEND_ANON_KEY")
    backend_timeout: float = Field(default=30.0, validation_alias="BACKEND_TIMEOUT")

    # Account used by the command line
    ledger_email: str | None = Field(default=None, validation_alias="LEDGER_EMAIL")
    ledger_password: SecretStr | None = Field(
        default=None, validation_alias="LEDGER_PASSWORD"
    )

    # Ledger behavior
    bulk_chunk_size: int = Field(default=200, ge=1, validation_alias="BULK_CHUNK_SIZE")
    recent_limit: int = Field(default=50, ge=1, validation_alias="RECENT_LIMIT")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
