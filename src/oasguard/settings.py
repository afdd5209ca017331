"""Shared settings loaded from environment / .env file."""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the oasguard API server and validation runs.

    Values are read from ``OASGUARD_``-prefixed environment variables and
    from a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="OASGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Shared
    log_level: str = "INFO"
    debug: bool = False  # log style results dropped by the adapter

    # REST API
    api_server_host: str = "localhost"
    api_server_port: int = 8000
    # Cloud Run injects PORT; takes precedence over api_server_port
    port: int | None = Field(default=None, validation_alias=AliasChoices("PORT", "OASGUARD_PORT"))

    @property
    def effective_port(self) -> int:
        """Return the port to listen on (Cloud Run PORT takes precedence)."""
        return self.port if self.port is not None else self.api_server_port

    # Validation
    fetch_timeout_seconds: float = 10.0
    max_document_size: int = 5_000_000  # characters
    config_file: Path | None = None  # .validaterc in the working directory when unset
