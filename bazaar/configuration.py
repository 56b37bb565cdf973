"""Mini README: Centralised configuration models and helpers for the bazaar.

Structure:
    * BazaarSettings - Pydantic model describing runtime configuration.
    * get_settings - cached accessor for environment-aware settings.

Usage:
    Import ``get_settings`` to read environment variables (prefixed with
    ``BAZAAR_``), choose where world settings are persisted, and specify the
    service port. World-level options such as denominations or the approval
    flag live in the settings store instead, because the authority edits them
    at runtime.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BazaarSettings(BaseSettings):
    """Runtime configuration for the bazaar authority process."""

    model_config = SettingsConfigDict(
        env_prefix="BAZAAR_",
        env_file=".env",
        case_sensitive=False,
    )

    environment: str = Field(
        "development",
        description="Environment label controlling debug toggles and logging levels.",
    )
    log_level: str = Field("INFO", description="Root logging level.")
    data_directory: Path = Field(
        Path("data"),
        description="Directory where the world settings file is stored.",
    )
    world_settings_file: str = Field(
        "world_settings.json",
        description="File name (inside the data directory) holding persisted world settings.",
    )
    authority_id: str = Field(
        "authority",
        min_length=1,
        description="Peer identifier reserved for the authority instance.",
    )
    interface_host: str = Field(
        "0.0.0.0",
        description="Network interface for the HTTP/WebSocket service to bind to.",
    )
    interface_port: int = Field(
        8000,
        description="Default port the service exposes.",
        ge=1,
        le=65535,
    )
    outcome_timeout_seconds: Optional[float] = Field(
        None,
        gt=0,
        description=(
            "How long HTTP submissions wait for a transaction outcome."
            " Leave unset to wait for as long as an approval takes."
        ),
    )

    @field_validator("data_directory", mode="before")
    @classmethod
    def _expand_path(cls, value: Optional[str | Path]) -> Path:
        """Ensure configured paths expand user directories and exist."""

        path = Path(value or "data").expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def world_settings_path(self) -> Path:
        """Full path of the persisted world settings document."""

        return self.data_directory / self.world_settings_file


@lru_cache()
def get_settings() -> BazaarSettings:
    """Return cached settings, ensuring consistent configuration across modules."""

    return BazaarSettings()
