"""
Configuration and settings for the tracker.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the store, API and CLI."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("log_level", "SPEEDLESEN_LOG_LEVEL"),
    )

    # Transactional backend (any SQLAlchemy URL)
    database_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("database_url", "DATABASE_URL")
    )

    # Snapshot fallback file, used whenever the SQL backend is unavailable
    snapshot_path: str = Field(
        default="speedlesen_snapshot.json",
        validation_alias=AliasChoices("snapshot_path", "SPEEDLESEN_SNAPSHOT_PATH"),
    )

    # Development toggles
    use_snapshot_backend: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "use_snapshot_backend", "SPEEDLESEN_USE_SNAPSHOT_BACKEND"
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
