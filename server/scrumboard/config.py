"""
Configuration and settings for the scrumboard server.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    # Later files win, so secrets are never overridden by public values.
    model_config = SettingsConfigDict(
        env_file=(".env.public", ".env.secret"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")

    # Supabase (auth + scrum storage)
    supabase_url: Optional[str] = Field(default=None)
    supabase_key: Optional[str] = Field(default=None)
    supabase_admin_key: Optional[str] = Field(default=None)

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    # Built single-page application
    spa_dir: str = Field(default="dist/spa")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "SCRUMBOARD_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )
    in_memory_auto_confirm: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "SCRUMBOARD_IN_MEMORY_AUTO_CONFIRM", "in_memory_auto_confirm"
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
