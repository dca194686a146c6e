"""Settings for the emma-chat function."""
from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Read from EMMA_* environment variables or a .env file."""

    model_config = SettingsConfigDict(env_prefix="EMMA_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Everence AI Assistant"
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("EMMA_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    model: str = "gpt-4o"
    max_tokens: int = 1024
    request_timeout: float = 60.0
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
