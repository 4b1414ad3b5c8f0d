"""Configuration management for the recent-conversations core."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server
    zulip_site: str = Field(
        default="https://chat.zulip.org",
        description="Base URL of the Zulip realm",
    )
    zulip_email: Optional[str] = None
    zulip_api_key: Optional[str] = None

    # HTTP
    http_timeout_seconds: float = Field(default=30.0)
    http_max_attempts: int = Field(default=3, ge=1)

    # Previews
    preview_max_length: int = Field(default=150)
    preview_cache_size: int = Field(default=200)

    # Backfill
    backfill_batch_size: int = Field(default=100)
    backfill_strategy: str = Field(
        default="classified",
        description="'classified' (four parallel queries) or 'combined' (one filtered feed)",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    @field_validator("zulip_site")
    @classmethod
    def validate_zulip_site(cls, v: str) -> str:
        if not v:
            raise ValueError("ZULIP_SITE is required")
        return v.rstrip("/")

    @field_validator("preview_max_length")
    @classmethod
    def validate_preview_max_length(cls, v: int) -> int:
        # Room for at least one character plus the ellipsis.
        if v < 2:
            raise ValueError("PREVIEW_MAX_LENGTH must be at least 2")
        return v

    @field_validator("preview_cache_size")
    @classmethod
    def validate_preview_cache_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("PREVIEW_CACHE_SIZE must be at least 1")
        return v

    @field_validator("backfill_batch_size")
    @classmethod
    def validate_backfill_batch_size(cls, v: int) -> int:
        if not 1 <= v <= 5000:
            raise ValueError("BACKFILL_BATCH_SIZE must be between 1 and 5000")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL")
        return v

    @field_validator("backfill_strategy")
    @classmethod
    def validate_backfill_strategy(cls, v: str) -> str:
        v = v.lower()
        if v not in ("classified", "combined"):
            raise ValueError("BACKFILL_STRATEGY must be 'classified' or 'combined'")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
