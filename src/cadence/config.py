"""Configuration management for cadence."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings, read from ``CADENCE_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Context window
    max_context_tokens: int = Field(default=160_000, gt=0, description="Token budget for assembled context")

    # Turn loop
    task_timeout_ms: int = Field(default=300_000, gt=0, description="Default task deadline when no contract sets one")
    retry_delays: tuple[float, ...] = Field(
        default=(1.0, 2.0, 4.0), description="Backoff delays in seconds between retryable backend errors"
    )
    tool_timeout_seconds: float = Field(default=30.0, gt=0, description="Per tool call timeout")

    # Routing
    confidence_threshold: float = Field(default=0.75, ge=0, le=1, description="Minimum tier-1 confidence")
    classifier_model: str | None = Field(default=None, description="Model used for tier-2 classification")
    classifier_cache_ttl_seconds: float = Field(default=300.0, ge=0, description="Tier-2 cache lifetime")
    compat_mode: bool = Field(default=False, description="Resolve legacy /plugin:command aliases")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")


def get_settings() -> Settings:
    """Load settings from the environment."""

    return Settings()
