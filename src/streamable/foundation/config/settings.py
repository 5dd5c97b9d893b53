"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults. Supports .env files and nested configuration.

Example:
    >>> from streamable.foundation.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.scheduling.start_delay)
    0.0
    >>> print(settings.logging.level)
    'INFO'

    # Or with environment variables:
    # STREAMABLE_SCHED_START_DELAY=0.001
    # STREAMABLE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, NonNegativeFloat, NonNegativeInt, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STREAMABLE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class SchedulingSettings(BaseSettings):
    """Stream start-up and buffering behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="STREAMABLE_SCHED_",
        extra="ignore",
    )

    start_delay: NonNegativeFloat = Field(
        default=0.0,
        description="Seconds to wait before a producer starts (0 = next loop iteration)",
    )
    collect_warn_threshold: NonNegativeInt = Field(
        default=100_000,
        description="Warn once when then() buffers more items than this (0 disables)",
    )
    warn_deprecated_inputs: bool = Field(
        default=True,
        description="Emit DeprecationWarning when combinators receive awaitable batch inputs",
    )

    @computed_field
    @property
    def defers_with_timer(self) -> bool:
        """Whether start-up uses call_later instead of call_soon."""
        return self.start_delay > 0


class StreamableSettings(BaseSettings):
    """Root settings for streamable.

    Loads configuration from environment variables with STREAMABLE_ prefix.

    Example environment variables:
        STREAMABLE_DEBUG=true
        STREAMABLE_LOG_FORMAT=json
        STREAMABLE_SCHED_COLLECT_WARN_THRESHOLD=5000
    """

    model_config = SettingsConfigDict(
        env_prefix="STREAMABLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Log every dispatched event at debug level")

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)


@lru_cache(maxsize=1)
def get_settings() -> StreamableSettings:
    """Get the global settings instance (cached)."""
    return StreamableSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
