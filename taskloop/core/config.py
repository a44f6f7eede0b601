"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    taskloop_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    taskloop_debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    taskloop_log_dir: str = Field(
        default="logs",
        description="Directory for rotating log files",
    )

    # Retry policy
    taskloop_retry_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Fixed backoff between automatic retries in milliseconds",
    )

    # Context cache
    taskloop_cache_backend: Literal["memory", "sql"] = Field(
        default="sql",
        description="Where session context is cached",
    )
    taskloop_cache_url: str = Field(
        default="sqlite:///.taskloop/context.db",
        description="SQLAlchemy URL for the sql cache backend",
    )
    taskloop_context_preview_chars: int = Field(
        default=100,
        ge=20,
        description="Truncation length for task outputs in session summaries",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.taskloop_retry_delay_ms
        1000
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
