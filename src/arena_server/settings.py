"""Application configuration using Pydantic Settings.

This module centralizes runtime configuration for the arena server. Values
can be provided via environment variables (preferred) or fall back to the
defaults below. A ``Settings`` instance is intended to be retrieved via
``get_settings`` which caches the object for reuse across the process.

Environment variable prefix: ``ARENA_`` (e.g. ``ARENA_EVENT_WORKERS``).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime application settings.

    Attributes map directly to environment variables using the ``ARENA_``
    prefix (case-insensitive). For example, ``host`` <- ``ARENA_HOST``.
    """

    # Server settings
    host: str = Field(
        default="0.0.0.0",
        description="Host interface to bind the server",
    )  # fmt: skip
    port: int = Field(
        default=8080,
        description="Server port",
    )  # fmt: skip
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Application log level",
    )
    reload: bool = Field(
        default=False,
        description="Enable auto-reload in development",
    )  # fmt: skip
    modules: str | None = Field(
        default=None,
        description="Comma-separated business modules to enable. Empty/None enables all.",
    )  # fmt: skip

    # Event bus settings
    event_workers: int = Field(
        default=4,
        ge=1,
        description="Number of event dispatch workers",
    )  # fmt: skip
    event_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Capacity of the event dispatch queue",
    )  # fmt: skip
    event_overflow_policy: Literal["drop", "raise"] = Field(
        default="drop",
        description="What publish does when the dispatch queue is full",
    )  # fmt: skip
    handler_timeout_seconds: float | None = Field(
        default=30.0,
        gt=0,
        description="Deadline for a single event handler call; None disables it",
    )  # fmt: skip
    shutdown_grace_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Time in-flight event handlers get to finish on shutdown",
    )  # fmt: skip
    isolate_events: bool = Field(
        default=True,
        description="Give each event handler its own deep copy of the event",
    )  # fmt: skip

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str:
        """Normalize and validate log level."""
        if v is None:
            return "INFO"

        v_upper = str(v).upper()
        allowed = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR"}
        if v_upper not in allowed:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(sorted(allowed))}")

        return v_upper

    @field_validator("event_overflow_policy", mode="before")
    @classmethod
    def validate_overflow_policy(cls, v: str | None) -> str:
        """Normalize overflow policy to lowercase."""
        return "drop" if v is None else str(v).lower()

    @field_validator("handler_timeout_seconds", mode="before")
    @classmethod
    def validate_handler_timeout(cls, v: str | float | None) -> float | None:
        """Treat empty values, 'none' and 0 as no deadline."""
        if v is None:
            return None
        if isinstance(v, str) and v.strip().lower() in ("", "none", "off", "0"):
            return None
        if not isinstance(v, str) and v == 0:
            return None
        return v  # type: ignore[return-value]

    model_config = SettingsConfigDict(
        env_prefix="ARENA_",
        case_sensitive=False,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached ``Settings`` instance.

    The first invocation reads environment variables / .env file; subsequent
    calls reuse the same object to ensure consistent config.
    """

    return Settings()


__all__ = ["Settings", "get_settings"]
