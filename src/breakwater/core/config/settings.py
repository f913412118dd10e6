"""
Centralized settings for breakwater.

:class:`BreakwaterSettings` is the single validated source for the
connection target, the failure gate threshold and the bootstrap timing.
Values come from ``BREAKWATER_*`` environment variables or a ``.env``
file; CLI options override them per invocation.

Tags:
    breakwater, configuration, settings, pydantic, caching, validation
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from breakwater.core.logging import LOG_FORMATS

DEFAULT_DATABASE_URL = "postgresql://root@127.0.0.1:26257/defaultdb?sslmode=disable"


class BreakwaterSettings(BaseSettings):
    """breakwater configuration.

    All fields can be set via ``BREAKWATER_*`` environment variables (e.g.
    ``BREAKWATER_FAILURE_THRESHOLD=2``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BREAKWATER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Connection target ────────────────────────────────────────
    database_url: str = Field(default=DEFAULT_DATABASE_URL)

    # ── Failure gate ─────────────────────────────────────────────
    failure_threshold: int = Field(
        default=4,
        ge=0,
        description="Consecutive failures allowed before the gate starts cooling down",
    )

    # ── Bootstrap ────────────────────────────────────────────────
    poll_interval_seconds: float = Field(default=4.0, gt=0)
    deadline_seconds: float = Field(
        default=32.0,
        gt=0,
        description="Wall-clock budget for the background retry loop",
    )
    attempt_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Per-attempt context deadline (None = no deadline)",
    )

    # ── Setup transaction ────────────────────────────────────────
    setup_statements: list[str] = Field(default=["CREATE DATABASE subjectives"])

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="auto, json or console")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level {value!r}")
        return level

    @field_validator("log_format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f"Unknown log format {value!r}, expected one of {LOG_FORMATS}")
        return fmt


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, BreakwaterSettings] = {}


def get_settings(*, _force_reload: bool = False) -> BreakwaterSettings:
    """Load, validate, and cache a :class:`BreakwaterSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = BreakwaterSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
