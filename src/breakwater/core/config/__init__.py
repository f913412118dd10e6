"""Centralized configuration.

Quick start::

    from breakwater.core.config import get_settings

    settings = get_settings()
    print(settings.failure_threshold)   # 4
"""

from .settings import (
    DEFAULT_DATABASE_URL,
    BreakwaterSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "DEFAULT_DATABASE_URL",
    "BreakwaterSettings",
    "clear_settings_cache",
    "get_settings",
]
