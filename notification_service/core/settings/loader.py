"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from notification_service.core.settings import get_notification_settings

    settings = get_notification_settings()

Testing:
    Clear the cache to force a reload:
    get_notification_settings.cache_clear()

    Or construct settings directly:
    settings = NotificationSettings(send_timeout_seconds=0.1)
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .notifications import NotificationSettings


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_notification_settings() -> NotificationSettings:
    """Get cached notification engine settings.

    Returns:
        Validated and frozen NotificationSettings instance.
    """
    return NotificationSettings()


def clear_all_caches() -> None:
    """Clear every settings cache (tests and reloads)."""
    get_logging_settings.cache_clear()
    get_notification_settings.cache_clear()


__all__ = [
    "clear_all_caches",
    "get_logging_settings",
    "get_notification_settings",
]
