"""Pydantic Settings v2 configuration.

Settings are split by concern (logging, notifications), read from environment
variables and an optional ``.env`` file, frozen after validation, and served
through LRU-cached loaders:

    from notification_service.core.settings import get_notification_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .loader import (
    clear_all_caches,
    get_logging_settings,
    get_notification_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings

__all__ = [
    "LoggingSettings",
    "NotificationSettings",
    "clear_all_caches",
    "get_logging_settings",
    "get_notification_settings",
]
