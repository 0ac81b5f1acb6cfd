"""Unit tests for Pydantic Settings v2 configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from notification_service.core.settings import (
    LoggingSettings,
    NotificationSettings,
    clear_all_caches,
    get_logging_settings,
    get_notification_settings,
)


@pytest.mark.unit
class TestNotificationSettings:
    """Test suite for NotificationSettings."""

    def test_defaults(self) -> None:
        settings = NotificationSettings()

        assert settings.send_timeout_seconds == 10.0
        assert settings.inbox_user_limit == 200
        assert settings.default_page_size == 25
        assert settings.max_page_size == 100

    def test_frozen(self) -> None:
        settings = NotificationSettings()

        with pytest.raises(ValidationError):
            settings.inbox_user_limit = 5

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOTIFICATIONS_SEND_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("NOTIFICATIONS_EMAIL_FROM", "alerts@example.com")

        settings = NotificationSettings()

        assert settings.send_timeout_seconds == 2.5
        assert settings.email_from == "alerts@example.com"

    def test_default_page_size_cannot_exceed_max(self) -> None:
        with pytest.raises(ValidationError):
            NotificationSettings(default_page_size=50, max_page_size=10)

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            NotificationSettings(send_timeout_seconds=0)


@pytest.mark.unit
class TestLoggingSettings:
    """Test suite for LoggingSettings."""

    def test_level_is_normalized(self) -> None:
        assert LoggingSettings(level="debug").level == "DEBUG"

    def test_file_path_only_when_enabled(self) -> None:
        assert LoggingSettings(file_enabled=False).effective_file_path is None
        enabled = LoggingSettings(file_enabled=True, file_path=Path("/tmp/n.jsonl"))
        assert enabled.effective_file_path == Path("/tmp/n.jsonl")

    def test_to_logging_kwargs(self) -> None:
        kwargs = LoggingSettings(level="WARNING", json_logs=False).to_logging_kwargs()

        assert kwargs["log_level"] == "WARNING"
        assert kwargs["console_level"] == "WARNING"
        assert kwargs["json_logs"] is False
        assert kwargs["file_path"] is None
        assert kwargs["logger_levels"]["sqlalchemy.engine"] == "WARNING"


@pytest.mark.unit
def test_loaders_are_cached() -> None:
    clear_all_caches()
    try:
        assert get_notification_settings() is get_notification_settings()
        assert get_logging_settings() is get_logging_settings()
    finally:
        clear_all_caches()
