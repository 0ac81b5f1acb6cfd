"""Unit tests for route resolution and preference filtering."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from notification_service.features.notifications.routing import (
    filter_channels,
    resolve_channels,
)
from notification_service.features.notifications.schemas import (
    ChannelPreference,
    QuietHours,
    RouteChannelConfig,
)

NIGHT = datetime(2024, 5, 1, 23, 0, tzinfo=UTC)
DAY = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
OVERNIGHT = {"start": "22:00", "end": "06:00"}


@pytest.mark.unit
class TestResolveChannels:
    """Tests for the pure route resolution algorithm."""

    def test_no_route_allows_requested(self) -> None:
        assert resolve_channels(None, ["email", "sms"], NIGHT) == ["email", "sms"]

    def test_disabled_channel_is_dropped(self) -> None:
        configs = [{"channel": "email", "enabled": False, "fallback": ["sms"]}]
        assert resolve_channels(configs, ["email", "in_app"], DAY) == ["in_app"]

    def test_channels_missing_from_route_are_kept(self) -> None:
        configs = [{"channel": "sms", "enabled": True}]
        assert resolve_channels(configs, ["email", "sms"], DAY) == ["email", "sms"]

    def test_quiet_channel_degrades_to_fallback(self) -> None:
        configs = [
            {"channel": "email", "quiet_hours": OVERNIGHT, "fallback": ["sms"]},
            {"channel": "sms", "enabled": True},
        ]
        assert resolve_channels(configs, ["email"], NIGHT) == ["sms"]
        assert resolve_channels(configs, ["email"], DAY) == ["email"]

    def test_quiet_channel_dropped_when_fallback_also_quiet(self) -> None:
        configs = [
            {"channel": "email", "quiet_hours": OVERNIGHT, "fallback": ["sms"]},
            {"channel": "sms", "quiet_hours": {"start": "20:00", "end": "08:00"}},
        ]
        assert resolve_channels(configs, ["email"], NIGHT) == []

    def test_quiet_channel_dropped_when_fallback_disabled(self) -> None:
        configs = [
            {"channel": "email", "quiet_hours": OVERNIGHT, "fallback": ["sms"]},
            {"channel": "sms", "enabled": False},
        ]
        assert resolve_channels(configs, ["email"], NIGHT) == []

    def test_first_eligible_fallback_wins(self) -> None:
        configs = [
            RouteChannelConfig(
                channel="email",
                quiet_hours=QuietHours(**OVERNIGHT),
                fallback=["sms", "webhook", "in_app"],
            ),
            RouteChannelConfig(channel="sms", enabled=False),
        ]
        assert resolve_channels(configs, ["email"], NIGHT) == ["webhook"]

    def test_fallback_resolved_one_level_only(self) -> None:
        configs = [
            {"channel": "email", "quiet_hours": OVERNIGHT, "fallback": ["sms"]},
            {"channel": "sms", "quiet_hours": OVERNIGHT, "fallback": ["in_app"]},
        ]
        assert resolve_channels(configs, ["email"], NIGHT) == []

    def test_output_is_deduplicated_in_order(self) -> None:
        configs = [{"channel": "email", "quiet_hours": OVERNIGHT, "fallback": ["sms"]}]
        assert resolve_channels(configs, ["sms", "email", "in_app"], NIGHT) == ["sms", "in_app"]


@pytest.mark.unit
class TestFilterChannels:
    """Tests for the pure preference filter."""

    def test_no_preferences_keeps_everything(self) -> None:
        assert filter_channels(None, ["email", "sms"], NIGHT) == ["email", "sms"]
        assert filter_channels({}, ["email"], NIGHT) == ["email"]

    def test_disabled_channel_is_dropped(self) -> None:
        prefs = {"email": {"enabled": False}}
        assert filter_channels(prefs, ["email", "in_app"], DAY) == ["in_app"]

    def test_personal_quiet_hours_drop_without_fallback(self) -> None:
        prefs = {"sms": ChannelPreference(quiet_hours=QuietHours(**OVERNIGHT))}
        assert filter_channels(prefs, ["sms", "email"], NIGHT) == ["email"]
        assert filter_channels(prefs, ["sms", "email"], DAY) == ["sms", "email"]
