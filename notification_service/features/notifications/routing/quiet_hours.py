"""Time-of-day quiet-hour windows.

A window ``[start, end)`` is given as two ``HH:mm`` strings and is evaluated
against the time-of-day of the supplied moment:

- ``start < end``: suppressed when ``start <= now < end``
- ``start > end`` (wraps midnight): suppressed when ``now >= start or now < end``
- ``start == end``: empty window, never suppressed
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, time
from typing import Any

from notification_service.features.notifications.schemas import QuietHours


def parse_time_of_day(value: str) -> int:
    """Parse ``HH:mm`` into minutes since midnight.

    Raises:
        ValueError: If the value is not a valid 24-hour time of day.
    """
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        msg = f"Invalid time of day: {value!r} (expected HH:mm)"
        raise ValueError(msg)
    if int(hours) > 23 or int(minutes) > 59:
        msg = f"Invalid time of day: {value!r} (expected 00:00-23:59)"
        raise ValueError(msg)
    return int(hours) * 60 + int(minutes)


def _minute_of_day(now: datetime | time) -> int:
    return now.hour * 60 + now.minute


def coerce_quiet_hours(window: QuietHours | Mapping[str, Any] | None) -> QuietHours | None:
    """Normalize a stored window (JSON dict) into ``QuietHours``."""
    if window is None or isinstance(window, QuietHours):
        return window
    if not window.get("start") or not window.get("end"):
        return None
    return QuietHours.model_validate(window)


def is_suppressed(window: QuietHours | Mapping[str, Any] | None, now: datetime | time) -> bool:
    """Return True when ``now`` falls inside the quiet-hour window.

    Args:
        window: Quiet hours (model or stored dict); None means no window.
        now: Moment to test; only its hour and minute are used.

    Returns:
        Whether the channel is suppressed at ``now``.
    """
    quiet = coerce_quiet_hours(window)
    if quiet is None:
        return False

    start = parse_time_of_day(quiet.start)
    end = parse_time_of_day(quiet.end)
    current = _minute_of_day(now)

    if start == end:
        return False
    if start < end:
        return start <= current < end
    return current >= start or current < end


__all__ = [
    "coerce_quiet_hours",
    "is_suppressed",
    "parse_time_of_day",
]
