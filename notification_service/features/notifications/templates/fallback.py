"""Title and message text for notifications sent without a template."""

from __future__ import annotations

import json
import re
from typing import Any

_EVENT_KEY_SEPARATORS = re.compile(r"[._]")
DEFAULT_TITLE = "Notification"


def _text_field(name: str, *sources: dict[str, Any] | None) -> str | None:
    for source in sources:
        value = (source or {}).get(name)
        if isinstance(value, str):
            return value
    return None


def humanize_event_key(event_key: str) -> str:
    """``"order.shipped"`` -> ``"Order Shipped"``."""
    parts = [part for part in _EVENT_KEY_SEPARATORS.split(event_key) if part]
    if not parts:
        return DEFAULT_TITLE
    return " ".join(part[:1].upper() + part[1:] for part in parts)


def fallback_title(
    event_key: str,
    metadata: dict[str, Any] | None,
    payload: dict[str, Any] | None,
) -> str:
    """Title from ``metadata.title``, then ``payload.title``, then the event key."""
    return _text_field("title", metadata, payload) or humanize_event_key(event_key)


def fallback_message(metadata: dict[str, Any] | None, payload: dict[str, Any] | None) -> str:
    """Message from ``metadata.message``, then ``payload.message``, then the payload as JSON."""
    message = _text_field("message", metadata, payload)
    if message is not None:
        return message
    return json.dumps(payload or {}, indent=2, default=str)


def payload_field(name: str, metadata: dict[str, Any] | None, payload: dict[str, Any] | None) -> str | None:
    """String field looked up in metadata first, then payload."""
    return _text_field(name, metadata, payload)


__all__ = [
    "DEFAULT_TITLE",
    "fallback_message",
    "fallback_title",
    "humanize_event_key",
    "payload_field",
]
