"""Custom exceptions for the notifications feature.

Errors surfaced to callers extend the core ``AppException`` family so the
API layer can serialize them as problem details. Adapter failures are not
exceptions: channel adapters return a failed ``SendResult`` instead.
"""

from __future__ import annotations

from typing import Any

from notification_service.core.exceptions import BadRequestException, ConflictException

RENDER_ERROR_MESSAGE = "Unable to render template with provided data"


class TemplateRenderError(BadRequestException):
    """Raised when template content cannot be rendered.

    Covers unbalanced or malformed placeholder tokens and any unexpected
    error raised while evaluating a variable path.
    """

    def __init__(self, detail: str = RENDER_ERROR_MESSAGE, *, reason: str | None = None) -> None:
        extra: dict[str, Any] = {"reason": reason} if reason else {}
        super().__init__(detail=detail, type="template-render-error", extra=extra)
        self.reason = reason


class InvalidStatusTransitionError(ConflictException):
    """Raised when a lifecycle transition is not allowed from the current status."""

    def __init__(self, notification_id: Any, current: str, target: str) -> None:
        super().__init__(
            detail=f"Cannot move notification from '{current}' to '{target}'",
            type="invalid-status-transition",
            extra={
                "notification_id": str(notification_id),
                "current_status": current,
                "target_status": target,
            },
        )
        self.current = current
        self.target = target


class ChannelNotRegisteredError(Exception):
    """Raised when a channel has no adapter in the registry.

    The dispatch coordinator turns this into a failed result for every
    (recipient, channel) pair of the unregistered channel.
    """

    def __init__(self, channel: str) -> None:
        self.channel = channel
        super().__init__(f"No adapter registered for channel: {channel}")


__all__ = [
    "RENDER_ERROR_MESSAGE",
    "ChannelNotRegisteredError",
    "InvalidStatusTransitionError",
    "TemplateRenderError",
]
