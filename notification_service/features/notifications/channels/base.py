"""Base protocol and types for channel adapters."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Protocol

from notification_service.features.notifications.templates.fallback import (
    fallback_message,
    fallback_title,
)
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from notification_service.features.notifications.models import Notification
    from notification_service.features.notifications.schemas import Recipient
    from notification_service.features.notifications.templates.renderer import RenderedContent


@dataclass(slots=True, frozen=True)
class SendContext:
    """Everything an adapter needs for one (recipient, channel) send.

    Attributes:
        tenant_id: Owning tenant
        notification: Notification being dispatched
        recipient: Delivery target
        content: Rendered template content, or None when no template is referenced
    """

    tenant_id: str
    notification: Notification
    recipient: Recipient
    content: RenderedContent | None = None

    @property
    def subject(self) -> str:
        """Rendered subject, falling back to the notification's title text."""
        if self.content is not None and self.content.subject:
            return self.content.subject
        return fallback_title(
            self.notification.event_key,
            self.notification.extra_metadata,
            self.notification.payload,
        )

    @property
    def body(self) -> str:
        """Rendered body, falling back to the notification's message text."""
        if self.content is not None:
            return self.content.body
        return fallback_message(self.notification.extra_metadata, self.notification.payload)


@dataclass(slots=True)
class SendResult:
    """Result of a channel send.

    Attributes:
        success: Whether the send succeeded
        metadata: Channel-specific response data
        error: Error description if failed
        duration_ms: Time spent in the adapter in milliseconds
    """

    success: bool
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    duration_ms: int | None = None

    @classmethod
    def failed(cls, error: str, **metadata: Any) -> SendResult:
        """Build a failed result."""
        return cls(success=False, error=error, metadata=metadata)


class ChannelAdapter(Protocol):
    """Protocol for channel adapters.

    Adapters never raise for delivery problems; they return a failed
    ``SendResult`` instead.
    """

    channel: str

    async def send(self, context: SendContext) -> SendResult:
        """Send one notification to one recipient."""
        ...


class BaseChannelAdapter:
    """Adapter base that checks the recipient's required field and times the send.

    Subclasses set ``channel`` and ``required_field`` and implement ``deliver``.
    """

    channel: ClassVar[str]
    required_field: ClassVar[str | None] = None

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"channels.{self.channel}")
        self._lazy = get_lazy_logger(f"channels.{self.channel}")

    async def send(self, context: SendContext) -> SendResult:
        """Validate the recipient, then deliver.

        Args:
            context: Send context for one (recipient, channel) pair

        Returns:
            SendResult with duration filled in
        """
        if self.required_field and not getattr(context.recipient, self.required_field, None):
            return SendResult.failed(f"Recipient missing {self.required_field} information")

        start_time = time.perf_counter()
        try:
            result = await self.deliver(context)
        except Exception as exc:
            self.logger.exception(
                "Channel adapter raised during send",
                extra={
                    "channel": self.channel,
                    "notification_id": str(context.notification.id),
                    "recipient": context.recipient.key,
                },
            )
            result = SendResult.failed(str(exc) or exc.__class__.__name__)

        result.duration_ms = int((time.perf_counter() - start_time) * 1000)
        return result

    async def deliver(self, context: SendContext) -> SendResult:
        """Perform the channel-specific send."""
        raise NotImplementedError


__all__ = [
    "BaseChannelAdapter",
    "ChannelAdapter",
    "SendContext",
    "SendResult",
]
