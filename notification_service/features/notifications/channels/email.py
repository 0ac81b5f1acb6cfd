"""Email channel adapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol
from uuid import uuid4

from notification_service.features.notifications.channels.base import (
    BaseChannelAdapter,
    SendContext,
    SendResult,
)

if TYPE_CHECKING:
    from notification_service.core.settings import NotificationSettings


class EmailTransport(Protocol):
    """Outbound email gateway (SMTP, SES, ...).

    Returns provider metadata on acceptance and raises on failure.
    """

    async def send_email(
        self,
        *,
        sender: str,
        to: str,
        subject: str,
        body: str,
        tenant_id: str,
    ) -> dict[str, Any]: ...


class LoggingEmailTransport:
    """Transport that only logs the outbound message."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("channels.email.transport")

    async def send_email(
        self,
        *,
        sender: str,
        to: str,
        subject: str,
        body: str,
        tenant_id: str,
    ) -> dict[str, Any]:
        message_id = str(uuid4())
        self._logger.info(
            "Email accepted",
            extra={
                "tenant_id": tenant_id,
                "sender": sender,
                "to": to,
                "subject": subject,
                "body_length": len(body),
                "message_id": message_id,
            },
        )
        return {"message_id": message_id, "provider": "log"}


class EmailChannelAdapter(BaseChannelAdapter):
    """Sends the rendered subject and body to ``recipient.email``."""

    channel = "email"
    required_field = "email"

    def __init__(
        self,
        settings: NotificationSettings,
        transport: EmailTransport | None = None,
    ) -> None:
        """Initialize with settings and transport.

        Args:
            settings: Notification settings (sender address)
            transport: Optional email gateway (defaults to logging transport)
        """
        super().__init__()
        self._sender = settings.email_from
        self._transport = transport or LoggingEmailTransport()

    async def deliver(self, context: SendContext) -> SendResult:
        recipient = context.recipient.email or ""
        metadata = await self._transport.send_email(
            sender=self._sender,
            to=recipient,
            subject=context.subject,
            body=context.body,
            tenant_id=context.tenant_id,
        )

        self.logger.info(
            "Email sent",
            extra={"notification_id": str(context.notification.id), "recipient": recipient},
        )
        return SendResult(success=True, metadata={"recipient": recipient, **(metadata or {})})


__all__ = ["EmailChannelAdapter", "EmailTransport", "LoggingEmailTransport"]
