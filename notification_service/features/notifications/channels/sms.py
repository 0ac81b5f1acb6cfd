"""SMS channel adapter."""

from __future__ import annotations

import logging
from typing import Any, Protocol
from uuid import uuid4

from notification_service.features.notifications.channels.base import (
    BaseChannelAdapter,
    SendContext,
    SendResult,
)


class SmsTransport(Protocol):
    """Outbound SMS gateway.

    Returns provider metadata on acceptance and raises on failure.
    """

    async def send_sms(self, *, to: str, body: str, tenant_id: str) -> dict[str, Any]: ...


class LoggingSmsTransport:
    """Transport that only logs the outbound message."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("channels.sms.transport")

    async def send_sms(self, *, to: str, body: str, tenant_id: str) -> dict[str, Any]:
        message_id = str(uuid4())
        self._logger.info(
            "SMS accepted",
            extra={"tenant_id": tenant_id, "to": to, "body_length": len(body), "message_id": message_id},
        )
        return {"message_id": message_id, "provider": "log"}


class SmsChannelAdapter(BaseChannelAdapter):
    """Sends the rendered body to ``recipient.phone``."""

    channel = "sms"
    required_field = "phone"

    def __init__(self, transport: SmsTransport | None = None) -> None:
        super().__init__()
        self._transport = transport or LoggingSmsTransport()

    async def deliver(self, context: SendContext) -> SendResult:
        phone = context.recipient.phone or ""
        metadata = await self._transport.send_sms(
            to=phone,
            body=context.body,
            tenant_id=context.tenant_id,
        )

        self._lazy.debug(lambda: f"sms.send: notification={context.notification.id} to={phone}")
        return SendResult(success=True, metadata={"recipient": phone, **(metadata or {})})


__all__ = ["LoggingSmsTransport", "SmsChannelAdapter", "SmsTransport"]
