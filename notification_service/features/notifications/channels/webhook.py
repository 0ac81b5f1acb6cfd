"""Webhook channel adapter posting JSON over httpx."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from notification_service.features.notifications.channels.base import (
    BaseChannelAdapter,
    SendContext,
    SendResult,
)

if TYPE_CHECKING:
    from notification_service.core.settings import NotificationSettings

MAX_RESPONSE_BODY = 2000


class WebhookChannelAdapter(BaseChannelAdapter):
    """POSTs the notification as JSON to ``recipient.webhook_url``.

    Any 2xx response is a success; other statuses fail with ``HTTP <code>``.
    Timeouts and transport errors fail without raising.
    """

    channel = "webhook"
    required_field = "webhook_url"

    def __init__(
        self,
        settings: NotificationSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize webhook adapter.

        Args:
            settings: Notification settings (timeout, user agent)
            client: Optional shared HTTP client; a short-lived client is
                opened per send when omitted
        """
        super().__init__()
        self._timeout = settings.webhook_timeout_seconds
        self._user_agent = settings.webhook_user_agent
        self._client = client

    def _build_body(self, context: SendContext) -> dict[str, Any]:
        notification = context.notification
        return {
            "id": str(notification.id),
            "tenant_id": context.tenant_id,
            "event": notification.event_key,
            "subject": context.subject,
            "content": context.body,
            "payload": notification.payload,
            "metadata": notification.extra_metadata,
            "recipient": context.recipient.model_dump(exclude_none=True),
            "sent_at": datetime.now(UTC).isoformat(),
        }

    async def _post(self, url: str, content: str, headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, content=content, headers=headers, timeout=self._timeout)
        async with httpx.AsyncClient() as client:
            return await client.post(url, content=content, headers=headers, timeout=self._timeout)

    async def deliver(self, context: SendContext) -> SendResult:
        url = context.recipient.webhook_url or ""
        payload_str = json.dumps(self._build_body(context), separators=(",", ":"), default=str)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self._user_agent,
            "X-Notification-Id": str(context.notification.id),
            "X-Notification-Event": context.notification.event_key,
        }
        log_extra = {
            "notification_id": str(context.notification.id),
            "url": url,
            "operation": "webhook.deliver",
        }

        self._lazy.debug(lambda: f"webhook.deliver: notification={context.notification.id}, url={url}")

        try:
            response = await self._post(url, payload_str, headers)
        except httpx.TimeoutException:
            self.logger.warning("Webhook delivery timeout", extra=log_extra)
            return SendResult.failed(f"Request timeout after {self._timeout}s", url=url)
        except httpx.HTTPError as exc:
            self.logger.warning("Webhook delivery failed", extra={**log_extra, "error": str(exc)})
            return SendResult.failed(f"Request failed: {exc}", url=url)

        metadata: dict[str, Any] = {"url": url, "status_code": response.status_code}
        if response.text:
            metadata["response_body"] = response.text[:MAX_RESPONSE_BODY]

        if response.is_success:
            self.logger.info(
                "Webhook delivered successfully",
                extra={**log_extra, "status_code": response.status_code},
            )
            return SendResult(success=True, metadata=metadata)

        self.logger.warning(
            "Webhook delivery failed with non-2xx status",
            extra={**log_extra, "status_code": response.status_code},
        )
        return SendResult(success=False, metadata=metadata, error=f"HTTP {response.status_code}")


__all__ = ["WebhookChannelAdapter"]
