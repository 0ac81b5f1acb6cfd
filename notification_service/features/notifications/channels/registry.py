"""Registry mapping channel identifiers to adapters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.channels.email import (
    EmailChannelAdapter,
    EmailTransport,
)
from notification_service.features.notifications.channels.in_app import InAppChannelAdapter
from notification_service.features.notifications.channels.sms import (
    SmsChannelAdapter,
    SmsTransport,
)
from notification_service.features.notifications.channels.webhook import WebhookChannelAdapter
from notification_service.features.notifications.exceptions import ChannelNotRegisteredError

if TYPE_CHECKING:
    import httpx

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.channels.base import ChannelAdapter

logger = logging.getLogger(__name__)


class ChannelAdapterRegistry:
    """Lookup table of send capabilities keyed by channel.

    New channels register an adapter; the dispatch coordinator needs no
    changes to use them.
    """

    def __init__(self) -> None:
        self._adapters: dict[str, ChannelAdapter] = {}

    def register(self, adapter: ChannelAdapter) -> None:
        """Register (or replace) the adapter for ``adapter.channel``."""
        if adapter.channel in self._adapters:
            logger.info("Replacing channel adapter", extra={"channel": adapter.channel})
        self._adapters[adapter.channel] = adapter

    def get(self, channel: str) -> ChannelAdapter:
        """Get the adapter of a channel.

        Raises:
            ChannelNotRegisteredError: If no adapter is registered for the channel
        """
        try:
            return self._adapters[channel]
        except KeyError:
            raise ChannelNotRegisteredError(channel) from None

    @property
    def channels(self) -> list[str]:
        """Registered channel identifiers in registration order."""
        return list(self._adapters)

    def __contains__(self, channel: object) -> bool:
        return channel in self._adapters


def build_default_registry(
    settings: NotificationSettings | None = None,
    *,
    email_transport: EmailTransport | None = None,
    sms_transport: SmsTransport | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ChannelAdapterRegistry:
    """Create a registry with the email, sms, webhook and in-app adapters.

    Args:
        settings: Notification settings (defaults to cached loader)
        email_transport: Optional email gateway
        sms_transport: Optional SMS gateway
        http_client: Optional HTTP client for webhooks

    Returns:
        Populated registry
    """
    settings = settings or get_notification_settings()
    registry = ChannelAdapterRegistry()
    registry.register(EmailChannelAdapter(settings, email_transport))
    registry.register(SmsChannelAdapter(sms_transport))
    registry.register(WebhookChannelAdapter(settings, http_client))
    registry.register(InAppChannelAdapter())
    return registry


# Singleton instance
_registry: ChannelAdapterRegistry | None = None


def get_channel_registry() -> ChannelAdapterRegistry:
    """Get the default ChannelAdapterRegistry singleton instance."""
    global _registry
    if _registry is None:
        _registry = build_default_registry()
    return _registry


__all__ = ["ChannelAdapterRegistry", "build_default_registry", "get_channel_registry"]
