"""Channel adapters for notification delivery.

Provides one adapter per channel:
- Email: via an injectable ``EmailTransport``
- SMS: via an injectable ``SmsTransport``
- Webhook: JSON POST over httpx
- In-App: registry marker; the inbox materializer creates the entry

Each adapter checks the recipient field it needs before any external call
and reports problems as a failed ``SendResult`` rather than raising.
"""

from __future__ import annotations

from notification_service.features.notifications.channels.base import (
    BaseChannelAdapter,
    ChannelAdapter,
    SendContext,
    SendResult,
)
from notification_service.features.notifications.channels.email import (
    EmailChannelAdapter,
    EmailTransport,
    LoggingEmailTransport,
)
from notification_service.features.notifications.channels.in_app import InAppChannelAdapter
from notification_service.features.notifications.channels.registry import (
    ChannelAdapterRegistry,
    build_default_registry,
    get_channel_registry,
)
from notification_service.features.notifications.channels.sms import (
    LoggingSmsTransport,
    SmsChannelAdapter,
    SmsTransport,
)
from notification_service.features.notifications.channels.webhook import WebhookChannelAdapter

__all__ = [
    "BaseChannelAdapter",
    "ChannelAdapter",
    "ChannelAdapterRegistry",
    "EmailChannelAdapter",
    "EmailTransport",
    "InAppChannelAdapter",
    "LoggingEmailTransport",
    "LoggingSmsTransport",
    "SendContext",
    "SendResult",
    "SmsChannelAdapter",
    "SmsTransport",
    "WebhookChannelAdapter",
    "build_default_registry",
    "get_channel_registry",
]
