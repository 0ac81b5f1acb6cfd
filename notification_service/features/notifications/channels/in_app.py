"""In-app channel adapter."""

from __future__ import annotations

from notification_service.features.notifications.channels.base import (
    BaseChannelAdapter,
    SendContext,
    SendResult,
)


class InAppChannelAdapter(BaseChannelAdapter):
    """Registry marker for the in-app channel.

    The inbox materializer does the real work for ``in_app``; this adapter
    exists so the channel is registered and always reports success.
    """

    channel = "in_app"

    async def deliver(self, context: SendContext) -> SendResult:
        return SendResult(success=True, metadata={"materialized_by": "inbox"})


__all__ = ["InAppChannelAdapter"]
