"""Turns in-app deliveries into persisted inbox entries."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from notification_service.core.database import flush_or_conflict
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.metrics import notification_inbox_entries_total
from notification_service.features.notifications.models import (
    InboxSeverity,
    NotificationInboxEntry,
)
from notification_service.features.notifications.repository import (
    NotificationInboxRepository,
    get_notification_inbox_repository,
)
from notification_service.features.notifications.templates.fallback import (
    fallback_message,
    fallback_title,
    payload_field,
)
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.models import Notification
    from notification_service.features.notifications.schemas import Recipient
    from notification_service.features.notifications.templates.renderer import RenderedContent

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

_SEVERITIES = frozenset(item.value for item in InboxSeverity)
TITLE_MAX_LENGTH = 500


def inbox_severity(notification: Notification) -> str:
    """Severity from metadata or payload when valid, else ``info``."""
    severity = payload_field("severity", notification.extra_metadata, notification.payload)
    return severity if severity in _SEVERITIES else InboxSeverity.INFO.value


class InboxMaterializer:
    """Creates one inbox entry per (tenant, user, notification).

    Entries share the caller's transaction and are never retracted when the
    parent notification later fails or is cancelled.
    """

    def __init__(
        self,
        repository: NotificationInboxRepository | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        """Initialize materializer.

        Args:
            repository: Optional inbox repository (defaults to singleton)
            settings: Optional settings (defaults to cached loader)
        """
        self._repository = repository or get_notification_inbox_repository()
        self._settings = settings or get_notification_settings()

    async def materialize(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification: Notification,
        recipient: Recipient,
        content: RenderedContent | None = None,
        now: datetime | None = None,
    ) -> NotificationInboxEntry | None:
        """Create the recipient's inbox entry for a notification.

        Args:
            session: Database session
            tenant_id: Owning tenant
            notification: Notification being dispatched
            recipient: Recipient with a user id
            content: Rendered template content, if a template is referenced
            now: Delivery time (defaults to current UTC time)

        Returns:
            The new or already existing entry; None for anonymous recipients
        """
        if not recipient.user_id:
            return None

        existing = await self._repository.get_for_notification(
            session,
            tenant_id,
            recipient.user_id,
            notification.id,
        )
        if existing is not None:
            lazy_logger.debug(
                lambda: f"inbox.materialize: entry exists for {recipient.user_id}/{notification.id}"
            )
            return existing

        now = now or datetime.now(UTC)
        metadata = notification.extra_metadata
        payload = notification.payload

        title = (content.subject if content else None) or fallback_title(
            notification.event_key,
            metadata,
            payload,
        )
        message = content.body if content else fallback_message(metadata, payload)
        severity = inbox_severity(notification)

        entry = NotificationInboxEntry(
            tenant_id=tenant_id,
            user_id=recipient.user_id,
            notification_id=notification.id,
            title=title[:TITLE_MAX_LENGTH],
            message=message,
            severity=severity,
            action_url=payload_field("action_url", metadata, payload)
            or payload_field("actionUrl", metadata, payload),
            extra_metadata={"event_key": notification.event_key, "channels": list(notification.channels)},
            read=False,
            archived=False,
            delivered_at=now,
        )
        session.add(entry)
        await flush_or_conflict(session, entity="NotificationInboxEntry", entity_id=notification.id)
        notification_inbox_entries_total.labels(severity=severity).inc()

        await self._repository.archive_overflow(
            session,
            tenant_id,
            recipient.user_id,
            keep=self._settings.inbox_user_limit,
            archived_at=now,
        )

        logger.info(
            "Inbox entry created",
            extra={
                "tenant_id": tenant_id,
                "user_id": recipient.user_id,
                "notification_id": str(notification.id),
                "severity": severity,
            },
        )
        return entry


__all__ = ["InboxMaterializer", "inbox_severity"]
