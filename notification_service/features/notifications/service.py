"""Dispatch coordinator: notification lifecycle and delivery fan-out."""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notification_service.core.database import SearchResult, flush_or_conflict
from notification_service.core.exceptions import BadRequestException, NotFoundException
from notification_service.core.services.base import BaseService
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.channels import (
    ChannelAdapterRegistry,
    SendContext,
    SendResult,
    get_channel_registry,
)
from notification_service.features.notifications.exceptions import (
    ChannelNotRegisteredError,
    InvalidStatusTransitionError,
    TemplateRenderError,
)
from notification_service.features.notifications.inbox import InboxMaterializer
from notification_service.features.notifications.metrics import (
    notification_channel_sends_total,
    notification_created_total,
    notification_dispatch_cycles_total,
    notification_send_duration_seconds,
)
from notification_service.features.notifications.models import (
    ChannelType,
    Notification,
    NotificationDeliveryAttempt,
    NotificationStatus,
)
from notification_service.features.notifications.repository import (
    NotificationDeliveryAttemptRepository,
    NotificationRepository,
    get_notification_delivery_attempt_repository,
    get_notification_repository,
)
from notification_service.features.notifications.routing import PreferenceFilter, RouteResolver
from notification_service.features.notifications.schemas import Recipient
from notification_service.features.notifications.templates import (
    NotificationTemplateService,
    RenderedContent,
    TemplateRenderer,
    get_notification_template_service,
    get_template_renderer,
    references_recipient,
)
from notification_service.infra.logging import set_log_context

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.channels import ChannelAdapter
    from notification_service.features.notifications.schemas import NotificationCreate

NO_RECIPIENTS_ERROR = "No valid recipients"

ALLOWED_TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.PENDING: frozenset(
        {NotificationStatus.SCHEDULED, NotificationStatus.SENDING, NotificationStatus.CANCELLED},
    ),
    NotificationStatus.SCHEDULED: frozenset(
        {NotificationStatus.SENDING, NotificationStatus.CANCELLED},
    ),
    NotificationStatus.SENDING: frozenset(
        {NotificationStatus.DELIVERED, NotificationStatus.FAILED, NotificationStatus.CANCELLED},
    ),
    # Retry and resubmission
    NotificationStatus.FAILED: frozenset(
        {NotificationStatus.SENDING, NotificationStatus.PENDING, NotificationStatus.SCHEDULED},
    ),
    NotificationStatus.CANCELLED: frozenset(
        {NotificationStatus.PENDING, NotificationStatus.SCHEDULED},
    ),
    NotificationStatus.DELIVERED: frozenset(),
}


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class NotificationService(BaseService):
    """Creates notifications and runs dispatch cycles.

    A dispatch cycle resolves routes once, filters by preference once per
    recipient, renders the referenced template, then fans out every
    (recipient, channel) pair: ``in_app`` pairs go to the inbox materializer,
    all others to the registered channel adapter under a send timeout. Adapter
    failures are recorded, never raised.

    Status and attempt changes are flushed under the notification's optimistic
    version check; a concurrent cycle on the same record fails with
    ``ConcurrencyConflictException``.
    """

    def __init__(
        self,
        repository: NotificationRepository | None = None,
        attempt_repository: NotificationDeliveryAttemptRepository | None = None,
        template_service: NotificationTemplateService | None = None,
        resolver: RouteResolver | None = None,
        preference_filter: PreferenceFilter | None = None,
        registry: ChannelAdapterRegistry | None = None,
        materializer: InboxMaterializer | None = None,
        renderer: TemplateRenderer | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        """Initialize with collaborators (each defaults to its singleton)."""
        super().__init__()
        self._settings = settings or get_notification_settings()
        self._repository = repository or get_notification_repository()
        self._attempts = attempt_repository or get_notification_delivery_attempt_repository()
        self._templates = template_service or get_notification_template_service()
        self._resolver = resolver or RouteResolver()
        self._preferences = preference_filter or PreferenceFilter()
        self._registry = registry or get_channel_registry()
        self._materializer = materializer or InboxMaterializer(settings=self._settings)
        self._renderer = renderer or get_template_renderer()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_notification(
        self,
        session: AsyncSession,
        tenant_id: str,
        data: NotificationCreate,
        created_by: str | None = None,
        now: datetime | None = None,
    ) -> Notification:
        """Record a dispatch request.

        Args:
            session: Database session
            tenant_id: Owning tenant
            data: Event key, channels, recipients, payload and optional template
            created_by: Requesting user
            now: Reference time for the ``send_at`` comparison

        Returns:
            The notification, ``scheduled`` if ``send_at`` is in the future,
            otherwise ``pending``

        Raises:
            BadRequestException: If there are no recipients
            NotFoundException: If the referenced template does not exist
        """
        if not data.recipients:
            raise BadRequestException(
                detail="At least one recipient is required",
                extra={"event_key": data.event_key},
            )
        if data.template_id is not None:
            await self._templates.get_template(session, tenant_id, data.template_id)

        now = _as_utc(now) if now else datetime.now(UTC)
        send_at = _as_utc(data.send_at) if data.send_at else None
        status = (
            NotificationStatus.SCHEDULED
            if send_at is not None and send_at > now
            else NotificationStatus.PENDING
        )

        notification = Notification(
            tenant_id=tenant_id,
            event_key=data.event_key,
            template_id=data.template_id,
            channels=list(data.channels),
            recipients=[recipient.model_dump(exclude_none=True) for recipient in data.recipients],
            payload=data.payload,
            extra_metadata=data.metadata,
            status=status,
            send_at=send_at,
            attempts=0,
            created_by=created_by,
        )
        notification = await self._repository.create(session, notification)
        notification_created_total.labels(status=status.value).inc()

        self.logger.info(
            "Notification created",
            extra={
                "tenant_id": tenant_id,
                "notification_id": str(notification.id),
                "event_key": data.event_key,
                "status": status.value,
                "recipients": len(data.recipients),
            },
        )
        return notification

    async def send_notification(
        self,
        session: AsyncSession,
        tenant_id: str,
        data: NotificationCreate,
        created_by: str | None = None,
        now: datetime | None = None,
    ) -> Notification:
        """Create a notification and run one dispatch cycle unless it is scheduled."""
        notification = await self.create_notification(session, tenant_id, data, created_by, now)
        if notification.status == NotificationStatus.SCHEDULED:
            return notification
        return await self.dispatch_notification(session, tenant_id, notification.id, now)

    async def cancel_notification(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification_id: UUID,
    ) -> Notification:
        """Cancel a notification that has not reached a terminal status.

        Raises:
            InvalidStatusTransitionError: If the notification is delivered,
                failed or already cancelled
        """
        notification = await self.get_notification(session, tenant_id, notification_id)
        self._transition(notification, NotificationStatus.CANCELLED)
        await flush_or_conflict(session, entity="Notification", entity_id=notification.id)

        self.logger.info(
            "Notification cancelled",
            extra={"tenant_id": tenant_id, "notification_id": str(notification.id)},
        )
        return notification

    async def resubmit_notification(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification_id: UUID,
        send_at: datetime | None = None,
        now: datetime | None = None,
    ) -> Notification:
        """Move a failed or cancelled notification back to pending or scheduled.

        Raises:
            InvalidStatusTransitionError: If the notification is not failed or cancelled
        """
        notification = await self.get_notification(session, tenant_id, notification_id)
        now = _as_utc(now) if now else datetime.now(UTC)
        send_at = _as_utc(send_at) if send_at else None

        target = (
            NotificationStatus.SCHEDULED
            if send_at is not None and send_at > now
            else NotificationStatus.PENDING
        )
        self._transition(notification, target)
        notification.send_at = send_at
        await flush_or_conflict(session, entity="Notification", entity_id=notification.id)

        self._lazy.debug(lambda: f"Notification {notification_id} resubmitted as {target}")
        return notification

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_notification(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification_id: UUID,
    ) -> Notification:
        """Get a notification of the tenant.

        Raises:
            NotFoundException: If the notification does not exist for the tenant
        """
        notification = await self._repository.get_for_tenant(session, tenant_id, notification_id)
        if notification is None:
            raise NotFoundException(
                detail="Notification not found",
                type="notification-not-found",
                extra={"notification_id": str(notification_id)},
            )
        return notification

    async def list_notifications(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        status: str | None = None,
        event_key: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchResult[Notification]:
        """List notifications newest first."""
        size, offset = self.page_window(
            page,
            limit,
            default_limit=self._settings.default_page_size,
            max_limit=self._settings.max_page_size,
        )
        return await self._repository.search_notifications(
            session,
            tenant_id,
            status=status,
            event_key=event_key,
            limit=size,
            offset=offset,
        )

    async def list_delivery_attempts(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification_id: UUID,
    ) -> Sequence[NotificationDeliveryAttempt]:
        """List the per-(recipient, channel) results of every cycle."""
        notification = await self.get_notification(session, tenant_id, notification_id)
        return await self._attempts.list_for_notification(session, tenant_id, notification.id)

    # ------------------------------------------------------------------
    # Dispatch cycle
    # ------------------------------------------------------------------

    async def dispatch_notification(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification_id: UUID,
        now: datetime | None = None,
    ) -> Notification:
        """Run one dispatch cycle.

        Args:
            session: Database session
            tenant_id: Owning tenant
            notification_id: Notification to dispatch
            now: Cycle start time, used for quiet hours and ``last_attempt_at``

        Returns:
            The notification, ``delivered`` if any pair succeeded, else ``failed``

        Raises:
            NotFoundException: If the notification does not exist for the tenant
            InvalidStatusTransitionError: If the notification cannot be sent
                from its current status
            ConcurrencyConflictException: If another cycle or writer changed
                the notification concurrently
        """
        started_at = _as_utc(now) if now else datetime.now(UTC)
        notification = await self.get_notification(session, tenant_id, notification_id)
        set_log_context(tenant_id=tenant_id, notification_id=str(notification.id))

        self._transition(notification, NotificationStatus.SENDING)
        notification.attempts += 1
        notification.last_attempt_at = started_at
        await flush_or_conflict(session, entity="Notification", entity_id=notification.id)
        attempt = notification.attempts

        recipients = [Recipient.model_validate(item) for item in notification.recipients or []]
        channels = await self._resolver.resolve(
            session,
            tenant_id,
            notification.event_key,
            notification.channels,
            started_at,
        )

        pairs: list[tuple[int, Recipient, str]] = []
        for index, recipient in enumerate(recipients):
            allowed = await self._preferences.filter(
                session,
                tenant_id,
                recipient.user_id,
                channels,
                started_at,
            )
            pairs.extend(
                (index, recipient, channel)
                for channel in allowed
                # Anonymous recipients have no inbox
                if channel != ChannelType.IN_APP or recipient.user_id
            )

        try:
            contents = await self._render(session, tenant_id, notification, recipients)
        except (TemplateRenderError, NotFoundException) as exc:
            return await self._fail_render(session, notification, exc.detail)

        results = await self._deliver(session, tenant_id, notification, pairs, contents, started_at)

        session.add_all(
            NotificationDeliveryAttempt(
                tenant_id=tenant_id,
                notification_id=notification.id,
                attempt=attempt,
                channel=channel,
                recipient_key=recipient.key,
                success=result.success,
                error=result.error,
                response_metadata=result.metadata or None,
                duration_ms=result.duration_ms,
            )
            for (_, recipient, channel), result in zip(pairs, results, strict=True)
        )

        if any(result.success for result in results):
            self._transition(notification, NotificationStatus.DELIVERED)
            notification.delivered_at = datetime.now(UTC)
            notification.last_error = None
        else:
            errors = [result.error for result in results if result.error]
            self._transition(notification, NotificationStatus.FAILED)
            notification.last_error = errors[-1] if errors else NO_RECIPIENTS_ERROR

        await flush_or_conflict(session, entity="Notification", entity_id=notification.id)
        notification_dispatch_cycles_total.labels(outcome=notification.status).inc()

        self.logger.info(
            "Dispatch cycle finished",
            extra={
                "event_key": notification.event_key,
                "status": notification.status,
                "attempt": attempt,
                "pairs": len(pairs),
                "succeeded": sum(1 for result in results if result.success),
            },
        )
        return notification

    async def _render(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification: Notification,
        recipients: Sequence[Recipient],
    ) -> list[RenderedContent | None]:
        """Render content for each recipient (index-aligned)."""
        if notification.template_id is None:
            return [None] * len(recipients)

        template = await self._templates.get_template(session, tenant_id, notification.template_id)
        version = await self._templates.get_version(
            session,
            tenant_id,
            template.id,
            template.current_version,
        )
        subject = version.subject or template.default_subject
        payload: dict[str, Any] = dict(notification.payload or {})

        if not references_recipient(version.variables):
            content = self._renderer.render_content(version.content, subject, payload)
            return [content] * len(recipients)

        return [
            self._renderer.render_content(
                version.content,
                subject,
                {**payload, "recipient": recipient.model_dump()},
            )
            for recipient in recipients
        ]

    async def _deliver(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification: Notification,
        pairs: Sequence[tuple[int, Recipient, str]],
        contents: Sequence[RenderedContent | None],
        now: datetime,
    ) -> list[SendResult]:
        """Send every pair; results are in pair order."""
        results: list[SendResult | None] = [None] * len(pairs)
        pending: list[tuple[int, Any]] = []

        for position, (index, recipient, channel) in enumerate(pairs):
            content = contents[index]
            if channel == ChannelType.IN_APP:
                results[position] = await self._materialize(
                    session,
                    tenant_id,
                    notification,
                    recipient,
                    content,
                    now,
                )
                continue

            try:
                adapter = self._registry.get(channel)
            except ChannelNotRegisteredError as exc:
                self.logger.error(
                    "No adapter registered for channel",
                    extra={"channel": channel, "recipient": recipient.key},
                )
                results[position] = SendResult.failed(str(exc))
                continue

            context = SendContext(
                tenant_id=tenant_id,
                notification=notification,
                recipient=recipient,
                content=content,
            )
            pending.append((position, self._send_with_timeout(adapter, channel, context)))

        if pending:
            sent = await asyncio.gather(*(coro for _, coro in pending))
            for (position, _), result in zip(pending, sent, strict=True):
                results[position] = result

        for (_, _, channel), result in zip(pairs, results, strict=True):
            notification_channel_sends_total.labels(
                channel=channel,
                status="success" if result and result.success else "failed",
            ).inc()

        return [result for result in results if result is not None]

    async def _materialize(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification: Notification,
        recipient: Recipient,
        content: RenderedContent | None,
        now: datetime,
    ) -> SendResult:
        start = time.perf_counter()
        entry = await self._materializer.materialize(
            session,
            tenant_id,
            notification,
            recipient,
            content,
            now,
        )
        duration = time.perf_counter() - start
        notification_send_duration_seconds.labels(channel=ChannelType.IN_APP.value).observe(duration)
        return SendResult(
            success=True,
            metadata={"inbox_entry_id": str(entry.id)} if entry else {},
            duration_ms=int(duration * 1000),
        )

    async def _send_with_timeout(
        self,
        adapter: ChannelAdapter,
        channel: str,
        context: SendContext,
    ) -> SendResult:
        """Call an adapter under the send timeout; never raises."""
        timeout = self._settings.send_timeout_seconds
        start = time.perf_counter()
        try:
            async with asyncio.timeout(timeout):
                result = await adapter.send(context)
        except TimeoutError:
            self.logger.warning(
                "Channel send timed out",
                extra={"channel": channel, "recipient": context.recipient.key, "timeout": timeout},
            )
            result = SendResult.failed(f"Send timed out after {timeout}s")
        except Exception as exc:
            self.logger.exception(
                "Channel send raised",
                extra={"channel": channel, "recipient": context.recipient.key},
            )
            result = SendResult.failed(str(exc) or exc.__class__.__name__)

        duration = time.perf_counter() - start
        if result.duration_ms is None:
            result.duration_ms = int(duration * 1000)
        notification_send_duration_seconds.labels(channel=channel).observe(duration)

        if not result.success:
            self._lazy.debug(lambda: f"send failed: {channel} -> {context.recipient.key}: {result.error}")
        return result

    async def _fail_render(
        self,
        session: AsyncSession,
        notification: Notification,
        error: str,
    ) -> Notification:
        self._transition(notification, NotificationStatus.FAILED)
        notification.last_error = error
        await flush_or_conflict(session, entity="Notification", entity_id=notification.id)
        notification_dispatch_cycles_total.labels(outcome="render_error").inc()

        self.logger.warning(
            "Dispatch failed while rendering template",
            extra={"template_id": str(notification.template_id), "error": error},
        )
        return notification

    @staticmethod
    def _transition(notification: Notification, target: NotificationStatus) -> None:
        current = NotificationStatus(notification.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(notification.id, current.value, target.value)
        notification.status = target.value


# Singleton instance
_notification_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    """Get NotificationService singleton instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service


__all__ = [
    "ALLOWED_TRANSITIONS",
    "NO_RECIPIENTS_ERROR",
    "NotificationService",
    "get_notification_service",
]
