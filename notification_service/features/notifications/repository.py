"""Repositories for the notifications feature.

Every query is scoped by ``tenant_id``; records of another tenant are
treated exactly like missing ones.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import String, cast, delete, func, or_, select, update

from notification_service.core.database import SearchResult, TenantScopedRepository
from notification_service.features.notifications.models import (
    Notification,
    NotificationDeliveryAttempt,
    NotificationInboxEntry,
    NotificationPreference,
    NotificationRoute,
    NotificationTemplate,
    NotificationTemplateVersion,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.ext.asyncio import AsyncSession


def _json_list_contains(column: Any, value: str) -> ColumnElement[bool]:
    # Matches the serialized array on both JSONB (Postgres) and JSON (SQLite)
    return cast(column, String).contains(f'"{value}"', autoescape=True)


class NotificationTemplateRepository(TenantScopedRepository[NotificationTemplate]):
    """Repository for NotificationTemplate model."""

    def __init__(self) -> None:
        """Initialize with NotificationTemplate model."""
        super().__init__(NotificationTemplate)

    async def get_by_key(
        self,
        session: AsyncSession,
        tenant_id: str,
        key: str,
    ) -> NotificationTemplate | None:
        """Get template by its (lowercased) key.

        Args:
            session: Database session
            tenant_id: Owning tenant
            key: Template key

        Returns:
            Template if found, None otherwise
        """
        stmt = self.for_tenant(tenant_id).where(NotificationTemplate.key == key.lower())
        result = await session.execute(stmt)
        template = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_by_key({tenant_id=}, {key=}) -> {template is not None}")
        return template

    async def search_templates(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        search: str | None = None,
        channel: str | None = None,
        limit: int = 25,
        offset: int = 0,
    ) -> SearchResult[NotificationTemplate]:
        """List templates, most recently updated first.

        Args:
            session: Database session
            tenant_id: Owning tenant
            search: Case-insensitive match on name or key
            channel: Only templates whose current channels include this one
            limit: Page size
            offset: Results to skip

        Returns:
            Paginated templates
        """
        stmt = self.for_tenant(tenant_id)
        if search:
            stmt = stmt.where(
                or_(
                    NotificationTemplate.name.icontains(search, autoescape=True),
                    NotificationTemplate.key.icontains(search, autoescape=True),
                ),
            )
        if channel:
            stmt = stmt.where(_json_list_contains(NotificationTemplate.channels, channel))

        stmt = stmt.order_by(NotificationTemplate.updated_at.desc(), NotificationTemplate.id.desc())
        return await self.search(session, stmt, limit=limit, offset=offset)


class NotificationTemplateVersionRepository(TenantScopedRepository[NotificationTemplateVersion]):
    """Repository for the append-only template version rows."""

    def __init__(self) -> None:
        """Initialize with NotificationTemplateVersion model."""
        super().__init__(NotificationTemplateVersion)

    async def get_version(
        self,
        session: AsyncSession,
        template_id: UUID,
        version: int,
    ) -> NotificationTemplateVersion | None:
        """Get one version of a template.

        Args:
            session: Database session
            template_id: Template UUID
            version: Version number

        Returns:
            Version if found, None otherwise
        """
        stmt = select(NotificationTemplateVersion).where(
            NotificationTemplateVersion.template_id == template_id,
            NotificationTemplateVersion.version == version,
        )
        result = await session.execute(stmt)
        item = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_version({template_id}, v{version}) -> {item is not None}")
        return item

    async def list_for_template(
        self,
        session: AsyncSession,
        template_id: UUID,
    ) -> Sequence[NotificationTemplateVersion]:
        """List every version of a template in version order."""
        stmt = (
            select(NotificationTemplateVersion)
            .where(NotificationTemplateVersion.template_id == template_id)
            .order_by(NotificationTemplateVersion.version.asc())
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_versions({template_id}) -> {len(items)} versions")
        return items

    async def delete_for_template(self, session: AsyncSession, template_id: UUID) -> int:
        """Delete every version of a template.

        Returns:
            Number of deleted rows
        """
        result = await session.execute(
            delete(NotificationTemplateVersion).where(
                NotificationTemplateVersion.template_id == template_id,
            ),
        )
        return result.rowcount or 0


class NotificationRouteRepository(TenantScopedRepository[NotificationRoute]):
    """Repository for NotificationRoute model."""

    def __init__(self) -> None:
        """Initialize with NotificationRoute model."""
        super().__init__(NotificationRoute)

    async def get_for_event(
        self,
        session: AsyncSession,
        tenant_id: str,
        event_key: str,
    ) -> NotificationRoute | None:
        """Get the route of an event key.

        Args:
            session: Database session
            tenant_id: Owning tenant
            event_key: Business event identifier

        Returns:
            Route if one is configured, None otherwise
        """
        stmt = self.for_tenant(tenant_id).where(NotificationRoute.event_key == event_key)
        result = await session.execute(stmt)
        route = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_route({tenant_id=}, {event_key=}) -> {route is not None}")
        return route

    async def list_for_tenant(
        self,
        session: AsyncSession,
        tenant_id: str,
    ) -> Sequence[NotificationRoute]:
        """List a tenant's routes ordered by event key."""
        stmt = self.for_tenant(tenant_id).order_by(NotificationRoute.event_key.asc())
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_routes({tenant_id=}) -> {len(items)} routes")
        return items


class NotificationPreferenceRepository(TenantScopedRepository[NotificationPreference]):
    """Repository for NotificationPreference model."""

    def __init__(self) -> None:
        """Initialize with NotificationPreference model."""
        super().__init__(NotificationPreference)

    async def get_for_user(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
    ) -> NotificationPreference | None:
        """Get a user's stored preferences.

        Args:
            session: Database session
            tenant_id: Owning tenant
            user_id: User identifier

        Returns:
            Preference if stored, None otherwise
        """
        stmt = self.for_tenant(tenant_id).where(NotificationPreference.user_id == user_id)
        result = await session.execute(stmt)
        pref = result.scalar_one_or_none()

        self._lazy.debug(lambda: f"db.get_preference({tenant_id=}, {user_id=}) -> {pref is not None}")
        return pref


class NotificationRepository(TenantScopedRepository[Notification]):
    """Repository for Notification model."""

    def __init__(self) -> None:
        """Initialize with Notification model."""
        super().__init__(Notification)

    async def search_notifications(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        status: str | None = None,
        event_key: str | None = None,
        limit: int = 25,
        offset: int = 0,
    ) -> SearchResult[Notification]:
        """List notifications, newest first.

        Args:
            session: Database session
            tenant_id: Owning tenant
            status: Optional status filter
            event_key: Optional event key filter
            limit: Page size
            offset: Results to skip

        Returns:
            Paginated notifications
        """
        stmt = self.for_tenant(tenant_id)
        if status:
            stmt = stmt.where(Notification.status == status)
        if event_key:
            stmt = stmt.where(Notification.event_key == event_key)

        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        return await self.search(session, stmt, limit=limit, offset=offset)


class NotificationDeliveryAttemptRepository(TenantScopedRepository[NotificationDeliveryAttempt]):
    """Repository for the per-(recipient, channel) attempt log."""

    def __init__(self) -> None:
        """Initialize with NotificationDeliveryAttempt model."""
        super().__init__(NotificationDeliveryAttempt)

    async def list_for_notification(
        self,
        session: AsyncSession,
        tenant_id: str,
        notification_id: UUID,
    ) -> Sequence[NotificationDeliveryAttempt]:
        """List attempts of a notification, oldest cycle first."""
        stmt = (
            self.for_tenant(tenant_id)
            .where(NotificationDeliveryAttempt.notification_id == notification_id)
            .order_by(
                NotificationDeliveryAttempt.attempt.asc(),
                NotificationDeliveryAttempt.id.asc(),
            )
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_attempts({notification_id}) -> {len(items)} attempts")
        return items


class NotificationInboxRepository(TenantScopedRepository[NotificationInboxEntry]):
    """Repository for NotificationInboxEntry model."""

    def __init__(self) -> None:
        """Initialize with NotificationInboxEntry model."""
        super().__init__(NotificationInboxEntry)

    def for_user(self, tenant_id: str, user_id: str) -> Select[tuple[NotificationInboxEntry]]:
        """Return a select of one user's inbox entries."""
        return self.for_tenant(tenant_id).where(NotificationInboxEntry.user_id == user_id)

    async def get_for_user(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        entry_id: UUID,
    ) -> NotificationInboxEntry | None:
        """Get an inbox entry owned by the user."""
        stmt = self.for_user(tenant_id, user_id).where(NotificationInboxEntry.id == entry_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_notification(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        notification_id: UUID,
    ) -> NotificationInboxEntry | None:
        """Get the entry a notification already materialized for the user."""
        stmt = self.for_user(tenant_id, user_id).where(
            NotificationInboxEntry.notification_id == notification_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def search_inbox(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        *,
        read: bool | None = None,
        search: str | None = None,
        include_archived: bool = False,
        limit: int = 25,
        offset: int = 0,
    ) -> SearchResult[NotificationInboxEntry]:
        """List a user's inbox, newest delivery first.

        Args:
            session: Database session
            tenant_id: Owning tenant
            user_id: Inbox owner
            read: Only read (True) or unread (False) entries
            search: Case-insensitive match on title or message
            include_archived: Include archived entries
            limit: Page size
            offset: Results to skip

        Returns:
            Paginated inbox entries
        """
        stmt = self.for_user(tenant_id, user_id)
        if not include_archived:
            stmt = stmt.where(NotificationInboxEntry.archived.is_(False))
        if read is not None:
            stmt = stmt.where(NotificationInboxEntry.read.is_(read))
        if search:
            stmt = stmt.where(
                or_(
                    NotificationInboxEntry.title.icontains(search, autoescape=True),
                    NotificationInboxEntry.message.icontains(search, autoescape=True),
                ),
            )

        stmt = stmt.order_by(
            NotificationInboxEntry.delivered_at.desc(),
            NotificationInboxEntry.id.desc(),
        )
        return await self.search(session, stmt, limit=limit, offset=offset)

    async def count_unread(self, session: AsyncSession, tenant_id: str, user_id: str) -> int:
        """Count unread, non-archived entries of a user."""
        stmt = select(func.count()).select_from(
            self.for_user(tenant_id, user_id)
            .where(
                NotificationInboxEntry.read.is_(False),
                NotificationInboxEntry.archived.is_(False),
            )
            .subquery(),
        )
        count = (await session.execute(stmt)).scalar_one()

        self._lazy.debug(lambda: f"db.count_unread({tenant_id=}, {user_id=}) -> {count}")
        return count

    async def mark_all_read(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        read_at: datetime,
    ) -> int:
        """Mark every unread entry of a user as read.

        Returns:
            Number of entries updated
        """
        result = await session.execute(
            update(NotificationInboxEntry)
            .where(
                NotificationInboxEntry.tenant_id == tenant_id,
                NotificationInboxEntry.user_id == user_id,
                NotificationInboxEntry.read.is_(False),
            )
            .values(read=True, read_at=read_at)
            .execution_options(synchronize_session="fetch"),
        )
        count = result.rowcount or 0

        self._lazy.debug(lambda: f"db.mark_all_read({tenant_id=}, {user_id=}) -> {count}")
        return count

    async def archive_overflow(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        keep: int,
        archived_at: datetime,
    ) -> int:
        """Archive the oldest non-archived entries beyond ``keep``.

        Returns:
            Number of entries archived
        """
        overflow = (
            select(NotificationInboxEntry.id)
            .where(
                NotificationInboxEntry.tenant_id == tenant_id,
                NotificationInboxEntry.user_id == user_id,
                NotificationInboxEntry.archived.is_(False),
            )
            .order_by(
                NotificationInboxEntry.delivered_at.desc(),
                NotificationInboxEntry.id.desc(),
            )
            .offset(keep)
        )
        ids = (await session.execute(overflow)).scalars().all()
        if not ids:
            return 0

        await session.execute(
            update(NotificationInboxEntry)
            .where(NotificationInboxEntry.id.in_(ids))
            .values(archived=True, archived_at=archived_at)
            .execution_options(synchronize_session="fetch"),
        )
        self._logger.info(
            "Archived overflowing inbox entries",
            extra={"tenant_id": tenant_id, "user_id": user_id, "count": len(ids)},
        )
        return len(ids)


# Factory functions for dependency injection
_template_repository: NotificationTemplateRepository | None = None
_version_repository: NotificationTemplateVersionRepository | None = None
_route_repository: NotificationRouteRepository | None = None
_preference_repository: NotificationPreferenceRepository | None = None
_notification_repository: NotificationRepository | None = None
_attempt_repository: NotificationDeliveryAttemptRepository | None = None
_inbox_repository: NotificationInboxRepository | None = None


def get_notification_template_repository() -> NotificationTemplateRepository:
    """Get NotificationTemplateRepository singleton instance."""
    global _template_repository
    if _template_repository is None:
        _template_repository = NotificationTemplateRepository()
    return _template_repository


def get_notification_template_version_repository() -> NotificationTemplateVersionRepository:
    """Get NotificationTemplateVersionRepository singleton instance."""
    global _version_repository
    if _version_repository is None:
        _version_repository = NotificationTemplateVersionRepository()
    return _version_repository


def get_notification_route_repository() -> NotificationRouteRepository:
    """Get NotificationRouteRepository singleton instance."""
    global _route_repository
    if _route_repository is None:
        _route_repository = NotificationRouteRepository()
    return _route_repository


def get_notification_preference_repository() -> NotificationPreferenceRepository:
    """Get NotificationPreferenceRepository singleton instance."""
    global _preference_repository
    if _preference_repository is None:
        _preference_repository = NotificationPreferenceRepository()
    return _preference_repository


def get_notification_repository() -> NotificationRepository:
    """Get NotificationRepository singleton instance."""
    global _notification_repository
    if _notification_repository is None:
        _notification_repository = NotificationRepository()
    return _notification_repository


def get_notification_delivery_attempt_repository() -> NotificationDeliveryAttemptRepository:
    """Get NotificationDeliveryAttemptRepository singleton instance."""
    global _attempt_repository
    if _attempt_repository is None:
        _attempt_repository = NotificationDeliveryAttemptRepository()
    return _attempt_repository


def get_notification_inbox_repository() -> NotificationInboxRepository:
    """Get NotificationInboxRepository singleton instance."""
    global _inbox_repository
    if _inbox_repository is None:
        _inbox_repository = NotificationInboxRepository()
    return _inbox_repository


__all__ = [
    "NotificationDeliveryAttemptRepository",
    "NotificationInboxRepository",
    "NotificationPreferenceRepository",
    "NotificationRepository",
    "NotificationRouteRepository",
    "NotificationTemplateRepository",
    "NotificationTemplateVersionRepository",
    "get_notification_delivery_attempt_repository",
    "get_notification_inbox_repository",
    "get_notification_preference_repository",
    "get_notification_repository",
    "get_notification_route_repository",
    "get_notification_template_repository",
    "get_notification_template_version_repository",
]
