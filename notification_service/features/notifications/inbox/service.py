"""Service layer for a user's notification inbox."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from notification_service.core.exceptions import NotFoundException
from notification_service.core.services.base import BaseService
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.repository import (
    NotificationInboxRepository,
    get_notification_inbox_repository,
)
from notification_service.features.notifications.schemas import (
    InboxEntryResponse,
    InboxListResponse,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.models import NotificationInboxEntry


class InboxService(BaseService):
    """Reads and read/archive state changes on inbox entries.

    Every operation is scoped to one (tenant, user); another user's entry is
    reported as not found.
    """

    def __init__(
        self,
        repository: NotificationInboxRepository | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        super().__init__()
        self._repository = repository or get_notification_inbox_repository()
        self._settings = settings or get_notification_settings()

    async def list_inbox(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        *,
        read: bool | None = None,
        search: str | None = None,
        include_archived: bool = False,
        page: int = 1,
        limit: int | None = None,
    ) -> InboxListResponse:
        """List a user's inbox with the unread count.

        Args:
            session: Database session
            tenant_id: Owning tenant
            user_id: Inbox owner
            read: Only read (True) or unread (False) entries
            search: Case-insensitive match on title or message
            include_archived: Include archived entries
            page: 1-indexed page
            limit: Page size (capped at ``max_page_size``)

        Returns:
            Page of entries, total, unread count and page info
        """
        size, offset = self.page_window(
            page,
            limit,
            default_limit=self._settings.default_page_size,
            max_limit=self._settings.max_page_size,
        )
        result = await self._repository.search_inbox(
            session,
            tenant_id,
            user_id,
            read=read,
            search=search,
            include_archived=include_archived,
            limit=size,
            offset=offset,
        )
        unread = await self._repository.count_unread(session, tenant_id, user_id)

        return InboxListResponse(
            items=[InboxEntryResponse.model_validate(item) for item in result.items],
            total=result.total,
            unread_count=unread,
            page=result.page,
            pages=result.pages,
        )

    async def mark_read(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        entry_id: UUID,
        *,
        read: bool = True,
    ) -> NotificationInboxEntry:
        """Mark one entry read (or unread again)."""
        entry = await self._require_entry(session, tenant_id, user_id, entry_id)
        entry.read = read
        entry.read_at = datetime.now(UTC) if read else None
        await session.flush()

        self._lazy.debug(lambda: f"inbox.mark_read: {entry_id} -> {read}")
        return entry

    async def mark_all_read(self, session: AsyncSession, tenant_id: str, user_id: str) -> int:
        """Mark every unread entry of the user read.

        Returns:
            Number of entries updated
        """
        count = await self._repository.mark_all_read(session, tenant_id, user_id, datetime.now(UTC))
        self.logger.info(
            "Inbox marked read",
            extra={"tenant_id": tenant_id, "user_id": user_id, "count": count},
        )
        return count

    async def archive_entry(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        entry_id: UUID,
    ) -> NotificationInboxEntry:
        """Archive one entry; it no longer shows in the default listing."""
        entry = await self._require_entry(session, tenant_id, user_id, entry_id)
        if not entry.archived:
            entry.archived = True
            entry.archived_at = datetime.now(UTC)
            await session.flush()
        return entry

    async def _require_entry(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        entry_id: UUID,
    ) -> NotificationInboxEntry:
        entry = await self._repository.get_for_user(session, tenant_id, user_id, entry_id)
        if entry is None:
            raise NotFoundException(
                detail="Inbox notification not found",
                type="inbox-entry-not-found",
                extra={"entry_id": str(entry_id)},
            )
        return entry


# Singleton instance
_inbox_service: InboxService | None = None


def get_inbox_service() -> InboxService:
    """Get InboxService singleton instance."""
    global _inbox_service
    if _inbox_service is None:
        _inbox_service = InboxService()
    return _inbox_service


__all__ = ["InboxService", "get_inbox_service"]
