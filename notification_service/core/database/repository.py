"""Minimal generic repository for SQLAlchemy models.

Provides basic CRUD operations with explicit session passing.
For complex queries, use the session directly - this is a convenience, not a cage.

Example:
    from notification_service.core.database import BaseRepository

    class NotificationRouteRepository(BaseRepository[NotificationRoute]):
        async def get_for_event(
            self, session: AsyncSession, tenant_id: str, event_key: str
        ) -> NotificationRoute | None:
            stmt = select(NotificationRoute).where(
                NotificationRoute.tenant_id == tenant_id,
                NotificationRoute.event_key == event_key,
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from notification_service.core.exceptions import ConcurrencyConflictException
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class SearchResult(Generic[T]):
    """Paginated search result container.

    Attributes:
        items: List of items for current page
        total: Total count across all pages
        limit: Page size
        offset: Current offset

    Example:
            result = await repo.search(session, stmt, limit=20, offset=0)
        print(f"Showing {len(result.items)} of {result.total}")
    """

    items: Sequence[T]
    total: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        """Current page number (1-indexed)."""
        return (self.offset // self.limit) + 1 if self.limit else 1

    @property
    def pages(self) -> int:
        """Total number of pages."""
        if self.limit == 0:
            return 1
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        """Whether there are more pages after current."""
        return self.offset + len(self.items) < self.total


class BaseRepository(Generic[T]):
    """Minimal generic repository for CRUD operations.

    Provides:
        - get(session, id) -> T | None
        - get_by(session, attr, value) -> T | None
        - search(session, statement, limit, offset) -> SearchResult[T]
        - create(session, instance) -> T
        - delete(session, instance) -> None

    Session is always explicit - no hidden state. Tenant scoping is done by
    the feature repositories, which add a tenant_id predicate to every query.
    """

    __slots__ = ("_lazy", "_logger", "model")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        # Standard logger for INFO/WARNING/ERROR
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T | None:
        """Get entity by primary key.

        Args:
            session: Database session
            id: Primary key value
            options: SQLAlchemy loader options (e.g., selectinload)

        Returns:
            Entity if found, None otherwise
        """
        if options:
            stmt = select(self.model).where(self.model.id == id).options(*options)  # type: ignore[attr-defined]
            result = await session.execute(stmt)
            instance = result.scalar_one_or_none()
        else:
            instance = await session.get(self.model, id)

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_by(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T | None:
        """Get entity by arbitrary attribute.

        Args:
            session: Database session
            attr: Model attribute to filter by
            value: Value to match

        Returns:
            First matching entity or None
        """
        stmt = select(self.model).where(attr == value)
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_by: {self.model.__name__}.{attr.key}={value!r} -> {'found' if instance else 'not found'}"
        )
        return instance

    async def search(
        self,
        session: AsyncSession,
        statement: Select[tuple[T]],
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[T]:
        """Execute paginated search with total count.

        Takes a pre-built statement (with filters applied) and adds pagination.

        Args:
            session: Database session
            statement: SQLAlchemy select statement (apply filters before calling)
            limit: Page size
            offset: Results to skip

        Returns:
            SearchResult with items, total count, and pagination info
        """
        count_stmt = select(func.count()).select_from(statement.order_by(None).subquery())
        total = (await session.execute(count_stmt)).scalar_one()

        paginated = statement.limit(limit).offset(offset)
        result = await session.execute(paginated)
        items = result.scalars().all()

        search_result = SearchResult(items=items, total=total, limit=limit, offset=offset)
        self._lazy.debug(
            lambda: f"db.search: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)}/{total} items, page {search_result.page}/{search_result.pages}"
        )
        return search_result

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new entity.

        Adds to session, flushes to get generated values (like id),
        and refreshes to ensure instance is up-to-date.

        Args:
            session: Database session
            instance: Entity instance to persist

        Returns:
            Persisted entity with generated fields populated
        """
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        """Delete an entity.

        Args:
            session: Database session
            instance: Entity to delete
        """
        entity_id = getattr(instance, "id", None)
        await session.delete(instance)
        await session.flush()

        self._logger.info(
            "Entity deleted",
            extra={"entity": self.model.__name__, "id": str(entity_id), "operation": "db.delete"},
        )


class TenantScopedRepository(BaseRepository[T]):
    """BaseRepository for models carrying a ``tenant_id`` column.

    Lookups by primary key go through ``get_for_tenant`` so a record of
    another tenant is indistinguishable from a missing one.
    """

    __slots__ = ()

    def for_tenant(self, tenant_id: str) -> Select[tuple[T]]:
        """Return ``SELECT model WHERE tenant_id = :tenant_id`` for further filtering."""
        return select(self.model).where(self.model.tenant_id == tenant_id)  # type: ignore[attr-defined]

    async def get_for_tenant(
        self,
        session: AsyncSession,
        tenant_id: str,
        id: Any,  # noqa: A002
    ) -> T | None:
        """Get entity by primary key within a tenant.

        Args:
            session: Database session
            tenant_id: Owning tenant
            id: Primary key value

        Returns:
            Entity if found for this tenant, None otherwise
        """
        stmt = self.for_tenant(tenant_id).where(self.model.id == id)  # type: ignore[attr-defined]
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_for_tenant: {self.model.__name__}({id}, tenant={tenant_id}) -> {'found' if instance else 'not found'}"
        )
        return instance


async def flush_or_conflict(session: AsyncSession, *, entity: str, entity_id: Any) -> None:
    """Flush pending changes, mapping lost optimistic checks to a 409.

    A ``StaleDataError`` means the row's ``version_id`` moved since it was
    loaded; an ``IntegrityError`` here means a concurrent writer took the same
    unique slot (for example a template version number). The session must be
    rolled back by the caller afterwards.

    Args:
        session: Database session
        entity: Entity name used in the error detail
        entity_id: Primary key of the entity being written

    Raises:
        ConcurrencyConflictException: If the flush lost a race.
    """
    try:
        await session.flush()
    except (StaleDataError, IntegrityError) as exc:
        raise ConcurrencyConflictException(
            detail=f"{entity} was modified concurrently; reload and retry",
            extra={"entity": entity, "id": str(entity_id)},
        ) from exc


__all__ = [
    "BaseRepository",
    "SearchResult",
    "TenantScopedRepository",
    "flush_or_conflict",
]
