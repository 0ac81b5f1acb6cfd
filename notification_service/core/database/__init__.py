"""Core database package: declarative base, mixins and a thin repository.

Base Classes and Mixins:
    - Base: Declarative base with constraint naming convention
    - UUIDv7PKMixin: Time-sortable UUID primary key
    - TimestampMixin: created_at, updated_at tracking
    - TenantMixin: tenant_id column for tenant-partitioned tables
    - UUIDv7TimestampedBase: UUID v7 PK + timestamps

Repository:
    - BaseRepository[T]: Generic CRUD with explicit session passing
    - TenantScopedRepository[T]: BaseRepository with tenant-scoped lookups
    - SearchResult[T]: Paginated result container

Example:
    from notification_service.core.database import BaseRepository, SearchResult

    repo = BaseRepository(NotificationRoute)
    result: SearchResult[NotificationRoute] = await repo.search(session, stmt, limit=25)
"""

from notification_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    TenantMixin,
    TimestampMixin,
    UUIDv7PKMixin,
    UUIDv7TimestampedBase,
    generate_uuid7,
)
from notification_service.core.database.repository import (
    BaseRepository,
    SearchResult,
    TenantScopedRepository,
    flush_or_conflict,
)

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "SearchResult",
    "TenantMixin",
    "TenantScopedRepository",
    "TimestampMixin",
    "UUIDv7PKMixin",
    "UUIDv7TimestampedBase",
    "flush_or_conflict",
    "generate_uuid7",
]
