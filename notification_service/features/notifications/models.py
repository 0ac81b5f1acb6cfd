"""SQLAlchemy models for the notification engine."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import TenantMixin, UUIDv7TimestampedBase

# JSONB on Postgres, plain JSON on SQLite (tests)
JSONType = JSONB().with_variant(JSON(), "sqlite")


class ChannelType(StrEnum):
    """Delivery channels known to the engine."""

    EMAIL = "email"
    SMS = "sms"
    WEBHOOK = "webhook"
    IN_APP = "in_app"


class NotificationStatus(StrEnum):
    """Delivery lifecycle of a notification record."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class InboxSeverity(StrEnum):
    """Severity shown on an inbox entry."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationTemplate(UUIDv7TimestampedBase, TenantMixin):
    """Versioned notification template.

    The template row holds mutable metadata and a pointer to its current
    version. Renderable content lives in ``NotificationTemplateVersion``
    rows, which are append-only.

    ``version_id`` is an optimistic lock: every UPDATE is issued as
    ``WHERE id = ? AND version_id = ?``, so two editors bumping
    ``current_version`` at the same time cannot both succeed.
    """

    __tablename__ = "notification_templates"

    key: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Lowercased template key, unique per tenant",
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    channels: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Channels of the current version",
    )
    default_subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sample_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    current_version: Mapped[int] = mapped_column(
        Integer(),
        nullable=False,
        default=1,
        comment="Number of the latest appended version",
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version_id: Mapped[int] = mapped_column(Integer(), nullable=False)

    __mapper_args__ = {"version_id_col": version_id}  # noqa: RUF012

    __table_args__ = (
        UniqueConstraint("tenant_id", "key", name="uq_notification_template_tenant_key"),
    )


class NotificationTemplateVersion(UUIDv7TimestampedBase, TenantMixin):
    """Immutable snapshot of a template's renderable content.

    Addressed by ``(template_id, version)``; the unique constraint turns a
    duplicate version number from a lost race into an IntegrityError.
    """

    __tablename__ = "notification_template_versions"

    template_id: Mapped[UUID] = mapped_column(
        ForeignKey("notification_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version: Mapped[int] = mapped_column(Integer(), nullable=False)
    content: Mapped[str] = mapped_column(Text(), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    channels: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    variables: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Variable paths extracted from content, first-seen order",
    )
    change_summary: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("template_id", "version", name="uq_notification_template_version"),
    )


class NotificationRoute(UUIDv7TimestampedBase, TenantMixin):
    """Tenant-level routing rules for one event key.

    ``channels`` is a list of per-channel configs::

        [{"channel": "email", "enabled": true,
          "quiet_hours": {"start": "22:00", "end": "06:00"},
          "fallback": ["sms"]}]
    """

    __tablename__ = "notification_routes"

    event_key: Mapped[str] = mapped_column(String(200), nullable=False)
    channels: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    filters: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "event_key", name="uq_notification_route_tenant_event"),
    )


class NotificationPreference(UUIDv7TimestampedBase, TenantMixin):
    """Per-user channel opt-outs and quiet hours.

    ``channels`` maps channel name to ``{"enabled": bool, "quiet_hours": {...} | null}``.
    Channels missing from the mapping are enabled with no quiet hours.
    """

    __tablename__ = "notification_preferences"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    channels: Mapped[dict[str, dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_notification_preference_tenant_user"),
    )


class Notification(UUIDv7TimestampedBase, TenantMixin):
    """One dispatch request and its delivery lifecycle.

    Status, attempt count and outcome fields are written only by the
    dispatch coordinator. ``version_id`` guards those writes so an
    overlapping dispatch cycle cannot silently revert a terminal state.

    Indexes:
        - (tenant_id, status) for scheduler pickup and listing
        - (tenant_id, event_key) for listing by event
    """

    __tablename__ = "notifications"

    event_key: Mapped[str] = mapped_column(String(200), nullable=False)
    template_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("notification_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    channels: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Requested channels, before routing",
    )
    recipients: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Recipients: user_id, email, phone, webhook_url, name",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationStatus.PENDING,
        comment="pending, scheduled, sending, delivered, failed, cancelled",
    )
    send_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
        comment="Requested send time for scheduled notifications",
    )
    attempts: Mapped[int] = mapped_column(Integer(), nullable=False, default=0)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version_id: Mapped[int] = mapped_column(Integer(), nullable=False)

    __mapper_args__ = {"version_id_col": version_id}  # noqa: RUF012

    __table_args__ = (
        Index("idx_notification_tenant_status", "tenant_id", "status"),
        Index("idx_notification_tenant_event", "tenant_id", "event_key"),
    )


class NotificationDeliveryAttempt(UUIDv7TimestampedBase, TenantMixin):
    """Outcome of one (recipient, channel) send within a dispatch cycle."""

    __tablename__ = "notification_delivery_attempts"

    notification_id: Mapped[UUID] = mapped_column(
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attempt: Mapped[int] = mapped_column(
        Integer(),
        nullable=False,
        comment="Dispatch cycle number (Notification.attempts at the time)",
    )
    channel: Mapped[str] = mapped_column(String(50), nullable=False)
    recipient_key: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
        comment="user id, address, phone or URL identifying the recipient",
    )
    success: Mapped[bool] = mapped_column(Boolean(), nullable=False)
    error: Mapped[str | None] = mapped_column(Text(), nullable=True)
    response_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer(), nullable=True)

    __table_args__ = (
        Index("idx_delivery_attempt_notification_attempt", "notification_id", "attempt"),
    )


class NotificationInboxEntry(UUIDv7TimestampedBase, TenantMixin):
    """In-app notification materialized into a user's inbox.

    Owned by the recipient after creation: later status changes on the
    originating notification do not touch it.
    """

    __tablename__ = "notification_inbox_entries"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    notification_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("notifications.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text(), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default=InboxSeverity.INFO)
    action_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=False)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "user_id",
            "notification_id",
            name="uq_inbox_entry_tenant_user_notification",
        ),
        Index("idx_inbox_entry_user_state", "tenant_id", "user_id", "archived", "read"),
    )


__all__ = [
    "ChannelType",
    "InboxSeverity",
    "Notification",
    "NotificationDeliveryAttempt",
    "NotificationInboxEntry",
    "NotificationPreference",
    "NotificationRoute",
    "NotificationStatus",
    "NotificationTemplate",
    "NotificationTemplateVersion",
]
