"""Pydantic schemas for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

CHANNEL_PATTERN = r"^[a-z][a-z0-9_]{0,49}$"
TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ============================================================================
# Routing Schemas
# ============================================================================


class QuietHours(BaseModel):
    """Time-of-day window ``[start, end)`` in ``HH:mm``.

    ``start > end`` wraps midnight; ``start == end`` is an empty window.
    """

    model_config = ConfigDict(frozen=True)

    start: str = Field(..., pattern=TIME_OF_DAY_PATTERN, description="Window start, HH:mm")
    end: str = Field(..., pattern=TIME_OF_DAY_PATTERN, description="Window end (exclusive), HH:mm")


class RouteChannelConfig(BaseModel):
    """Routing rule for one channel of an event."""

    channel: str = Field(..., pattern=CHANNEL_PATTERN)
    enabled: bool = True
    quiet_hours: QuietHours | None = None
    fallback: list[str] = Field(
        default_factory=list,
        description="Channels tried in order when this channel is in quiet hours",
    )

    @field_validator("fallback")
    @classmethod
    def _no_self_fallback(cls, value: list[str], info: ValidationInfo) -> list[str]:
        channel = info.data.get("channel")
        return [item for item in dict.fromkeys(value) if item != channel]


class RouteUpsert(BaseModel):
    """Payload for creating or replacing the route of an event key."""

    event_key: str = Field(..., min_length=1, max_length=200)
    channels: list[RouteChannelConfig] = Field(default_factory=list)
    filters: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class RouteResponse(BaseModel):
    """Representation of a stored route."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    event_key: str
    channels: list[RouteChannelConfig]
    filters: dict[str, Any] | None = None
    extra_metadata: dict[str, Any] | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime


class ChannelPreference(BaseModel):
    """A user's setting for one channel."""

    enabled: bool = True
    quiet_hours: QuietHours | None = None


class PreferenceUpdate(BaseModel):
    """Payload for replacing a user's channel preferences."""

    channels: dict[str, ChannelPreference] = Field(default_factory=dict)


class PreferenceResponse(BaseModel):
    """Representation of a user's stored preferences."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    user_id: str
    channels: dict[str, ChannelPreference]
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Template Schemas
# ============================================================================


class TemplateCreate(BaseModel):
    """Payload for creating a template and its first version."""

    key: str = Field(..., min_length=1, max_length=200)
    name: str | None = Field(default=None, max_length=200, description="Defaults to the key")
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    channels: list[str] = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    subject: str | None = Field(default=None, max_length=500)
    sample_payload: dict[str, Any] | None = None
    change_summary: str | None = Field(default=None, max_length=500)

    @field_validator("key")
    @classmethod
    def _normalize_key(cls, value: str) -> str:
        return value.strip().lower()


class TemplateUpdate(BaseModel):
    """Patch for a template.

    Metadata fields mutate the template in place. Supplying ``content``,
    ``subject`` or ``channels`` appends a new version, even when the values
    match the current version.
    """

    name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    tags: list[str] | None = None
    sample_payload: dict[str, Any] | None = None
    content: str | None = None
    subject: str | None = Field(default=None, max_length=500)
    channels: list[str] | None = None
    change_summary: str | None = Field(default=None, max_length=500)

    @property
    def creates_version(self) -> bool:
        """Whether this patch touches versioned content."""
        return any(value is not None for value in (self.content, self.subject, self.channels))


class TemplateVersionCreate(BaseModel):
    """Payload for an explicit version bump."""

    content: str
    subject: str | None = Field(default=None, max_length=500)
    channels: list[str] | None = None
    change_summary: str | None = Field(default=None, max_length=500)


class TemplatePreviewRequest(BaseModel):
    """Render a stored template or ad-hoc content against sample data."""

    template_id: UUID | None = None
    content: str | None = None
    subject: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class TemplatePreviewResponse(BaseModel):
    """Rendered preview."""

    content: str
    subject: str | None = None
    variables: list[str]


class TemplateVersionResponse(BaseModel):
    """Representation of an immutable template version."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    template_id: UUID
    version: int
    content: str
    subject: str | None = None
    channels: list[str]
    variables: list[str]
    change_summary: str | None = None
    created_by: str | None = None
    created_at: datetime


class TemplateResponse(BaseModel):
    """Representation of a template header."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    key: str
    name: str
    description: str | None = None
    category: str | None = None
    tags: list[str]
    channels: list[str]
    default_subject: str | None = None
    sample_payload: dict[str, Any] | None = None
    current_version: int
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Notification Schemas
# ============================================================================


class Recipient(BaseModel):
    """Delivery target.

    Carries only the fields relevant to the channels it will use. Recipients
    without ``user_id`` bypass personal preferences and never get an inbox entry.
    """

    model_config = ConfigDict(extra="ignore")

    user_id: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    webhook_url: str | None = Field(default=None, max_length=2048)
    name: str | None = Field(default=None, max_length=200)

    @property
    def key(self) -> str:
        """Identifier used in attempt logs and debug output."""
        return self.user_id or self.email or self.phone or self.webhook_url or "anonymous"


class NotificationCreate(BaseModel):
    """Payload for requesting a dispatch."""

    event_key: str = Field(..., min_length=1, max_length=200)
    template_id: UUID | None = None
    channels: list[str] = Field(..., min_length=1)
    recipients: list[Recipient] = Field(default_factory=list)
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] | None = None
    send_at: datetime | None = None

    @field_validator("channels")
    @classmethod
    def _dedupe_channels(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class NotificationResponse(BaseModel):
    """Representation of a notification record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    event_key: str
    template_id: UUID | None = None
    channels: list[str]
    recipients: list[Recipient]
    payload: dict[str, Any]
    extra_metadata: dict[str, Any] | None = None
    status: str
    send_at: datetime | None = None
    attempts: int
    last_attempt_at: datetime | None = None
    delivered_at: datetime | None = None
    last_error: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class DeliveryAttemptResponse(BaseModel):
    """One (recipient, channel) outcome from a dispatch cycle."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    notification_id: UUID
    attempt: int
    channel: str
    recipient_key: str
    success: bool
    error: str | None = None
    response_metadata: dict[str, Any] | None = None
    duration_ms: int | None = None
    created_at: datetime


# ============================================================================
# Inbox Schemas
# ============================================================================


class InboxEntryResponse(BaseModel):
    """Representation of a user's inbox entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    user_id: str
    notification_id: UUID | None = None
    title: str
    message: str
    severity: str
    action_url: str | None = None
    read: bool
    read_at: datetime | None = None
    archived: bool
    archived_at: datetime | None = None
    delivered_at: datetime
    created_at: datetime


class InboxListResponse(BaseModel):
    """Page of inbox entries with the user's unread count."""

    items: list[InboxEntryResponse]
    total: int
    unread_count: int
    page: int
    pages: int


__all__ = [
    "ChannelPreference",
    "DeliveryAttemptResponse",
    "InboxEntryResponse",
    "InboxListResponse",
    "NotificationCreate",
    "NotificationResponse",
    "PreferenceResponse",
    "PreferenceUpdate",
    "QuietHours",
    "Recipient",
    "RouteChannelConfig",
    "RouteResponse",
    "RouteUpsert",
    "TemplateCreate",
    "TemplatePreviewRequest",
    "TemplatePreviewResponse",
    "TemplateResponse",
    "TemplateUpdate",
    "TemplateVersionCreate",
    "TemplateVersionResponse",
]
