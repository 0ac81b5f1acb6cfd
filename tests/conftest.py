"""Pytest configuration and shared fixtures.

Organization:
    - Database Fixtures: in-memory SQLite engine and session with tables
    - Settings Fixtures: notification settings with small limits
    - Channel Fixtures: recording transports and a populated adapter registry
    - Service Fixtures: services built with the test settings and registry
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notification_service.core.settings import NotificationSettings
from notification_service.features.notifications import (
    InboxService,
    NotificationRoutingService,
    NotificationService,
    NotificationTemplateService,
)
from notification_service.features.notifications.channels import build_default_registry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from notification_service.features.notifications.channels import ChannelAdapterRegistry


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create async session with all tables created, dropped afterwards."""
    import notification_service.features.notifications.models  # noqa: F401
    from notification_service.core.database import Base

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def settings() -> NotificationSettings:
    """Notification settings with short timeouts and a small inbox cap."""
    return NotificationSettings(
        send_timeout_seconds=0.5,
        webhook_timeout_seconds=0.5,
        inbox_user_limit=3,
        default_page_size=10,
        max_page_size=20,
    )


@pytest.fixture
def noon() -> datetime:
    """A fixed moment outside every quiet-hour window used in tests."""
    return datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


# ============================================================================
# Channel Fixtures
# ============================================================================


class RecordingEmailTransport:
    """Email transport that records calls and optionally fails."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[dict[str, Any]] = []
        self.error = error

    async def send_email(self, **kwargs: Any) -> dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.sent.append(kwargs)
        return {"message_id": f"msg-{len(self.sent)}"}


class RecordingSmsTransport:
    """SMS transport that records calls."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send_sms(self, **kwargs: Any) -> dict[str, Any]:
        self.sent.append(kwargs)
        return {"message_id": f"sms-{len(self.sent)}"}


@pytest.fixture
def email_transport() -> RecordingEmailTransport:
    return RecordingEmailTransport()


@pytest.fixture
def sms_transport() -> RecordingSmsTransport:
    return RecordingSmsTransport()


@pytest.fixture
def webhook_requests() -> list[httpx.Request]:
    """Requests captured by the mock webhook transport."""
    return []


@pytest.fixture
async def http_client(webhook_requests: list[httpx.Request]) -> AsyncGenerator[httpx.AsyncClient]:
    """httpx client answering 200 for every host except ``fail.example``."""

    def handler(request: httpx.Request) -> httpx.Response:
        webhook_requests.append(request)
        if request.url.host == "fail.example":
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json={"ok": True})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest.fixture
def registry(
    settings: NotificationSettings,
    email_transport: RecordingEmailTransport,
    sms_transport: RecordingSmsTransport,
    http_client: httpx.AsyncClient,
) -> ChannelAdapterRegistry:
    """Default registry wired to recording transports."""
    return build_default_registry(
        settings,
        email_transport=email_transport,
        sms_transport=sms_transport,
        http_client=http_client,
    )


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def template_service(settings: NotificationSettings) -> NotificationTemplateService:
    return NotificationTemplateService(settings=settings)


@pytest.fixture
def routing_service() -> NotificationRoutingService:
    return NotificationRoutingService()


@pytest.fixture
def inbox_service(settings: NotificationSettings) -> InboxService:
    return InboxService(settings=settings)


@pytest.fixture
def notification_service(
    settings: NotificationSettings,
    registry: ChannelAdapterRegistry,
    template_service: NotificationTemplateService,
) -> NotificationService:
    """Dispatch coordinator wired to the recording registry."""
    return NotificationService(
        template_service=template_service,
        registry=registry,
        settings=settings,
    )
