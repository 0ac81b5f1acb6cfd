"""Feature tests for tenant routes and user preferences."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.exceptions import NotFoundException
from notification_service.features.notifications import NotificationRoutingService
from notification_service.features.notifications.routing import PreferenceFilter, RouteResolver
from notification_service.features.notifications.schemas import (
    ChannelPreference,
    PreferenceUpdate,
    QuietHours,
    RouteChannelConfig,
    RouteUpsert,
)

TENANT = "acme"
LATE_EVENING = datetime(2024, 5, 1, 23, 0, tzinfo=UTC)


def order_route(**overrides: object) -> RouteUpsert:
    data: dict[str, object] = {
        "event_key": "order.shipped",
        "channels": [
            RouteChannelConfig(
                channel="email",
                quiet_hours=QuietHours(start="22:00", end="06:00"),
                fallback=["sms"],
            ),
            RouteChannelConfig(channel="webhook", enabled=False),
        ],
    }
    data.update(overrides)
    return RouteUpsert(**data)


class TestRoutes:
    """Tests for route CRUD."""

    async def test_upsert_creates_then_replaces(
        self,
        db_session: AsyncSession,
        routing_service: NotificationRoutingService,
    ) -> None:
        created = await routing_service.upsert_route(db_session, TENANT, order_route(), updated_by="admin")
        replaced = await routing_service.upsert_route(
            db_session,
            TENANT,
            order_route(channels=[RouteChannelConfig(channel="sms")], metadata={"owner": "ops"}),
        )

        assert replaced.id == created.id
        assert [c["channel"] for c in replaced.channels] == ["sms"]
        assert replaced.extra_metadata == {"owner": "ops"}
        assert replaced.updated_by is None

    async def test_get_missing_route(
        self,
        db_session: AsyncSession,
        routing_service: NotificationRoutingService,
    ) -> None:
        with pytest.raises(NotFoundException) as exc_info:
            await routing_service.get_route(db_session, TENANT, "order.shipped")

        assert exc_info.value.type == "route-not-found"

    async def test_list_and_delete(
        self,
        db_session: AsyncSession,
        routing_service: NotificationRoutingService,
    ) -> None:
        await routing_service.upsert_route(db_session, TENANT, order_route(event_key="user.signup"))
        await routing_service.upsert_route(db_session, TENANT, order_route())
        await routing_service.upsert_route(db_session, "globex", order_route())

        routes = await routing_service.list_routes(db_session, TENANT)
        assert [r.event_key for r in routes] == ["order.shipped", "user.signup"]

        await routing_service.delete_route(db_session, TENANT, "order.shipped")

        remaining = await routing_service.list_routes(db_session, TENANT)
        assert [r.event_key for r in remaining] == ["user.signup"]
        assert len(await routing_service.list_routes(db_session, "globex")) == 1


class TestPreferences:
    """Tests for per-user preferences."""

    async def test_get_creates_default(
        self,
        db_session: AsyncSession,
        routing_service: NotificationRoutingService,
    ) -> None:
        first = await routing_service.get_preferences(db_session, TENANT, "user-1")
        second = await routing_service.get_preferences(db_session, TENANT, "user-1")

        assert first.channels == {}
        assert second.id == first.id

    async def test_update_is_upsert(
        self,
        db_session: AsyncSession,
        routing_service: NotificationRoutingService,
    ) -> None:
        created = await routing_service.update_preferences(
            db_session,
            TENANT,
            "user-1",
            PreferenceUpdate(channels={"sms": ChannelPreference(enabled=False)}),
        )
        replaced = await routing_service.update_preferences(
            db_session,
            TENANT,
            "user-1",
            PreferenceUpdate(
                channels={"email": ChannelPreference(quiet_hours=QuietHours(start="21:00", end="07:00"))},
            ),
        )

        assert replaced.id == created.id
        assert replaced.channels == {
            "email": {"enabled": True, "quiet_hours": {"start": "21:00", "end": "07:00"}},
        }


class TestResolutionWithStore:
    """Route and preference resolution against stored records."""

    async def test_without_route_requested_channels_pass(self, db_session: AsyncSession) -> None:
        channels = await RouteResolver().resolve(
            db_session, TENANT, "order.shipped", ["email", "webhook", "email"], LATE_EVENING
        )

        assert channels == ["email", "webhook"]

    async def test_route_applies_quiet_hours_and_disable(
        self,
        db_session: AsyncSession,
        routing_service: NotificationRoutingService,
    ) -> None:
        await routing_service.upsert_route(db_session, TENANT, order_route())
        resolver = RouteResolver()

        at_night = await resolver.resolve(
            db_session, TENANT, "order.shipped", ["email", "webhook", "in_app"], LATE_EVENING
        )
        at_noon = await resolver.resolve(
            db_session, TENANT, "order.shipped", ["email", "webhook", "in_app"],
            datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        )

        assert at_night == ["sms", "in_app"]
        assert at_noon == ["email", "in_app"]

    async def test_route_of_other_tenant_is_ignored(
        self,
        db_session: AsyncSession,
        routing_service: NotificationRoutingService,
    ) -> None:
        await routing_service.upsert_route(db_session, "globex", order_route())

        channels = await RouteResolver().resolve(
            db_session, TENANT, "order.shipped", ["webhook"], LATE_EVENING
        )

        assert channels == ["webhook"]

    async def test_preferences_narrow_channels(
        self,
        db_session: AsyncSession,
        routing_service: NotificationRoutingService,
    ) -> None:
        await routing_service.update_preferences(
            db_session,
            TENANT,
            "user-1",
            PreferenceUpdate(
                channels={
                    "sms": ChannelPreference(enabled=False),
                    "email": ChannelPreference(quiet_hours=QuietHours(start="22:00", end="23:30")),
                },
            ),
        )
        preference_filter = PreferenceFilter()

        filtered = await preference_filter.filter(
            db_session, TENANT, "user-1", ["email", "sms", "in_app"], LATE_EVENING
        )
        stranger = await preference_filter.filter(
            db_session, TENANT, "user-2", ["email", "sms"], LATE_EVENING
        )
        anonymous = await preference_filter.filter(db_session, TENANT, None, ["sms"], LATE_EVENING)

        assert filtered == ["in_app"]
        assert stranger == ["email", "sms"]
        assert anonymous == ["sms"]
