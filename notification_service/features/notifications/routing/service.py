"""Service layer for tenant routes and user preferences."""

from __future__ import annotations

from typing import TYPE_CHECKING

from notification_service.core.database import flush_or_conflict
from notification_service.core.exceptions import NotFoundException
from notification_service.core.services.base import BaseService
from notification_service.features.notifications.models import (
    NotificationPreference,
    NotificationRoute,
)
from notification_service.features.notifications.repository import (
    NotificationPreferenceRepository,
    NotificationRouteRepository,
    get_notification_preference_repository,
    get_notification_route_repository,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.schemas import (
        PreferenceUpdate,
        RouteUpsert,
    )


class NotificationRoutingService(BaseService):
    """CRUD over routes (per tenant and event key) and preferences (per user)."""

    def __init__(
        self,
        route_repository: NotificationRouteRepository | None = None,
        preference_repository: NotificationPreferenceRepository | None = None,
    ) -> None:
        super().__init__()
        self._routes = route_repository or get_notification_route_repository()
        self._preferences = preference_repository or get_notification_preference_repository()

    async def upsert_route(
        self,
        session: AsyncSession,
        tenant_id: str,
        data: RouteUpsert,
        updated_by: str | None = None,
    ) -> NotificationRoute:
        """Create or replace the route of an event key.

        Args:
            session: Database session
            tenant_id: Owning tenant
            data: Route definition
            updated_by: User making the change

        Returns:
            The stored route
        """
        channels = [config.model_dump() for config in data.channels]
        route = await self._routes.get_for_event(session, tenant_id, data.event_key)

        if route is None:
            route = NotificationRoute(
                tenant_id=tenant_id,
                event_key=data.event_key,
                channels=channels,
                filters=data.filters,
                extra_metadata=data.metadata,
                updated_by=updated_by,
            )
            session.add(route)
        else:
            route.channels = channels
            route.filters = data.filters
            route.extra_metadata = data.metadata
            route.updated_by = updated_by

        await flush_or_conflict(session, entity="NotificationRoute", entity_id=data.event_key)
        self.logger.info(
            "Notification route saved",
            extra={
                "tenant_id": tenant_id,
                "event_key": data.event_key,
                "channels": [config.channel for config in data.channels],
            },
        )
        return route

    async def get_route(
        self,
        session: AsyncSession,
        tenant_id: str,
        event_key: str,
    ) -> NotificationRoute:
        """Get the route of an event key.

        Raises:
            NotFoundException: If no route is configured for the event key
        """
        route = await self._routes.get_for_event(session, tenant_id, event_key)
        if route is None:
            raise NotFoundException(
                detail="Notification route not found",
                type="route-not-found",
                extra={"event_key": event_key},
            )
        return route

    async def list_routes(self, session: AsyncSession, tenant_id: str) -> Sequence[NotificationRoute]:
        """List every route of a tenant ordered by event key."""
        return await self._routes.list_for_tenant(session, tenant_id)

    async def delete_route(self, session: AsyncSession, tenant_id: str, event_key: str) -> None:
        """Delete a route, restoring default-allow for the event key."""
        route = await self.get_route(session, tenant_id, event_key)
        await self._routes.delete(session, route)

    async def get_preferences(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
    ) -> NotificationPreference:
        """Get a user's preferences, creating the all-enabled default on first read."""
        preference = await self._preferences.get_for_user(session, tenant_id, user_id)
        if preference is None:
            preference = await self._preferences.create(
                session,
                NotificationPreference(tenant_id=tenant_id, user_id=user_id, channels={}),
            )
            self._lazy.debug(lambda: f"Created default preferences for {tenant_id}/{user_id}")
        return preference

    async def update_preferences(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str,
        data: PreferenceUpdate,
    ) -> NotificationPreference:
        """Replace a user's channel preferences (upsert)."""
        channels = {name: pref.model_dump() for name, pref in data.channels.items()}
        preference = await self._preferences.get_for_user(session, tenant_id, user_id)

        if preference is None:
            preference = NotificationPreference(tenant_id=tenant_id, user_id=user_id, channels=channels)
            session.add(preference)
        else:
            preference.channels = channels

        await flush_or_conflict(session, entity="NotificationPreference", entity_id=user_id)
        self.logger.info(
            "Notification preferences updated",
            extra={"tenant_id": tenant_id, "user_id": user_id, "channels": sorted(channels)},
        )
        return preference


# Singleton instance
_routing_service: NotificationRoutingService | None = None


def get_notification_routing_service() -> NotificationRoutingService:
    """Get NotificationRoutingService singleton instance."""
    global _routing_service
    if _routing_service is None:
        _routing_service = NotificationRoutingService()
    return _routing_service


__all__ = ["NotificationRoutingService", "get_notification_routing_service"]
