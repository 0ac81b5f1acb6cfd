"""Route resolution: event key to an ordered, filtered channel list."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notification_service.features.notifications.metrics import (
    notification_channel_fallback_total,
    notification_channel_suppressed_total,
)
from notification_service.features.notifications.repository import (
    NotificationRouteRepository,
    get_notification_route_repository,
)
from notification_service.features.notifications.routing.quiet_hours import is_suppressed
from notification_service.features.notifications.schemas import RouteChannelConfig
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

_lazy_logger = get_lazy_logger(__name__)


def _load_configs(
    configs: Iterable[RouteChannelConfig | dict[str, Any]],
) -> dict[str, RouteChannelConfig]:
    loaded: dict[str, RouteChannelConfig] = {}
    for config in configs:
        item = config if isinstance(config, RouteChannelConfig) else RouteChannelConfig.model_validate(config)
        loaded.setdefault(item.channel, item)
    return loaded


def _is_available(config: RouteChannelConfig | None, now: datetime) -> bool:
    # Channels the route does not mention are enabled with no quiet hours
    if config is None:
        return True
    return config.enabled and not is_suppressed(config.quiet_hours, now)


def resolve_channels(
    configs: Iterable[RouteChannelConfig | dict[str, Any]] | None,
    requested: Sequence[str],
    now: datetime,
) -> list[str]:
    """Apply a route's channel configs to the requested channels.

    Args:
        configs: The route's per-channel configs, or None when no route exists.
        requested: Channels requested by the caller, in order.
        now: Moment used for quiet-hour checks.

    Returns:
        Ordered, de-duplicated channels that should fire.
    """
    if configs is None:
        return list(dict.fromkeys(requested))

    by_channel = _load_configs(configs)
    resolved: list[str] = []

    for channel in requested:
        config = by_channel.get(channel)
        if config is None:
            resolved.append(channel)
            continue

        if not config.enabled:
            notification_channel_suppressed_total.labels(channel=channel, reason="disabled").inc()
            continue

        if not is_suppressed(config.quiet_hours, now):
            resolved.append(channel)
            continue

        notification_channel_suppressed_total.labels(channel=channel, reason="quiet_hours").inc()
        # One level only: the primary channel's own fallback list
        substitute = next(
            (name for name in config.fallback if _is_available(by_channel.get(name), now)),
            None,
        )
        if substitute is not None:
            notification_channel_fallback_total.labels(
                from_channel=channel,
                to_channel=substitute,
            ).inc()
            resolved.append(substitute)

    return list(dict.fromkeys(resolved))


class RouteResolver:
    """Resolves the channels of an event for a tenant.

    A missing route means default-allow: the requested channels pass through.
    """

    def __init__(self, repository: NotificationRouteRepository | None = None) -> None:
        """Initialize resolver.

        Args:
            repository: Optional route repository (defaults to singleton)
        """
        self._repository = repository or get_notification_route_repository()

    async def resolve(
        self,
        session: AsyncSession,
        tenant_id: str,
        event_key: str,
        requested: Sequence[str],
        now: datetime | None = None,
    ) -> list[str]:
        """Resolve channels for one dispatch.

        Args:
            session: Database session
            tenant_id: Owning tenant
            event_key: Business event identifier
            requested: Channels requested for the notification
            now: Moment used for quiet-hour checks (defaults to current UTC time)

        Returns:
            Ordered channel list after disabled/quiet/fallback handling
        """
        now = now or datetime.now(UTC)
        route = await self._repository.get_for_event(session, tenant_id, event_key)
        channels = resolve_channels(route.channels if route else None, requested, now)

        _lazy_logger.debug(
            lambda: f"route.resolve: {tenant_id}/{event_key} {list(requested)} -> {channels}"
        )
        return channels


__all__ = ["RouteResolver", "resolve_channels"]
