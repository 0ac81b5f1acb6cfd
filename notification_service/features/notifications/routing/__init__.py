"""Channel routing: tenant routes, quiet hours, fallbacks and user preferences."""

from __future__ import annotations

from notification_service.features.notifications.routing.preferences import (
    PreferenceFilter,
    filter_channels,
)
from notification_service.features.notifications.routing.quiet_hours import (
    is_suppressed,
    parse_time_of_day,
)
from notification_service.features.notifications.routing.resolver import (
    RouteResolver,
    resolve_channels,
)
from notification_service.features.notifications.routing.service import (
    NotificationRoutingService,
    get_notification_routing_service,
)

__all__ = [
    "NotificationRoutingService",
    "PreferenceFilter",
    "RouteResolver",
    "filter_channels",
    "get_notification_routing_service",
    "is_suppressed",
    "parse_time_of_day",
    "resolve_channels",
]
