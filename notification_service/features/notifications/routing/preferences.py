"""Per-recipient channel narrowing from personal preferences."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notification_service.features.notifications.metrics import (
    notification_channel_suppressed_total,
)
from notification_service.features.notifications.repository import (
    NotificationPreferenceRepository,
    get_notification_preference_repository,
)
from notification_service.features.notifications.routing.quiet_hours import is_suppressed
from notification_service.features.notifications.schemas import ChannelPreference
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

_lazy_logger = get_lazy_logger(__name__)


def filter_channels(
    preferences: Mapping[str, ChannelPreference | dict[str, Any]] | None,
    channels: Sequence[str],
    now: datetime,
) -> list[str]:
    """Drop channels the user disabled or is personally quiet on.

    Channels without a preference entry stay enabled. There is no fallback
    at this layer.
    """
    if not preferences:
        return list(channels)

    kept: list[str] = []
    for channel in channels:
        raw = preferences.get(channel)
        if raw is None:
            kept.append(channel)
            continue

        pref = raw if isinstance(raw, ChannelPreference) else ChannelPreference.model_validate(raw)
        if not pref.enabled or is_suppressed(pref.quiet_hours, now):
            notification_channel_suppressed_total.labels(channel=channel, reason="preference").inc()
            continue
        kept.append(channel)
    return kept


class PreferenceFilter:
    """Narrows resolved channels for one recipient."""

    def __init__(self, repository: NotificationPreferenceRepository | None = None) -> None:
        """Initialize filter.

        Args:
            repository: Optional preference repository (defaults to singleton)
        """
        self._repository = repository or get_notification_preference_repository()

    async def filter(
        self,
        session: AsyncSession,
        tenant_id: str,
        user_id: str | None,
        channels: Sequence[str],
        now: datetime | None = None,
    ) -> list[str]:
        """Filter channels for a recipient.

        Recipients without a user id skip the filter and keep the tenant-level
        resolution unchanged.

        Args:
            session: Database session
            tenant_id: Owning tenant
            user_id: Recipient's user id, if any
            channels: Channels from route resolution
            now: Moment used for quiet-hour checks (defaults to current UTC time)

        Returns:
            Channels this recipient should receive
        """
        if not user_id:
            return list(channels)

        now = now or datetime.now(UTC)
        preference = await self._repository.get_for_user(session, tenant_id, user_id)
        kept = filter_channels(preference.channels if preference else None, channels, now)

        _lazy_logger.debug(lambda: f"preference.filter: {tenant_id}/{user_id} {list(channels)} -> {kept}")
        return kept


__all__ = ["PreferenceFilter", "filter_channels"]
