"""Base service class for business logic."""

from __future__ import annotations

import logging

from notification_service.infra.logging import get_lazy_logger


class BaseService:
    """Base class for the notification engine services.

    Loggers:
        - self.logger: Standard logger for INFO/WARNING/ERROR
        - self._lazy: Lazy logger for DEBUG (callables only evaluated when enabled)

    Example:
            class NotificationRoutingService(BaseService):
            async def get_route(self, session, tenant_id, event_key):
                self.logger.info("Loading route", extra={"event_key": event_key})
                ...
                self._lazy.debug(lambda: f"route channels: {route.channels}")
    """

    def __init__(self) -> None:
        """Initialize base service with loggers named after the subclass."""
        class_name = self.__class__.__name__
        self.logger = logging.getLogger(class_name)
        self._lazy = get_lazy_logger(class_name)

    @staticmethod
    def page_window(
        page: int | None,
        limit: int | None,
        *,
        default_limit: int,
        max_limit: int,
    ) -> tuple[int, int]:
        """Translate a 1-indexed page and page size into ``(limit, offset)``.

        Args:
            page: Requested page; values below 1 are treated as 1.
            limit: Requested page size; clamped to ``[1, max_limit]``.
            default_limit: Page size used when ``limit`` is None.
            max_limit: Largest page size allowed.

        Returns:
            Tuple of (limit, offset) for the repository search.
        """
        size = min(max(limit or default_limit, 1), max_limit)
        return size, (max(page or 1, 1) - 1) * size


__all__ = ["BaseService"]
