"""Logging infrastructure.

Structured logging for the notification engine:
- JSON Lines output with OpenTelemetry trace correlation
- Context injection (tenant_id, notification_id, event_key) via contextvars
- QueueHandler + QueueListener so handlers never block the event loop
- Lazy evaluation for debug lines that describe routing and rendering

Basic usage:
    from notification_service.infra.logging import get_lazy_logger, set_log_context

    set_log_context(tenant_id="acme", notification_id=str(notification.id))
    logger.info("Dispatch started")  # record includes tenant_id and notification_id

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Resolved channels: {channels}")
"""

from notification_service.infra.logging.config import (
    configure_logging,
    setup_logging,
    shutdown,
)
from notification_service.infra.logging.context import (
    ContextBoundLogger,
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
)
from notification_service.infra.logging.formatters import JSONFormatter
from notification_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextBoundLogger",
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "get_logger",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
