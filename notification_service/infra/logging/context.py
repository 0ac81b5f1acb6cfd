"""Context propagation for structured logging.

A ``ContextVar`` holds the fields of the operation in progress (tenant,
notification, event key). ``ContextInjectingFilter`` copies them onto every
record so formatters see them without each call passing ``extra``. Each
asyncio task works on its own copy, so concurrent channel sends inside one
dispatch cycle keep the same context as their parent.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Args:
        **kwargs: Fields to add, e.g. ``tenant_id`` or ``notification_id``.

    Example:
        ```python
        set_log_context(tenant_id="acme", notification_id=str(notification.id))
        logger.info("Dispatch started")  # record carries both fields
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Drop every field from the current logging context."""
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Copy the current logging context onto each record.

    Attributes already present on the record (for example values passed via
    ``extra``) win over context fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class ContextBoundLogger(logging.LoggerAdapter):
    """Logger adapter with fields bound at construction time.

    Example:
        ```python
        logger = get_logger(__name__, channel="webhook")
        logger.bind(tenant_id="acme").info("Webhook delivered")
        ```
    """

    def __init__(self, logger: logging.Logger, **context: Any) -> None:
        super().__init__(logger, context)

    def bind(self, **context: Any) -> ContextBoundLogger:
        """Return a new logger carrying the existing and the given fields."""
        return ContextBoundLogger(self.logger, **{**self.extra, **context})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, **context: Any) -> ContextBoundLogger:
    """Get a logger with bound context.

    Args:
        name: Logger name.
        **context: Fields added to every record from this logger.

    Returns:
        Context-bound logger adapter.
    """
    return ContextBoundLogger(logging.getLogger(name), **context)


__all__ = [
    "ContextBoundLogger",
    "ContextInjectingFilter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "set_log_context",
]
