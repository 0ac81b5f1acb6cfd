"""Deferred log message construction.

Debug lines in the dispatch path describe routing decisions and rendered
content. Building those strings costs more than the rest of the cycle, so
they are passed as callables and only evaluated when DEBUG is enabled.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that evaluates callable messages and args on demand.

    Example:
        ```python
        logger = get_lazy_logger("notifications.routing")
        logger.debug(lambda: f"resolved {channels} for {event_key}")
        logger.debug("payload keys: %s", lambda: sorted(payload))
        ```
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log at ``level``, calling ``msg`` and any callable args first.

        Args:
            level: Numeric log level.
            msg: Message or zero-argument callable returning the message.
            *args: Format arguments; callables are invoked.
            **kwargs: Passed through to the underlying logger.
        """
        if not self.isEnabledFor(level):
            return

        if callable(msg):
            msg = msg()
        if args:
            args = tuple(arg() if callable(arg) else arg for arg in args)

        super().log(level, msg, *args, **kwargs)

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Get a logger that accepts lambdas for expensive messages.

    Args:
        name: Logger name (usually __name__ or a component path).
        **context: Fields bound to every record as ``extra``.

    Returns:
        Logger adapter with lazy evaluation support.
    """
    return LazyLoggerAdapter(logging.getLogger(name), context or {})


__all__ = ["LazyLoggerAdapter", "get_lazy_logger"]
