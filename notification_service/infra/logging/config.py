"""Logging configuration.

Levels are applied through ``dictConfig``. Records are then handed to a
``QueueHandler``, which also injects the logging context, and written by a
``QueueListener`` thread, so a slow console or file never stalls the event
loop that runs channel sends.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from notification_service.infra.logging.context import ContextInjectingFilter
from notification_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from notification_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

SERVICE_NAME = "notification-service"
TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False


def shutdown() -> None:
    """Stop the queue listener, flushing pending records.

    Registered with ``atexit`` when logging is configured; safe to call more
    than once.
    """
    global _log_queue, _listener, _queue_handler

    if _listener is not None:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
        _listener = None
    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None
    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **overrides: Any,
) -> None:
    """Configure logging once per process from ``LoggingSettings``.

    Args:
        log_settings: Settings to apply. Loaded via ``get_logging_settings``
            when omitted.
        force: Reconfigure even if logging was already set up.
        **overrides: Explicit ``configure_logging`` keyword overrides.
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from notification_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **overrides})
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    console_level: str | None = None,
    file_level: str | None = None,
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    logger_levels: dict[str, str] | None = None,
) -> None:
    """Configure the root logger with queue-backed handlers.

    Args:
        log_level: Root logger level.
        console_level: Console handler level. Defaults to ``log_level``.
        file_level: File handler level. Defaults to ``log_level``.
        file_path: Rotating log file path. ``None`` disables file output.
        json_logs: Emit JSON Lines instead of plain text.
        console_enabled: Write to stderr.
        include_context: Attach ``ContextInjectingFilter`` to the queue handler.
        capture_warnings: Route ``warnings`` through logging.
        file_max_bytes: Size at which the log file rotates.
        file_backup_count: Rotated files to keep.
        logger_levels: Per-logger level overrides, e.g.
            ``{"sqlalchemy.engine": "WARNING"}``.

    Example:
        ```python
        configure_logging(log_level="DEBUG", console_level="INFO", json_logs=False)
        ```
    """
    shutdown()

    if capture_warnings:
        logging.captureWarnings(True)

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "loggers": {
                name: {"level": level.upper()} for name, level in (logger_levels or {}).items()
            },
            "root": {
                "level": log_level.upper(),
                "handlers": [],
            },
        }
    )

    handlers: list[logging.Handler] = []
    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel((console_level or log_level).upper())
        console_handler.setFormatter(_build_formatter(json_logs))
        handlers.append(console_handler)
    if path:
        file_handler = RotatingFileHandler(
            path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel((file_level or log_level).upper())
        file_handler.setFormatter(_build_formatter(json_logs))
        handlers.append(file_handler)

    _start_queue(handlers, include_context=include_context)
    logger.debug(
        "Logging configured",
        extra={"json_logs": json_logs, "handlers": [type(h).__name__ for h in handlers]},
    )


def _build_formatter(json_logs: bool) -> logging.Formatter:
    if json_logs:
        return JSONFormatter(static={"service": SERVICE_NAME})
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)


def _start_queue(handlers: list[logging.Handler], *, include_context: bool) -> None:
    global _log_queue, _listener, _queue_handler

    if not handlers:
        return

    _log_queue = Queue()
    _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
    _listener.start()
    atexit.register(shutdown)

    _queue_handler = QueueHandler(_log_queue)
    # Root logger filters skip propagated records
    if include_context:
        _queue_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(_queue_handler)


__all__ = ["configure_logging", "setup_logging", "shutdown"]
