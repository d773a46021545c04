"""Logging configuration for QueryWatch.

Modules log either through ``structlog.get_logger`` or through stdlib
``logging.getLogger`` with ``extra=`` fields. Both end up in the same
structlog processor chain, so every line carries the same timestamp,
request id and redaction rules.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from querywatch.config import Settings, get_settings

REDACTED = "***REDACTED***"

# Bound query parameters and SQL text carry user filter values.
SENSITIVE_KEYS = ("password", "secret", "token", "authorization", "params", "sql")

_handler: logging.Handler | None = None


def censor_sensitive_keys(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace values of sensitive keys before rendering."""
    for key in list(event_dict.keys()):
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            event_dict[key] = REDACTED

    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        censor_sensitive_keys,
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(default=str)
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(settings: Settings | None = None, level: str | None = None) -> None:
    """
    Configure structlog and route stdlib logging through it.

    Args:
        settings: Settings to read ``log_format``/``log_level`` from;
            defaults to the global settings
        level: Level override (the CLI's ``--verbose`` passes DEBUG)
    """
    settings = settings or get_settings()
    shared = _shared_processors()

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*shared, structlog.stdlib.ExtraAdder()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            _renderer(settings.log_format),
        ],
    )

    global _handler
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(formatter)
    root.addHandler(_handler)
    root.setLevel(getattr(logging, level or settings.log_level))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)


def bind_request_context(request_id: str) -> None:
    """Attach a request id to every log line emitted while handling a request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)


def log_operation(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **kwargs: Any,
) -> None:
    """Log a completed service operation with its result counts."""
    logger.info("operation", operation=operation, **kwargs)


def log_error(
    logger: structlog.stdlib.BoundLogger,
    error: Exception,
    operation: str,
    **kwargs: Any,
) -> None:
    """Log a failed operation; the traceback is attached."""
    logger.error(
        "operation_failed",
        operation=operation,
        error_type=type(error).__name__,
        error_message=str(error),
        exc_info=True,
        **kwargs,
    )
