"""
core/logging.py
---------------
Structured logging using structlog.
DEBUG=true  → human-readable console output
DEBUG=false → JSON, one event per line

Request-scoped fields (request_id, tenant_id) are kept in structlog
contextvars and merged into every event logged while the request runs.
"""

import logging
import sys
from typing import Any, Optional, TextIO

import structlog

from slime_talks.core.config import settings

# Libraries that are chatty at INFO
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "passlib")


def _resolve_level() -> int:
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL.upper())
    return logging.DEBUG if settings.DEBUG else logging.INFO


def configure_logging(stream: Optional[TextIO] = None) -> None:
    """
    Configure stdlib logging and structlog together.

    Events are rendered by structlog and written through the stdlib root
    handler, so re-configuring swaps the output stream for loggers that
    were already cached. The API logs to stdout; the CLI passes stderr so
    its own output stays readable.
    """
    log_level = _resolve_level()
    stream = stream or sys.stdout

    logging.basicConfig(format="%(message)s", stream=stream, level=log_level, force=True)
    if log_level > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    renderers = (
        [structlog.dev.ConsoleRenderer()]
        if settings.DEBUG
        else [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            *renderers,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(**fields: Any) -> None:
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = __name__):
    return structlog.get_logger(name)
