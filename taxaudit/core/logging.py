"""Structured logging configuration using structlog.

Every event carries the request id, the acting username and the client the
request works on, when those are known. Client names are business records
and never leave the process except through these logs.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

import orjson
import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from taxaudit.core.config import settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
username_ctx: ContextVar[str | None] = ContextVar("username", default=None)
client_name_ctx: ContextVar[str | None] = ContextVar("client_name", default=None)

_CORRELATION_VARS: tuple[tuple[str, ContextVar[str | None]], ...] = (
    ("request_id", request_id_ctx),
    ("client_name", client_name_ctx),
    ("username", username_ctx),
)

# Libraries that log every statement or file touch at INFO.
_CHATTY_LOGGERS = ("aiosqlite", "fsspec", "sqlalchemy.engine", "multipart")


def _add_context_vars(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Copy the request correlation values that are set into the event."""
    for key, var in _CORRELATION_VARS:
        value = var.get()
        if value:
            event_dict[key] = value
    return event_dict


def reset_request_context(request_id: str) -> None:
    """Start a fresh correlation scope for one request."""
    request_id_ctx.set(request_id)
    username_ctx.set(None)
    client_name_ctx.set(None)


def _orjson_serializer(obj: Any, **kwargs: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


def _wants_json() -> bool:
    if settings.log_format:
        return settings.log_format.lower() == "json"
    return settings.environment != "development"


def _renderers(use_json: bool) -> list[Processor]:
    if use_json:
        # Log shippers expect the text under "message".
        return [
            structlog.processors.EventRenamer("message"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(serializer=_orjson_serializer),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging() -> None:
    """Configure structlog and route stdlib logging to stdout.

    JSON lines outside development (or when LOG_FORMAT=json); a colored
    console renderer otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        _add_context_vars,
        *_renderers(_wants_json()),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
