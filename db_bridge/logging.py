"""DB Bridge — Structured logging configuration.

Every record carries an ISO timestamp, the level and the logger name, plus
whichever of these are bound for the current task:

    connection   the connection a tool call targets
    tool         the tool being dispatched
    request_id   the HTTP request (X-Request-ID) the work belongs to

Tool scope is bound by ``BaseToolset.call`` and cleared when the call ends;
request scope is bound by ``RequestIDMiddleware`` for the whole request and
survives tool-scope clearing.  Secrets (passwords, access keys, session
tokens) must never be passed as log fields.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar, Token
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

_ctx_connection: ContextVar[str | None] = ContextVar("connection", default=None)
_ctx_tool: ContextVar[str | None] = ContextVar("tool", default=None)
_ctx_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

_CONTEXT_FIELDS: tuple[tuple[str, ContextVar[str | None]], ...] = (
    ("request_id", _ctx_request_id),
    ("tool", _ctx_tool),
    ("connection", _ctx_connection),
)


def bind_tool_context(tool: str | None = None, connection: str | None = None) -> None:
    """Bind tool-call context to the current async task / thread."""
    if tool is not None:
        _ctx_tool.set(tool)
    if connection is not None:
        _ctx_connection.set(connection)


def clear_tool_context() -> None:
    _ctx_tool.set(None)
    _ctx_connection.set(None)


def bind_request_id(request_id: str) -> Token[str | None]:
    """Bind *request_id* until the returned token is passed to ``reset_request_id``."""
    return _ctx_request_id.set(request_id)


def reset_request_id(token: Token[str | None]) -> None:
    _ctx_request_id.reset(token)


def current_request_id() -> str | None:
    return _ctx_request_id.get()


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Add bound context to every log record; explicit fields win."""
    for key, var in _CONTEXT_FIELDS:
        if (value := var.get()) is not None:
            event_dict.setdefault(key, value)
    return event_dict


def _drop_color_message(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Remove uvicorn's ``color_message`` duplicate field."""
    event_dict.pop("color_message", None)
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Call once at startup, before any log statements.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` for human-readable output, ``"json"`` for
                  machine-readable structured logs.
        log_file: Optional path to write logs to in addition to the stream.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _drop_color_message,
    ]

    if format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # stdout carries MCP frames under "serve stdio"; logs always go to stderr.
    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(level.upper())

    # Silence noisy third-party loggers.
    for noisy in (
        "uvicorn.access", "httpx", "asyncio", "botocore", "urllib3", "asyncpg", "mcp",
    ):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("connection_opened", connection="analytics", backend_type="postgresql")
    """
    return structlog.get_logger(name)
