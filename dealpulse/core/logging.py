"""
Structured logging configuration for DealPulse.

Provides consistent, structured logging with correlation IDs and rich formatting.
Correlation and entity identifiers live in structlog contextvars, so concurrent
entity tasks each log under their own context.
"""

import logging
import sys
import uuid
from typing import Optional

import structlog
from rich.console import Console

_CORRELATION_KEY = "correlation_id"
_HANDLER_NAME = "dealpulse"

# chatty at INFO; raised to WARNING unless debugging
LIBRARY_LOGGERS = ("httpx", "httpcore", "openai")


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind a correlation ID to the current execution context."""
    value = correlation_id or str(uuid.uuid4())[:8]
    structlog.contextvars.bind_contextvars(**{_CORRELATION_KEY: value})
    return value


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID."""
    return structlog.contextvars.get_contextvars().get(_CORRELATION_KEY)


def entity_context(entity_id: Optional[str], user_id: Optional[str] = None):
    """Context manager binding entity identifiers to every log line inside it."""
    return structlog.contextvars.bound_contextvars(entity_id=entity_id, user_id=user_id)


def _renderer(rich_output: bool):
    if rich_output:
        console = Console(stderr=True)
        return structlog.dev.ConsoleRenderer(
            colors=console.is_terminal,
            exception_formatter=structlog.dev.rich_traceback,
        )
    return structlog.processors.JSONRenderer()


def setup_logging(debug: bool = False, rich_output: bool = True) -> None:
    """
    Configure structured logging for the application.

    Records from standard-library loggers (httpx, openai) are rendered by the
    same renderer as structlog events.

    Args:
        debug: Enable debug level logging
        rich_output: Use rich formatting on stderr, JSON lines on stdout otherwise
    """
    level = logging.DEBUG if debug else logging.INFO
    stream = sys.stderr if rich_output else sys.stdout
    renderer = _renderer(rich_output)
    exc_processor = (
        structlog.dev.set_exc_info if rich_output else structlog.processors.format_exc_info
    )

    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
    ]

    handler = logging.StreamHandler(stream)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                exc_processor,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    structlog.configure(
        processors=[*shared, exc_processor, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )
