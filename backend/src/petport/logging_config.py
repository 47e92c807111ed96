"""Logging configuration."""

import logging
import sys

import structlog

from petport.settings import settings


def configure_logging() -> None:
    """Configure structlog for the API and the job CLI.

    JSON lines when ``log_format`` is "json", a console renderer otherwise.
    """
    level = logging.getLevelName(settings.log_level.upper())

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]
    if settings.log_format == "json":
        processors = shared_processors + [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # stripe and httpx log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def bind_request_context(**values) -> None:
    """Replace the per-request context merged into every log event."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
