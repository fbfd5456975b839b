"""Structured logging for the receiver and the CLI."""

import logging
import sys
from typing import TextIO

import structlog

from github_receiver.config import Settings, get_settings

RENDERERS: dict[str, type] = {
    "json": structlog.processors.JSONRenderer,
    "console": structlog.dev.ConsoleRenderer,
}


def setup_logging(settings: Settings | None = None, stream: TextIO | None = None) -> None:
    """
    Route stdlib and structlog output to one stream at the configured level.

    The webhook server logs to stdout. The CLI passes stderr so that command
    output stays machine readable.
    """
    settings = settings or get_settings()
    stream = stream or sys.stdout
    level = logging.getLevelName(settings.log_level.upper())
    renderer = RENDERERS.get(settings.log_format, structlog.dev.ConsoleRenderer)()

    # uvicorn and httpx log through the standard library
    logging.basicConfig(format="%(message)s", stream=stream, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )
