"""
Logging Setup - RCJ Scoring Engine
rcj_scoring/core/logging.py

structlog configuration driven by LOG_LEVEL / LOG_FORMAT.
"""

import logging
import sys

import structlog

from rcj_scoring.config import Settings


def configure_logging(settings: Settings) -> None:
    """Configure structlog and route stdlib logging at the same level."""
    level = getattr(logging, settings.LOG_LEVEL)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    if settings.LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
