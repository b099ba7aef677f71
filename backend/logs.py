from __future__ import annotations

import logging
import os
import sys

import structlog


def log_format() -> str:
    return (os.getenv("URBANGREEN_LOG_FORMAT") or "console").strip().lower()


def log_level() -> int:
    name = (os.getenv("URBANGREEN_LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """
    Structured logging for the whole backend; safe to call more than once.
    """
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level())
    logging.getLogger().setLevel(log_level())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
            if log_format() == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
