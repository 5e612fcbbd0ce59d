"""Structured logging configuration built on structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Minimum level to emit. Defaults to settings.log_level.
        log_format: "json" or "console". Defaults to settings.log_format.
    """
    if log_level is None or log_format is None:
        from config import get_settings

        settings = get_settings()
        log_level = log_level or settings.log_level
        log_format = log_format or settings.log_format

    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    # Third-party libraries (sqlalchemy, asyncio) log through stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)


def get_logger(name: str) -> Any:
    """Get a bound structlog logger for a module.

    Args:
        name: Logger name, normally ``__name__``

    Returns:
        structlog logger accepting ``logger.info("event_name", key=value)``
    """
    return structlog.get_logger(name)
