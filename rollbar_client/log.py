"""Structured logging setup for applications and the command line tool."""

import logging
from typing import Optional

import structlog

from .config import Settings


def configure_logging(settings: Optional[Settings] = None, json: bool = True) -> None:
    """
    Configure structlog on top of the standard library logger.

    The client itself only calls ``structlog.get_logger``; applications that
    already configure structlog do not need this.
    """
    settings = settings if settings is not None else Settings()
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()

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
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger("rollbar_client").setLevel(level)
