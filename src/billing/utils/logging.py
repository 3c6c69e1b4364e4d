"""Logging configuration for the Billing domain."""

import logging
import os

import structlog


def configure_logging(log_format: str | None = None, level: str | None = None) -> None:
    """Configure structlog for CLI runs, the API and the test suite.

    ``LOG_FORMAT=json`` switches to machine-readable output; anything else
    renders for a console.
    """
    log_format = log_format or os.environ.get("LOG_FORMAT", "console")
    level = level or os.environ.get("LOG_LEVEL", "INFO")

    logging.basicConfig(format="%(message)s", level=level.upper())

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy library loggers
    logging.getLogger("protean").setLevel(logging.WARNING)