"""
Structured logging setup for the community snapshot service.
Provides JSON-formatted logs with consistent fields for job monitoring.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

SERVICE_NAME = "community-snapshot"


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_service_context,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)


def _add_service_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag every entry with the service name."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def mask_address(address: str | None) -> str | None:
    """Mask a wallet address for log output, e.g. 0x1234...abcd."""
    if not address or len(address) < 8:
        return address
    return f"{address[:6]}...{address[-4:]}"
