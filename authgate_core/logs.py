"""
AuthGate Logging
================
structlog setup for services embedding the auth core, plus masking helpers
so identifiers never reach the logs in full.

Usage:
    from authgate_core.logs import setup_logging

    setup_logging(service_name="clinic-portal")
"""

import logging
import sys

import structlog


def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and the stdlib root logger.

    Args:
        service_name: Name of the service, bound to every event
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines (production) instead of console output

    Returns:
        Logger bound with the service name
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)

    logger = structlog.get_logger(service_name)
    logger.info("Logging configured", service=service_name, level=level.upper())
    return logger


def mask_identifier(value: str) -> str:
    """
    Mask an email or throttle key for display.

    "alice@example.com|203.0.113.5" -> "al***@example.com|203.0.113.5"
    """
    if not value:
        return "****"

    identity, sep, origin = value.partition("|")
    local, at, domain = identity.partition("@")
    if at:
        masked = f"{local[:2]}***@{domain}"
    else:
        masked = f"{identity[:2]}***"
    return f"{masked}{sep}{origin}"
