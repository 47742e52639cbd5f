"""
Structured Logging with Structlog.

Provides JSON-formatted logs with request context. Raw tokens, OTP codes and
passwords are never passed to a logger; use token_fingerprint() when a token
needs to be correlated across log lines.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from lazla_api.config import settings


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application-level context to all log entries."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    return event_dict


def setup_logging() -> None:
    """
    Configure structured logging with structlog.

    Logs are formatted as JSON for machine parsing with the following structure:
    {
        "event": "login_succeeded",
        "level": "info",
        "timestamp": "2026-10-19T12:00:00.123456Z",
        "logger": "lazla_api.services.auth",
        "service": "lazla-backend",
        "version": "0.1.0",
        "request_id": "3f1c...",
        ...additional context
    }
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("login_succeeded", principal="customer", account_id=42)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def token_fingerprint(token_hash: str | None) -> str | None:
    """Shorten a stored token digest for log correlation."""
    if not token_hash:
        return None
    return token_hash[:12]
