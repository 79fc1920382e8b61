"""
Structured logging configuration for the NailApp API client.

This module provides centralized logging configuration using structlog,
with support for call context tracking, sensitive data filtering and
environment-specific formatting.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Mapping, Optional

import structlog
from structlog.types import EventDict, Processor

# Context variable for call-scoped data (screen, user id, correlation id...)
request_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    "request_context", default=None
)

SENSITIVE_KEYS = (
    "password",
    "passwd",
    "secret",
    "authorization",
    "cookie",
    "api_key",
    "access_token",
    "refresh_token",
)

REDACTED = "***REDACTED***"


class RequestContextProcessor:
    """
    Add call context to all log entries.

    Extracts context set with set_request_context() and adds it to every
    log entry emitted within that context.
    """

    def __call__(
        self, logger: Any, method_name: str, event_dict: EventDict
    ) -> EventDict:
        ctx = request_context.get()
        if ctx is not None:
            event_dict.update(ctx)
        return event_dict


class EnvironmentProcessor:
    """Add app version and environment to log entries."""

    def __init__(self, app_env: str, app_version: str):
        self.app_env = app_env
        self.app_version = app_version

    def __call__(
        self, logger: Any, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict["env"] = self.app_env
        event_dict["version"] = self.app_version
        return event_dict


def is_sensitive_key(key: str) -> bool:
    """Check whether a header or field name looks like a credential."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)


def mask_value(value: Any) -> str:
    """Mask a secret, showing only the first and last 4 characters of long strings."""
    if isinstance(value, str) and len(value) > 16:
        return f"{value[:4]}...{value[-4:]}"
    return REDACTED


def redact_headers(headers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Return a copy of headers safe for logging.

    Authorization, cookies and password/secret/token-like keys are fully
    replaced; everything else is passed through unchanged.
    """
    if not headers:
        return {}
    return {
        key: (REDACTED if is_sensitive_key(key) else value)
        for key, value in headers.items()
    }


def filter_sensitive_data(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Filter sensitive data from log entries.

    Masks top-level fields like passwords, tokens and authorization values
    to prevent accidental exposure in logs.
    """
    for key in list(event_dict.keys()):
        if is_sensitive_key(key):
            event_dict[key] = mask_value(event_dict[key])

    return event_dict


def configure_logging(
    log_level: str = "INFO",
    app_env: str = "development",
    app_version: str = "0.1.0",
    json_format: Optional[bool] = None,
) -> None:
    """
    Configure structured logging for the client.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        app_env: Application environment (development, staging, production, test)
        app_version: Application version for tracking
        json_format: Force JSON output (None = auto-detect based on environment)
    """
    if json_format is None:
        json_format = app_env in ["staging", "production"]

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        RequestContextProcessor(),
        EnvironmentProcessor(app_env, app_version),
        filter_sensitive_data,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (usually __name__ from the calling module)
    """
    return structlog.get_logger(name)


def set_request_context(**kwargs: Any) -> None:
    """
    Set call-scoped context that will be included in all logs.

    Example:
        set_request_context(screen="BookingManage", user_id=42)
    """
    ctx = request_context.get()
    ctx = dict(ctx) if ctx else {}
    ctx.update(kwargs)
    request_context.set(ctx)


def clear_request_context() -> None:
    """Clear the call context."""
    request_context.set(None)
