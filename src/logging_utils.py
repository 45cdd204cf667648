"""Structured log events shared by the API, the service and the CLI."""

import logging
from datetime import UTC, datetime
from typing import Any, Final

from fastapi import Request

from .logging_config import get_logger

_MAX_LOGGED_VALUE: Final = 100

# Personal data that must not reach the logs verbatim
_PERSONAL_FIELDS: Final = ("phone", "email", "bio", "password", "token", "secret")


def _is_sensitive_field(field_name: str) -> bool:
    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in _PERSONAL_FIELDS)


def mask_email(email: str) -> str:
    """``alex@example.com`` -> ``a***@example.com``."""
    local, at, domain = email.partition("@")
    if not at:
        return "[REDACTED]"
    return f"{local[:1]}***@{domain}"


def safe_value(field: str, value: Any) -> str | None:
    if value is None:
        return None
    if "email" in field.lower() and isinstance(value, str):
        return mask_email(value)
    if _is_sensitive_field(field):
        return "[REDACTED]"
    return str(value)[:_MAX_LOGGED_VALUE]


def _level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def log_api_request(
    request: Request, response_status: int, process_time_ms: float | None = None
) -> None:
    """One event per handled HTTP request.

    Args:
        request: FastAPI request object
        response_status: HTTP response status code
        process_time_ms: Request processing time in milliseconds
    """
    get_logger("api").log(
        _level_for_status(response_status),
        f"{request.method} {request.url.path} - {response_status}",
        method=request.method,
        path=request.url.path,
        query=str(request.url.query)[:200],
        status_code=response_status,
        client_ip=request.client.host if request.client else None,
        process_time_ms=(
            round(process_time_ms, 2) if process_time_ms is not None else None
        ),
    )


def log_database_operation(
    operation: str, table: str, success: bool = True, **kwargs: Any
) -> None:
    logger = get_logger("database")
    event = f"Database {operation} on {table} {'succeeded' if success else 'failed'}"
    context = {key: safe_value(key, value) for key, value in kwargs.items()}
    if success:
        logger.info(event, operation=operation, table=table, **context)
    else:
        logger.error(event, operation=operation, table=table, **context)


def log_system_info(hostname: str, ip_address: str, debug_mode: bool) -> None:
    get_logger("system").info(
        "Application startup",
        hostname=hostname,
        ip_address=ip_address,
        debug_mode=debug_mode,
        started_at=datetime.now(UTC).isoformat(),
    )


def log_validation_error(field: str, value: Any, error_message: str) -> None:
    """Log a rejected input, masking personal data.

    Args:
        field: Field or query parameter that failed validation
        value: The rejected value
        error_message: Validation error message
    """
    get_logger("validation").warning(
        f"Validation failed for field '{field}': {error_message}",
        field=field,
        value=safe_value(field, value),
        error=error_message,
    )
