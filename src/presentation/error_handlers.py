"""Centralized error rendering for the API.

Every failure leaves the API as ``{"error": <message>}``; validation failures
carry a structured detail instead of a plain message.
"""

from typing import Any, Final

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..domain.exceptions import (
    DomainError,
    UpstreamError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)

GENERIC_FAILURE: Final = "Internal server error"


class ErrorCodes:
    FIELD_REQUIRED: Final = "field_required"
    FIELD_INVALID: Final = "field_invalid"
    FIELD_NOT_ALLOWED: Final = "field_not_allowed"


class FieldError(BaseModel):
    field: str
    code: str
    message: str


class ValidationDetail(BaseModel):
    message: str
    fields: list[FieldError]


class ErrorResponse(BaseModel):
    error: str | ValidationDetail


def _status_for(error: DomainError) -> int:
    if isinstance(error, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, UserNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, UserAlreadyExistsError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def format_user_message(error: DomainError) -> str:
    """Stable, user-facing message for a domain error."""
    if isinstance(error, UserAlreadyExistsError):
        return "Email already exists"
    if isinstance(error, UserNotFoundError):
        return "Not found"
    if isinstance(error, ValidationError):
        return str(error)
    if isinstance(error, UpstreamError):
        return str(error) or GENERIC_FAILURE
    return GENERIC_FAILURE


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=ErrorResponse(error=message).model_dump()
    )


def validation_response(message: str, fields: list[FieldError]) -> JSONResponse:
    body = ErrorResponse(error=ValidationDetail(message=message, fields=fields))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump()
    )


def handle_domain_error(error: DomainError, request: Request) -> JSONResponse:
    """Convert domain errors to their HTTP status and body."""
    message = format_user_message(error)

    if isinstance(error, ValidationError):
        fields = []
        if error.field:
            fields.append(
                FieldError(
                    field=error.field, code=ErrorCodes.FIELD_INVALID, message=message
                )
            )
        return validation_response(message, fields)

    return error_response(_status_for(error), message)


def _field_name(loc: tuple[Any, ...]) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def _field_code(error_type: str) -> str:
    if error_type == "missing":
        return ErrorCodes.FIELD_REQUIRED
    if error_type == "extra_forbidden":
        return ErrorCodes.FIELD_NOT_ALLOWED
    return ErrorCodes.FIELD_INVALID


def handle_request_validation_error(
    exc: RequestValidationError, request: Request
) -> JSONResponse:
    """Render request-shape errors as 400 with per-field details."""
    fields = [
        FieldError(
            field=_field_name(tuple(error["loc"])),
            code=_field_code(error["type"]),
            message=str(error["msg"]).removeprefix("Value error, "),
        )
        for error in exc.errors()
    ]
    return validation_response("Request validation failed", fields)
