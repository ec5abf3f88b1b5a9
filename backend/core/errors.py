"""HTTP error types and exception handlers."""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

logger = logging.getLogger(__name__)

VALIDATION_FAILED_MESSAGE = "Failed Validation"
INTERNAL_ERROR_MESSAGE = "Server error. Please try again later."


class BadRequestError(HTTPException):
    """Client error with a single message."""

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConflictError(HTTPException):
    """Request collides with existing state (duplicate email, duplicate follow)."""

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AuthenticationError(HTTPException):
    """Missing or unverifiable bearer token, or bad credentials."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(HTTPException):
    """Authenticated caller is not allowed to perform the action."""

    def __init__(self, detail: str = "Access denied") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class NotAcceptableError(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_406_NOT_ACCEPTABLE, detail=detail)


class RateLimitedError(HTTPException):
    def __init__(self, detail: str, retry_after: int) -> None:
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers={"Retry-After": str(retry_after)},
        )


class InternalError(HTTPException):
    """Unexpected failure; the message never carries internals."""

    def __init__(self, detail: str = INTERNAL_ERROR_MESSAGE) -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class ValidationFailed(HTTPException):
    """One or more request fields violated their rules.

    Attributes:
        errors: One ``{"field": ..., "message": ...}`` entry per violation
    """

    def __init__(self, errors: list[dict[str, str]]) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=VALIDATION_FAILED_MESSAGE)
        self.errors = errors

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailed":
        return cls(format_validation_errors(exc.errors()))


def _field_label(field: str) -> str:
    words = []
    for char in field:
        if char.isupper():
            words.append(" ")
        words.append(char)
    label = "".join(words).replace("_", " ").strip()
    return label[:1].upper() + label[1:].lower()


def format_validation_errors(errors: Any) -> list[dict[str, str]]:
    """Flatten pydantic error dicts into field/message pairs.

    Args:
        errors: Sequence of pydantic error dicts

    Returns:
        list of ``{"field": str, "message": str}``
    """
    formatted = []
    for error in errors:
        loc = [part for part in error.get("loc", ()) if isinstance(part, str) and part not in ("body", "query", "path")]
        field = loc[-1] if loc else "body"
        error_type = error.get("type", "")
        ctx = error.get("ctx") or {}

        if error_type == "missing":
            message = f"{_field_label(field)} is required"
        elif error_type == "value_error" and "error" in ctx:
            message = str(ctx["error"])
        elif error_type == "string_type":
            message = f"{_field_label(field)} must be a string"
        else:
            message = error.get("msg", "Invalid value")

        formatted.append({"field": field, "message": message})
    return formatted


async def validation_failed_handler(request: Request, exc: ValidationFailed) -> JSONResponse:
    logger.info(f"Validation failed for {request.method} {request.url.path}: {exc.errors}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "errors": exc.errors},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer FastAPI's body/query validation failures with 400 and every violation."""
    return await validation_failed_handler(request, ValidationFailed(format_validation_errors(exc.errors())))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and return a generic 500."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": INTERNAL_ERROR_MESSAGE},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationFailed, validation_failed_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
