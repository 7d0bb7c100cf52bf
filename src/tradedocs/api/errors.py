"""API error handling.

Provides ApiHttpError and the FastAPI exception handlers that turn every
failure into the shared error envelope with a request_id.

Global exception handlers:
- ApiHttpError: Application-specific errors with structured envelope
- DocEngineError: Domain errors mapped to HTTP status by type
- HTTPException: Starlette HTTP exceptions (unknown route, wrong method)
- RequestValidationError: Pydantic validation errors
- Exception: Catch-all for unhandled exceptions (fail closed, no stack traces)
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from tradedocs.api.error_model import (
    get_error_code_for_status,
    make_error_response,
)
from tradedocs.errors import (
    AccessError,
    ConflictError,
    DocEngineError,
    EditorError,
    GenerationError,
    IssuanceRequiredError,
    IssuanceValidationError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error envelope schema."""

    code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str | None = None


class ApiHttpError(Exception):
    """Application-level HTTP error with structured error envelope.

    Attributes:
        status_code: HTTP status code (e.g., 401, 404, 500).
        code: Machine-readable error code (e.g., "UNAUTHORIZED").
        message: Human-readable error message.
        details: Optional dict with additional error context.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


def status_for_domain_error(exc: DocEngineError) -> int:
    """HTTP status for a domain error. Order matters: subclasses first."""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, AccessError):
        return 403
    if isinstance(exc, IssuanceValidationError):
        return 400
    if isinstance(exc, ConflictError | IssuanceRequiredError):
        return 409
    if isinstance(exc, EditorError):
        return 422
    if isinstance(exc, GenerationError):
        return 502
    return 500


def _domain_error_details(exc: DocEngineError) -> dict[str, Any] | None:
    if isinstance(exc, IssuanceValidationError):
        return {
            "missing_required": exc.missing_required,
            "missing_recommended": exc.missing_recommended,
            "warnings": exc.warnings,
            "redirect_to": exc.redirect_to,
        }
    if isinstance(exc, IssuanceRequiredError):
        return {"redirect_to": exc.redirect_to}
    if isinstance(exc, ConflictError):
        return {
            "expected_version": exc.expected_version,
            "actual_version": exc.actual_version,
        }
    if isinstance(exc, GenerationError):
        return {"retryable": True}
    return None


async def api_http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for ApiHttpError."""
    assert isinstance(exc, ApiHttpError)

    return make_error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=exc.status_code,
        details=exc.details,
    )


async def doc_engine_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for DocEngineError and its subclasses."""
    assert isinstance(exc, DocEngineError)

    status = status_for_domain_error(exc)
    if status >= 500:
        logger.error(
            "Document engine error %s: %s",
            exc.code,
            exc.message,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )

    return make_error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=status,
        details=_domain_error_details(exc),
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for HTTPException."""
    assert isinstance(exc, HTTPException)

    code = get_error_code_for_status(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return make_error_response(
        request,
        code=code,
        message=message,
        http_status=exc.status_code,
        details=None,
    )


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for RequestValidationError.

    Reports field paths and messages only, never the submitted values.
    """
    assert isinstance(exc, RequestValidationError)

    safe_details: list[dict[str, Any]] = []
    for error in exc.errors():
        loc = error.get("loc", ())
        safe_loc = [str(part) for part in loc if part not in ("body", "query", "path")]
        safe_details.append(
            {
                "field": ".".join(safe_loc) if safe_loc else "request",
                "message": error.get("msg", "Validation error"),
            }
        )

    return make_error_response(
        request,
        code="REQUEST_VALIDATION_FAILED",
        message="Request validation failed",
        http_status=422,
        details={"errors": safe_details} if safe_details else None,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler. Returns 500 with a generic message and logs the exception."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception: %s",
        type(exc).__name__,
        extra={"request_id": request_id},
    )

    return make_error_response(
        request,
        code="INTERNAL_ERROR",
        message="An internal error occurred",
        http_status=500,
        details=None,
    )
