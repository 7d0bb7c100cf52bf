"""Shared error response builder.

Every handler and middleware produces the same envelope:

- code: str - machine-readable error code (e.g. "DRAFT_NOT_FOUND")
- message: str - human-readable error message
- details: dict | None - optional context (never document content)
- request_id: str - request correlation ID (always present)
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


def _get_request_id(request: Request) -> str:
    """Request id from the middleware, else the X-Request-Id header, else a new uuid4."""
    request_id: str | None = getattr(request.state, "request_id", None)
    if request_id is not None:
        return str(request_id)

    header_id: str | None = request.headers.get("X-Request-Id")
    if header_id:
        return header_id

    return str(uuid.uuid4())


def make_error_response(
    request: Request,
    *,
    code: str,
    message: str,
    http_status: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build the error JSON response with an X-Request-Id header.

    Args:
        request: The FastAPI request object (for request_id extraction).
        code: Machine-readable error code.
        message: Human-readable error message.
        http_status: HTTP status code.
        details: Optional dict with additional context.
    """
    request_id = _get_request_id(request)

    body: dict[str, Any] = {
        "code": code,
        "message": message,
        "details": details,
        "request_id": request_id,
    }

    response = JSONResponse(status_code=http_status, content=body)
    response.headers["X-Request-Id"] = request_id

    return response


# Statuses the router raises itself; everything else goes through ApiHttpError or DocEngineError.
ROUTING_STATUS_CODES: dict[int, str] = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def get_error_code_for_status(status_code: int) -> str:
    """Error code for a status raised by routing (``HTTP_<status>`` otherwise)."""
    return ROUTING_STATUS_CODES.get(status_code, f"HTTP_{status_code}")
