"""HTTP layer for Helix Hub.

Every error leaves the API in the same ``ErrorResponse`` envelope with
a stable ``error_code`` and the request's correlation ID.
"""

from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..db import DatabaseNotConfiguredError
from ..logging import get_logger

logger = get_logger(__name__)


# =========================
# Response Models
# =========================


class ErrorDetail(BaseModel):
    """One problem with a request, e.g. a single invalid field."""

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    success: bool = False
    error: str
    error_code: str
    details: list[ErrorDetail] | None = None
    request_id: str | None = None


# =========================
# Exception Classes
# =========================


class APIError(HTTPException):
    """HTTP error carrying a machine-readable code."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: list[ErrorDetail] | None = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class ConfigurationError(APIError):
    """A backing database is not configured."""

    def __init__(self, database: str):
        super().__init__(
            status_code=503,
            error_code="DATABASE_NOT_CONFIGURED",
            message=f"Database configuration missing: {database}",
        )


# =========================
# Exception Handlers
# =========================


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    error_code: str,
    details: list[ErrorDetail] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        error_code=error_code,
        details=details,
        request_id=_request_id(request),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers={"X-Error-Code": error_code},
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.message, exc.error_code, exc.details)


async def database_not_configured_handler(
    request: Request, exc: DatabaseNotConfiguredError
) -> JSONResponse:
    """Surface a missing database URL raised below the route layer as 503."""
    return await api_error_handler(request, ConfigurationError(exc.database))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report each invalid query parameter or body field separately."""
    details = [
        ErrorDetail(
            code=error.get("type", "invalid"),
            message=error.get("msg", "Invalid value"),
            field=".".join(str(part) for part in error.get("loc", ())),
        )
        for error in exc.errors()
    ]
    return _error_response(request, 422, "Request validation failed", "VALIDATION_ERROR", details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, str(exc.detail), "HTTP_ERROR")


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log anything unhandled and hide its details from the caller."""
    logger.exception(f"Unhandled exception: {exc}")
    return _error_response(request, 500, "An unexpected error occurred", "INTERNAL_ERROR")


def register_exception_handlers(app):
    """Register exception handlers with the FastAPI app."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(DatabaseNotConfiguredError, database_not_configured_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
