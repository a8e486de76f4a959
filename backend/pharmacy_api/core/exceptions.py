"""
Domain exceptions and their HTTP mapping.

Services raise these; the handlers registered in main.py render them as
{"error": message} with the class's status code.

SECURITY PRINCIPLE: Don't expose internal details to users.
Unexpected errors are logged with a stack trace and returned as a generic 500.
"""
import logging
from typing import Dict, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class PharmacyError(Exception):
    """Base class for errors that map to a client-visible HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers


class ValidationFailed(PharmacyError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStock(PharmacyError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidFile(PharmacyError):
    """Upload outside the allowed types or size."""
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransition(PharmacyError):
    """Order status move not in the allowed-transitions table."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(PharmacyError):
    status_code = status.HTTP_404_NOT_FOUND


class DrugNotFound(NotFound):
    pass


class Conflict(PharmacyError):
    status_code = status.HTTP_409_CONFLICT


class Unauthorized(PharmacyError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Access denied. No token provided."):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(PharmacyError):
    status_code = status.HTTP_403_FORBIDDEN


async def pharmacy_error_handler(request: Request, exc: PharmacyError) -> JSONResponse:
    if exc.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query/path validation failures are 400s, not FastAPI's default 422."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    logger.info(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"error": "Validation failed", "errors": errors}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic 500 - logs actual error internally, hides from user.

    SECURITY: Never expose stack traces, SQL errors, or internal paths to users.
    """
    logger.error(
        f"Internal server error: {type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )
