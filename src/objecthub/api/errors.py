"""objecthub API error handling.

Provides ObjectHubHttpError and the FastAPI exception handlers that turn
application, domain and framework errors into the JSON error envelope.

Global exception handlers:
- ObjectHubHttpError: Application-specific errors with structured envelope
- ObjectServiceError / ObjectStorageError / MetadataStoreError: domain errors
- HTTPException: FastAPI/Starlette HTTP exceptions
- RequestValidationError: Pydantic validation errors
- Exception: Catch-all for unhandled exceptions (no stack traces to clients)
"""

import logging
import uuid
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from objecthub.api.middleware.request_context import REQUEST_ID_HEADER
from objecthub.persistence.db import MetadataStoreError
from objecthub.services.objects.errors import (
    InvalidObjectTokenError,
    InvalidShaError,
    NoBackingFileError,
    NoLinkTargetError,
    ObjectAccessDeniedError,
    ObjectNotFoundError,
    ObjectServiceError,
    ObjectValidationError,
    QuotaExceededError,
    QuotaSourceError,
    TokenSigningError,
)
from objecthub.storage.errors import (
    BlobNotFoundError,
    ObjectStorageError,
    PathTraversalError,
    StorageBackendError,
)

logger = logging.getLogger(__name__)

NO_ACCESS_MESSAGE = "No access"
UNAVAILABLE_MESSAGE = "Service temporarily unavailable"

_STATUS_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    412: "PRECONDITION_FAILED",
    413: "PAYLOAD_TOO_LARGE",
    422: "UNPROCESSABLE_ENTITY",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


class ErrorResponse(BaseModel):
    """Error envelope schema."""

    code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str | None = None


class ObjectHubHttpError(Exception):
    """Application-level HTTP error with structured error envelope.

    Attributes:
        status_code: HTTP status code (e.g., 401, 403, 500).
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


def error_response(
    request: Request,
    code: str,
    message: str,
    http_status: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Render the error envelope, carrying the same request id as the header."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    body = ErrorResponse(code=code, message=message, details=details, request_id=request_id)
    return JSONResponse(
        status_code=http_status,
        content=body.model_dump(),
        headers={REQUEST_ID_HEADER: request_id},
    )


def map_domain_error(exc: Exception) -> ObjectHubHttpError:
    """Translate a domain exception into its HTTP error.

    Not-found, owner mismatch and unresolvable records all become the same
    403 so responses never reveal whether another owner's record exists.
    """
    if isinstance(exc, InvalidShaError):
        return ObjectHubHttpError(400, "INVALID_SHA", exc.message)
    if isinstance(exc, ObjectValidationError):
        return ObjectHubHttpError(400, "VALIDATION_FAILED", exc.message)
    if isinstance(
        exc,
        ObjectAccessDeniedError | ObjectNotFoundError | NoBackingFileError | NoLinkTargetError,
    ):
        return ObjectHubHttpError(403, "NO_ACCESS", NO_ACCESS_MESSAGE)
    if isinstance(exc, QuotaExceededError):
        return ObjectHubHttpError(
            412,
            "QUOTA_EXCEEDED",
            "Quota exceeded",
            details={"usage": exc.usage, "quota": exc.quota},
        )
    if isinstance(exc, InvalidObjectTokenError):
        return ObjectHubHttpError(403, "INVALID_TOKEN", exc.message)
    if isinstance(exc, TokenSigningError):
        return ObjectHubHttpError(500, "TOKEN_SIGNING_FAILED", "Access token could not be signed")
    if isinstance(exc, QuotaSourceError | MetadataStoreError | StorageBackendError):
        return ObjectHubHttpError(503, "SERVICE_UNAVAILABLE", UNAVAILABLE_MESSAGE)
    if isinstance(exc, PathTraversalError):
        return ObjectHubHttpError(400, "INVALID_STORAGE_ID", "Invalid storage id")
    if isinstance(exc, BlobNotFoundError):
        return ObjectHubHttpError(404, "NOT_FOUND", "Blob not found")
    return ObjectHubHttpError(500, "INTERNAL_ERROR", "An internal error occurred")


async def objecthub_http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for ObjectHubHttpError."""
    assert isinstance(exc, ObjectHubHttpError)

    return error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=exc.status_code,
        details=exc.details,
    )


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for service, storage and metadata store errors."""
    assert isinstance(exc, ObjectServiceError | ObjectStorageError | MetadataStoreError)

    http_error = map_domain_error(exc)
    if http_error.status_code >= 500:
        logger.warning(
            "Request failed with %s: %s",
            http_error.code,
            type(exc).__name__,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )

    return error_response(
        request,
        code=http_error.code,
        message=http_error.message,
        http_status=http_error.status_code,
        details=http_error.details,
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for HTTPException."""
    assert isinstance(exc, HTTPException)

    code = _STATUS_CODES.get(exc.status_code, "ERROR")
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return error_response(
        request,
        code=code,
        message=message,
        http_status=exc.status_code,
        details=None,
    )


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for RequestValidationError.

    Reports field locations and messages only, never the raw input.
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

    return error_response(
        request,
        code="REQUEST_VALIDATION_FAILED",
        message="Request validation failed",
        http_status=422,
        details={"errors": safe_details} if safe_details else None,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler for unhandled exceptions.

    Returns 500 with a generic message and logs the exception.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception: %s",
        type(exc).__name__,
        extra={"request_id": request_id},
    )

    return error_response(
        request,
        code="INTERNAL_ERROR",
        message="An internal error occurred",
        http_status=500,
        details=None,
    )
