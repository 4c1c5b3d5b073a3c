"""Application-wide exception classes and handlers.

Engine operations raise these errors and the FastAPI handlers below render
them as the standard ``{"success": false, "error": {...}}`` envelope.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base exception for application errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(AppError):
    """Resource not found error (404)."""

    def __init__(self, message: str = "Resource not found", resource: str | None = None):
        details = {"resource": resource} if resource else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details,
        )


class ValidationError(AppError):
    """Validation error (400).

    ``field`` names the offending input; ``errors`` carries one entry per
    failed field when several are reported at once.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: str | None = None,
        errors: list[dict[str, str]] | None = None,
    ):
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if errors:
            details["errors"] = errors
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_ERROR",
            details=details,
        )
        self.field = field
        self.errors = errors or []


class ConflictError(AppError):
    """Resource conflict error (409)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        resource: str | None = None,
        error_code: str = "CONFLICT",
        details: dict[str, Any] | None = None,
    ):
        merged = {"resource": resource} if resource else {}
        merged.update(details or {})
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
            details=merged,
        )


class StateTransitionError(ConflictError):
    """Lifecycle action requested from a status that does not allow it."""

    def __init__(self, current_status: str, requested_status: str, action: str):
        super().__init__(
            message=(
                f"Cannot {action} bundle: transition {current_status} -> "
                f"{requested_status} is not allowed"
            ),
            error_code="INVALID_STATE_TRANSITION",
            details={
                "current_status": current_status,
                "requested_status": requested_status,
                "action": action,
            },
        )
        self.current_status = current_status
        self.requested_status = requested_status
        self.action = action


class ConcurrencyConflictError(ConflictError):
    """A concurrent write won the race; the caller should retry or give up."""

    def __init__(self, message: str = "Concurrent modification detected", resource: str | None = None):
        super().__init__(
            message=message,
            resource=resource,
            error_code="CONCURRENCY_CONFLICT",
        )


class ExternalServiceError(AppError):
    """External service error (502)."""

    def __init__(
        self,
        message: str = "External service error",
        service: str | None = None,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        details = {"service": service} if service else {}
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class AvailabilityDegradedError(ExternalServiceError):
    """Catalog lookup failed or timed out.

    Read paths recover from this locally and serve the last known state
    flagged as stale. Only mutations that need fresh stock data let it
    reach the client.
    """

    def __init__(self, message: str = "Catalog availability is degraded"):
        super().__init__(
            message=message,
            service="catalog",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="AVAILABILITY_DEGRADED",
        )


async def app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle AppError and return consistent JSON response."""
    logger.error(
        "AppException: %s (code=%s, status=%d)",
        exc.message,
        exc.error_code,
        exc.status_code,
        extra={"details": exc.details},
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "code": exc.error_code,
                "message": exc.message,
                "details": exc.details if exc.details else None,
            },
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions with a generic error response."""
    logger.exception("Unhandled exception: %s", str(exc))

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": None,
            },
        },
    )


def register_exception_handlers(app: FastAPI, *, debug: bool = False) -> None:
    """Register exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
        debug: If True, unhandled exceptions propagate with stack traces.
    """
    app.add_exception_handler(AppError, app_exception_handler)  # type: ignore[arg-type]
    if not debug:
        app.add_exception_handler(Exception, unhandled_exception_handler)
