"""
Custom exceptions and error handlers for consistent error responses.

Provides the pricing/settlement error taxonomy with standardized error codes
and the global exception handlers registered on the app.

Only PersistenceError is retryable; every other error is terminal for the
invocation that raised it.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    retryable = False

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised when a single input field is malformed or out of range."""

    def __init__(self, field: str, reason: str, value: Any = None):
        self.field = field
        super().__init__(
            message=f"Invalid value for '{field}': {reason}",
            error_code="ERR_INVALID_FIELD",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"field": field, "reason": reason, "value": None if value is None else str(value)}
        )


class ConfigInactiveError(AppException):
    """Raised when no active pricing configuration is available."""

    def __init__(self, message: str = "No active pricing configuration. Publish a pricing configuration before quoting deliveries."):
        super().__init__(
            message=message,
            error_code="ERR_PRICING_INACTIVE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class CommissionFinalizedError(AppException):
    """Raised when a paid or cancelled commission record would be mutated."""

    def __init__(self, order_id: str, current_status: str, attempted: str):
        self.order_id = order_id
        self.current_status = current_status
        super().__init__(
            message=f"Commission for order {order_id} is {current_status}; cannot {attempted}",
            error_code="ERR_COMMISSION_FINALIZED",
            status_code=status.HTTP_409_CONFLICT,
            details={"order_id": order_id, "status": current_status, "attempted": attempted}
        )


class PersistenceError(AppException):
    """Raised on transient storage failures. Callers retry with backoff."""

    retryable = True

    def __init__(self, message: str = "Storage temporarily unavailable", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERSISTENCE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic request validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
