"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """
    Raised when operator input fails validation before any remote call.

    `fields` maps each offending field to its message so the console can
    render errors inline.
    """

    def __init__(self, fields: Dict[str, str], message: str = None):
        self.fields = dict(fields)
        super().__init__(
            message=message or "; ".join(self.fields.values()),
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"fields": self.fields}
        )


class RemoteRejectionError(AppException):
    """Raised when the ledger or catalog service answers with a non-success response."""

    def __init__(self, message: str, remote_status: Optional[int] = None, service: str = "ledger"):
        self.remote_status = remote_status
        super().__init__(
            message=message,
            error_code="ERR_REMOTE_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"service": service, "remote_status": remote_status}
        )


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class RemoteTimeoutError(AppException):
    """Raised when a remote call exceeds its time budget."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            message=f"{operation} timed out after {timeout_seconds}s",
            error_code="ERR_REMOTE_TIMEOUT",
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            details={"operation": operation, "timeout_seconds": timeout_seconds}
        )


class ServiceUnavailableError(AppException):
    """Raised when a remote service is unreachable or its circuit is open."""

    def __init__(self, message: str = "Ledger service unavailable"):
        super().__init__(
            message=message,
            error_code="ERR_REMOTE_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class SubmissionInProgressError(AppException):
    """Raised when a form is submitted again before its previous call resolved."""

    def __init__(self, form: str):
        super().__init__(
            message=f"A {form} submission is already in progress",
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"form": form}
        )


class DeletionNotAllowedError(AppException):
    """Raised when a ledger entry may not be deleted."""

    def __init__(self, transaction_id: Any, reason: str):
        super().__init__(
            message=reason,
            error_code="ERR_DELETE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"transaction_id": transaction_id}
        )


class DraftStateError(AppException):
    """Raised on an illegal bill draft transition."""

    def __init__(self, current_state: str, action: str):
        super().__init__(
            message=f"Cannot {action} while bill draft is {current_state}",
            error_code="ERR_STATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"state": current_state, "action": action}
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
    """Handler for Pydantic validation errors."""
    fields = {
        ".".join(str(part) for part in error["loc"] if part != "body"): error["msg"]
        for error in exc.errors()
    }
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION_001",
            "message": "Validation error",
            "details": {"fields": fields}
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
