"""
Exception types and handlers.

Route handlers raise `fastapi.HTTPException` directly for simple cases.
Services raise `PortalError` subclasses; the handlers below turn them, request
validation failures, integrity violations and unexpected errors into the JSON
error bodies the API returns.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base class for domain errors with an HTTP status."""

    def __init__(
        self,
        message: str,
        code: str = "PORTAL_ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result = {"detail": self.message, "code": self.code}
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(PortalError):
    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class PermissionDeniedError(PortalError):
    def __init__(self, message: str = "Not authorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)


class ConflictError(PortalError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", status_code=409, details=details)


class InvalidRoleError(PortalError):
    def __init__(self):
        super().__init__("Invalid user role", code="INVALID_ROLE", status_code=400)


# =============================================================================
# Exception Handlers
# =============================================================================

async def portal_exception_handler(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code == 403:
        logger.warning(f"{request.method} {request.url.path} denied: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation errors are reported as 400 with per-field detail."""
    errors = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request data", "code": "VALIDATION_ERROR", "errors": errors},
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} integrity error: {exc.orig}")
    return JSONResponse(
        status_code=409,
        content={"detail": "Record conflicts with existing data", "code": "CONFLICT"},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
