"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Every error response has the same envelope:

    {
        "error": {
            "code":    "NOT_FOUND",
            "message": "Emergency request not found",
            "status":  404,
            "details": {"resource": "Emergency request", "id": "req_9"},
            "path":    "/api/emergency-requests/req_9",     (non-production)
            "method":  "GET"                                 (non-production)
        }
    }

Usage:
    from backend.app.core.errors import NotFoundError, register_error_handlers

    raise NotFoundError("Emergency request", id="req_1")

Notification delivery failures and feed source failures are raised inside
their services and caught there; they only reach these handlers if a
caller lets them escape.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class RescueHubError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class NotFoundError(RescueHubError):
    """Unknown user, volunteer, emergency request or disaster (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
        )


class ConflictError(RescueHubError):
    """Duplicate registration or disallowed status transition (409)."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details,
        )


class ExternalServiceError(RescueHubError):
    """Upstream feed or gateway returned an error (502)."""

    def __init__(self, service: str, message: str = "", **details: Any):
        super().__init__(
            message=f"External service '{service}' failed: {message}",
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR",
            details={"service": service, **details},
        )


class NotificationDeliveryError(RescueHubError):
    """A volunteer alert could not be delivered."""

    def __init__(self, volunteer_id: str, channel: str, message: str = ""):
        super().__init__(
            message=f"Notification to {volunteer_id} failed on {channel}: {message}",
            status_code=500,
            error_code="NOTIFICATION_DELIVERY_ERROR",
            details={"volunteer_id": volunteer_id, "channel": channel},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def error_body(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {
        "code": error_code,
        "message": message,
        "status": status_code,
    }
    if details:
        error["details"] = details
    if request is not None and not settings.is_production:
        error["path"] = request.url.path
        error["method"] = request.method
    return {"error": error}


def _respond(status_code: int, error_code: str, message: str, details=None, request=None):
    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, error_code, message, details, request),
    )


def _field_errors(exc: RequestValidationError) -> Dict[str, Any]:
    fields = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        fields.append({"field": ".".join(loc) or None, "message": err.get("msg")})
    return {"fields": fields}


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(RescueHubError)
    async def handle_rescuehub_error(request: Request, exc: RescueHubError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("API Error [%s]: %s | details=%s", exc.error_code, exc.message, exc.details)
        return _respond(exc.status_code, exc.error_code, exc.message, exc.details, request)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = _field_errors(exc)
        logger.info("Rejected %s %s: %s", request.method, request.url.path, details["fields"])
        return _respond(422, "VALIDATION_ERROR", "Request validation failed", details, request)

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        logger.warning("ValueError: %s", exc)
        return _respond(422, "VALIDATION_ERROR", str(exc), request=request)

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical("Unhandled exception: %s\n%s", exc, traceback.format_exc())
        message = str(exc) if settings.DEBUG else "Internal server error"
        details = (
            {"traceback": traceback.format_exc().split("\n")}
            if settings.DEBUG else None
        )
        return _respond(500, "INTERNAL_ERROR", message, details, request)
