"""
Scheduling error taxonomy and the FastAPI handlers that render it.

Services raise these exceptions; the HTTP layer never has to inspect
messages to pick a status code.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Base class for every failure surfaced by the scheduling engine."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Scheduling operation failed"
    default_code: str = "SCHEDULING_ERROR"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class NotFoundError(SchedulingError):
    """A referenced session or user id does not resolve."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"
    default_code = "NOT_FOUND"


class InvalidRoleError(SchedulingError):
    """A booking party resolved to a user with the wrong role."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User has the wrong role for this booking"
    default_code = "INVALID_ROLE"


class InvalidRequestError(SchedulingError):
    """Input failed validation inside the engine."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"
    default_code = "VALIDATION_ERROR"


class SchedulingConflictError(SchedulingError):
    """The requested interval overlaps an active session of a participant."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Scheduling conflict detected"
    default_code = "SCHEDULING_CONFLICT"

    def __init__(self, conflicting_ids: Iterable[Any] = (), message: Optional[str] = None) -> None:
        super().__init__(
            message,
            details={"conflicting_session_ids": [str(session_id) for session_id in conflicting_ids]},
        )


class InsufficientPermissionsError(SchedulingError):
    """The acting user may not mutate this session."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"
    default_code = "INSUFFICIENT_PERMISSIONS"


class AccessDeniedError(SchedulingError):
    """The acting user may not read this resource."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"
    default_code = "ACCESS_DENIED"


class NoAllowedFieldsError(SchedulingError):
    """A student update carried nothing a student is allowed to change."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "No allowed fields to update"
    default_code = "NO_ALLOWED_FIELDS"


class CannotCancelCompletedError(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Cannot cancel completed session"
    default_code = "CANNOT_CANCEL_COMPLETED"


class AlreadyCancelledError(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Session is already cancelled"
    default_code = "ALREADY_CANCELLED"


class CancellationWindowExpiredError(SchedulingError):
    """Cancellation attempted with less lead time than the policy requires."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "CANCELLATION_WINDOW_EXPIRED"

    def __init__(self, window_hours: float, hours_until_start: float) -> None:
        super().__init__(
            f"Cannot cancel session within {window_hours:g} hours of its start",
            details={
                "window_hours": window_hours,
                "hours_until_start": round(hours_until_start, 2),
            },
        )


def register_error_handlers(app: FastAPI) -> None:
    """Install handlers mapping the error taxonomy onto HTTP responses."""

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
        http_exc = exc.to_http_exception()
        return JSONResponse({"detail": http_exc.detail}, status_code=http_exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed bodies, ids and query parameters are client errors (400),
        # in line with the rest of the taxonomy.
        return JSONResponse(
            {
                "detail": {
                    "message": "Validation failed",
                    "code": InvalidRequestError.default_code,
                    "details": {"errors": jsonable_encoder(exc.errors())},
                }
            },
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            {
                "detail": {
                    "message": "Internal server error",
                    "code": "INTERNAL_ERROR",
                    "details": {},
                }
            },
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
