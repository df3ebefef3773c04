"""Booking error taxonomy and its HTTP mapping.

Core modules raise these; routers never build ``HTTPException`` for domain
rules. ``install_error_handlers`` wires the translation into the app.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


logger = logging.getLogger("staybook.errors")


class BookingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "booking_error"

    def __init__(self, message: str, *, code: str | None = None, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.field = field

    def to_dict(self) -> dict:
        body = {"detail": self.message, "code": self.code}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(BookingError):
    default_code = "validation_error"


class AdmissionError(BookingError):
    default_code = "admission_rejected"


class GuardError(BookingError):
    default_code = "invalid_transition"


class AuthorizationError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class Unauthorized(BookingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthorized"


class CollaboratorError(BookingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "upstream_failure"


class DateConflict(AdmissionError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "already_booked"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def _booking_error(request: Request, exc: BookingError):
        if isinstance(exc, CollaboratorError):
            logger.error("collaborator failure on %s %s: %s", request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
