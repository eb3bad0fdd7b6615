# app/errors.py

"""
Domain errors raised by the booking services.

Each error carries a stable ``code`` and the HTTP status it maps to.
``register_error_handlers`` turns them into JSON error responses, so
services never import FastAPI to report a failure.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BookingPlatformError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str, errors: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(BookingPlatformError):
    """Malformed input, e.g. an inverted or zero-length interval."""

    code = "validation_error"
    status_code = 422


class UnavailableSlotError(BookingPlatformError):
    """The requested interval is outside availability or already taken."""

    code = "slot_unavailable"
    status_code = 409


class NotFoundError(BookingPlatformError):
    code = "not_found"
    status_code = 404


class InvalidTransitionError(BookingPlatformError):
    """A booking status change not allowed by the lifecycle."""

    code = "invalid_transition"
    status_code = 409


class AuthorizationError(BookingPlatformError):
    code = "forbidden"
    status_code = 403


class ConflictError(BookingPlatformError):
    """A concurrent write claimed the same resource first."""

    code = "conflict"
    status_code = 409


def error_body(exc: BookingPlatformError) -> dict:
    return {
        "status": False,
        "code": exc.code,
        "message": exc.message,
        "errors": exc.errors,
    }


async def booking_platform_error_handler(request: Request, exc: BookingPlatformError):
    logger.info(
        "%s %s -> %s (%s): %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingPlatformError, booking_platform_error_handler)
