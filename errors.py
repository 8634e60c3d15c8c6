"""Error taxonomy and the handlers that turn it into API responses.

Every error leaves the API as ``{"success": false, "error": <message>}``.
Session failures share a single public message so a caller cannot tell
a missing user from a deactivated one.
"""
import logging
import sqlite3
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class MissingCredential(ApiError):
    status_code = 401
    message = "Access token required"


class InvalidToken(ApiError):
    status_code = 401
    message = "Invalid or expired token"


class InvalidCredentials(ApiError):
    status_code = 401
    message = "Invalid credentials"


class SessionError(ApiError):
    """A verified token that does not resolve to a usable principal."""

    status_code = 401
    message = "Invalid or inactive session"
    public_message = "Invalid or inactive session"


class UnknownRole(SessionError):
    pass


class UserNotFound(SessionError):
    pass


class InactiveUser(SessionError):
    pass


class RoleMismatch(SessionError):
    pass


class ScopeMismatch(SessionError):
    pass


class Forbidden(ApiError):
    status_code = 403
    message = "Insufficient permissions"


class ValidationError(ApiError):
    status_code = 400
    message = "Invalid request"


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class DuplicateRecord(ApiError):
    status_code = 400
    message = "Record already exists"


class InternalError(ApiError):
    pass


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def api_error_handler(request: Request, exc: ApiError):
    if isinstance(exc, SessionError):
        logger.info("Session rejected on %s: %s (%s)", request.url.path, type(exc).__name__, exc)
        return error_response(exc.status_code, SessionError.public_message)
    return error_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return error_response(400, ValidationError.message)
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", ValidationError.message)
    return error_response(400, f"{field}: {message}" if field else message)


async def store_error_handler(request: Request, exc: sqlite3.Error):
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return error_response(500, InternalError.message)


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, InternalError.message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(sqlite3.Error, store_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
