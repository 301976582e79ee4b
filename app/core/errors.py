"""
Error taxonomy and centralized error formatting.
================================================

Every error that reaches a client leaves through the handlers registered
here, so the response shape is always ``{"error": <message>}``.

- AppError and its subclasses carry an explicit status code; their message
  is returned verbatim.
- Request validation failures become 400 with a readable message.
- Unmatched routes become 404 "Route not found".
- Anything else is logged with its traceback and answered with a generic
  500 "Internal server error".
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.logging import get_logger
from app.core.middleware import apply_response_headers

logger = get_logger(__name__)


class AppError(Exception):
    """Base class for errors whose message is safe to show to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class DuplicateEmailError(ValidationError):
    default_message = "User with this email already exists"


class DuplicateUsernameError(ValidationError):
    default_message = "User with this username already exists"


class InvalidCredentialsError(AuthenticationError):
    default_message = "Invalid email or password"


class AccountDeactivatedError(AuthenticationError):
    default_message = "Account is deactivated"


class InvalidRefreshTokenError(AuthenticationError):
    default_message = "Invalid refresh token"


class IncorrectPasswordError(ValidationError):
    default_message = "Current password is incorrect"


class TokenError(Exception):
    """Raised by token verification; never sent to clients directly."""

    def __init__(self, message: str = "Invalid or expired token"):
        self.message = message
        super().__init__(message)


def _format_validation_errors(errors: List[Dict[str, Any]]) -> str:
    messages = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        msg = error.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return "; ".join(messages) or "Invalid request"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(f"Application error {exc.status_code} on {request.url.path}: {exc.message}")
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _format_validation_errors(exc.errors())
    logger.warning(f"Validation error on {request.url.path}: {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global handler for unexpected exceptions.

    The full traceback goes to the log; the client only ever sees the
    generic message.
    """
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    response = JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )
    # answered outside the middleware stack
    return apply_response_headers(request, response)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error formatters on an application instance."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
