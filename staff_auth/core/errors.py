from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlencode

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from staff_auth.services.session_cookie import clear_session_cookie

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"


class AuthError(Exception):
    """Base class for auth failures that are safe to show to the client.

    ``message`` is the public text; anything more specific belongs in the logs.
    """

    status_code: int = 500
    error_code: str = "internal_error"
    default_message: str = "Unexpected error"
    clears_session: bool = False

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def body(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.error_code, **self.extra}

    def headers(self) -> dict[str, str]:
        return {}


class ValidationError(AuthError):
    status_code = 400
    error_code = "validation_error"
    default_message = "Invalid request"


class InvalidResetTokenError(ValidationError):
    error_code = "invalid_reset_token"
    default_message = "Invalid or expired reset token"


class AuthenticationError(AuthError):
    status_code = 401
    error_code = "invalid_credentials"
    default_message = "Invalid email or password"


class SessionExpiredError(AuthenticationError):
    error_code = "unauthenticated"
    default_message = "Not authenticated"
    clears_session = True

    def __init__(self, message: Optional[str] = None, *, redirect_path: Optional[str] = None) -> None:
        super().__init__(message)
        # Set only for browser-rendered routes.
        self.redirect_path = redirect_path


class AuthorizationError(AuthError):
    status_code = 403
    error_code = "forbidden"
    default_message = "Forbidden"


class CSRFValidationError(AuthorizationError):
    error_code = "csrf_failed"
    default_message = "Invalid CSRF token"


class AccountLockedError(AuthError):
    status_code = 423
    error_code = "account_locked"
    default_message = "Account is temporarily locked"

    def __init__(self, locked_until: datetime) -> None:
        super().__init__(
            f"Account is locked until {locked_until.isoformat(timespec='seconds')}Z",
            lockedUntil=f"{locked_until.isoformat(timespec='seconds')}Z",
        )
        self.locked_until = locked_until


class RateLimitedError(AuthError):
    status_code = 429
    error_code = "rate_limited"
    default_message = "Too many login attempts. Try again later."

    def __init__(self, reset_at: datetime, retry_after_seconds: int) -> None:
        super().__init__(resetTime=f"{reset_at.isoformat(timespec='seconds')}Z")
        self.reset_at = reset_at
        self.retry_after_seconds = retry_after_seconds

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after_seconds)}


class InternalError(AuthError):
    pass


# Rotas que respondem igual para qualquer entrada (anti-enumeração), mesmo com body inválido.
_UNIFORM_RESPONSES: dict[str, dict[str, Any]] = {}


def register_uniform_response(path: str, body: dict[str, Any]) -> None:
    _UNIFORM_RESPONSES[path] = body


def login_redirect_url(original_path: str) -> str:
    return f"{LOGIN_PATH}?{urlencode({'redirect': original_path})}"


def _error_response(request: Request, exc: AuthError):
    if isinstance(exc, SessionExpiredError) and exc.redirect_path:
        response = RedirectResponse(login_redirect_url(exc.redirect_path), status_code=303)
    else:
        response = JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers())
    if exc.clears_session:
        clear_session_cookie(response, request)
    return response


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(
            "auth error code=%s status=%s endpoint=%s %s",
            exc.error_code,
            exc.status_code,
            request.method,
            request.url.path,
        )
        return _error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        logger.info(
            "invalid request body endpoint=%s %s errors=%s",
            request.method,
            request.url.path,
            len(exc.errors()),
        )
        uniform_body = _UNIFORM_RESPONSES.get(request.url.path)
        if uniform_body is not None:
            return JSONResponse(status_code=200, content=uniform_body)
        return _error_response(request, ValidationError())

    @app.exception_handler(SQLAlchemyError)
    async def handle_storage_error(request: Request, exc: SQLAlchemyError):
        logger.exception(
            "storage failure endpoint=%s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return _error_response(request, InternalError())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(
            "unexpected failure endpoint=%s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return _error_response(request, InternalError())
