from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from staff_auth.core.database import get_db
from staff_auth.core.errors import (
    AuthError,
    CSRFValidationError,
    RateLimitedError,
    ValidationError,
    register_uniform_response,
)
from staff_auth.core.logging_setup import redact_email
from staff_auth.core.rate_limiter import RateLimiter
from staff_auth.deps import (
    client_key,
    get_auth_context,
    get_login_rate_limiter,
    get_login_service,
    get_password_reset_service,
)
from staff_auth.services.csrf import CSRF_HEADER_NAME, issue_csrf_token, validate_csrf_token
from staff_auth.services.login import LoginService, resolve_redirect_url, serialize_staff_user
from staff_auth.services.password_reset import PasswordResetService
from staff_auth.services.session_cookie import clear_session_cookie, read_session_token, set_session_cookie
from staff_auth.services.session_store import AuthContext

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists for this email, a reset link has been sent."
FORGOT_PASSWORD_RESPONSE = {"success": True, "message": FORGOT_PASSWORD_MESSAGE}


class LoginPayload(BaseModel):
    # Campos opcionais: CSRF e rate limit são checados antes de "campos obrigatórios".
    email: Optional[str] = None
    password: Optional[str] = None
    rememberMe: bool = False
    csrfToken: Optional[str] = None
    redirectUrl: Optional[str] = None


class ForgotPasswordPayload(BaseModel):
    email: Optional[str] = None
    restaurant_id: Optional[int] = None
    tenant_id: Optional[int] = None


class ResetPasswordPayload(BaseModel):
    token: Optional[str] = None
    new_password: Optional[str] = None


@router.get("/csrf")
def get_csrf_token():
    return {"csrfToken": issue_csrf_token()}


@router.post("/login")
def login(
    payload: LoginPayload,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_login_rate_limiter),
    service: LoginService = Depends(get_login_service),
):
    if not validate_csrf_token(request.headers.get(CSRF_HEADER_NAME), payload.csrfToken):
        logger.warning("login rejected: CSRF validation failed client=%s", client_key(request))
        raise CSRFValidationError()

    ip = client_key(request)
    decision = limiter.check(ip)
    if not decision.allowed:
        logger.warning("login rate limited client=%s reset_at=%s", ip, decision.reset_at.isoformat())
        raise RateLimitedError(decision.reset_at, decision.retry_after_seconds)

    email = (payload.email or "").strip()
    if not email or not payload.password:
        raise ValidationError("Email and password are required")

    logger.info("login attempt email=%s", redact_email(email))
    try:
        result = service.authenticate(
            email,
            payload.password,
            remember_me=payload.rememberMe,
            client_ip=ip,
        )
    except AuthError:
        # Contador de falhas e auditoria precisam sobreviver à resposta de erro.
        db.commit()
        raise

    db.commit()
    set_session_cookie(response, result.token, remember_me=result.remember_me, request=request)

    return {
        "success": True,
        "user": serialize_staff_user(result.user),
        "redirectUrl": resolve_redirect_url(payload.redirectUrl, result.user.role),
        "remainingAttempts": decision.remaining,
    }


@router.get("/me")
def me(context: AuthContext = Depends(get_auth_context)):
    return {"success": True, "user": serialize_staff_user(context.user)}


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    service: LoginService = Depends(get_login_service),
):
    try:
        service.logout(read_session_token(request), client_ip=client_key(request))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("logout failed; clearing cookie anyway")

    clear_session_cookie(response, request)
    return {"success": True}


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordPayload,
    db: Session = Depends(get_db),
    service: PasswordResetService = Depends(get_password_reset_service),
):
    email = (payload.email or "").strip()
    if not email:
        raise ValidationError("Email is required")

    tenant_id = payload.restaurant_id if payload.restaurant_id is not None else payload.tenant_id
    try:
        service.request(email, tenant_id)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("password reset request failed email=%s", redact_email(email))

    return dict(FORGOT_PASSWORD_RESPONSE)


# Body malformado também recebe a resposta genérica.
register_uniform_response(f"{router.prefix}/forgot-password", FORGOT_PASSWORD_RESPONSE)


@router.post("/reset-password")
def reset_password(
    payload: ResetPasswordPayload,
    db: Session = Depends(get_db),
    service: PasswordResetService = Depends(get_password_reset_service),
):
    if not payload.token or not payload.new_password:
        raise ValidationError("Token and new password are required")

    try:
        service.confirm(payload.token, payload.new_password)
    except AuthError:
        db.rollback()
        raise

    db.commit()
    return {"success": True, "message": "Password has been reset. Please sign in again."}
