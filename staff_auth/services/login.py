from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional
from urllib.parse import urlsplit

from staff_auth.core.errors import AccountLockedError, AuthenticationError
from staff_auth.core.logging_setup import redact_email
from staff_auth.core.request_context import bind_identity
from staff_auth.repositories.base import UserRepository
from staff_auth.services import auth_audit
from staff_auth.services.account_lockout import AccountLockoutGuard
from staff_auth.services.auth_audit import NullAuditTrail
from staff_auth.services.passwords import hash_password, verify_password
from staff_auth.services.session_store import SessionStore

logger = logging.getLogger(__name__)

ROLE_DASHBOARDS = {
    "owner": "/owner/dashboard",
    "admin": "/admin/dashboard",
    "waiter": "/waiter/dashboard",
    "chef": "/kitchen/dashboard",
}
DEFAULT_DASHBOARD = "/auth/login"


def dashboard_url_for_role(role: str | None) -> str:
    return ROLE_DASHBOARDS.get((role or "").strip().lower(), DEFAULT_DASHBOARD)


def is_safe_redirect(url: str | None) -> bool:
    if not url or not url.startswith("/") or url.startswith("//") or "\\" in url:
        return False
    parts = urlsplit(url)
    return not parts.scheme and not parts.netloc


def resolve_redirect_url(requested: str | None, role: str | None) -> str:
    if is_safe_redirect(requested):
        return requested
    return dashboard_url_for_role(role)


def serialize_staff_user(user: Any) -> dict[str, Any]:
    tenant = getattr(user, "tenant", None)
    last_login = getattr(user, "last_login", None)
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "language": getattr(user, "language", None),
        "phone": getattr(user, "phone", None),
        "tenant_id": user.tenant_id,
        "tenant": {
            "id": user.tenant_id,
            "name": getattr(tenant, "name", None),
        },
        "last_login": last_login.isoformat() if last_login else None,
    }


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return hash_password("staff-auth-timing-equalizer")


@dataclass(frozen=True)
class LoginResult:
    user: Any
    token: str
    remember_me: bool


class LoginService:
    def __init__(
        self,
        users: UserRepository,
        sessions: SessionStore,
        lockout: AccountLockoutGuard,
        *,
        audit: Any = None,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.lockout = lockout
        self.audit = audit or NullAuditTrail()

    def _sweep_expired_sessions(self) -> None:
        try:
            self.sessions.sweep_expired()
        except Exception:
            logger.warning("expired session sweep failed", exc_info=True)

    def authenticate(
        self,
        email: str,
        password: str,
        *,
        remember_me: bool = False,
        client_ip: Optional[str] = None,
    ) -> LoginResult:
        self._sweep_expired_sessions()

        user = self.users.find_staff_by_email(email)
        if user is None:
            # Mesmo custo de bcrypt para e-mail inexistente.
            verify_password(password, _dummy_password_hash())
            logger.info("login failed: unknown email=%s", redact_email(email))
            self.audit.record(
                auth_audit.LOGIN_FAILED,
                client_ip=client_ip,
                meta={"email": redact_email(email), "reason": "unknown_email"},
            )
            raise AuthenticationError()

        if self.lockout.is_locked(user):
            logger.warning("login rejected: account locked user_id=%s", user.id)
            self.audit.record(
                auth_audit.LOGIN_LOCKED,
                tenant_id=user.tenant_id,
                user_id=user.id,
                client_ip=client_ip,
            )
            raise AccountLockedError(user.locked_until)

        password_ok = verify_password(password, user.password_hash)

        if not user.is_active:
            logger.info("login failed: inactive account user_id=%s", user.id)
            self.audit.record(
                auth_audit.LOGIN_FAILED,
                tenant_id=user.tenant_id,
                user_id=user.id,
                client_ip=client_ip,
                meta={"reason": "inactive"},
            )
            raise AuthenticationError()

        if not password_ok:
            locked_until = self.lockout.on_failure(user)
            self.audit.record(
                auth_audit.LOGIN_FAILED,
                tenant_id=user.tenant_id,
                user_id=user.id,
                client_ip=client_ip,
                meta={"reason": "bad_password", "locked": locked_until is not None},
            )
            raise AuthenticationError()

        self.lockout.on_success(user)
        issued = self.sessions.create(user, remember_me)
        bind_identity(tenant_id=user.tenant_id, user_id=user.id)
        self.audit.record(
            auth_audit.LOGIN_SUCCESS,
            tenant_id=user.tenant_id,
            user_id=user.id,
            client_ip=client_ip,
            meta={"remember_me": remember_me},
        )
        logger.info("login succeeded user_id=%s role=%s", user.id, user.role)
        return LoginResult(user=user, token=issued.token, remember_me=remember_me)

    def logout(self, token: Optional[str], *, client_ip: Optional[str] = None) -> None:
        if not token:
            return
        context = self.sessions.validate(token)
        self.sessions.revoke(token)
        if context is not None:
            self.audit.record(
                auth_audit.LOGOUT,
                tenant_id=context.tenant_id,
                user_id=context.user_id,
                client_ip=client_ip,
            )
