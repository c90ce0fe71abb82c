# staff_auth/deps.py
from __future__ import annotations

import logging
from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network
from typing import Iterable, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from staff_auth.core.config import TRUSTED_PROXIES
from staff_auth.core.database import get_db
from staff_auth.core.errors import AuthorizationError, SessionExpiredError
from staff_auth.core.rate_limiter import InMemoryLoginRateLimiter, RateLimiter
from staff_auth.core.request_context import bind_identity
from staff_auth.repositories.sql import SqlResetTokenRepository, SqlSessionRepository, SqlUserRepository
from staff_auth.services.account_lockout import AccountLockoutGuard
from staff_auth.services.auth_audit import AuditTrail
from staff_auth.services.authorization_service import log_access_denied, normalize_roles
from staff_auth.services.guard import AuthGuard, GuardOutcome
from staff_auth.services.login import LoginService
from staff_auth.services.password_reset import PasswordResetService
from staff_auth.services.reset_notifier import LoggingResetNotifier, ResetLinkNotifier
from staff_auth.services.session_cookie import read_session_token
from staff_auth.services.session_store import AuthContext, SessionStore
from staff_auth.services.staff_provisioning import StaffProvisioningService

logger = logging.getLogger(__name__)

# Processo único. Com várias instâncias, trocar por um RateLimiter com store compartilhado.
_login_rate_limiter: RateLimiter = InMemoryLoginRateLimiter()
_reset_notifier: ResetLinkNotifier = LoggingResetNotifier()


def get_login_rate_limiter() -> RateLimiter:
    return _login_rate_limiter


def get_reset_notifier() -> ResetLinkNotifier:
    return _reset_notifier


def parse_trusted_proxies(entries: Iterable[str]) -> list[IPv4Network | IPv6Network]:
    networks = []
    for entry in entries:
        try:
            networks.append(ip_network(entry, strict=False))
        except ValueError:
            logger.warning("ignoring invalid TRUSTED_PROXIES entry=%s", entry)
    return networks


_trusted_proxy_networks = parse_trusted_proxies(TRUSTED_PROXIES)


def _is_trusted_proxy(host: str | None) -> bool:
    if not host or not _trusted_proxy_networks:
        return False
    try:
        address = ip_address(host)
    except ValueError:
        return False
    return any(address in network for network in _trusted_proxy_networks)


def client_key(request: Request) -> str:
    peer = request.client.host if request.client and request.client.host else None

    # X-Forwarded-For só vale quando quem conecta é um proxy nosso.
    if _is_trusted_proxy(peer):
        forwarded = request.headers.get("x-forwarded-for", "")
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        for hop in reversed(hops):
            if not _is_trusted_proxy(hop):
                return hop

    return peer or "unknown"


def get_session_store(db: Session = Depends(get_db)) -> SessionStore:
    return SessionStore(SqlSessionRepository(db), SqlUserRepository(db))


def get_audit_trail(db: Session = Depends(get_db)) -> AuditTrail:
    return AuditTrail(db)


def get_login_service(
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    audit: AuditTrail = Depends(get_audit_trail),
) -> LoginService:
    users = SqlUserRepository(db)
    return LoginService(users, store, AccountLockoutGuard(users), audit=audit)


def get_password_reset_service(
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    audit: AuditTrail = Depends(get_audit_trail),
    notifier: ResetLinkNotifier = Depends(get_reset_notifier),
) -> PasswordResetService:
    return PasswordResetService(
        SqlUserRepository(db),
        SqlResetTokenRepository(db),
        store,
        notifier=notifier,
        audit=audit,
    )


def get_staff_provisioning_service(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> StaffProvisioningService:
    return StaffProvisioningService(SqlUserRepository(db), audit=audit)


def get_auth_guard(store: SessionStore = Depends(get_session_store)) -> AuthGuard:
    return AuthGuard(store)


def _resolve_tenant_id(request: Request, tenant_id: int | None) -> int | None:
    if tenant_id is not None:
        return tenant_id

    path_tenant = request.path_params.get("tenant_id")
    if path_tenant is not None:
        try:
            return int(path_tenant)
        except (TypeError, ValueError):
            return None

    query_tenant = request.query_params.get("tenant_id")
    if query_tenant is not None:
        try:
            return int(query_tenant)
        except (TypeError, ValueError):
            return None

    return None


def _original_path(request: Request) -> str:
    if request.url.query:
        return f"{request.url.path}?{request.url.query}"
    return request.url.path


def _authorize(
    request: Request,
    db: Session,
    guard: AuthGuard,
    *,
    roles: Optional[Iterable[str]],
    tenant_id: int | None,
    redirect_on_failure: bool,
) -> AuthContext:
    resolved_tenant_id = _resolve_tenant_id(request, tenant_id)
    decision = guard.authorize(read_session_token(request), roles, resolved_tenant_id)

    # Persiste touch de atividade ou revogação por usuário inativo.
    if decision.reason == "session_lookup_failed":
        db.rollback()
    else:
        db.commit()

    if decision.outcome is GuardOutcome.UNAUTHENTICATED:
        logger.info("unauthenticated request reason=%s endpoint=%s %s", decision.reason, request.method, request.url.path)
        raise SessionExpiredError(redirect_path=_original_path(request) if redirect_on_failure else None)

    context = decision.context
    request.state.user = context.user
    bind_identity(tenant_id=context.tenant_id, user_id=context.user_id)

    if decision.outcome is GuardOutcome.FORBIDDEN:
        log_access_denied(
            reason=decision.reason,
            user=context.user,
            tenant_id=resolved_tenant_id,
            request=request,
        )
        if decision.reason == "tenant_mismatch":
            raise AuthorizationError("Tenant not authorized")
        raise AuthorizationError("Insufficient permissions")

    return context


def get_auth_context(
    request: Request,
    db: Session = Depends(get_db),
    guard: AuthGuard = Depends(get_auth_guard),
) -> AuthContext:
    return _authorize(request, db, guard, roles=None, tenant_id=None, redirect_on_failure=False)


def require_role(roles: Iterable[str]):
    allowed = normalize_roles(roles)

    def _dependency(
        request: Request,
        tenant_id: int | None = None,
        db: Session = Depends(get_db),
        guard: AuthGuard = Depends(get_auth_guard),
    ) -> AuthContext:
        return _authorize(request, db, guard, roles=allowed, tenant_id=tenant_id, redirect_on_failure=False)

    return _dependency


def require_role_ui(roles: Iterable[str]):
    allowed = normalize_roles(roles)

    def _dependency(
        request: Request,
        tenant_id: int | None = None,
        db: Session = Depends(get_db),
        guard: AuthGuard = Depends(get_auth_guard),
    ) -> AuthContext:
        return _authorize(request, db, guard, roles=allowed, tenant_id=tenant_id, redirect_on_failure=True)

    return _dependency
