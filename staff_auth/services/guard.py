from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from staff_auth.services.authorization_service import AuthorizationChecker, normalize_roles
from staff_auth.services.session_store import AuthContext, SessionStore

logger = logging.getLogger(__name__)


class GuardOutcome(str, enum.Enum):
    AUTHORIZED = "authorized"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    context: Optional[AuthContext] = None
    # role_denied | tenant_mismatch | missing_token | invalid_session | session_lookup_failed
    reason: Optional[str] = None

    @property
    def authorized(self) -> bool:
        return self.outcome is GuardOutcome.AUTHORIZED


class AuthGuard:
    """Token -> session -> role -> tenant.

    Each step either moves on or stops with a final decision. Storage errors while
    resolving the session end as UNAUTHENTICATED, never as AUTHORIZED.
    """

    def __init__(self, store: SessionStore, checker: AuthorizationChecker | None = None) -> None:
        self.store = store
        self.checker = checker or AuthorizationChecker()

    def resolve(self, token: Optional[str]) -> GuardDecision:
        if not token:
            return GuardDecision(GuardOutcome.UNAUTHENTICATED, reason="missing_token")
        try:
            context = self.store.validate(token)
        except Exception:
            logger.exception("session validation failed; denying access")
            return GuardDecision(GuardOutcome.UNAUTHENTICATED, reason="session_lookup_failed")
        if context is None:
            return GuardDecision(GuardOutcome.UNAUTHENTICATED, reason="invalid_session")
        return GuardDecision(GuardOutcome.AUTHORIZED, context=context)

    def authorize(
        self,
        token: Optional[str],
        roles: Iterable[str] | None = None,
        tenant_id: int | None = None,
    ) -> GuardDecision:
        decision = self.resolve(token)
        if not decision.authorized:
            return decision

        user = decision.context.user
        if roles is not None and not self.checker.has_role(user, normalize_roles(roles)):
            return GuardDecision(GuardOutcome.FORBIDDEN, context=decision.context, reason="role_denied")
        if not self.checker.has_tenant_access(user, tenant_id):
            return GuardDecision(GuardOutcome.FORBIDDEN, context=decision.context, reason="tenant_mismatch")
        return decision
