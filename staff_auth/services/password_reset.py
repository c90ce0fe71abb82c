from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

from staff_auth.core.clock import Clock, utcnow
from staff_auth.core.config import MIN_PASSWORD_LENGTH, RESET_TOKEN_TTL_SECONDS
from staff_auth.core.errors import InvalidResetTokenError, ValidationError
from staff_auth.core.logging_setup import redact_email
from staff_auth.repositories.base import ResetTokenRepository, UserRepository
from staff_auth.services import auth_audit
from staff_auth.services.auth_audit import NullAuditTrail
from staff_auth.services.passwords import hash_password
from staff_auth.services.reset_notifier import LoggingResetNotifier, ResetLinkNotifier
from staff_auth.services.session_store import SessionStore
from staff_auth.services.tokens import generate_token, hash_token

logger = logging.getLogger(__name__)


def validate_new_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


class PasswordResetService:
    def __init__(
        self,
        users: UserRepository,
        tokens: ResetTokenRepository,
        sessions: SessionStore,
        *,
        notifier: ResetLinkNotifier | None = None,
        audit: Any = None,
        ttl: timedelta = timedelta(seconds=RESET_TOKEN_TTL_SECONDS),
        clock: Clock = utcnow,
    ) -> None:
        self.users = users
        self.tokens = tokens
        self.sessions = sessions
        self.notifier = notifier or LoggingResetNotifier()
        self.audit = audit or NullAuditTrail()
        self.ttl = ttl
        self._clock = clock

    def request(self, email: str, tenant_id: Optional[int] = None) -> None:
        """Issue a reset link when the account exists. Returns nothing either way."""
        user = self.users.find_staff_by_email(email, tenant_id)
        if user is None or not user.is_active:
            logger.info("password reset requested for unknown or inactive account email=%s", redact_email(email))
            return

        token = generate_token()
        self.tokens.add(
            user_id=user.id,
            tenant_id=user.tenant_id,
            token_hash=hash_token(token),
            expires_at=self._clock() + self.ttl,
        )
        self.audit.record(auth_audit.PASSWORD_RESET_REQUESTED, tenant_id=user.tenant_id, user_id=user.id)
        self.notifier.send_reset_link(user, token)

    def confirm(self, token: Optional[str], new_password: Optional[str]) -> Any:
        validate_new_password(new_password)
        if not token:
            raise InvalidResetTokenError()

        now = self._clock()
        record = self.tokens.find_redeemable(hash_token(token), now)
        if record is None:
            logger.warning("invalid reset token presented")
            raise InvalidResetTokenError()

        password_hash = hash_password(new_password)

        # Só quem vencer o UPDATE condicional segue; o concorrente cai no mesmo erro genérico.
        if not self.tokens.mark_used(record.id, now):
            logger.warning("reset token already redeemed token_id=%s", record.id)
            raise InvalidResetTokenError()

        self.users.update_password(record.user_id, password_hash)
        self.sessions.revoke_all_for_user(record.user_id)
        self.audit.record(
            auth_audit.PASSWORD_RESET_COMPLETED,
            tenant_id=record.tenant_id,
            user_id=record.user_id,
        )
        logger.info("password reset completed user_id=%s", record.user_id)
        return record
