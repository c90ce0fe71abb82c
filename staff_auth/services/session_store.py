from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from staff_auth.core.clock import Clock, utcnow
from staff_auth.core.config import REMEMBER_ME_TTL_SECONDS, SESSION_TTL_SECONDS
from staff_auth.repositories.base import SessionRepository, UserRepository
from staff_auth.services.tokens import generate_token, hash_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedSession:
    session: Any
    # Valor em claro, devolvido uma única vez para ir ao cookie.
    token: str


@dataclass(frozen=True)
class AuthContext:
    """A validated session together with its active owner, resolved once per request."""

    session: Any
    user: Any

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def tenant_id(self) -> int:
        return self.user.tenant_id

    @property
    def role(self) -> str:
        return self.user.role


class SessionStore:
    def __init__(
        self,
        sessions: SessionRepository,
        users: UserRepository,
        *,
        ttl: timedelta = timedelta(seconds=SESSION_TTL_SECONDS),
        remember_me_ttl: timedelta = timedelta(seconds=REMEMBER_ME_TTL_SECONDS),
        clock: Clock = utcnow,
    ) -> None:
        self.sessions = sessions
        self.users = users
        self.ttl = ttl
        self.remember_me_ttl = remember_me_ttl
        self._clock = clock

    def create(self, user: Any, remember_me: bool = False) -> IssuedSession:
        now = self._clock()
        token = generate_token()
        session = self.sessions.add(
            user_id=user.id,
            tenant_id=user.tenant_id,
            token_hash=hash_token(token),
            created_at=now,
            expires_at=now + (self.remember_me_ttl if remember_me else self.ttl),
        )
        logger.info(
            "session created user_id=%s tenant_id=%s remember_me=%s",
            user.id,
            user.tenant_id,
            remember_me,
        )
        return IssuedSession(session=session, token=token)

    def validate(self, token: Optional[str]) -> Optional[AuthContext]:
        if not token:
            return None

        now = self._clock()
        token_hash = hash_token(token)
        session = self.sessions.get_active(token_hash, now)
        if session is None:
            return None

        user = self.users.get_by_id(session.user_id)
        if user is None or not user.is_active:
            self.sessions.delete_by_token(token_hash)
            logger.warning(
                "session revoked for inactive or missing user user_id=%s session_id=%s",
                session.user_id,
                session.id,
            )
            return None

        try:
            self.sessions.touch(session.id, now)
        except Exception:
            logger.warning("session activity refresh failed session_id=%s", session.id, exc_info=True)

        return AuthContext(session=session, user=user)

    def revoke(self, token: Optional[str]) -> None:
        if not token:
            return
        self.sessions.delete_by_token(hash_token(token))

    def revoke_all_for_user(self, user: Any) -> int:
        user_id = getattr(user, "id", user)
        revoked = self.sessions.delete_for_user(user_id)
        logger.info("sessions revoked user_id=%s count=%s", user_id, revoked)
        return revoked

    def sweep_expired(self) -> int:
        removed = self.sessions.delete_expired(self._clock())
        if removed:
            logger.info("expired sessions removed count=%s", removed)
        return removed
