from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from staff_auth.core.clock import Clock, utcnow
from staff_auth.core.config import LOCKOUT_DURATION_SECONDS, MAX_FAILED_LOGIN_ATTEMPTS
from staff_auth.repositories.base import UserRepository

logger = logging.getLogger(__name__)


def is_locked(user: Any, now: Optional[datetime] = None) -> bool:
    locked_until = getattr(user, "locked_until", None)
    if locked_until is None:
        return False
    return locked_until > (now or utcnow())


class AccountLockoutGuard:
    """Per-account failed-login counter.

    Unlocked -> (``max_attempts`` consecutive failures) -> Locked(until) -> (time passes) -> Unlocked.
    The counter is only reset by a successful login or a password reset, so the
    first failure after a lock expires locks the account again.
    """

    def __init__(
        self,
        users: UserRepository,
        *,
        max_attempts: int = MAX_FAILED_LOGIN_ATTEMPTS,
        lock_duration: timedelta = timedelta(seconds=LOCKOUT_DURATION_SECONDS),
        clock: Clock = utcnow,
    ) -> None:
        self.users = users
        self.max_attempts = max_attempts
        self.lock_duration = lock_duration
        self._clock = clock

    def is_locked(self, user: Any) -> bool:
        return is_locked(user, self._clock())

    def on_failure(self, user: Any) -> Optional[datetime]:
        """Count a failed attempt. Returns the lock expiry when this failure locked the account."""
        if self.is_locked(user):
            return None

        now = self._clock()
        lock_until = now + self.lock_duration
        count = self.users.increment_failed_attempts(
            user.id,
            now=now,
            threshold=self.max_attempts,
            lock_until=lock_until,
        )
        if count >= self.max_attempts:
            logger.warning(
                "account locked user_id=%s tenant_id=%s failed_attempts=%s locked_until=%s",
                user.id,
                user.tenant_id,
                count,
                lock_until.isoformat(),
            )
            return lock_until
        return None

    def on_success(self, user: Any) -> None:
        self.users.record_login_success(user.id, at=self._clock())
