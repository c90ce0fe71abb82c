from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence


class UserRepository(Protocol):
    def get_by_id(self, user_id: int) -> Optional[Any]: ...

    def find_staff_by_email(self, email: str, tenant_id: Optional[int] = None) -> Optional[Any]:
        """Case-insensitive lookup restricted to staff roles."""

    def increment_failed_attempts(
        self,
        user_id: int,
        *,
        now: datetime,
        threshold: int,
        lock_until: datetime,
    ) -> int:
        """Atomic capped increment; reaching ``threshold`` sets ``locked_until`` in the same write.

        A user that is still locked at ``now`` is left untouched. Returns the stored count.
        """

    def record_login_success(self, user_id: int, *, at: datetime) -> None: ...

    def update_password(self, user_id: int, password_hash: str) -> None:
        """Store a new hash and clear lockout state."""

    def create(
        self,
        *,
        tenant_id: int,
        email: str,
        name: str,
        role: str,
        password_hash: str,
        phone: Optional[str] = None,
        language: str = "en",
    ) -> Any: ...

    def list_for_tenant(self, tenant_id: int) -> Sequence[Any]: ...

    def tenant_exists(self, tenant_id: int) -> bool: ...


class SessionRepository(Protocol):
    def add(
        self,
        *,
        user_id: int,
        tenant_id: int,
        token_hash: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> Any: ...

    def get_active(self, token_hash: str, now: datetime) -> Optional[Any]:
        """Return the session only while ``expires_at`` is still in the future."""

    def touch(self, session_id: int, at: datetime) -> None: ...

    def delete_by_token(self, token_hash: str) -> int: ...

    def delete_for_user(self, user_id: int) -> int: ...

    def delete_expired(self, now: datetime) -> int: ...


class ResetTokenRepository(Protocol):
    def add(self, *, user_id: int, tenant_id: int, token_hash: str, expires_at: datetime) -> Any: ...

    def find_redeemable(self, token_hash: str, now: datetime) -> Optional[Any]:
        """Unused and unexpired token, or None."""

    def mark_used(self, token_id: int, now: datetime) -> bool:
        """Compare-and-flip ``used`` from false to true.

        Returns True only for the single caller whose write won.
        """
