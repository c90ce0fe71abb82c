from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.orm import Session

from staff_auth.models.auth_session import AuthSession
from staff_auth.models.password_reset_token import PasswordResetToken
from staff_auth.models.staff_user import STAFF_ROLES, StaffUser
from staff_auth.models.tenant import Tenant


class SqlUserRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[StaffUser]:
        return self.db.query(StaffUser).filter(StaffUser.id == user_id).first()

    def find_staff_by_email(self, email: str, tenant_id: Optional[int] = None) -> Optional[StaffUser]:
        normalized_email = (email or "").strip().lower()
        if not normalized_email:
            return None
        query = self.db.query(StaffUser).filter(
            func.lower(StaffUser.email) == normalized_email,
            StaffUser.role.in_(STAFF_ROLES),
        )
        if tenant_id is not None:
            query = query.filter(StaffUser.tenant_id == tenant_id)
        return query.first()

    def increment_failed_attempts(
        self,
        user_id: int,
        *,
        now: datetime,
        threshold: int,
        lock_until: datetime,
    ) -> int:
        next_count = StaffUser.failed_attempt_count + 1
        reaches_threshold = next_count >= threshold
        self.db.execute(
            update(StaffUser)
            .where(
                StaffUser.id == user_id,
                or_(StaffUser.locked_until.is_(None), StaffUser.locked_until <= now),
            )
            .values(
                failed_attempt_count=case((reaches_threshold, threshold), else_=next_count),
                locked_until=case((reaches_threshold, lock_until), else_=StaffUser.locked_until),
            )
            .execution_options(synchronize_session="fetch")
        )
        count = self.db.execute(
            select(StaffUser.failed_attempt_count).where(StaffUser.id == user_id)
        ).scalar_one_or_none()
        return int(count or 0)

    def record_login_success(self, user_id: int, *, at: datetime) -> None:
        self.db.execute(
            update(StaffUser)
            .where(StaffUser.id == user_id)
            .values(failed_attempt_count=0, locked_until=None, last_login=at)
            .execution_options(synchronize_session="fetch")
        )

    def update_password(self, user_id: int, password_hash: str) -> None:
        self.db.execute(
            update(StaffUser)
            .where(StaffUser.id == user_id)
            .values(password_hash=password_hash, failed_attempt_count=0, locked_until=None)
            .execution_options(synchronize_session="fetch")
        )

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
    ) -> StaffUser:
        user = StaffUser(
            tenant_id=tenant_id,
            email=email,
            name=name,
            role=role,
            password_hash=password_hash,
            phone=phone,
            language=language,
            is_active=True,
            failed_attempt_count=0,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def list_for_tenant(self, tenant_id: int) -> list[StaffUser]:
        return (
            self.db.query(StaffUser)
            .filter(StaffUser.tenant_id == tenant_id)
            .order_by(StaffUser.id)
            .all()
        )

    def tenant_exists(self, tenant_id: int) -> bool:
        return self.db.query(Tenant.id).filter(Tenant.id == tenant_id).first() is not None


class SqlSessionRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add(
        self,
        *,
        user_id: int,
        tenant_id: int,
        token_hash: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> AuthSession:
        session = AuthSession(
            user_id=user_id,
            tenant_id=tenant_id,
            token_hash=token_hash,
            created_at=created_at,
            expires_at=expires_at,
            last_activity_at=created_at,
        )
        self.db.add(session)
        self.db.flush()
        return session

    def get_active(self, token_hash: str, now: datetime) -> Optional[AuthSession]:
        return (
            self.db.query(AuthSession)
            .filter(AuthSession.token_hash == token_hash, AuthSession.expires_at > now)
            .first()
        )

    def touch(self, session_id: int, at: datetime) -> None:
        # SAVEPOINT: uma falha aqui não pode abortar a transação do request.
        with self.db.begin_nested():
            self.db.execute(
                update(AuthSession)
                .where(AuthSession.id == session_id)
                .values(last_activity_at=at)
                .execution_options(synchronize_session="fetch")
            )

    def delete_by_token(self, token_hash: str) -> int:
        return (
            self.db.query(AuthSession)
            .filter(AuthSession.token_hash == token_hash)
            .delete(synchronize_session=False)
        )

    def delete_for_user(self, user_id: int) -> int:
        return (
            self.db.query(AuthSession)
            .filter(AuthSession.user_id == user_id)
            .delete(synchronize_session=False)
        )

    def delete_expired(self, now: datetime) -> int:
        # Manutenção best-effort: SAVEPOINT para não abortar a transação do login.
        with self.db.begin_nested():
            return (
                self.db.query(AuthSession)
                .filter(AuthSession.expires_at <= now)
                .delete(synchronize_session=False)
            )


class SqlResetTokenRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add(self, *, user_id: int, tenant_id: int, token_hash: str, expires_at: datetime) -> PasswordResetToken:
        record = PasswordResetToken(
            user_id=user_id,
            tenant_id=tenant_id,
            token_hash=token_hash,
            expires_at=expires_at,
            used=False,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def find_redeemable(self, token_hash: str, now: datetime) -> Optional[PasswordResetToken]:
        return (
            self.db.query(PasswordResetToken)
            .filter(
                PasswordResetToken.token_hash == token_hash,
                PasswordResetToken.used.is_(False),
                PasswordResetToken.expires_at > now,
            )
            .first()
        )

    def mark_used(self, token_id: int, now: datetime) -> bool:
        result = self.db.execute(
            update(PasswordResetToken)
            .where(
                and_(
                    PasswordResetToken.id == token_id,
                    PasswordResetToken.used.is_(False),
                    PasswordResetToken.expires_at > now,
                )
            )
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
