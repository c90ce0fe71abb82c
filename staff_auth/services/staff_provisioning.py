from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Optional

from staff_auth.core.config import MIN_PASSWORD_LENGTH
from staff_auth.core.errors import ValidationError
from staff_auth.core.logging_setup import redact_email
from staff_auth.models.staff_user import STAFF_ROLES
from staff_auth.repositories.base import UserRepository
from staff_auth.services import auth_audit
from staff_auth.services.auth_audit import NullAuditTrail
from staff_auth.services.passwords import hash_password

logger = logging.getLogger(__name__)


def generate_temporary_password() -> str:
    return secrets.token_urlsafe(12)


@dataclass(frozen=True)
class ProvisionedStaff:
    user: Any
    # Preenchido só quando a senha foi gerada aqui.
    temporary_password: Optional[str] = None


class StaffProvisioningService:
    def __init__(self, users: UserRepository, *, audit: Any = None) -> None:
        self.users = users
        self.audit = audit or NullAuditTrail()

    def create_staff_user(
        self,
        *,
        tenant_id: int,
        email: str,
        name: str,
        role: str,
        password: Optional[str] = None,
        phone: Optional[str] = None,
        language: str = "en",
        created_by: Optional[int] = None,
    ) -> ProvisionedStaff:
        normalized_email = (email or "").strip().lower()
        normalized_role = (role or "").strip().lower()
        name = (name or "").strip()

        if not normalized_email or "@" not in normalized_email:
            raise ValidationError("A valid email is required")
        if not name:
            raise ValidationError("Name is required")
        if normalized_role not in STAFF_ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(STAFF_ROLES)}")
        if not self.users.tenant_exists(tenant_id):
            raise ValidationError("Unknown tenant")
        if self.users.find_staff_by_email(normalized_email) is not None:
            raise ValidationError("A user with this email already exists")

        temporary_password = None
        if password is None:
            temporary_password = generate_temporary_password()
            password = temporary_password
        elif len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user = self.users.create(
            tenant_id=tenant_id,
            email=normalized_email,
            name=name,
            role=normalized_role,
            password_hash=hash_password(password),
            phone=phone,
            language=language or "en",
        )
        self.audit.record(
            auth_audit.STAFF_CREATED,
            tenant_id=tenant_id,
            user_id=created_by,
            meta={"staff_user_id": user.id, "role": normalized_role},
        )
        logger.info(
            "staff user created user_id=%s tenant_id=%s role=%s email=%s",
            user.id,
            tenant_id,
            normalized_role,
            redact_email(normalized_email),
        )
        return ProvisionedStaff(user=user, temporary_password=temporary_password)
