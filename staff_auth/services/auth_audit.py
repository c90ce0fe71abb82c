from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from staff_auth.models.auth_audit_log import AuthAuditLog

logger = logging.getLogger(__name__)

LOGIN_SUCCESS = "login_success"
LOGIN_FAILED = "login_failed"
LOGIN_LOCKED = "login_locked"
LOGOUT = "logout"
PASSWORD_RESET_REQUESTED = "password_reset_requested"
PASSWORD_RESET_COMPLETED = "password_reset_completed"
STAFF_CREATED = "staff_created"


def log_auth_event(
    db: Session,
    *,
    action: str,
    tenant_id: Optional[int] = None,
    user_id: Optional[int] = None,
    client_ip: Optional[str] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> AuthAuditLog:
    entry = AuthAuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        client_ip=client_ip,
        meta_json=json.dumps(meta) if meta else None,
    )
    db.add(entry)
    return entry


class AuditTrail:
    """Writes audit rows into the request's transaction."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        action: str,
        *,
        tenant_id: Optional[int] = None,
        user_id: Optional[int] = None,
        client_ip: Optional[str] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> None:
        log_auth_event(
            self.db,
            action=action,
            tenant_id=tenant_id,
            user_id=user_id,
            client_ip=client_ip,
            meta=meta,
        )


class NullAuditTrail:
    def record(self, action: str, **kwargs: Any) -> None:
        logger.debug("audit event dropped action=%s", action)
