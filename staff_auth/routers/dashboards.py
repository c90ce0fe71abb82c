from __future__ import annotations

from fastapi import APIRouter, Depends

from staff_auth.deps import require_role_ui
from staff_auth.services.login import serialize_staff_user
from staff_auth.services.session_store import AuthContext

router = APIRouter(tags=["dashboards"])

OWNER_ROLES = {"owner"}
ADMIN_ROLES = {"admin", "owner"}
WAITER_ROLES = {"waiter", "admin", "owner"}
KITCHEN_ROLES = {"chef", "admin", "owner"}


def _dashboard(name: str, context: AuthContext) -> dict:
    return {
        "dashboard": name,
        "user": serialize_staff_user(context.user),
        "session_expires_at": context.session.expires_at.isoformat(),
    }


@router.get("/owner/dashboard")
def owner_dashboard(context: AuthContext = Depends(require_role_ui(OWNER_ROLES))):
    return _dashboard("owner", context)


@router.get("/admin/dashboard")
def admin_dashboard(context: AuthContext = Depends(require_role_ui(ADMIN_ROLES))):
    return _dashboard("admin", context)


@router.get("/waiter/dashboard")
def waiter_dashboard(context: AuthContext = Depends(require_role_ui(WAITER_ROLES))):
    return _dashboard("waiter", context)


@router.get("/kitchen/dashboard")
def kitchen_dashboard(context: AuthContext = Depends(require_role_ui(KITCHEN_ROLES))):
    return _dashboard("kitchen", context)
