from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from staff_auth.core.database import get_db
from staff_auth.core.errors import AuthError
from staff_auth.deps import get_staff_provisioning_service, require_role
from staff_auth.models.staff_user import STAFF_ROLES
from staff_auth.repositories.sql import SqlUserRepository
from staff_auth.services.login import serialize_staff_user
from staff_auth.services.session_store import AuthContext
from staff_auth.services.staff_provisioning import StaffProvisioningService

router = APIRouter(tags=["staff"])

STAFF_ADMIN_ROLES = {"admin", "owner"}


class StaffCreatePayload(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    password: Optional[str] = None
    phone: Optional[str] = None
    language: str = "en"


@router.get("/api/admin/tenants/{tenant_id}/staff")
def list_staff(
    tenant_id: int,
    context: AuthContext = Depends(require_role(STAFF_ADMIN_ROLES)),
    db: Session = Depends(get_db),
):
    users = SqlUserRepository(db).list_for_tenant(tenant_id)
    return [
        {**serialize_staff_user(user), "is_active": user.is_active}
        for user in users
    ]


@router.post("/api/admin/tenants/{tenant_id}/staff", status_code=status.HTTP_201_CREATED)
def create_staff(
    tenant_id: int,
    payload: StaffCreatePayload,
    context: AuthContext = Depends(require_role(STAFF_ADMIN_ROLES)),
    db: Session = Depends(get_db),
    service: StaffProvisioningService = Depends(get_staff_provisioning_service),
):
    try:
        provisioned = service.create_staff_user(
            tenant_id=tenant_id,
            email=payload.email,
            name=payload.name,
            role=payload.role,
            password=payload.password,
            phone=payload.phone,
            language=payload.language,
            created_by=context.user_id,
        )
    except AuthError:
        db.rollback()
        raise

    db.commit()
    return {
        "user": serialize_staff_user(provisioned.user),
        "temporary_password": provisioned.temporary_password,
    }


@router.get("/api/staff/me/context")
def my_context(context: AuthContext = Depends(require_role(STAFF_ROLES))):
    return {
        "user": serialize_staff_user(context.user),
        "session": {
            "created_at": context.session.created_at.isoformat(),
            "expires_at": context.session.expires_at.isoformat(),
            "last_activity_at": context.session.last_activity_at.isoformat(),
        },
    }
