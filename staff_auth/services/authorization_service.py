from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import Request

logger = logging.getLogger(__name__)


def normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def normalize_roles(roles: Iterable[str]) -> frozenset[str]:
    return frozenset(normalize_role(role) for role in roles)


class AuthorizationChecker:
    """Role and tenant-scope checks shared by every protected route."""

    @staticmethod
    def has_role(user: Any, allowed_roles: Iterable[str]) -> bool:
        return normalize_role(getattr(user, "role", None)) in normalize_roles(allowed_roles)

    @staticmethod
    def has_tenant_access(user: Any, tenant_id: int | None) -> bool:
        if tenant_id is None:
            return True
        user_tenant = getattr(user, "tenant_id", None)
        if user_tenant is None:
            return False
        return int(user_tenant) == int(tenant_id)


def log_access_denied(*, reason: str, user: Any, tenant_id: int | None, request: Request) -> None:
    endpoint = f"{request.method} {request.url.path}"
    logger.warning(
        "Access denied (%s): user_id=%s user_role=%s user_tenant=%s tenant_id=%s endpoint=%s",
        reason,
        getattr(user, "id", None),
        getattr(user, "role", None),
        getattr(user, "tenant_id", None),
        tenant_id,
        endpoint,
    )
