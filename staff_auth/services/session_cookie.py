from __future__ import annotations

from typing import Any

from fastapi import Request, Response

from staff_auth.core.config import (
    IS_PROD,
    REMEMBER_ME_TTL_SECONDS,
    SESSION_COOKIE_DOMAIN,
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_SAMESITE,
    SESSION_COOKIE_SECURE,
    SESSION_TTL_SECONDS,
)

_LOCAL_HOSTS = {"", "localhost", "127.0.0.1"}


def session_max_age(remember_me: bool) -> int:
    return REMEMBER_ME_TTL_SECONDS if remember_me else SESSION_TTL_SECONDS


def read_session_token(request: Request) -> str | None:
    token = (request.cookies.get(SESSION_COOKIE_NAME) or "").strip()
    return token or None


def build_session_cookie_options(request: Request | None = None) -> dict[str, Any]:
    secure = SESSION_COOKIE_SECURE

    host = ""
    if request is not None:
        host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").lower()
        host = host.split(",")[0].strip().split(":")[0]

    # Em produção, hosts públicos nunca recebem cookie sem Secure.
    if IS_PROD and host not in _LOCAL_HOSTS:
        secure = True

    return {
        "domain": SESSION_COOKIE_DOMAIN,
        "httponly": True,
        "samesite": SESSION_COOKIE_SAMESITE,
        "path": "/",
        "secure": secure,
    }


def set_session_cookie(
    response: Response,
    token: str,
    *,
    remember_me: bool = False,
    request: Request | None = None,
) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=session_max_age(remember_me),
        **build_session_cookie_options(request),
    )


def clear_session_cookie(response: Response, request: Request | None = None) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        **build_session_cookie_options(request),
    )
