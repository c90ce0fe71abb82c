from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_TENANT_ID_CTX: ContextVar[str | None] = ContextVar("tenant_id", default=None)
_USER_ID_CTX: ContextVar[str | None] = ContextVar("user_id", default=None)


def bind_identity(*, tenant_id: object | None = None, user_id: object | None = None) -> None:
    """Attach the authenticated staff identity to the current request's log lines."""
    if tenant_id is not None:
        _TENANT_ID_CTX.set(str(tenant_id))
    if user_id is not None:
        _USER_ID_CTX.set(str(user_id))


@contextmanager
def request_scope(request_id: str) -> Iterator[None]:
    tokens = (
        _REQUEST_ID_CTX.set(request_id),
        _TENANT_ID_CTX.set(None),
        _USER_ID_CTX.set(None),
    )
    try:
        yield
    finally:
        _USER_ID_CTX.reset(tokens[2])
        _TENANT_ID_CTX.reset(tokens[1])
        _REQUEST_ID_CTX.reset(tokens[0])


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def get_tenant_id() -> str | None:
    return _TENANT_ID_CTX.get()


def get_user_id() -> str | None:
    return _USER_ID_CTX.get()
