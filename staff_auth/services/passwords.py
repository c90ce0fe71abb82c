from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from threading import BoundedSemaphore

import bcrypt

from staff_auth.core.config import (
    PASSWORD_HASH_MAX_PENDING,
    PASSWORD_HASH_TIMEOUT_SECONDS,
    PASSWORD_HASH_WORKERS,
)

BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72

# Pool próprio: o custo do bcrypt não pode ocupar os workers que servem requests.
_hash_executor = ThreadPoolExecutor(
    max_workers=PASSWORD_HASH_WORKERS,
    thread_name_prefix="password-hash",
)
# Jobs em execução + na fila; acima disso o request falha em vez de empilhar.
_hash_slots = BoundedSemaphore(PASSWORD_HASH_MAX_PENDING)


def _normalize_password_for_bcrypt(password: str) -> bytes:
    """
    bcrypt só considera até 72 bytes.
    Truncamos explicitamente para manter compatibilidade com hashes já gravados.
    """
    return (password or "").encode("utf-8")[:BCRYPT_MAX_BYTES]


def _hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_normalize_password_for_bcrypt(password), salt).decode("utf-8")


def _verify(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            _normalize_password_for_bcrypt(password),
            password_hash.encode("utf-8"),
        )
    except (ValueError, TypeError, UnicodeEncodeError):
        return False


def _run_in_hash_pool(fn, *args):
    if not _hash_slots.acquire(timeout=PASSWORD_HASH_TIMEOUT_SECONDS):
        raise FuturesTimeoutError("password hashing pool saturated")
    try:
        future = _hash_executor.submit(fn, *args)
    except Exception:
        _hash_slots.release()
        raise
    future.add_done_callback(lambda _: _hash_slots.release())

    try:
        return future.result(timeout=PASSWORD_HASH_TIMEOUT_SECONDS)
    except FuturesTimeoutError:
        # Ainda na fila: sai dela. Já rodando: termina e libera o slot sozinho.
        future.cancel()
        raise


def hash_password(password: str) -> str:
    return _run_in_hash_pool(_hash, password)


def verify_password(password: str, password_hash: str) -> bool:
    """Never raises for a malformed hash; returns False instead."""
    return _run_in_hash_pool(_verify, password, password_hash)
