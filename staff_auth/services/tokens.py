from __future__ import annotations

import hashlib
import secrets

TOKEN_BYTES = 32  # 256 bits


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
