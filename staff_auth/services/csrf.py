from __future__ import annotations

import hmac
import secrets
from typing import Optional

CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_BODY_FIELD = "csrfToken"


def issue_csrf_token() -> str:
    # Sem registro no servidor: double-submit puro.
    return secrets.token_hex(32)


def validate_csrf_token(header_token: Optional[str], body_token: Optional[str]) -> bool:
    if not header_token or not body_token:
        return False
    return hmac.compare_digest(header_token.encode("utf-8"), body_token.encode("utf-8"))
