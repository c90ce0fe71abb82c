from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import urlencode

from staff_auth.core.config import IS_DEV, PUBLIC_APP_URL
from staff_auth.core.logging_setup import redact_email

logger = logging.getLogger(__name__)

RESET_PASSWORD_PATH = "/auth/reset-password"


def build_reset_link(token: str, base_url: str = PUBLIC_APP_URL) -> str:
    return f"{base_url}{RESET_PASSWORD_PATH}?{urlencode({'token': token})}"


class ResetLinkNotifier(Protocol):
    def send_reset_link(self, user: Any, token: str) -> None: ...


class LoggingResetNotifier:
    """Stand-in dispatcher until e-mail delivery exists.

    In dev the full link goes to the log so the flow can be exercised by hand.
    """

    def __init__(self, *, base_url: str = PUBLIC_APP_URL, expose_link: bool = IS_DEV) -> None:
        self.base_url = base_url
        self.expose_link = expose_link

    def send_reset_link(self, user: Any, token: str) -> None:
        if self.expose_link:
            # A mensagem é mascarada pelo formatter; o link vai em campo próprio.
            logger.info(
                "password reset link generated user_id=%s",
                user.id,
                extra={"reset_link": build_reset_link(token, self.base_url)},
            )
            return
        logger.info(
            "password reset link dispatched user_id=%s email=%s",
            user.id,
            redact_email(getattr(user, "email", None)),
        )
