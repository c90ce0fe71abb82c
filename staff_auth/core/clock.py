from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    # Colunas DateTime sem timezone: tudo é UTC naive.
    return datetime.now(timezone.utc).replace(tzinfo=None)
