from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock

from staff_auth.core.clock import Clock, utcnow
from staff_auth.core.config import LOGIN_RATE_LIMIT_ATTEMPTS, LOGIN_RATE_LIMIT_WINDOW_SECONDS

MAX_TRACKED_CLIENTS = 10_000


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime | None = None
    retry_after_seconds: int = 0


@dataclass
class RateLimitCounter:
    count: int
    # Avança a cada tentativa admitida: a janela desliza com o cliente.
    window_start: datetime


class RateLimiter(ABC):
    @abstractmethod
    def check(self, key: str) -> RateLimitDecision:
        """Registra uma tentativa de login do cliente e decide se ela prossegue."""


class InMemoryLoginRateLimiter(RateLimiter):
    """Per-client login throttle held in process memory.

    Only correct for a single instance; multi-instance deployments must back
    ``RateLimiter`` with a shared TTL store.
    """

    def __init__(
        self,
        *,
        limit: int = LOGIN_RATE_LIMIT_ATTEMPTS,
        window_seconds: int = LOGIN_RATE_LIMIT_WINDOW_SECONDS,
        clock: Clock = utcnow,
    ) -> None:
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._counters: dict[str, RateLimitCounter] = {}
        self._lock = Lock()

    def check(self, key: str) -> RateLimitDecision:
        now = self._clock()

        with self._lock:
            counter = self._counters.get(key)
            if counter is None or now - counter.window_start > self.window:
                if counter is None and len(self._counters) >= MAX_TRACKED_CLIENTS:
                    self._prune(now)
                self._counters[key] = RateLimitCounter(count=1, window_start=now)
                return RateLimitDecision(allowed=True, limit=self.limit, remaining=self.limit - 1)

            if counter.count >= self.limit:
                reset_at = counter.window_start + self.window
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after_seconds=max(1, int((reset_at - now).total_seconds())),
                )

            counter.count += 1
            counter.window_start = now
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=max(0, self.limit - counter.count),
            )

    def _prune(self, now: datetime) -> None:
        stale = [key for key, counter in self._counters.items() if now - counter.window_start > self.window]
        for key in stale:
            del self._counters[key]
