"""
Rate Limiting - fixed-window request counting per client key.

The limiter depends on a RateCounterStore; the in-process store is the
default and an external counting cache can implement the same interface.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from lazla_api.config import settings
from lazla_api.exceptions import RateLimitExceededError
from lazla_api.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int


class RateCounterStore(ABC):
    """Counts hits per key inside a fixed window."""

    @abstractmethod
    async def hit(self, key: str, window_seconds: float) -> tuple[int, float]:
        """
        Record one hit for key.

        Returns:
            (hits in the current window including this one, seconds until the window resets)
        """


class InMemoryRateCounterStore(RateCounterStore):
    """
    Process-local store guarded by an asyncio.Lock.

    Uses a monotonic clock. Expired windows are pruned on write once the map
    grows past prune_threshold keys, so there is no background sweeper.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = 10_000,
    ) -> None:
        self._clock = clock
        self._prune_threshold = prune_threshold
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, window_seconds: float) -> tuple[int, float]:
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now - window.started_at >= window_seconds:
                window = _Window(started_at=now, count=0)
                self._windows[key] = window
            window.count += 1

            if len(self._windows) > self._prune_threshold:
                self._prune(now, window_seconds)

            return window.count, window.started_at + window_seconds - now

    def __len__(self) -> int:
        return len(self._windows)

    def _prune(self, now: float, window_seconds: float) -> None:
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= window_seconds
        ]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("rate_limit_windows_pruned", count=len(expired))


class RateLimiter:
    """Allows max_requests per key per window."""

    def __init__(
        self,
        store: RateCounterStore,
        max_requests: int | None = None,
        window_seconds: float | None = None,
    ) -> None:
        self.store = store
        self.max_requests = max_requests or settings.auth_rate_limit_max_requests
        self.window_seconds = window_seconds or settings.auth_rate_limit_window_minutes * 60

    async def check(self, key: str) -> None:
        """
        Count a request for key.

        Raises:
            RateLimitExceededError: key is over its budget for the current window
        """
        count, reset_in = await self.store.hit(key, self.window_seconds)
        if count > self.max_requests:
            retry_after = max(1, math.ceil(reset_in))
            logger.warning("rate_limit_exceeded", key=key, count=count, retry_after=retry_after)
            raise RateLimitExceededError(key, retry_after)


_auth_rate_limiter: RateLimiter | None = None


def get_auth_rate_limiter() -> RateLimiter:
    """Get the limiter shared by the unauthenticated auth endpoints."""
    global _auth_rate_limiter
    if _auth_rate_limiter is None:
        _auth_rate_limiter = RateLimiter(InMemoryRateCounterStore())
    return _auth_rate_limiter
