"""Per-host token-bucket rate limiter for outgoing HTTP requests."""

from __future__ import annotations

import asyncio
import time
from typing import Callable
from urllib.parse import urlparse

import structlog

log = structlog.get_logger(__name__)


class TokenBucket:
    """Classic token bucket: *rate* tokens per second, at most *burst* stored."""

    def __init__(
        self,
        rate: float,
        burst: int = 4,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self.burst, self._tokens + (now - self._last_refill) * self.rate)
        self._last_refill = now

    async def acquire(self) -> None:
        """Block until a token is available, then take it."""
        if self.rate <= 0:
            return
        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                await asyncio.sleep((1.0 - self._tokens) / self.rate)
                self._refill()
            self._tokens -= 1.0


class HostRateLimiter:
    """One TokenBucket per hostname.

    The episode site, its search page and each embed host get separate
    budgets, so a slow mirror never starves the resolver.

    Args:
        requests_per_second: Rate per host. 0 = unlimited.
        burst: Bucket size per host.
    """

    def __init__(self, requests_per_second: float = 2.0, burst: int = 4) -> None:
        self.requests_per_second = requests_per_second
        self.burst = burst
        self._buckets: dict[str, TokenBucket] = {}

    @staticmethod
    def host_of(url: str) -> str:
        return (urlparse(url).hostname or "").lower()

    def bucket_for(self, host: str) -> TokenBucket:
        bucket = self._buckets.get(host)
        if bucket is None:
            bucket = TokenBucket(self.requests_per_second, self.burst)
            self._buckets[host] = bucket
        return bucket

    async def acquire(self, url: str) -> None:
        if self.requests_per_second <= 0:
            return
        host = self.host_of(url)
        if not host:
            return
        await self.bucket_for(host).acquire()
