"""In-process cache, optionally bounded in entries."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import Any, Callable

import structlog

log = structlog.get_logger(__name__)


class MemoryCacheAdapter:
    """In-memory cache with per-key TTL.

    When ``max_entries`` is reached, the oldest inserted entry is evicted.
    Expired entries are dropped lazily on access and never returned.

    Args:
        max_entries: Entry cap (default: 1000); None = unbounded, never evicts.
        ttl_seconds: Default TTL for ``set()``; 0 = no expiry.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        max_entries: int | None = 1000,
        ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.default_ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> MemoryCacheAdapter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            item = self._entries.get(key)
            if item is None:
                log.debug("cache_get", key=key, hit=False)
                return None
            value, expires_at = item
            if self._expired(expires_at):
                del self._entries[key]
                log.debug("cache_expired", key=key)
                return None
            log.debug("cache_get", key=key, hit=True)
            return value

    async def set(
        self, key: str, value: Any, *, ttl: int | None = None, strict: bool = False
    ) -> None:
        expire = ttl if ttl is not None else self.default_ttl
        expires_at = self._clock() + expire if expire > 0 else None
        async with self._lock:
            if key in self._entries:
                del self._entries[key]
            while self.max_entries is not None and len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.debug("cache_evicted", key=evicted)
            self._entries[key] = (value, expires_at)
        log.debug("cache_set", key=key, ttl=expire)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
        log.warning("cache_cleared", backend="memory")
