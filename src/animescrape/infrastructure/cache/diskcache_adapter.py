"""Diskcache adapter: SQLite-backed cache without a daemon process."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import structlog
from diskcache import Cache as DiskCache

log = structlog.get_logger(__name__)


class DiskcacheAdapter:
    """Async facade over the synchronous ``diskcache.Cache``.

    Disk I/O runs in ``asyncio.to_thread``; a semaphore bounds concurrent
    operations to limit SQLite lock contention.  diskcache pickles values
    itself and enforces expiry on read.

    Args:
        directory: SQLite DB path.
        ttl_seconds: Default TTL for ``set()``; 0 = no expiry.
        max_concurrent: Max parallel disk ops.
        eviction_policy: diskcache eviction policy; "none" never evicts.
    """

    def __init__(
        self,
        directory: str | Path = "./.cache/animescrape",
        ttl_seconds: int = 3600,
        max_concurrent: int = 10,
        eviction_policy: str = "least-recently-stored",
    ) -> None:
        self.directory = Path(directory)
        self.eviction_policy = eviction_policy
        self.default_ttl = ttl_seconds
        self._cache: DiskCache | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> DiskcacheAdapter:
        if self._cache is None:
            self._cache = await asyncio.to_thread(
                DiskCache, str(self.directory), eviction_policy=self.eviction_policy
            )
            log.info(
                "diskcache_opened",
                path=str(self.directory),
                eviction_policy=self.eviction_policy,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._cache is not None:
            await asyncio.to_thread(self._cache.close)
            self._cache = None
            log.info("diskcache_closed", path=str(self.directory))

    def _require(self) -> DiskCache:
        if self._cache is None:
            raise RuntimeError(
                "Cache not initialized. Use 'async with cache:' first."
            )
        return self._cache

    async def get(self, key: str) -> Optional[Any]:
        cache = self._require()
        async with self._semaphore:
            value = await asyncio.to_thread(cache.get, key, default=None)
        log.debug("cache_get", key=key, hit=value is not None)
        return value

    async def set(
        self, key: str, value: Any, *, ttl: int | None = None, strict: bool = False
    ) -> None:
        cache = self._require()
        expire = ttl if ttl is not None else self.default_ttl
        async with self._semaphore:
            await asyncio.to_thread(
                cache.set, key, value, expire=expire if expire > 0 else None
            )
        log.debug("cache_set", key=key, ttl=expire)

    async def delete(self, key: str) -> bool:
        if self._cache is None:
            return False
        async with self._semaphore:
            return bool(await asyncio.to_thread(self._cache.delete, key))

    async def exists(self, key: str) -> bool:
        if self._cache is None:
            return False
        cache = self._cache
        async with self._semaphore:
            return await asyncio.to_thread(cache.__contains__, key)

    async def clear(self) -> None:
        if self._cache is None:
            return
        async with self._semaphore:
            removed = await asyncio.to_thread(self._cache.clear)
        log.warning("cache_cleared", backend="diskcache", removed=removed)
