"""Redis adapter via redis.asyncio (shared across processes)."""

from __future__ import annotations

import asyncio
import pickle
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

log = structlog.get_logger(__name__)


class RedisAdapter:
    """Async Redis cache; values are pickled, keys are namespaced.

    Read errors and non-strict write errors are logged and degrade to a
    miss / no-op, so a flaky Redis never fails a scrape; strict writes
    re-raise.  ``clear()`` only removes keys under
    the adapter's namespace.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 3600,
        max_concurrent: int = 50,
        namespace: str = "animescrape",
    ) -> None:
        self.url = url
        self.default_ttl = ttl_seconds
        self.namespace = namespace
        self._client: Redis | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def __aenter__(self) -> RedisAdapter:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=False)
            try:
                await self._client.ping()
            except RedisError as e:
                log.error("redis_connection_failed", url=self.url, error=str(e))
                raise
            log.info("redis_connected", url=self.url)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("redis_closed")

    def _require(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis not initialized. Use 'async with cache:' first.")
        return self._client

    async def get(self, key: str) -> Any | None:
        client = self._require()
        async with self._semaphore:
            try:
                raw = await client.get(self._key(key))
            except RedisError as e:
                log.error("redis_get_error", key=key, error=str(e))
                return None
        if raw is None:
            log.debug("cache_get", key=key, hit=False)
            return None
        try:
            value = pickle.loads(raw)
        except (pickle.PickleError, EOFError, AttributeError) as e:
            log.error("redis_unpickle_error", key=key, error=str(e))
            return None
        log.debug("cache_get", key=key, hit=True)
        return value

    async def set(
        self, key: str, value: Any, *, ttl: int | None = None, strict: bool = False
    ) -> None:
        client = self._require()
        expire = ttl if ttl is not None else self.default_ttl
        try:
            packed = pickle.dumps(value)
        except (pickle.PickleError, TypeError) as e:
            log.error("redis_pickle_error", key=key, error=str(e))
            if strict:
                raise
            return
        async with self._semaphore:
            try:
                await client.set(self._key(key), packed, ex=expire if expire > 0 else None)
            except RedisError as e:
                log.error("redis_set_error", key=key, error=str(e))
                if strict:
                    raise
                return
        log.debug("cache_set", key=key, ttl=expire, size_bytes=len(packed))

    async def delete(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                return await self._client.delete(self._key(key)) > 0
            except RedisError as e:
                log.error("redis_delete_error", key=key, error=str(e))
                return False

    async def exists(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                return await self._client.exists(self._key(key)) > 0
            except RedisError as e:
                log.error("redis_exists_error", key=key, error=str(e))
                return False

    async def clear(self) -> None:
        if self._client is None:
            return
        removed = 0
        async with self._semaphore:
            try:
                async for raw_key in self._client.scan_iter(match=self._key("*")):
                    removed += await self._client.delete(raw_key)
            except RedisError as e:
                log.error("redis_clear_error", error=str(e))
                return
        log.warning("cache_cleared", backend="redis", removed=removed)
