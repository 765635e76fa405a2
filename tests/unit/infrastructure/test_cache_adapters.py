"""Tests for the cache backends and the cache factory."""

from __future__ import annotations

import pickle
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from animescrape.infrastructure.cache.cache_factory import (
    create_cache,
    create_store_cache,
)
from animescrape.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from animescrape.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from animescrape.infrastructure.cache.redis_adapter import RedisAdapter
from animescrape.infrastructure.config import CacheConfig


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestMemoryCacheAdapter:
    @pytest.mark.asyncio()
    async def test_round_trip_before_ttl(self) -> None:
        clock = _Clock()
        cache = MemoryCacheAdapter(ttl_seconds=60, clock=clock)
        await cache.set("k", {"v": 1}, ttl=10)
        clock.now += 9
        assert await cache.get("k") == {"v": 1}

    @pytest.mark.asyncio()
    async def test_miss_after_ttl(self) -> None:
        clock = _Clock()
        cache = MemoryCacheAdapter(clock=clock)
        await cache.set("k", "v", ttl=10)
        clock.now += 10
        assert await cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio()
    async def test_zero_ttl_never_expires(self) -> None:
        clock = _Clock()
        cache = MemoryCacheAdapter(ttl_seconds=0, clock=clock)
        await cache.set("k", "v")
        clock.now += 10**9
        assert await cache.get("k") == "v"

    @pytest.mark.asyncio()
    async def test_evicts_oldest_when_full(self) -> None:
        cache = MemoryCacheAdapter(max_entries=2)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("c", 3)
        assert await cache.get("a") is None
        assert await cache.get("b") == 2
        assert await cache.get("c") == 3

    @pytest.mark.asyncio()
    async def test_overwrite_refreshes_position(self) -> None:
        cache = MemoryCacheAdapter(max_entries=2)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("a", 10)
        await cache.set("c", 3)
        assert await cache.get("a") == 10
        assert await cache.get("b") is None

    @pytest.mark.asyncio()
    async def test_delete_exists_clear(self) -> None:
        cache = MemoryCacheAdapter()
        await cache.set("k", "v")
        assert await cache.exists("k")
        assert await cache.delete("k") is True
        assert await cache.delete("k") is False
        await cache.set("k2", "v")
        await cache.clear()
        assert not await cache.exists("k2")

    @pytest.mark.asyncio()
    async def test_unbounded_never_evicts(self) -> None:
        cache = MemoryCacheAdapter(max_entries=None, ttl_seconds=0)
        for i in range(2000):
            await cache.set(f"k{i}", i)
        assert len(cache) == 2000
        assert await cache.get("k0") == 0

    def test_rejects_zero_capacity(self) -> None:
        with pytest.raises(ValueError):
            MemoryCacheAdapter(max_entries=0)


class TestDiskcacheAdapter:
    @pytest.mark.asyncio()
    async def test_round_trip(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "cache") as cache:
            await cache.set("k", {"a": [1, 2]}, ttl=60)
            assert await cache.get("k") == {"a": [1, 2]}
            assert await cache.exists("k")
            assert await cache.delete("k") is True
            assert await cache.get("k") is None

    @pytest.mark.asyncio()
    async def test_requires_open(self, tmp_path: Path) -> None:
        cache = DiskcacheAdapter(directory=tmp_path / "cache")
        with pytest.raises(RuntimeError):
            await cache.get("k")
        assert await cache.delete("k") is False


class TestRedisAdapter:
    def _adapter(self, client: AsyncMock) -> RedisAdapter:
        adapter = RedisAdapter(namespace="test")
        adapter._client = client
        return adapter

    @pytest.mark.asyncio()
    async def test_set_uses_namespace_and_ttl(self) -> None:
        client = AsyncMock()
        adapter = self._adapter(client)
        await adapter.set("k", {"v": 1}, ttl=30)
        client.set.assert_awaited_once_with("test:k", pickle.dumps({"v": 1}), ex=30)

    @pytest.mark.asyncio()
    async def test_get_unpickles(self) -> None:
        client = AsyncMock()
        client.get = AsyncMock(return_value=pickle.dumps([1, 2]))
        assert await self._adapter(client).get("k") == [1, 2]
        client.get.assert_awaited_once_with("test:k")

    @pytest.mark.asyncio()
    async def test_error_degrades_to_miss(self) -> None:
        client = AsyncMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("down"))
        assert await self._adapter(client).get("k") is None

    @pytest.mark.asyncio()
    async def test_write_error_is_dropped_unless_strict(self) -> None:
        client = AsyncMock()
        client.set = AsyncMock(side_effect=RedisConnectionError("down"))
        adapter = self._adapter(client)

        await adapter.set("k", 1)
        with pytest.raises(RedisConnectionError):
            await adapter.set("k", 1, strict=True)

    @pytest.mark.asyncio()
    async def test_requires_open(self) -> None:
        with pytest.raises(RuntimeError):
            await RedisAdapter().get("k")


class TestCreateCache:
    def test_memory(self) -> None:
        cache = create_cache(CacheConfig(backend="memory", max_entries=5))
        assert isinstance(cache, MemoryCacheAdapter)
        assert cache.max_entries == 5

    def test_diskcache(self, tmp_path: Path) -> None:
        cache = create_cache(CacheConfig(backend="diskcache", directory=tmp_path))
        assert isinstance(cache, DiskcacheAdapter)

    def test_redis(self) -> None:
        cache = create_cache(CacheConfig(backend="redis"))
        assert isinstance(cache, RedisAdapter)


class TestCreateStoreCache:
    @pytest.mark.asyncio()
    async def test_memory_is_separate_and_unbounded(self) -> None:
        config = CacheConfig(backend="memory", max_entries=1000)
        scrape_cache = create_cache(config)
        store_cache = create_store_cache(config)
        await store_cache.set("scraping_job:job-1", "row")

        for i in range(1000):
            await scrape_cache.set(f"search:one piece:{i}", i)
            await store_cache.set(f"episode_record:anime-1:{i}", i)

        assert isinstance(store_cache, MemoryCacheAdapter)
        assert store_cache.max_entries is None
        assert store_cache.default_ttl == 0
        assert await store_cache.get("scraping_job:job-1") == "row"

    def test_diskcache_never_evicts(self, tmp_path: Path) -> None:
        cache = create_store_cache(CacheConfig(backend="diskcache", directory=tmp_path))
        assert isinstance(cache, DiskcacheAdapter)
        assert cache.eviction_policy == "none"
        assert cache.directory == tmp_path / "stores"
        assert cache.default_ttl == 0

    def test_redis_uses_own_namespace(self) -> None:
        cache = create_store_cache(CacheConfig(backend="redis"))
        assert isinstance(cache, RedisAdapter)
        assert cache.namespace == "animescrape-store"
        assert cache.default_ttl == 0
