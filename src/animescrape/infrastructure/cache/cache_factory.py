"""Build the configured CachePort adapter."""

from __future__ import annotations

from pathlib import Path

import structlog

from animescrape.domain.ports.cache import CachePort
from animescrape.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from animescrape.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from animescrape.infrastructure.cache.redis_adapter import RedisAdapter
from animescrape.infrastructure.config.schema import CacheConfig

log = structlog.get_logger(__name__)


def create_cache(config: CacheConfig) -> CachePort:
    """Return an (unopened) adapter for ``config.backend``.

    Raises:
        ValueError: Unknown backend name.
    """
    backend = config.backend
    log.info("cache_factory_create", backend=backend)
    if backend == "memory":
        return MemoryCacheAdapter(
            max_entries=config.max_entries,
            ttl_seconds=config.search_ttl_seconds,
        )
    if backend == "diskcache":
        return DiskcacheAdapter(
            directory=config.directory,
            ttl_seconds=config.search_ttl_seconds,
            max_concurrent=config.max_concurrent,
        )
    if backend == "redis":
        return RedisAdapter(
            url=config.redis_url,
            ttl_seconds=config.search_ttl_seconds,
        )
    raise ValueError(
        f"Unknown cache backend: {backend!r}. "
        "Must be 'memory', 'diskcache' or 'redis'."
    )


def create_store_cache(config: CacheConfig) -> CachePort:
    """Return an (unopened) adapter for the job and episode stores.

    Same backend as ``create_cache`` but in its own space (memory
    instance, diskcache directory, redis namespace), with no eviction
    and no default expiry, so scrape-cache traffic never removes rows.
    """
    backend = config.backend
    log.info("store_cache_factory_create", backend=backend)
    if backend == "memory":
        return MemoryCacheAdapter(max_entries=None, ttl_seconds=0)
    if backend == "diskcache":
        return DiskcacheAdapter(
            directory=Path(config.directory) / "stores",
            ttl_seconds=0,
            max_concurrent=config.max_concurrent,
            eviction_policy="none",
        )
    if backend == "redis":
        return RedisAdapter(
            url=config.redis_url,
            ttl_seconds=0,
            namespace="animescrape-store",
        )
    raise ValueError(
        f"Unknown cache backend: {backend!r}. "
        "Must be 'memory', 'diskcache' or 'redis'."
    )
