"""Cache port: async key/value store with per-key TTL."""

from __future__ import annotations

from typing import Any, Protocol


class CachePort(Protocol):
    """Async key/value cache.

    Implementations:
      - MemoryCacheAdapter (in-process, bounded)
      - DiskcacheAdapter (SQLite-based, no daemon)
      - RedisAdapter (shared across processes)

    A value is never returned after its TTL elapsed.  Adapters support
    async context-manager semantics::

        async with cache:
            await cache.set("key", value, ttl=60)
    """

    async def get(self, key: str) -> Any:
        """Retrieve value. None = miss (absent or expired)."""
        ...

    async def set(
        self, key: str, value: Any, *, ttl: int | None = None, strict: bool = False
    ) -> None:
        """Store value with optional TTL (seconds).

        Adapters may log and drop a failed write; with ``strict=True`` the
        backend error is raised instead (stores rely on this).
        """
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. True = deleted, False = did not exist."""
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def clear(self) -> None:
        ...

    async def aclose(self) -> None:
        ...

    async def __aenter__(self) -> CachePort: ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
