"""Port for the persistent episode catalog."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from animescrape.domain.entities.scraping import EpisodeRecord


@runtime_checkable
class EpisodeStore(Protocol):
    """Episodes keyed by ``(anime_id, episode_number)``; writes are upserts."""

    async def upsert(self, record: EpisodeRecord) -> None: ...

    async def list_episodes(self, anime_id: str) -> list[EpisodeRecord]: ...
