"""EpisodeStore backed by CachePort (memory/diskcache/redis)."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any

import structlog

from animescrape.domain.entities.scraping import EpisodeRecord
from animescrape.domain.errors import PersistenceFailure
from animescrape.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)


def _serialize_record(record: EpisodeRecord) -> str:
    return json.dumps(
        {
            "anime_id": record.anime_id,
            "episode_number": record.episode_number,
            "title": record.title,
            "video_url": record.video_url,
            "description": record.description,
            "duration": record.duration,
            "thumbnail_url": record.thumbnail_url,
            "embedding_protected": record.embedding_protected,
            "embedding_reason": record.embedding_reason,
            "created_at": record.created_at.isoformat(),
        }
    )


def _deserialize_record(data: str) -> EpisodeRecord:
    d: dict[str, Any] = json.loads(data)
    return EpisodeRecord(
        anime_id=d["anime_id"],
        episode_number=d["episode_number"],
        title=d["title"],
        video_url=d["video_url"],
        description=d.get("description", ""),
        duration=d.get("duration", 1440),
        thumbnail_url=d.get("thumbnail_url"),
        embedding_protected=d.get("embedding_protected", False),
        embedding_reason=d.get("embedding_reason"),
        created_at=datetime.fromisoformat(d["created_at"]),
    )


class CacheEpisodeStore:
    """Upserts episode rows keyed by ``(anime_id, episode_number)``.

    A per-anime index key lists the stored episode numbers.
    """

    def __init__(self, cache: CachePort, ttl_seconds: int = 0) -> None:
        self.cache = cache
        self.ttl = ttl_seconds
        self._index_lock = asyncio.Lock()

    @staticmethod
    def _record_key(anime_id: str, episode_number: int) -> str:
        return f"episode_record:{anime_id}:{episode_number}"

    @staticmethod
    def _index_key(anime_id: str) -> str:
        return f"episode_index:{anime_id}"

    async def upsert(self, record: EpisodeRecord) -> None:
        try:
            await self.cache.set(
                self._record_key(record.anime_id, record.episode_number),
                _serialize_record(record),
                ttl=self.ttl,
                strict=True,
            )
            async with self._index_lock:
                index = set(await self._read_index(record.anime_id))
                index.add(record.episode_number)
                await self.cache.set(
                    self._index_key(record.anime_id),
                    json.dumps(sorted(index)),
                    ttl=self.ttl,
                    strict=True,
                )
        except Exception as e:  # noqa: BLE001
            log.error(
                "episode_upsert_failed",
                anime_id=record.anime_id,
                episode=record.episode_number,
                error=str(e),
            )
            raise PersistenceFailure(f"Failed to save episode: {e}") from e
        log.debug("episode_upserted", anime_id=record.anime_id, episode=record.episode_number)

    async def _read_index(self, anime_id: str) -> list[int]:
        raw = await self.cache.get(self._index_key(anime_id))
        if raw is None:
            return []
        try:
            return [int(n) for n in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            log.error("episode_index_corrupt", anime_id=anime_id, error=str(e))
            return []

    async def list_episodes(self, anime_id: str) -> list[EpisodeRecord]:
        records: list[EpisodeRecord] = []
        for number in sorted(await self._read_index(anime_id)):
            raw = await self.cache.get(self._record_key(anime_id, number))
            if raw is None:
                continue
            try:
                records.append(_deserialize_record(raw))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                log.error(
                    "episode_deserialize_error",
                    anime_id=anime_id,
                    episode=number,
                    error=str(e),
                )
        return records
