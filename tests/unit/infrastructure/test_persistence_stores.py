"""Tests for the cache-backed episode and progress stores."""

from __future__ import annotations

import json
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from animescrape.domain.entities import EpisodeRecord
from animescrape.domain.entities.jobs import (
    EpisodeLogEntry,
    EpisodeStatus,
    JobStatus,
    ScrapingJob,
)
from animescrape.domain.errors import PersistenceFailure
from animescrape.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from animescrape.infrastructure.cache.redis_adapter import RedisAdapter
from animescrape.infrastructure.persistence import (
    CacheEpisodeStore,
    CacheProgressStore,
    job_to_row,
)


def _job(job_id: str = "job-1", content_id: str = "anime-1") -> ScrapingJob:
    return ScrapingJob(
        id=job_id,
        content_id=content_id,
        title="One Piece",
        total_episodes=120,
        chunk_size=50,
        total_chunks=3,
    )


class TestCacheEpisodeStore:
    @pytest.mark.asyncio()
    async def test_upsert_and_list_sorted(
        self, memory_cache: MemoryCacheAdapter, episode_record: EpisodeRecord
    ) -> None:
        store = CacheEpisodeStore(memory_cache)
        await store.upsert(replace(episode_record, episode_number=3))
        await store.upsert(episode_record)

        records = await store.list_episodes("anime-1")

        assert [r.episode_number for r in records] == [1, 3]
        assert records[0] == episode_record

    @pytest.mark.asyncio()
    async def test_upsert_replaces_same_episode(
        self, memory_cache: MemoryCacheAdapter, episode_record: EpisodeRecord
    ) -> None:
        store = CacheEpisodeStore(memory_cache)
        await store.upsert(episode_record)
        await store.upsert(replace(episode_record, video_url="https://megaplay.buzz/new"))

        records = await store.list_episodes("anime-1")

        assert len(records) == 1
        assert records[0].video_url == "https://megaplay.buzz/new"

    @pytest.mark.asyncio()
    async def test_unknown_anime_is_empty(self, memory_cache: MemoryCacheAdapter) -> None:
        assert await CacheEpisodeStore(memory_cache).list_episodes("nope") == []

    @pytest.mark.asyncio()
    async def test_write_failure_raises_persistence_failure(
        self, mock_cache: AsyncMock, episode_record: EpisodeRecord
    ) -> None:
        mock_cache.set.side_effect = OSError("disk full")
        with pytest.raises(PersistenceFailure):
            await CacheEpisodeStore(mock_cache).upsert(episode_record)

    @pytest.mark.asyncio()
    async def test_rejected_redis_write_raises(self, episode_record: EpisodeRecord) -> None:
        client = AsyncMock()
        client.get = AsyncMock(return_value=None)
        client.set = AsyncMock(side_effect=RedisConnectionError("down"))
        cache = RedisAdapter(namespace="test")
        cache._client = client

        with pytest.raises(PersistenceFailure):
            await CacheEpisodeStore(cache).upsert(episode_record)

    @pytest.mark.asyncio()
    async def test_corrupt_index_reads_as_empty(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        await memory_cache.set("episode_index:anime-1", "{not json")
        assert await CacheEpisodeStore(memory_cache).list_episodes("anime-1") == []


class TestCacheProgressStore:
    @pytest.mark.asyncio()
    async def test_save_and_get_job(self, memory_cache: MemoryCacheAdapter) -> None:
        store = CacheProgressStore(memory_cache)
        job = _job().transition(JobStatus.IN_PROGRESS)
        await store.save_job(job)

        loaded = await store.get_job("job-1")

        assert loaded == job
        assert await store.find_job_by_content("anime-1") == job

    @pytest.mark.asyncio()
    async def test_missing_job(self, memory_cache: MemoryCacheAdapter) -> None:
        store = CacheProgressStore(memory_cache)
        assert await store.get_job("nope") is None
        assert await store.find_job_by_content("nope") is None

    @pytest.mark.asyncio()
    async def test_content_index_points_at_latest_job(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        store = CacheProgressStore(memory_cache)
        await store.save_job(_job("job-1"))
        await store.save_job(_job("job-2"))
        found = await store.find_job_by_content("anime-1")
        assert found is not None and found.id == "job-2"

    @pytest.mark.asyncio()
    async def test_entries_upserted_by_episode(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        store = CacheProgressStore(memory_cache)
        pending = [EpisodeLogEntry("job-1", n, 1 if n <= 50 else 2) for n in (51, 1, 2)]
        await store.save_entries(pending)
        scraping = pending[1].transition(EpisodeStatus.SCRAPING)
        await store.save_entries([scraping.transition(EpisodeStatus.FAILED, error="boom")])

        entries = await store.list_entries("job-1")

        assert [e.episode_number for e in entries] == [1, 2, 51]
        assert entries[0].status == EpisodeStatus.FAILED
        assert entries[0].error_message == "boom"

    @pytest.mark.asyncio()
    async def test_entry_filters(self, memory_cache: MemoryCacheAdapter) -> None:
        store = CacheProgressStore(memory_cache)
        done = (
            EpisodeLogEntry("job-1", 2, 1)
            .transition(EpisodeStatus.SCRAPING)
            .transition(EpisodeStatus.SUCCESS, video_url="https://megaplay.buzz/2")
        )
        await store.save_entries(
            [EpisodeLogEntry("job-1", 1, 1), done, EpisodeLogEntry("job-1", 51, 2)]
        )

        chunk_one = await store.list_entries("job-1", chunk_number=1)
        pending = await store.list_entries("job-1", statuses={EpisodeStatus.PENDING})

        assert [e.episode_number for e in chunk_one] == [1, 2]
        assert [e.episode_number for e in pending] == [1, 51]
        assert chunk_one[1].video_url == "https://megaplay.buzz/2"
        assert chunk_one[1].scraped_at is not None

    @pytest.mark.asyncio()
    async def test_write_failure_raises(self, mock_cache: AsyncMock) -> None:
        mock_cache.set.side_effect = ConnectionError("redis down")
        with pytest.raises(PersistenceFailure):
            await CacheProgressStore(mock_cache).save_job(_job())

    @pytest.mark.asyncio()
    async def test_row_without_timestamps_reads_as_missing(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        row = job_to_row(_job())
        row["started_at"] = None
        await memory_cache.set("scraping_job:job-1", json.dumps(row))

        assert await CacheProgressStore(memory_cache).get_job("job-1") is None

    def test_row_shape(self) -> None:
        row = job_to_row(_job())
        assert row["anime_id"] == "anime-1"
        assert row["anime_title"] == "One Piece"
        assert row["completed_episodes"] == 0
        assert row["status"] == "pending"
