"""ProgressStore backed by CachePort.

Rows use the snake_case shape exposed by the progress endpoint.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Collection
from datetime import datetime
from typing import Any

import structlog

from animescrape.domain.entities.jobs import (
    EpisodeLogEntry,
    EpisodeStatus,
    JobStatus,
    ScrapingJob,
)
from animescrape.domain.errors import PersistenceFailure
from animescrape.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def job_to_row(job: ScrapingJob) -> dict[str, Any]:
    return {
        "id": job.id,
        "anime_id": job.content_id,
        "anime_title": job.title,
        "total_episodes": job.total_episodes,
        "completed_episodes": job.completed_count,
        "failed_episodes": job.failed_count,
        "current_chunk": job.current_chunk,
        "total_chunks": job.total_chunks,
        "chunk_size": job.chunk_size,
        "status": job.status.value,
        "started_at": _iso(job.started_at),
        "updated_at": _iso(job.updated_at),
    }


def job_from_row(row: dict[str, Any]) -> ScrapingJob:
    started_at = _parse_dt(row["started_at"])
    updated_at = _parse_dt(row["updated_at"])
    if started_at is None or updated_at is None:
        raise ValueError(f"Job row {row.get('id')} has no timestamps")
    return ScrapingJob(
        id=row["id"],
        content_id=row["anime_id"],
        title=row["anime_title"],
        total_episodes=row["total_episodes"],
        chunk_size=row["chunk_size"],
        total_chunks=row["total_chunks"],
        current_chunk=row["current_chunk"],
        completed_count=row["completed_episodes"],
        failed_count=row["failed_episodes"],
        status=JobStatus(row["status"]),
        started_at=started_at,
        updated_at=updated_at,
    )


def entry_to_row(entry: EpisodeLogEntry) -> dict[str, Any]:
    return {
        "episode_number": entry.episode_number,
        "chunk_number": entry.chunk_number,
        "status": entry.status.value,
        "error_message": entry.error_message,
        "video_url": entry.video_url,
        "scraped_at": _iso(entry.scraped_at),
    }


def entry_from_row(job_id: str, row: dict[str, Any]) -> EpisodeLogEntry:
    return EpisodeLogEntry(
        job_id=job_id,
        episode_number=row["episode_number"],
        chunk_number=row["chunk_number"],
        status=EpisodeStatus(row["status"]),
        error_message=row.get("error_message"),
        video_url=row.get("video_url"),
        scraped_at=_parse_dt(row.get("scraped_at")),
    )


class CacheProgressStore:
    """Jobs, their per-content index and episode logs as JSON cache values."""

    def __init__(self, cache: CachePort, ttl_seconds: int = 0) -> None:
        self.cache = cache
        self.ttl = ttl_seconds
        self._entries_lock = asyncio.Lock()

    @staticmethod
    def _job_key(job_id: str) -> str:
        return f"scraping_job:{job_id}"

    @staticmethod
    def _content_key(content_id: str) -> str:
        return f"scraping_job_by_content:{content_id}"

    @staticmethod
    def _entries_key(job_id: str) -> str:
        return f"episode_scraping_log:{job_id}"

    async def _write(self, key: str, value: str) -> None:
        try:
            await self.cache.set(key, value, ttl=self.ttl, strict=True)
        except Exception as e:  # noqa: BLE001
            log.error("progress_write_failed", key=key, error=str(e))
            raise PersistenceFailure(f"Failed to persist {key}: {e}") from e

    async def save_job(self, job: ScrapingJob) -> None:
        await self._write(self._job_key(job.id), json.dumps(job_to_row(job)))
        await self._write(self._content_key(job.content_id), job.id)
        log.debug("scraping_job_saved", job_id=job.id, status=job.status.value)

    async def get_job(self, job_id: str) -> ScrapingJob | None:
        raw = await self.cache.get(self._job_key(job_id))
        if raw is None:
            return None
        try:
            return job_from_row(json.loads(raw))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            log.error("scraping_job_deserialize_error", job_id=job_id, error=str(e))
            return None

    async def find_job_by_content(self, content_id: str) -> ScrapingJob | None:
        job_id = await self.cache.get(self._content_key(content_id))
        if job_id is None:
            return None
        return await self.get_job(str(job_id))

    async def _read_entries(self, job_id: str) -> dict[int, EpisodeLogEntry]:
        raw = await self.cache.get(self._entries_key(job_id))
        if raw is None:
            return {}
        try:
            rows = json.loads(raw)
            return {row["episode_number"]: entry_from_row(job_id, row) for row in rows}
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            log.error("episode_log_deserialize_error", job_id=job_id, error=str(e))
            return {}

    async def save_entries(self, entries: list[EpisodeLogEntry]) -> None:
        by_job: dict[str, list[EpisodeLogEntry]] = {}
        for entry in entries:
            by_job.setdefault(entry.job_id, []).append(entry)

        async with self._entries_lock:
            for job_id, updates in by_job.items():
                current = await self._read_entries(job_id)
                for entry in updates:
                    current[entry.episode_number] = entry
                rows = [entry_to_row(current[n]) for n in sorted(current)]
                await self._write(self._entries_key(job_id), json.dumps(rows))

    async def list_entries(
        self,
        job_id: str,
        *,
        chunk_number: int | None = None,
        statuses: Collection[EpisodeStatus] | None = None,
    ) -> list[EpisodeLogEntry]:
        entries = await self._read_entries(job_id)
        return [
            entries[n]
            for n in sorted(entries)
            if (chunk_number is None or entries[n].chunk_number == chunk_number)
            and (statuses is None or entries[n].status in statuses)
        ]
