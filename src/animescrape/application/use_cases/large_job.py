"""Large chunked jobs with persisted, resumable per-episode progress."""

from __future__ import annotations

import asyncio
import math
import uuid
import weakref
from dataclasses import replace
from datetime import datetime, timezone

import structlog

from animescrape.application.cancellation import CancellationToken, pause
from animescrape.application.use_cases.scrape_episode import ScrapeEpisodeUseCase
from animescrape.domain.entities.jobs import (
    RESUMABLE_STATUSES,
    ChunkResult,
    EpisodeLogEntry,
    EpisodeStatus,
    JobEstimate,
    JobProgress,
    JobStatus,
    ScrapingJob,
    chunk_of,
    estimate_job,
)
from animescrape.domain.entities.scraping import (
    BatchEpisodeResult,
    BatchSummary,
    ScrapeOptions,
    ScrapeRequest,
)
from animescrape.domain.errors import (
    JobNotFoundError,
    PersistenceFailure,
    ScrapeCancelledError,
    ScrapeError,
)
from animescrape.domain.ports.progress_store import ProgressStore

log = structlog.get_logger(__name__)

CANCELLED_MESSAGE = "Scrape cancelled"
INTERRUPTED_MESSAGE = "Interrupted before completion"


class LargeJobUseCase:
    """Creates jobs, scrapes chunks and reports progress.

    Chunk runs of the same job are serialized by a per-job lock, and the
    job counters are recomputed from the episode log under that lock, so
    re-running a chunk never double counts.
    """

    def __init__(
        self,
        *,
        store: ProgressStore,
        scrape: ScrapeEpisodeUseCase,
        chunk_delay_seconds: float = 2.0,
        between_chunks_delay_seconds: float = 10.0,
        default_chunk_size: int = 50,
        options: ScrapeOptions | None = None,
    ) -> None:
        self.store = store
        self.scrape = scrape
        self._chunk_delay = chunk_delay_seconds
        self._between_chunks_delay = between_chunks_delay_seconds
        self.default_chunk_size = default_chunk_size
        self._options = options or ScrapeOptions()
        # Entries vanish once no chunk run holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock(self, job_id: str) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[job_id] = lock
        return lock

    async def start(
        self,
        anime_id: str,
        title: str,
        total_episodes: int,
        chunk_size: int | None = None,
    ) -> ScrapingJob:
        """Create the job and one pending log entry per episode."""
        chunk_size = chunk_size or self.default_chunk_size
        if total_episodes < 1:
            raise ValueError("totalEpisodes must be >= 1")
        if chunk_size < 1:
            raise ValueError("chunkSize must be >= 1")

        job = ScrapingJob(
            id=uuid.uuid4().hex,
            content_id=anime_id,
            title=title,
            total_episodes=total_episodes,
            chunk_size=chunk_size,
            total_chunks=math.ceil(total_episodes / chunk_size),
        )
        try:
            await self.store.save_job(job)
            await self.store.save_entries(
                [
                    EpisodeLogEntry(
                        job_id=job.id,
                        episode_number=n,
                        chunk_number=chunk_of(n, chunk_size),
                    )
                    for n in range(1, total_episodes + 1)
                ]
            )
            job = job.transition(JobStatus.IN_PROGRESS)
            await self.store.save_job(job)
        except PersistenceFailure as e:
            log.error("large_job_create_failed", job_id=job.id, error=str(e))
            await self._mark_failed(job)
            raise

        log.info(
            "large_job_started",
            job_id=job.id,
            anime_id=anime_id,
            total_episodes=total_episodes,
            total_chunks=job.total_chunks,
            chunk_size=chunk_size,
        )
        return job

    async def _mark_failed(self, job: ScrapingJob) -> None:
        try:
            await self.store.save_job(job.transition(JobStatus.FAILED))
        except PersistenceFailure:
            log.error("large_job_mark_failed_error", job_id=job.id)

    async def _require_job(self, job_id: str) -> ScrapingJob:
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Scraping job {job_id} not found")
        return job

    async def scrape_chunk(
        self,
        job_id: str,
        chunk_number: int,
        *,
        title: str | None = None,
        token: CancellationToken | None = None,
    ) -> ChunkResult:
        """Scrape the pending/failed entries of one chunk, then roll up counters."""
        async with self._lock(job_id):
            job = await self._require_job(job_id)
            if not 1 <= chunk_number <= job.total_chunks:
                raise ValueError(
                    f"chunkNumber must be between 1 and {job.total_chunks}"
                )
            title = title or job.title

            await self._recover_interrupted(job_id, chunk_number)
            entries = await self.store.list_entries(
                job_id, chunk_number=chunk_number, statuses=RESUMABLE_STATUSES
            )
            log.info(
                "chunk_started",
                job_id=job_id,
                chunk=chunk_number,
                episodes=len(entries),
            )

            results: list[BatchEpisodeResult] = []
            cancelled = False
            for index, entry in enumerate(entries, start=1):
                if token is not None and token.cancelled:
                    cancelled = True
                    break
                result = await self._scrape_entry(job, entry, title, token)
                results.append(result)
                if result.error == CANCELLED_MESSAGE:
                    cancelled = True
                    break
                if index < len(entries):
                    try:
                        await pause(self._chunk_delay, token)
                    except ScrapeCancelledError:
                        cancelled = True
                        break

            job = await self._roll_up(job_id, chunk_number)

        summary = BatchSummary.from_results(results)
        log.info(
            "chunk_finished",
            job_id=job_id,
            chunk=chunk_number,
            success=summary.success_count,
            failed=summary.error_count,
            job_status=job.status.value,
            cancelled=cancelled,
        )
        return ChunkResult(
            job_id=job_id,
            chunk_number=chunk_number,
            results=results,
            summary=summary,
            cancelled=cancelled,
        )

    async def _recover_interrupted(self, job_id: str, chunk_number: int) -> None:
        # Holding the job lock: any entry still "scraping" belongs to a dead run.
        stale = await self.store.list_entries(
            job_id, chunk_number=chunk_number, statuses={EpisodeStatus.SCRAPING}
        )
        if stale:
            await self.store.save_entries(
                [e.transition(EpisodeStatus.FAILED, error=INTERRUPTED_MESSAGE) for e in stale]
            )
            log.warning("chunk_recovered_interrupted", job_id=job_id, count=len(stale))

    async def _scrape_entry(
        self,
        job: ScrapingJob,
        entry: EpisodeLogEntry,
        title: str,
        token: CancellationToken | None,
    ) -> BatchEpisodeResult:
        entry = entry.transition(EpisodeStatus.SCRAPING)
        await self.store.save_entries([entry])
        number = entry.episode_number
        try:
            outcome, record = await self.scrape.execute(
                ScrapeRequest(title, number, self._options),
                anime_id=job.content_id,
                token=token,
            )
        except ScrapeCancelledError:
            await self.store.save_entries(
                [entry.transition(EpisodeStatus.FAILED, error=CANCELLED_MESSAGE)]
            )
            return BatchEpisodeResult(episode=number, status="failed", error=CANCELLED_MESSAGE)
        except Exception as e:  # noqa: BLE001
            await self.store.save_entries([entry.transition(EpisodeStatus.FAILED, error=str(e))])
            log.warning("chunk_episode_failed", job_id=job.id, episode=number, error=str(e))
            return BatchEpisodeResult(episode=number, status="failed", error=str(e))

        done = entry.transition(EpisodeStatus.SUCCESS, video_url=outcome.stream_url)
        await self.store.save_entries([done])
        return BatchEpisodeResult(
            episode=number,
            status="success",
            url=outcome.stream_url,
            title=record.title,
            embedding_protected=outcome.verdict.protected,
            embedding_reason=outcome.verdict.reason,
            scraped_at=done.scraped_at,
        )

    async def _roll_up(self, job_id: str, chunk_number: int) -> ScrapingJob:
        job = await self._require_job(job_id)
        entries = await self.store.list_entries(job_id)
        completed = sum(1 for e in entries if e.status == EpisodeStatus.SUCCESS)
        failed = sum(1 for e in entries if e.status == EpisodeStatus.FAILED)
        unfinished = any(
            e.status in (EpisodeStatus.PENDING, EpisodeStatus.SCRAPING) for e in entries
        )

        if job.status == JobStatus.PENDING:
            job = job.transition(JobStatus.IN_PROGRESS)
        if not unfinished and job.status == JobStatus.IN_PROGRESS:
            job = job.transition(JobStatus.COMPLETED)

        job = replace(
            job,
            current_chunk=max(job.current_chunk, chunk_number + 1),
            completed_count=completed,
            failed_count=failed,
            updated_at=datetime.now(timezone.utc),
        )
        await self.store.save_job(job)
        return job

    async def run_job(
        self, job_id: str, *, token: CancellationToken | None = None
    ) -> ScrapingJob:
        """Run every chunk from ``current_chunk`` on; chunk errors are logged and skipped."""
        job = await self._require_job(job_id)
        first, last = job.current_chunk, job.total_chunks
        log.info("large_job_run_started", job_id=job_id, first_chunk=first, last_chunk=last)

        for chunk_number in range(first, last + 1):
            if token is not None and token.cancelled:
                break
            try:
                result = await self.scrape_chunk(job_id, chunk_number, token=token)
            except ScrapeCancelledError:
                break
            except ScrapeError as e:
                log.error("large_job_chunk_failed", job_id=job_id, chunk=chunk_number, error=str(e))
                continue
            if result.cancelled:
                break
            if chunk_number < last:
                try:
                    await pause(self._between_chunks_delay, token)
                except ScrapeCancelledError:
                    break

        job = await self._require_job(job_id)
        log.info(
            "large_job_run_finished",
            job_id=job_id,
            status=job.status.value,
            completed=job.completed_count,
            failed=job.failed_count,
        )
        return job

    async def get_progress(self, anime_id: str) -> JobProgress:
        """Latest job for *anime_id* with throughput-derived figures."""
        job = await self.store.find_job_by_content(anime_id)
        if job is None:
            raise JobNotFoundError(f"Scraping progress for {anime_id} not found")
        entries = await self.store.list_entries(job.id)
        return JobProgress.compute(job, entries)

    async def get_job(self, job_id: str) -> ScrapingJob:
        return await self._require_job(job_id)

    def estimate(self, total_episodes: int, chunk_size: int | None = None) -> JobEstimate:
        return estimate_job(total_episodes, chunk_size or self.default_chunk_size)
