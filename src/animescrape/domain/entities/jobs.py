"""Large-job entities: ScrapingJob and its per-episode log.

The EpisodeLogEntry is the unit of resumability: re-running a chunk
only picks entries that are still ``pending`` or ``failed``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from animescrape.domain.entities.scraping import BatchEpisodeResult, BatchSummary
from animescrape.domain.errors import InvalidTransitionError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class EpisodeStatus(str, Enum):
    PENDING = "pending"
    SCRAPING = "scraping"
    SUCCESS = "success"
    FAILED = "failed"


_JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.IN_PROGRESS, JobStatus.FAILED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

# success is terminal; failed may be picked up again on resume
_EPISODE_TRANSITIONS: dict[EpisodeStatus, frozenset[EpisodeStatus]] = {
    EpisodeStatus.PENDING: frozenset({EpisodeStatus.SCRAPING}),
    EpisodeStatus.SCRAPING: frozenset({EpisodeStatus.SUCCESS, EpisodeStatus.FAILED}),
    EpisodeStatus.SUCCESS: frozenset(),
    EpisodeStatus.FAILED: frozenset({EpisodeStatus.SCRAPING}),
}

RESUMABLE_STATUSES = frozenset({EpisodeStatus.PENDING, EpisodeStatus.FAILED})


def chunk_of(episode_number: int, chunk_size: int) -> int:
    """1-based chunk index of a 1-based episode number."""
    return math.ceil(episode_number / chunk_size)


@dataclass(frozen=True)
class ScrapingJob:
    id: str
    content_id: str
    title: str
    total_episodes: int
    chunk_size: int
    total_chunks: int
    current_chunk: int = 1
    completed_count: int = 0
    failed_count: int = 0
    status: JobStatus = JobStatus.PENDING
    started_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def transition(self, status: JobStatus) -> ScrapingJob:
        if status == self.status:
            return self
        if status not in _JOB_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Job {self.id}: {self.status.value} -> {status.value} not allowed"
            )
        return replace(self, status=status, updated_at=_utcnow())

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def progress_percentage(self) -> int:
        if self.total_episodes <= 0:
            return 0
        return round(self.completed_count / self.total_episodes * 100)


@dataclass(frozen=True)
class EpisodeLogEntry:
    job_id: str
    episode_number: int
    chunk_number: int
    status: EpisodeStatus = EpisodeStatus.PENDING
    error_message: str | None = None
    video_url: str | None = None
    scraped_at: datetime | None = None

    def transition(
        self,
        status: EpisodeStatus,
        *,
        error: str | None = None,
        video_url: str | None = None,
    ) -> EpisodeLogEntry:
        if status not in _EPISODE_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Episode {self.episode_number} of job {self.job_id}: "
                f"{self.status.value} -> {status.value} not allowed"
            )
        if status == EpisodeStatus.SUCCESS:
            return replace(
                self,
                status=status,
                error_message=None,
                video_url=video_url,
                scraped_at=_utcnow(),
            )
        if status == EpisodeStatus.FAILED:
            return replace(self, status=status, error_message=error)
        return replace(self, status=status)


@dataclass(frozen=True)
class ChunkResult:
    job_id: str
    chunk_number: int
    results: list[BatchEpisodeResult]
    summary: BatchSummary
    cancelled: bool = False


@dataclass(frozen=True)
class JobEstimate:
    total_chunks: int
    estimated_hours: float
    estimated_days: float


def estimate_job(
    total_episodes: int,
    chunk_size: int,
    *,
    seconds_per_episode: float = 2.0,
    seconds_between_chunks: float = 10.0,
) -> JobEstimate:
    """Rough wall-clock estimate for a large job."""
    total_chunks = math.ceil(total_episodes / chunk_size) if chunk_size > 0 else 0
    total_seconds = total_episodes * seconds_per_episode + max(
        0, total_chunks - 1
    ) * seconds_between_chunks
    hours = total_seconds / 3600
    return JobEstimate(
        total_chunks=total_chunks,
        estimated_hours=round(hours, 1),
        estimated_days=round(hours / 24, 1),
    )


def format_duration(ms: float) -> str:
    """Render milliseconds as ``1d 2h 3m`` / ``2h 3m`` / ``3m 4s`` / ``4s``."""
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


@dataclass(frozen=True)
class JobProgress:
    """Job row plus throughput-derived figures."""

    job: ScrapingJob
    entries: list[EpisodeLogEntry]
    progress_percentage: int
    estimated_time_remaining: str
    episodes_per_second: float

    @classmethod
    def compute(
        cls,
        job: ScrapingJob,
        entries: list[EpisodeLogEntry],
        *,
        now: datetime | None = None,
    ) -> JobProgress:
        now = now or _utcnow()
        elapsed_ms = max((now - job.started_at).total_seconds() * 1000, 0.0)
        per_ms = job.completed_count / elapsed_ms if elapsed_ms > 0 else 0.0
        remaining = job.total_episodes - job.completed_count
        remaining_ms = remaining / per_ms if per_ms > 0 else 0.0
        return cls(
            job=job,
            entries=entries,
            progress_percentage=job.progress_percentage,
            estimated_time_remaining=(
                format_duration(remaining_ms) if remaining_ms > 0 else "Calculating..."
            ),
            episodes_per_second=per_ms * 1000,
        )
