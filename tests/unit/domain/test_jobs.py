"""Tests for large-job entities, estimates and progress figures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from animescrape.domain.entities.jobs import (
    EpisodeLogEntry,
    EpisodeStatus,
    JobProgress,
    JobStatus,
    ScrapingJob,
    chunk_of,
    estimate_job,
    format_duration,
)
from animescrape.domain.errors import InvalidTransitionError

_STARTED = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _job(**overrides: object) -> ScrapingJob:
    fields: dict[str, object] = {
        "id": "job-1",
        "content_id": "anime-1",
        "title": "One Piece",
        "total_episodes": 10,
        "chunk_size": 5,
        "total_chunks": 2,
        "started_at": _STARTED,
        "updated_at": _STARTED,
    }
    fields.update(overrides)
    return ScrapingJob(**fields)  # type: ignore[arg-type]


class TestChunkOf:
    def test_first_and_last_episode_of_chunk(self) -> None:
        assert chunk_of(1, 50) == 1
        assert chunk_of(50, 50) == 1

    def test_next_chunk_starts_after_boundary(self) -> None:
        assert chunk_of(51, 50) == 2

    def test_chunk_size_one(self) -> None:
        assert chunk_of(7, 1) == 7


class TestScrapingJobTransitions:
    def test_pending_to_in_progress(self) -> None:
        job = _job().transition(JobStatus.IN_PROGRESS)
        assert job.status == JobStatus.IN_PROGRESS
        assert job.updated_at > _STARTED

    def test_same_status_is_noop(self) -> None:
        job = _job()
        assert job.transition(JobStatus.PENDING) is job

    def test_completed_is_terminal(self) -> None:
        job = _job(status=JobStatus.COMPLETED)
        with pytest.raises(InvalidTransitionError):
            job.transition(JobStatus.IN_PROGRESS)

    def test_pending_cannot_complete_directly(self) -> None:
        with pytest.raises(InvalidTransitionError):
            _job().transition(JobStatus.COMPLETED)

    def test_is_finished(self) -> None:
        assert not _job(status=JobStatus.IN_PROGRESS).is_finished
        assert _job(status=JobStatus.FAILED).is_finished

    def test_progress_percentage_rounds(self) -> None:
        assert _job(completed_count=1, total_episodes=3).progress_percentage == 33
        assert _job(completed_count=2, total_episodes=3).progress_percentage == 67


class TestEpisodeLogEntryTransitions:
    def _entry(self, status: EpisodeStatus = EpisodeStatus.PENDING) -> EpisodeLogEntry:
        return EpisodeLogEntry(
            job_id="job-1", episode_number=3, chunk_number=1, status=status
        )

    def test_success_records_url_and_time(self) -> None:
        done = (
            self._entry()
            .transition(EpisodeStatus.SCRAPING)
            .transition(EpisodeStatus.SUCCESS, video_url="https://x.test/v")
        )
        assert done.status == EpisodeStatus.SUCCESS
        assert done.video_url == "https://x.test/v"
        assert done.scraped_at is not None
        assert done.error_message is None

    def test_failure_records_error(self) -> None:
        failed = self._entry(EpisodeStatus.SCRAPING).transition(
            EpisodeStatus.FAILED, error="boom"
        )
        assert failed.error_message == "boom"

    def test_failed_can_be_retried(self) -> None:
        entry = self._entry(EpisodeStatus.FAILED).transition(EpisodeStatus.SCRAPING)
        assert entry.status == EpisodeStatus.SCRAPING

    def test_retry_success_clears_error(self) -> None:
        entry = EpisodeLogEntry(
            job_id="job-1",
            episode_number=3,
            chunk_number=1,
            status=EpisodeStatus.SCRAPING,
            error_message="old",
        )
        done = entry.transition(EpisodeStatus.SUCCESS, video_url="https://x.test/v")
        assert done.error_message is None

    def test_success_is_terminal(self) -> None:
        with pytest.raises(InvalidTransitionError):
            self._entry(EpisodeStatus.SUCCESS).transition(EpisodeStatus.SCRAPING)

    def test_pending_cannot_skip_scraping(self) -> None:
        with pytest.raises(InvalidTransitionError):
            self._entry().transition(EpisodeStatus.SUCCESS, video_url="u")


class TestEstimateJob:
    def test_small_job(self) -> None:
        estimate = estimate_job(100, 50)
        assert estimate.total_chunks == 2
        assert estimate.estimated_hours == 0.1
        assert estimate.estimated_days == 0.0

    def test_large_job(self) -> None:
        estimate = estimate_job(10_000, 50)
        assert estimate.total_chunks == 200
        assert estimate.estimated_hours == 6.1
        assert estimate.estimated_days == 0.3

    def test_partial_last_chunk(self) -> None:
        assert estimate_job(101, 50).total_chunks == 3


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("ms", "expected"),
        [
            (0, "0s"),
            (4_000, "4s"),
            (184_000, "3m 4s"),
            (7_380_000, "2h 3m"),
            (93_780_000, "1d 2h 3m"),
        ],
    )
    def test_formats(self, ms: float, expected: str) -> None:
        assert format_duration(ms) == expected


class TestJobProgress:
    def test_throughput_and_remaining_time(self) -> None:
        job = _job(completed_count=5)
        progress = JobProgress.compute(job, [], now=_STARTED + timedelta(seconds=10))
        assert progress.progress_percentage == 50
        assert progress.episodes_per_second == pytest.approx(0.5)
        assert progress.estimated_time_remaining == "10s"

    def test_no_completed_episodes_yet(self) -> None:
        progress = JobProgress.compute(_job(), [], now=_STARTED + timedelta(minutes=1))
        assert progress.episodes_per_second == 0.0
        assert progress.estimated_time_remaining == "Calculating..."

    def test_all_done_has_no_remaining_time(self) -> None:
        job = _job(completed_count=10)
        progress = JobProgress.compute(job, [], now=_STARTED + timedelta(seconds=20))
        assert progress.progress_percentage == 100
        assert progress.estimated_time_remaining == "Calculating..."
