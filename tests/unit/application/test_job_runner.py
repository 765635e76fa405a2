"""Tests for JobRunner background execution."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from animescrape.application.cancellation import CancellationToken
from animescrape.application.use_cases.job_runner import JobRunner
from animescrape.domain.errors import JobAlreadyRunningError, JobNotFoundError


def _large_job(run_job: AsyncMock | None = None) -> MagicMock:
    large_job = MagicMock()
    large_job.get_job = AsyncMock(return_value=MagicMock())
    large_job.run_job = run_job or AsyncMock()
    return large_job


async def _wait_until_cancelled(job_id: str, *, token: CancellationToken) -> None:
    while not token.cancelled:
        await asyncio.sleep(0.001)


class TestJobRunner:
    @pytest.mark.asyncio()
    async def test_runs_in_background_and_cleans_up(self) -> None:
        large_job = _large_job()
        runner = JobRunner(large_job)

        await runner.start("job-1")
        assert runner.is_running("job-1")
        await asyncio.sleep(0.01)

        large_job.run_job.assert_awaited_once()
        assert large_job.run_job.await_args.args == ("job-1",)
        assert not runner.is_running("job-1")

    @pytest.mark.asyncio()
    async def test_unknown_job(self) -> None:
        large_job = _large_job()
        large_job.get_job.side_effect = JobNotFoundError("nope")
        with pytest.raises(JobNotFoundError):
            await JobRunner(large_job).start("nope")

    @pytest.mark.asyncio()
    async def test_rejects_second_start(self) -> None:
        runner = JobRunner(_large_job(AsyncMock(side_effect=_wait_until_cancelled)))
        await runner.start("job-1")

        with pytest.raises(JobAlreadyRunningError):
            await runner.start("job-1")
        await runner.shutdown(timeout=1.0)

    @pytest.mark.asyncio()
    async def test_cancel_signals_token(self) -> None:
        runner = JobRunner(_large_job(AsyncMock(side_effect=_wait_until_cancelled)))
        await runner.start("job-1")

        assert runner.cancel("job-1") is True
        await asyncio.sleep(0.02)

        assert not runner.is_running("job-1")
        assert runner.cancel("job-1") is False

    @pytest.mark.asyncio()
    async def test_crash_is_contained(self) -> None:
        runner = JobRunner(_large_job(AsyncMock(side_effect=RuntimeError("boom"))))
        await runner.start("job-1")
        await asyncio.sleep(0.01)
        assert not runner.is_running("job-1")

    @pytest.mark.asyncio()
    async def test_shutdown_force_cancels_stragglers(self) -> None:
        async def ignore_token(job_id: str, *, token: CancellationToken) -> None:
            await asyncio.sleep(60)

        runner = JobRunner(_large_job(AsyncMock(side_effect=ignore_token)))
        await runner.start("job-1")

        await runner.shutdown(timeout=0.01)

        assert not runner.is_running("job-1")

    @pytest.mark.asyncio()
    async def test_shutdown_without_jobs(self) -> None:
        await JobRunner(_large_job()).shutdown()
