"""Background runs of large jobs, independent of any HTTP request."""

from __future__ import annotations

import asyncio

import structlog

from animescrape.application.cancellation import CancellationToken
from animescrape.application.use_cases.large_job import LargeJobUseCase
from animescrape.domain.errors import JobAlreadyRunningError

log = structlog.get_logger(__name__)


class JobRunner:
    """Owns one asyncio task and one cancellation token per running job."""

    def __init__(self, large_job: LargeJobUseCase) -> None:
        self.large_job = large_job
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._tokens: dict[str, CancellationToken] = {}

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    async def start(self, job_id: str) -> None:
        """Schedule ``run_job``. Raises JobNotFoundError / JobAlreadyRunningError."""
        await self.large_job.get_job(job_id)
        if self.is_running(job_id):
            raise JobAlreadyRunningError(f"Scraping job {job_id} is already running")

        token = CancellationToken()
        self._tokens[job_id] = token
        self._tasks[job_id] = asyncio.create_task(
            self._run(job_id, token), name=f"large-job-{job_id}"
        )
        log.info("job_runner_started", job_id=job_id)

    async def _run(self, job_id: str, token: CancellationToken) -> None:
        try:
            await self.large_job.run_job(job_id, token=token)
        except Exception:  # noqa: BLE001
            log.exception("job_runner_crashed", job_id=job_id)
        finally:
            self._tokens.pop(job_id, None)
            self._tasks.pop(job_id, None)

    def cancel(self, job_id: str) -> bool:
        token = self._tokens.get(job_id)
        if token is None:
            return False
        token.cancel()
        log.info("job_runner_cancel_requested", job_id=job_id)
        return True

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Cancel every run and wait for it; stragglers are hard-cancelled."""
        tasks = list(self._tasks.values())
        for token in list(self._tokens.values()):
            token.cancel("Shutting down")
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        log.info("job_runner_shutdown", stopped=len(tasks), forced=len(pending))
