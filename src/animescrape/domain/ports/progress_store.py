"""Port for large-job progress persistence."""

from __future__ import annotations

from collections.abc import Collection
from typing import Protocol, runtime_checkable

from animescrape.domain.entities.jobs import EpisodeLogEntry, EpisodeStatus, ScrapingJob


@runtime_checkable
class ProgressStore(Protocol):
    """Persists ScrapingJob rows and their EpisodeLogEntry rows.

    Jobs are never deleted by the core; retention is the store's concern.
    """

    async def save_job(self, job: ScrapingJob) -> None: ...

    async def get_job(self, job_id: str) -> ScrapingJob | None: ...

    async def find_job_by_content(self, content_id: str) -> ScrapingJob | None:
        """Most recently started job for a content id."""
        ...

    async def save_entries(self, entries: list[EpisodeLogEntry]) -> None: ...

    async def list_entries(
        self,
        job_id: str,
        *,
        chunk_number: int | None = None,
        statuses: Collection[EpisodeStatus] | None = None,
    ) -> list[EpisodeLogEntry]:
        """Entries ordered by episode number, optionally filtered."""
        ...
