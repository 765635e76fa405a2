"""Ports for the resolve -> extract -> protection pipeline."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from animescrape.domain.entities.scraping import (
    AvailableEpisode,
    ExtractionResult,
    ProtectionVerdict,
    ResolvedSource,
    ScrapeOptions,
)


@runtime_checkable
class SourceResolver(Protocol):
    """Title + episode -> canonical page. Raises ResolutionFailure/NetworkFailure."""

    async def resolve(self, title: str, episode_number: int) -> ResolvedSource: ...


@runtime_checkable
class StreamExtractor(Protocol):
    """Resolved page -> stream URL. Falls back to the page URL (degraded)."""

    async def extract(
        self, source: ResolvedSource, options: ScrapeOptions
    ) -> ExtractionResult: ...


@runtime_checkable
class ProtectionChecker(Protocol):
    """Never raises: a failed check yields a protected verdict."""

    async def check(self, stream_url: str) -> ProtectionVerdict: ...


@runtime_checkable
class EpisodeLister(Protocol):
    async def list_episodes(
        self, page_url: str, content_id: str, max_episodes: int
    ) -> list[AvailableEpisode]: ...
