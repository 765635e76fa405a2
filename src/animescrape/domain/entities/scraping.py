"""Domain entities for single-episode resolution and extraction.

Pure value objects, no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

EpisodeResultStatus = Literal["success", "failed"]

FILM_DURATION_SECONDS = 5400
EPISODE_DURATION_SECONDS = 1440


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def success_rate(success_count: int, total: int) -> float:
    """Percentage of successes rounded to one decimal; 0 for an empty run."""
    if total <= 0:
        return 0.0
    return round(success_count / total * 100, 1)


@dataclass(frozen=True)
class ScrapeOptions:
    """Per-request tuning knobs."""

    timeout_ms: int = 45_000  # browser navigation budget
    max_retries: int = 3  # whole resolve+extract attempts
    headless: bool = True


@dataclass(frozen=True)
class ScrapeRequest:
    """Immutable input to one resolution + extraction attempt."""

    title: str
    episode_number: int
    options: ScrapeOptions = field(default_factory=ScrapeOptions)


@dataclass(frozen=True)
class ResolvedSource:
    """Canonical episode page plus the stable content identifier."""

    canonical_url: str
    content_id: str
    strategy: str = "direct"


@dataclass(frozen=True)
class ExtractionResult:
    """Stream URL located on a resolved page.

    ``host_chain`` lists the embed hops taken (iframe source, then the
    nested mirror when an aggregator page was followed).  ``degraded``
    marks the low-confidence fallback where the page URL itself is
    returned as the stream.
    """

    stream_url: str
    extracted_at: datetime = field(default_factory=_utcnow)
    host_chain: tuple[str, ...] = ()
    strategy: str = ""
    degraded: bool = False


@dataclass(frozen=True)
class ProtectionVerdict:
    """Outcome of the anti-embedding heuristics."""

    protected: bool
    reasons: tuple[str, ...] = ()

    @property
    def reason(self) -> str | None:
        """Joined reasons, only when the stream is considered protected."""
        if not self.protected or not self.reasons:
            return None
        return ", ".join(self.reasons)


@dataclass(frozen=True)
class ScrapeOutcome:
    """Result of the full resolve -> extract -> protection pipeline."""

    title: str
    episode_number: int
    source: ResolvedSource
    extraction: ExtractionResult
    verdict: ProtectionVerdict

    @property
    def stream_url(self) -> str:
        return self.extraction.stream_url


@dataclass(frozen=True)
class EpisodeRecord:
    """Catalog row persisted through the EpisodeStore."""

    anime_id: str
    episode_number: int
    title: str
    video_url: str
    description: str
    duration: int = EPISODE_DURATION_SECONDS
    thumbnail_url: str | None = None
    embedding_protected: bool = False
    embedding_reason: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_outcome(
        cls,
        outcome: ScrapeOutcome,
        *,
        anime_id: str,
        description: str | None = None,
    ) -> EpisodeRecord:
        lowered = outcome.title.lower()
        is_film = "film" in lowered or "movie" in lowered
        return cls(
            anime_id=anime_id,
            episode_number=outcome.episode_number,
            title=f"{outcome.title} - Episode {outcome.episode_number}",
            video_url=outcome.stream_url,
            description=description
            or f"Episode {outcome.episode_number} of {outcome.title}",
            duration=FILM_DURATION_SECONDS if is_film else EPISODE_DURATION_SECONDS,
            embedding_protected=outcome.verdict.protected,
            embedding_reason=outcome.verdict.reason,
        )


@dataclass(frozen=True)
class AvailableEpisode:
    """Episode link discovered on an anime page."""

    number: int
    title: str
    url: str


@dataclass(frozen=True)
class BatchEpisodeResult:
    """Per-episode line of a batch or chunk run."""

    episode: int
    status: EpisodeResultStatus
    url: str | None = None
    title: str | None = None
    embedding_protected: bool = False
    embedding_reason: str | None = None
    scraped_at: datetime | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True)
class BatchSummary:
    """Aggregate counters; ``success_count + error_count == total_episodes``."""

    total_episodes: int
    success_count: int
    error_count: int

    @property
    def success_rate(self) -> float:
        return success_rate(self.success_count, self.total_episodes)

    @classmethod
    def from_results(cls, results: list[BatchEpisodeResult]) -> BatchSummary:
        ok = sum(1 for r in results if r.ok)
        return cls(
            total_episodes=len(results),
            success_count=ok,
            error_count=len(results) - ok,
        )


@dataclass(frozen=True)
class BatchResult:
    results: list[BatchEpisodeResult]
    summary: BatchSummary
    cancelled: bool = False


@dataclass(frozen=True)
class ScrapeAllResult:
    """Outcome of scraping every episode listed on an anime page."""

    title: str
    content_id: str
    total_episodes: int
    scraped: list[tuple[AvailableEpisode, ScrapeOutcome]]
    failed: list[tuple[AvailableEpisode, str]]
    cancelled: bool = False

    @property
    def embedding_protected_count(self) -> int:
        return sum(1 for _, outcome in self.scraped if outcome.verdict.protected)
