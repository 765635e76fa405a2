"""Single-episode scrape: cache -> resolve -> extract -> protection -> store."""

from __future__ import annotations

import structlog

from animescrape.application.cancellation import CancellationToken, pause
from animescrape.domain.entities.scraping import (
    EpisodeRecord,
    ResolvedSource,
    ScrapeOptions,
    ScrapeOutcome,
    ScrapeRequest,
)
from animescrape.domain.errors import ScrapeCancelledError, ScrapeError
from animescrape.domain.ports.cache import CachePort
from animescrape.domain.ports.episode_store import EpisodeStore
from animescrape.domain.ports.scraping import (
    ProtectionChecker,
    SourceResolver,
    StreamExtractor,
)

log = structlog.get_logger(__name__)

TEST_SCRAPE_OPTIONS = ScrapeOptions(timeout_ms=30_000, max_retries=2)


def episode_cache_key(title: str, episode_number: int) -> str:
    return f"episode:{title}:{episode_number}"


class ScrapeEpisodeUseCase:
    """Runs the full pipeline for one episode with whole-attempt retries.

    Every attempt-level failure (resolution miss, network error, open
    gate) is retried identically up to ``options.max_retries``; the last
    error is then raised unchanged.
    """

    def __init__(
        self,
        *,
        resolver: SourceResolver,
        extractor: StreamExtractor,
        protection: ProtectionChecker,
        episode_store: EpisodeStore,
        cache: CachePort,
        episode_ttl: int = 86400,
        retry_delay_seconds: float = 2.0,
    ) -> None:
        self.resolver = resolver
        self.extractor = extractor
        self.protection = protection
        self.episode_store = episode_store
        self._cache = cache
        self._episode_ttl = episode_ttl
        self._retry_delay = retry_delay_seconds

    async def _attempt(
        self, request: ScrapeRequest, source: ResolvedSource | None
    ) -> ScrapeOutcome:
        if source is None:
            source = await self.resolver.resolve(request.title, request.episode_number)
        extraction = await self.extractor.extract(source, request.options)
        verdict = await self.protection.check(extraction.stream_url)
        return ScrapeOutcome(
            title=request.title,
            episode_number=request.episode_number,
            source=source,
            extraction=extraction,
            verdict=verdict,
        )

    async def run_pipeline(
        self,
        request: ScrapeRequest,
        *,
        token: CancellationToken | None = None,
        source: ResolvedSource | None = None,
    ) -> ScrapeOutcome:
        """Scrape without persisting; ``source`` skips resolution."""
        key = episode_cache_key(request.title, request.episode_number)
        cached = await self._cache.get(key)
        if isinstance(cached, ScrapeOutcome):
            log.info("scrape_cache_hit", title=request.title, episode=request.episode_number)
            return cached

        max_retries = max(1, request.options.max_retries)
        last_error: Exception | None = None
        for attempt in range(1, max_retries + 1):
            if token is not None:
                token.raise_if_cancelled()
            try:
                outcome = await self._attempt(request, source)
            except ScrapeCancelledError:
                raise
            except Exception as e:  # noqa: BLE001
                last_error = e
                log.warning(
                    "scrape_attempt_failed",
                    title=request.title,
                    episode=request.episode_number,
                    attempt=attempt,
                    max_retries=max_retries,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if attempt < max_retries:
                    await pause(self._retry_delay, token)
                continue

            log.info(
                "scrape_succeeded",
                title=request.title,
                episode=request.episode_number,
                attempt=attempt,
                stream_url=outcome.stream_url,
                degraded=outcome.extraction.degraded,
                protected=outcome.verdict.protected,
            )
            if not outcome.extraction.degraded:
                await self._cache.set(key, outcome, ttl=self._episode_ttl)
            return outcome

        if isinstance(last_error, ScrapeError):
            raise last_error
        raise ScrapeError(str(last_error)) from last_error

    async def execute(
        self,
        request: ScrapeRequest,
        *,
        anime_id: str,
        token: CancellationToken | None = None,
        source: ResolvedSource | None = None,
        description: str | None = None,
    ) -> tuple[ScrapeOutcome, EpisodeRecord]:
        """Scrape and upsert the episode row. Raises PersistenceFailure on store errors."""
        outcome = await self.run_pipeline(request, token=token, source=source)
        record = EpisodeRecord.from_outcome(
            outcome, anime_id=anime_id, description=description
        )
        await self.episode_store.upsert(record)
        log.info("episode_saved", anime_id=anime_id, episode=record.episode_number)
        return outcome, record

    async def test(self, title: str, episode_number: int) -> ScrapeOutcome:
        """Dry run used by the scraper self-test; nothing is persisted."""
        request = ScrapeRequest(title, episode_number, TEST_SCRAPE_OPTIONS)
        return await self.run_pipeline(request)
