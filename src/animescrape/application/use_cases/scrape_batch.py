"""Sequential multi-episode runs: batch, batch with live progress, scrape-all."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import structlog

from animescrape.application.cancellation import CancellationToken, pause
from animescrape.application.progress import ProgressChannel
from animescrape.application.use_cases.scrape_episode import ScrapeEpisodeUseCase
from animescrape.domain.entities.events import BatchProgressEvent
from animescrape.domain.entities.scraping import (
    AvailableEpisode,
    BatchEpisodeResult,
    BatchResult,
    BatchSummary,
    ResolvedSource,
    ScrapeAllResult,
    ScrapeOptions,
    ScrapeOutcome,
    ScrapeRequest,
)
from animescrape.domain.errors import ScrapeCancelledError
from animescrape.domain.ports.scraping import EpisodeLister, SourceResolver

log = structlog.get_logger(__name__)

Emit = Callable[[BatchProgressEvent], Awaitable[None]]

CANCELLED_MESSAGE = "Scrape cancelled"
SCRAPE_ALL_OPTIONS = ScrapeOptions(max_retries=2)


async def _no_emit(_: BatchProgressEvent) -> None:
    return None


class BatchScrapeUseCase:
    """Episodes are processed strictly in the order given, one at a time.

    A failing episode is recorded and the run moves on; cancellation
    marks the current and all remaining episodes as failed so the summary
    always covers every requested episode.
    """

    def __init__(
        self,
        *,
        scrape: ScrapeEpisodeUseCase,
        resolver: SourceResolver,
        lister: EpisodeLister,
        batch_delay_seconds: float = 2.0,
        scrape_all_delay_seconds: float = 1.0,
    ) -> None:
        self.scrape = scrape
        self.resolver = resolver
        self.lister = lister
        self._batch_delay = batch_delay_seconds
        self._scrape_all_delay = scrape_all_delay_seconds

    async def scrape_batch(
        self,
        title: str,
        anime_id: str,
        episode_numbers: list[int],
        options: ScrapeOptions,
        *,
        token: CancellationToken | None = None,
        emit: Optional[Emit] = None,
        delay_seconds: float | None = None,
    ) -> BatchResult:
        emit = emit or _no_emit
        delay = self._batch_delay if delay_seconds is None else delay_seconds
        total = len(episode_numbers)
        results: list[BatchEpisodeResult] = []
        cancelled = False

        log.info("batch_started", title=title, anime_id=anime_id, total=total)
        await emit(BatchProgressEvent(type="start", total=total))

        for index, number in enumerate(episode_numbers, start=1):
            if cancelled or (token is not None and token.cancelled):
                cancelled = True
                results.append(_failed(number, CANCELLED_MESSAGE))
                continue

            await emit(
                BatchProgressEvent(
                    type="progress",
                    episode=number,
                    current=index,
                    total=total,
                    status="scraping",
                )
            )
            result = await self._scrape_one(title, anime_id, number, options, token)
            results.append(result)
            if result.error == CANCELLED_MESSAGE:
                cancelled = True

            if result.ok:
                await emit(
                    BatchProgressEvent(
                        type="success",
                        episode=number,
                        current=index,
                        total=total,
                        status="success",
                        url=result.url,
                        title=result.title,
                    )
                )
            else:
                await emit(
                    BatchProgressEvent(
                        type="error",
                        episode=number,
                        current=index,
                        total=total,
                        status="failed",
                        error=result.error,
                    )
                )

            if index < total and not cancelled:
                try:
                    await pause(delay, token)
                except ScrapeCancelledError:
                    cancelled = True

        summary = BatchSummary.from_results(results)
        await emit(
            BatchProgressEvent(
                type="complete",
                total=summary.total_episodes,
                success_count=summary.success_count,
                error_count=summary.error_count,
                success_rate=summary.success_rate,
            )
        )
        log.info(
            "batch_finished",
            title=title,
            total=summary.total_episodes,
            success=summary.success_count,
            failed=summary.error_count,
            cancelled=cancelled,
        )
        return BatchResult(results=results, summary=summary, cancelled=cancelled)

    async def scrape_batch_with_progress(
        self,
        title: str,
        anime_id: str,
        episode_numbers: list[int],
        options: ScrapeOptions,
        channel: ProgressChannel,
        *,
        token: CancellationToken | None = None,
        delay_seconds: float | None = None,
    ) -> BatchResult:
        """Batch run that pushes every event into *channel*, then closes it."""
        try:
            return await self.scrape_batch(
                title,
                anime_id,
                episode_numbers,
                options,
                token=token,
                emit=channel.emit,
                delay_seconds=delay_seconds,
            )
        finally:
            await channel.close()

    async def _scrape_one(
        self,
        title: str,
        anime_id: str,
        number: int,
        options: ScrapeOptions,
        token: CancellationToken | None,
    ) -> BatchEpisodeResult:
        try:
            outcome, record = await self.scrape.execute(
                ScrapeRequest(title, number, options), anime_id=anime_id, token=token
            )
        except ScrapeCancelledError:
            return _failed(number, CANCELLED_MESSAGE)
        except Exception as e:  # noqa: BLE001
            log.warning("batch_episode_failed", title=title, episode=number, error=str(e))
            return _failed(number, str(e))
        return BatchEpisodeResult(
            episode=number,
            status="success",
            url=outcome.stream_url,
            title=record.title,
            embedding_protected=outcome.verdict.protected,
            embedding_reason=outcome.verdict.reason,
            scraped_at=datetime.now(timezone.utc),
        )

    async def scrape_all(
        self,
        title: str,
        anime_id: str,
        max_episodes: int,
        *,
        token: CancellationToken | None = None,
    ) -> ScrapeAllResult:
        """Resolve the show, list its episodes and scrape each listed page."""
        first = await self.resolver.resolve(title, 1)
        episodes = await self.lister.list_episodes(
            first.canonical_url, first.content_id, max_episodes
        )
        log.info("scrape_all_started", title=title, content_id=first.content_id, total=len(episodes))

        scraped: list[tuple[AvailableEpisode, ScrapeOutcome]] = []
        failed: list[tuple[AvailableEpisode, str]] = []
        cancelled = False
        for index, episode in enumerate(episodes, start=1):
            if token is not None and token.cancelled:
                cancelled = True
                break
            source = ResolvedSource(
                canonical_url=episode.url,
                content_id=first.content_id,
                strategy="listing",
            )
            try:
                outcome, _ = await self.scrape.execute(
                    ScrapeRequest(title, episode.number, SCRAPE_ALL_OPTIONS),
                    anime_id=anime_id,
                    token=token,
                    source=source,
                )
                scraped.append((episode, outcome))
            except ScrapeCancelledError:
                cancelled = True
                break
            except Exception as e:  # noqa: BLE001
                log.warning("scrape_all_episode_failed", episode=episode.number, error=str(e))
                failed.append((episode, str(e)))

            if index < len(episodes):
                try:
                    await pause(self._scrape_all_delay, token)
                except ScrapeCancelledError:
                    cancelled = True
                    break

        return ScrapeAllResult(
            title=title,
            content_id=first.content_id,
            total_episodes=len(episodes),
            scraped=scraped,
            failed=failed,
            cancelled=cancelled,
        )


def _failed(number: int, error: str) -> BatchEpisodeResult:
    return BatchEpisodeResult(episode=number, status="failed", error=error)
