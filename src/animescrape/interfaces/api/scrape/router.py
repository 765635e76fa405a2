"""Single-episode and batch scrape endpoints."""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Optional, cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from animescrape.application.cancellation import CancellationToken
from animescrape.application.progress import ProgressChannel
from animescrape.domain.entities import ScrapeOptions, ScrapeRequest
from animescrape.domain.errors import ScrapeError
from animescrape.interfaces.api import presenter
from animescrape.interfaces.api.schemas import (
    BatchScrapeBody,
    ScrapeAllBody,
    ScrapeEpisodeBody,
    ScraperTestBody,
)
from animescrape.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["scrape"])

BATCH_DEFAULTS = ScrapeOptions(timeout_ms=30_000, max_retries=2)

_background: set[asyncio.Task[Any]] = set()


def _episode_defaults(state: AppState) -> ScrapeOptions:
    return ScrapeOptions(
        timeout_ms=state.config.scraper.timeout_ms,
        max_retries=state.config.scraper.max_retries,
        headless=state.config.playwright_headless,
    )


def _batch_defaults(state: AppState) -> ScrapeOptions:
    return ScrapeOptions(
        timeout_ms=BATCH_DEFAULTS.timeout_ms,
        max_retries=BATCH_DEFAULTS.max_retries,
        headless=state.config.playwright_headless,
    )


@router.post("/api/scrape-episode")
async def scrape_episode(request: Request, body: ScrapeEpisodeBody) -> Any:
    state = cast(AppState, request.app.state)
    if not body.anime_title or not body.anime_id:
        return presenter.error_response(
            400, "Missing required fields: animeTitle and animeId"
        )

    scrape_request = ScrapeRequest(
        title=body.anime_title,
        episode_number=body.episode_number,
        options=body.options.to_options(_episode_defaults(state)),
    )
    try:
        outcome, record = await state.scrape_episode_uc.execute(
            scrape_request, anime_id=body.anime_id
        )
    except ScrapeError as e:
        log.warning(
            "scrape_episode_failed",
            title=body.anime_title,
            episode=body.episode_number,
            error=str(e),
        )
        return presenter.error_response(500, str(e) or "Scraping failed")

    return {
        "success": True,
        "streamUrl": outcome.stream_url,
        "episodeData": presenter.episode_data(record),
        "message": f"Episode {body.episode_number} scraped and saved successfully!",
    }


@router.post("/api/test-scraper")
async def test_scraper(
    request: Request, body: Optional[ScraperTestBody] = None
) -> dict[str, Any]:
    """Dry-run the pipeline; nothing is saved."""
    state = cast(AppState, request.app.state)
    body = body or ScraperTestBody()
    try:
        outcome = await state.scrape_episode_uc.test(body.anime_title, body.episode_number)
    except ScrapeError as e:
        details: dict[str, Any] = {"success": False, "error": str(e) or "Test failed"}
    else:
        details = presenter.scrape_details(outcome)

    ok = bool(details["success"])
    return {
        "success": ok,
        "message": "Scraper test successful!" if ok else "Scraper test failed",
        "details": details,
    }


@router.post("/api/scrape-all-episodes")
async def scrape_all_episodes(request: Request, body: ScrapeAllBody) -> Any:
    state = cast(AppState, request.app.state)
    if not body.anime_title:
        return presenter.error_response(400, "Anime title is required")
    if not body.anime_id:
        return presenter.error_response(400, "Anime ID is required")

    try:
        result = await state.batch_uc.scrape_all(
            body.anime_title, body.anime_id, body.max_episodes
        )
    except ScrapeError as e:
        log.warning("scrape_all_failed", title=body.anime_title, error=str(e))
        return {
            "success": False,
            "message": "Failed to scrape episodes",
            "data": {"success": False, "error": str(e)},
        }

    return {
        "success": True,
        "message": "All episodes scraped successfully!",
        "data": presenter.scrape_all(result, body.anime_id),
    }


def _batch_target(body: BatchScrapeBody) -> tuple[str, str, list[int]] | None:
    """(title, anime id, episode numbers), or None when a field is missing."""
    if not body.anime_title or not body.anime_id or body.episode_numbers is None:
        return None
    return body.anime_title, body.anime_id, body.episode_numbers


def _missing_batch_fields() -> JSONResponse:
    return presenter.error_response(
        400, "Anime title, ID, and episode numbers are required"
    )


@router.post("/api/batch-scrape-episodes")
async def batch_scrape_episodes(request: Request, body: BatchScrapeBody) -> Any:
    state = cast(AppState, request.app.state)
    target = _batch_target(body)
    if target is None:
        return _missing_batch_fields()
    title, anime_id, episode_numbers = target

    result = await state.batch_uc.scrape_batch(
        title,
        anime_id,
        episode_numbers,
        body.options.to_options(_batch_defaults(state)),
        delay_seconds=body.options.delay_seconds,
    )
    summary = result.summary
    return {
        "success": True,
        "message": (
            f"Batch scraping completed: {summary.success_count}/"
            f"{summary.total_episodes} episodes successful"
        ),
        "results": [presenter.batch_result(r) for r in result.results],
        "summary": presenter.batch_summary(summary),
    }


def _log_task_result(task: asyncio.Task[Any]) -> None:
    _background.discard(task)
    if not task.cancelled() and task.exception() is not None:
        log.error("batch_stream_task_failed", error=str(task.exception()))


@router.post("/api/batch-scrape-episodes-stream")
async def batch_scrape_episodes_stream(request: Request, body: BatchScrapeBody) -> Any:
    """Batch run reported live as Server-Sent Events.

    Each event is one ``data: {json}`` line; the stream ends after the
    ``complete`` event.  A client disconnect cancels the remaining
    episodes.
    """
    state = cast(AppState, request.app.state)
    target = _batch_target(body)
    if target is None:
        return _missing_batch_fields()
    title, anime_id, episode_numbers = target

    channel = ProgressChannel(maxsize=state.config.scraper.progress_queue_size)
    token = CancellationToken()
    task = asyncio.create_task(
        state.batch_uc.scrape_batch_with_progress(
            title,
            anime_id,
            episode_numbers,
            body.options.to_options(_batch_defaults(state)),
            channel,
            token=token,
            delay_seconds=body.options.delay_seconds,
        )
    )
    _background.add(task)
    task.add_done_callback(_log_task_result)

    async def events() -> AsyncIterator[str]:
        completed = False
        try:
            async for event in channel:
                yield f"data: {json.dumps(event.to_dict())}\n\n"
            completed = True
        finally:
            if not completed:
                token.cancel("Client disconnected")
                channel.abandon()
                log.info("batch_stream_client_disconnected", title=title)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
