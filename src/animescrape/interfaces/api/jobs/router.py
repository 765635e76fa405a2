"""Large-job endpoints: chunked scraping with persisted progress."""

from __future__ import annotations

from typing import Any, Optional, cast

import structlog
from fastapi import APIRouter, Query, Request

from animescrape.domain.errors import (
    JobAlreadyRunningError,
    JobNotFoundError,
    PersistenceFailure,
)
from animescrape.interfaces.api import presenter
from animescrape.interfaces.api.schemas import (
    JobRefBody,
    ScrapeChunkBody,
    StartLargeScrapeBody,
)
from animescrape.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["jobs"])


@router.post("/api/start-large-scrape")
async def start_large_scrape(request: Request, body: StartLargeScrapeBody) -> Any:
    state = cast(AppState, request.app.state)
    if not body.anime_id or not body.anime_title or not body.total_episodes:
        return presenter.error_response(
            400, "Anime ID, title, and total episodes are required"
        )

    try:
        job = await state.large_job_uc.start(
            body.anime_id, body.anime_title, body.total_episodes, body.chunk_size
        )
    except ValueError as e:
        return presenter.error_response(400, str(e))
    except PersistenceFailure as e:
        return presenter.error_response(500, str(e))

    return {
        "success": True,
        "message": f"Large scraping job started for {body.anime_title}",
        "jobId": job.id,
        "totalEpisodes": job.total_episodes,
        "totalChunks": job.total_chunks,
        "chunkSize": job.chunk_size,
    }


@router.post("/api/scrape-chunk")
async def scrape_chunk(request: Request, body: ScrapeChunkBody) -> Any:
    """Scrape one chunk; only pending and failed episodes are attempted."""
    state = cast(AppState, request.app.state)
    if (
        not body.anime_id
        or not body.anime_title
        or body.chunk_number is None
        or not body.progress_id
    ):
        return presenter.error_response(
            400, "Anime ID, title, chunk number, and progress ID are required"
        )

    try:
        job = await state.large_job_uc.get_job(body.progress_id)
        if job.content_id != body.anime_id:
            return presenter.error_response(
                400, f"Progress {body.progress_id} does not belong to anime {body.anime_id}"
            )
        result = await state.large_job_uc.scrape_chunk(
            body.progress_id, body.chunk_number, title=body.anime_title
        )
    except JobNotFoundError as e:
        return presenter.error_response(404, str(e))
    except ValueError as e:
        return presenter.error_response(400, str(e))
    except PersistenceFailure as e:
        log.error("scrape_chunk_persistence_failed", job_id=body.progress_id, error=str(e))
        return presenter.error_response(500, str(e))

    return {
        "success": True,
        "message": f"Chunk {body.chunk_number} completed",
        "results": [presenter.batch_result(r) for r in result.results],
        "summary": presenter.batch_summary(result.summary),
    }


@router.get("/api/scraping-progress/{anime_id}")
async def scraping_progress(request: Request, anime_id: str) -> Any:
    state = cast(AppState, request.app.state)
    try:
        progress = await state.large_job_uc.get_progress(anime_id)
    except JobNotFoundError:
        return presenter.error_response(404, "Scraping progress not found")
    return {"success": True, "progress": presenter.job_progress(progress)}


@router.post("/api/run-large-scrape", status_code=202)
async def run_large_scrape(request: Request, body: JobRefBody) -> Any:
    """Run every remaining chunk in the background."""
    state = cast(AppState, request.app.state)
    if not body.progress_id:
        return presenter.error_response(400, "Progress ID is required")

    try:
        await state.job_runner.start(body.progress_id)
    except JobNotFoundError as e:
        return presenter.error_response(404, str(e))
    except JobAlreadyRunningError as e:
        return presenter.error_response(409, str(e))

    return {
        "success": True,
        "jobId": body.progress_id,
        "message": "Large scraping job running in background",
    }


@router.post("/api/cancel-large-scrape")
async def cancel_large_scrape(request: Request, body: JobRefBody) -> Any:
    state = cast(AppState, request.app.state)
    if not body.progress_id:
        return presenter.error_response(400, "Progress ID is required")
    return {"success": True, "cancelled": state.job_runner.cancel(body.progress_id)}


@router.get("/api/large-scrape-estimate")
async def large_scrape_estimate(
    request: Request,
    total_episodes: int = Query(..., alias="totalEpisodes", ge=1),
    chunk_size: Optional[int] = Query(None, alias="chunkSize", ge=1),
) -> dict[str, Any]:
    state = cast(AppState, request.app.state)
    estimate = state.large_job_uc.estimate(total_episodes, chunk_size)
    return {"success": True, **presenter.job_estimate(estimate)}


@router.get("/api/anime/{anime_id}/episodes")
async def anime_episodes(request: Request, anime_id: str) -> dict[str, Any]:
    """Stored episodes of one anime, ordered by episode number."""
    state = cast(AppState, request.app.state)
    records = await state.episode_store.list_episodes(anime_id)
    return {"success": True, "episodes": [presenter.episode_row(r) for r in records]}
