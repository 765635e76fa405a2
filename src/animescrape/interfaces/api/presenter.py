"""JSON shapes of the HTTP API.

Field names are part of the public contract (camelCase for scrape
responses, snake_case for persisted rows) and must not drift.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi.responses import JSONResponse

from animescrape.domain.entities import (
    BatchEpisodeResult,
    BatchSummary,
    EpisodeRecord,
    JobEstimate,
    JobProgress,
    ScrapeAllResult,
    ScrapeOutcome,
)
from animescrape.infrastructure.persistence import entry_to_row, job_to_row


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def episode_data(record: EpisodeRecord) -> dict[str, Any]:
    """``episodeData`` of a saved single-episode scrape."""
    return {
        "animeId": record.anime_id,
        "episodeNumber": record.episode_number,
        "title": record.title,
        "videoUrl": record.video_url,
        "thumbnailUrl": record.thumbnail_url,
        "duration": record.duration,
        "description": record.description,
        "embeddingProtected": record.embedding_protected,
        "embeddingReason": record.embedding_reason,
        "createdAt": _iso(record.created_at),
    }


def episode_row(record: EpisodeRecord) -> dict[str, Any]:
    return {
        "episode_number": record.episode_number,
        "title": record.title,
        "video_url": record.video_url,
        "created_at": _iso(record.created_at),
    }


def scrape_details(outcome: ScrapeOutcome) -> dict[str, Any]:
    """Unsaved pipeline result, as reported by the scraper self-test."""
    extraction = outcome.extraction
    return {
        "success": True,
        "streamUrl": outcome.stream_url,
        "embeddingProtected": outcome.verdict.protected,
        "embeddingReason": outcome.verdict.reason,
        "episodeData": {
            "animeTitle": outcome.title,
            "animeId": outcome.source.content_id,
            "animeLink": outcome.source.canonical_url,
            "episodeNumber": outcome.episode_number,
            "extractedAt": _iso(extraction.extracted_at),
            "resolvedBy": outcome.source.strategy,
            "extractedBy": extraction.strategy,
            "hostChain": list(extraction.host_chain),
            "degraded": extraction.degraded,
        },
    }


def batch_result(result: BatchEpisodeResult) -> dict[str, Any]:
    if not result.ok:
        return {"episode": result.episode, "status": result.status, "error": result.error}
    return {
        "episode": result.episode,
        "status": result.status,
        "url": result.url,
        "title": result.title or f"Episode {result.episode}",
        "embeddingProtected": result.embedding_protected,
        "embeddingReason": result.embedding_reason,
        "scrapedAt": _iso(result.scraped_at),
    }


def batch_summary(summary: BatchSummary) -> dict[str, Any]:
    return {
        "totalEpisodes": summary.total_episodes,
        "successCount": summary.success_count,
        "errorCount": summary.error_count,
        "successRate": summary.success_rate,
    }


def scrape_all(result: ScrapeAllResult, anime_id: str) -> dict[str, Any]:
    scraped = [
        {
            "number": episode.number,
            "title": episode.title,
            "url": episode.url,
            "streamUrl": outcome.stream_url,
            "embeddingProtected": outcome.verdict.protected,
            "embeddingReason": outcome.verdict.reason,
            "scrapedAt": _iso(outcome.extraction.extracted_at),
        }
        for episode, outcome in result.scraped
    ]
    failed = [
        {"number": episode.number, "title": episode.title, "url": episode.url, "error": error}
        for episode, error in result.failed
    ]
    return {
        "success": True,
        "animeTitle": result.title,
        "animeId": anime_id,
        "contentId": result.content_id,
        "totalEpisodes": result.total_episodes,
        "scrapedEpisodes": scraped,
        "failedEpisodes": failed,
        "cancelled": result.cancelled,
        "summary": {
            "total": len(scraped) + len(failed),
            "successful": len(scraped),
            "failed": len(failed),
            "embeddingProtected": result.embedding_protected_count,
        },
    }


def job_progress(progress: JobProgress) -> dict[str, Any]:
    """Persisted job row, its episode log and the derived throughput figures.

    ``episodesPerMs`` keeps its historical name; the value is episodes
    per second.
    """
    row = job_to_row(progress.job)
    row["episode_scraping_log"] = [
        {
            key: value
            for key, value in entry_to_row(entry).items()
            if key in ("episode_number", "status", "error_message", "scraped_at")
        }
        for entry in progress.entries
    ]
    row["progressPercentage"] = progress.progress_percentage
    row["estimatedTimeRemaining"] = progress.estimated_time_remaining
    row["episodesPerMs"] = progress.episodes_per_second
    return row


def job_estimate(estimate: JobEstimate) -> dict[str, Any]:
    return {
        "totalChunks": estimate.total_chunks,
        "estimatedHours": estimate.estimated_hours,
        "estimatedDays": estimate.estimated_days,
    }
