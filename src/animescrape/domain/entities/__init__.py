from .events import BatchProgressEvent, EventType
from .jobs import (
    ChunkResult,
    EpisodeLogEntry,
    EpisodeStatus,
    JobEstimate,
    JobProgress,
    JobStatus,
    ScrapingJob,
    estimate_job,
    format_duration,
)
from .scraping import (
    AvailableEpisode,
    BatchEpisodeResult,
    BatchResult,
    BatchSummary,
    EpisodeRecord,
    ExtractionResult,
    ProtectionVerdict,
    ResolvedSource,
    ScrapeAllResult,
    ScrapeOptions,
    ScrapeOutcome,
    ScrapeRequest,
    success_rate,
)

__all__ = [
    "AvailableEpisode",
    "BatchEpisodeResult",
    "BatchProgressEvent",
    "BatchResult",
    "BatchSummary",
    "ChunkResult",
    "EpisodeLogEntry",
    "EpisodeRecord",
    "EpisodeStatus",
    "EventType",
    "ExtractionResult",
    "JobEstimate",
    "JobProgress",
    "JobStatus",
    "ProtectionVerdict",
    "ResolvedSource",
    "ScrapeAllResult",
    "ScrapeOptions",
    "ScrapeOutcome",
    "ScrapeRequest",
    "ScrapingJob",
    "estimate_job",
    "format_duration",
    "success_rate",
]
