from .job_runner import JobRunner
from .large_job import LargeJobUseCase
from .scrape_batch import BatchScrapeUseCase
from .scrape_episode import ScrapeEpisodeUseCase

__all__ = [
    "BatchScrapeUseCase",
    "JobRunner",
    "LargeJobUseCase",
    "ScrapeEpisodeUseCase",
]
