"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from animescrape.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from animescrape.application.use_cases import (
        BatchScrapeUseCase,
        JobRunner,
        LargeJobUseCase,
        ScrapeEpisodeUseCase,
    )
    from animescrape.domain.ports import CachePort, EpisodeStore, ProgressStore
    from animescrape.infrastructure.scraping import BrowserPool, ScrapeGate


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig
    started_at: float

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient
    browser_pool: BrowserPool
    scrape_gate: ScrapeGate

    # Stores (own non-evicting backend instance)
    store_cache: CachePort
    episode_store: EpisodeStore
    progress_store: ProgressStore

    # Use cases
    scrape_episode_uc: ScrapeEpisodeUseCase
    batch_uc: BatchScrapeUseCase
    large_job_uc: LargeJobUseCase

    # Background large-job runs
    job_runner: JobRunner
