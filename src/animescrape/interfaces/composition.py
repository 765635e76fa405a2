"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import structlog
from fastapi import FastAPI

from animescrape.application.use_cases import (
    BatchScrapeUseCase,
    JobRunner,
    LargeJobUseCase,
    ScrapeEpisodeUseCase,
)
from animescrape.domain.entities import ScrapeOptions
from animescrape.infrastructure.cache.cache_factory import (
    create_cache,
    create_store_cache,
)
from animescrape.infrastructure.common import build_http_client
from animescrape.infrastructure.persistence import (
    CacheEpisodeStore,
    CacheProgressStore,
)
from animescrape.infrastructure.scraping import (
    BrowserPool,
    HttpEpisodeLister,
    HttpProtectionDetector,
    HttpSourceResolver,
    PlaywrightStreamExtractor,
    ScrapeGate,
)
from animescrape.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Cache (resolver, use cases and stores depend on it)
        2. HTTP client (resolver, nested embeds, protection, listing)
        3. Browser pool + scrape gate
        4. Scraping adapters
        5. Stores
        6. Use cases
        7. Job runner
    """
    state = cast(AppState, app.state)
    config = state.config
    scraper = config.scraper

    # 1) Cache (must be first - other components depend on it)
    cache = create_cache(config.cache)
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", backend=config.cache.backend)

    # 2) HTTP client with per-host rate limiting + 429/5xx retry
    state.http_client = build_http_client(config)
    log.info(
        "http_client_initialized",
        rate_limit_rps=config.rate_limit_requests_per_second,
        retry_max_attempts=config.http_retry_max_attempts,
    )

    # 3) Shared Chromium (launched lazily on first extraction)
    state.browser_pool = BrowserPool(
        user_agent=config.upstream_user_agent,
        stealth=config.playwright_stealth,
    )
    state.scrape_gate = ScrapeGate(
        max_concurrency=scraper.max_concurrency,
        failure_threshold=scraper.breaker_threshold,
        cooldown_seconds=scraper.breaker_cooldown_seconds,
    )
    log.info(
        "browser_pool_configured",
        headless=config.playwright_headless,
        stealth=config.playwright_stealth,
        max_concurrency=scraper.max_concurrency,
    )

    # 4) Scraping adapters
    resolver = HttpSourceResolver(
        http_client=state.http_client,
        cache=cache,
        base_url=config.upstream_base_url,
        probe_timeout_seconds=config.upstream_probe_timeout_seconds,
        search_timeout_seconds=config.upstream_search_timeout_seconds,
        search_ttl_seconds=config.cache.search_ttl_seconds,
    )
    extractor = PlaywrightStreamExtractor(
        pool=state.browser_pool,
        http_client=state.http_client,
        gate=state.scrape_gate,
        referer=config.upstream_base_url,
        navigation_timeout_ms=config.playwright_navigation_timeout_ms,
        fallback_navigation_timeout_ms=config.playwright_fallback_navigation_timeout_ms,
        settle_ms=config.playwright_settle_ms,
        selector_timeout_ms=config.playwright_selector_timeout_ms,
        frame_settle_ms=config.playwright_frame_settle_ms,
        nested_timeout_seconds=config.upstream_nested_timeout_seconds,
    )
    protection = HttpProtectionDetector(
        http_client=state.http_client,
        timeout_seconds=config.upstream_protection_timeout_seconds,
    )
    lister = HttpEpisodeLister(
        http_client=state.http_client,
        base_url=config.upstream_base_url,
        timeout_seconds=config.upstream_search_timeout_seconds,
    )
    log.info("scraping_adapters_initialized", base_url=config.upstream_base_url)

    # 5) Stores on their own backend instance: no eviction, no default expiry
    store_cache = create_store_cache(config.cache)
    await store_cache.__aenter__()
    state.store_cache = store_cache
    state.episode_store = CacheEpisodeStore(
        cache=store_cache, ttl_seconds=config.cache.store_ttl_seconds
    )
    state.progress_store = CacheProgressStore(
        cache=store_cache, ttl_seconds=config.cache.store_ttl_seconds
    )
    log.info("stores_initialized", ttl_seconds=config.cache.store_ttl_seconds)

    # 6) Use cases
    state.scrape_episode_uc = ScrapeEpisodeUseCase(
        resolver=resolver,
        extractor=extractor,
        protection=protection,
        episode_store=state.episode_store,
        cache=cache,
        episode_ttl=config.cache.episode_ttl_seconds,
        retry_delay_seconds=scraper.retry_delay_seconds,
    )
    state.batch_uc = BatchScrapeUseCase(
        scrape=state.scrape_episode_uc,
        resolver=resolver,
        lister=lister,
        batch_delay_seconds=scraper.batch_delay_seconds,
        scrape_all_delay_seconds=scraper.scrape_all_delay_seconds,
    )
    state.large_job_uc = LargeJobUseCase(
        store=state.progress_store,
        scrape=state.scrape_episode_uc,
        chunk_delay_seconds=scraper.chunk_delay_seconds,
        between_chunks_delay_seconds=scraper.between_chunks_delay_seconds,
        default_chunk_size=scraper.default_chunk_size,
        options=ScrapeOptions(
            timeout_ms=30_000,
            max_retries=2,
            headless=config.playwright_headless,
        ),
    )
    log.info("use_cases_initialized")

    # 7) Background job runner
    state.job_runner = JobRunner(state.large_job_uc)
    log.info("job_runner_initialized")

    log.info("app_startup_complete")

    try:
        yield
    finally:
        await state.job_runner.shutdown()
        log.info("job_runner_stopped")

        await state.browser_pool.cleanup()
        log.info("browser_pool_cleaned_up")

        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.store_cache.aclose()
        log.info("store_cache_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
