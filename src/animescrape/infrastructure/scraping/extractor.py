"""Resolved episode page -> stream URL, via a headless Chromium page.

Strategies (first hit wins):

1. iframe: prioritized player-container selectors; a preferred mirror is
   taken as is, an aggregator iframe is followed one level (HTTP fetch
   first, then the already-loaded frame).
2. video: ``<video src>``.
3. video_source: ``<video><source src>``.
4. markup: regex scan of the rendered markup.

With no hit the page URL itself is returned, flagged ``degraded``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError

from animescrape.domain.entities.scraping import (
    ExtractionResult,
    ResolvedSource,
    ScrapeOptions,
)
from animescrape.domain.errors import ExtractionFailure, NetworkFailure
from animescrape.infrastructure.scraping.browser_pool import BrowserPool
from animescrape.infrastructure.scraping.chain import Strategy, first_hit
from animescrape.infrastructure.scraping.gate import ScrapeGate
from animescrape.infrastructure.scraping.mirrors import (
    find_nested_stream,
    is_aggregator,
    is_preferred_mirror,
    normalize_src,
    scan_markup_for_stream,
)

log = structlog.get_logger(__name__)

IFRAME_SELECTORS: tuple[str, ...] = (
    ".player-embed iframe",
    ".player iframe",
    ".video-player iframe",
    "#player iframe",
    ".anime-video iframe",
    'iframe[src*="embed"]',
    'iframe[src*="player"]',
    "iframe",
)

FRAME_IFRAME_SELECTORS: tuple[str, ...] = (
    'iframe[src*="megaplay"]',
    'iframe[src*="megacloud"]',
    'iframe[src*="megabackup"]',
    'iframe[data-src*="mega"]',
    'iframe[src*="embed"]',
    "iframe",
)


@dataclass(frozen=True)
class StreamHit:
    url: str
    host_chain: tuple[str, ...]


class PlaywrightStreamExtractor:
    """StreamExtractor backed by BrowserPool, gated by ScrapeGate."""

    def __init__(
        self,
        *,
        pool: BrowserPool,
        http_client: httpx.AsyncClient,
        gate: ScrapeGate,
        referer: str,
        navigation_timeout_ms: int = 10_000,
        fallback_navigation_timeout_ms: int = 5_000,
        settle_ms: int = 2_000,
        selector_timeout_ms: int = 5_000,
        frame_settle_ms: int = 3_000,
        nested_timeout_seconds: float = 15.0,
    ) -> None:
        self._pool = pool
        self._http = http_client
        self._gate = gate
        self._referer = referer.rstrip("/") + "/"
        self._nav_timeout = navigation_timeout_ms
        self._fallback_nav_timeout = fallback_navigation_timeout_ms
        self._settle_ms = settle_ms
        self._selector_timeout = selector_timeout_ms
        self._frame_settle_ms = frame_settle_ms
        self._nested_timeout = nested_timeout_seconds

    def strategies(self) -> list[Strategy[Page, StreamHit]]:
        return [
            Strategy("iframe", self._from_iframe),
            Strategy("video", self._from_video),
            Strategy("video_source", self._from_video_source),
            Strategy("markup", self._from_markup),
        ]

    async def extract(
        self, source: ResolvedSource, options: ScrapeOptions
    ) -> ExtractionResult:
        url = source.canonical_url
        if not url:
            raise ExtractionFailure("Resolved source has no page URL to extract from")
        async with self._gate.slot():
            try:
                async with self._pool.page(headless=options.headless) as page:
                    page.set_default_timeout(options.timeout_ms)
                    await self._navigate(page, url)
                    hit = await first_hit(self.strategies(), page, component="extractor")
            except PlaywrightError as e:
                raise NetworkFailure(f"Browser error on {url}: {e}") from e

        if hit is None:
            log.warning("extract_degraded", url=url)
            return ExtractionResult(
                stream_url=url, host_chain=(), strategy="page_url", degraded=True
            )

        strategy, stream = hit
        log.info(
            "extract_strategy_hit",
            url=url,
            strategy=strategy,
            stream_url=stream.url,
            preferred=is_preferred_mirror(stream.url),
        )
        return ExtractionResult(
            stream_url=stream.url, host_chain=stream.host_chain, strategy=strategy
        )

    async def _navigate(self, page: Page, url: str) -> None:
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self._nav_timeout)
        except PlaywrightError as first:
            log.info("extract_goto_retry", url=url, error=str(first))
            try:
                await page.goto(url, wait_until="load", timeout=self._fallback_nav_timeout)
            except PlaywrightError as second:
                if page.url in ("", "about:blank"):
                    raise NetworkFailure(f"Navigation to {url} failed: {second}") from second
                log.info("extract_goto_partial", url=url, error=str(second))
        await page.wait_for_timeout(self._settle_ms)

    async def _from_iframe(self, page: Page) -> Optional[StreamHit]:
        for selector in IFRAME_SELECTORS:
            try:
                element = await page.query_selector(selector)
                if element is None:
                    continue
                src = normalize_src(await element.get_attribute("src"))
            except PlaywrightError:
                continue
            if src is None:
                continue
            if is_preferred_mirror(src) or not is_aggregator(src):
                return StreamHit(src, (src,))

            nested = await self._nested_over_http(src) or await self._nested_in_frame(element)
            if nested is not None:
                return StreamHit(nested, (src, nested))
            log.info("extract_nested_miss", aggregator=src)
            return StreamHit(src, (src,))
        return None

    async def _nested_over_http(self, aggregator_url: str) -> Optional[str]:
        try:
            response = await self._http.get(
                aggregator_url,
                headers={"Referer": self._referer},
                timeout=self._nested_timeout,
            )
        except httpx.HTTPError as e:
            log.info("extract_nested_fetch_error", url=aggregator_url, error=str(e))
            return None
        if response.status_code >= 400:
            log.info("extract_nested_fetch_status", url=aggregator_url, status=response.status_code)
            return None
        return find_nested_stream(response.text)

    async def _nested_in_frame(self, element: ElementHandle) -> Optional[str]:
        try:
            frame = await element.content_frame()
            if frame is None:
                return None
            await frame.wait_for_timeout(self._frame_settle_ms)
            for selector in FRAME_IFRAME_SELECTORS:
                nested = await frame.query_selector(selector)
                if nested is None:
                    continue
                src = normalize_src(
                    await nested.get_attribute("src")
                    or await nested.get_attribute("data-src")
                )
                if src and (is_preferred_mirror(src) or "embed" in src):
                    return src
        except PlaywrightError as e:
            log.debug("extract_frame_scan_error", error=str(e))
        return None

    async def _from_video(self, page: Page) -> Optional[StreamHit]:
        try:
            await page.wait_for_selector("video", timeout=self._selector_timeout)
            src = await page.eval_on_selector("video", "el => el.currentSrc || el.src")
        except PlaywrightError:
            return None
        url = normalize_src(src)
        return StreamHit(url, (url,)) if url else None

    async def _from_video_source(self, page: Page) -> Optional[StreamHit]:
        try:
            element = await page.query_selector("video source")
            if element is None:
                return None
            url = normalize_src(await element.get_attribute("src"))
        except PlaywrightError:
            return None
        return StreamHit(url, (url,)) if url else None

    async def _from_markup(self, page: Page) -> Optional[StreamHit]:
        url = scan_markup_for_stream(await page.content())
        return StreamHit(url, (url,)) if url else None
