"""Shared Chromium instances for the stream extractor.

One browser per headless mode is launched lazily and reused; every
extraction gets its own BrowserContext, closed on every exit path.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright_stealth import Stealth

log = structlog.get_logger(__name__)

LAUNCH_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
)

_EXTRA_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class BrowserPool:
    """Lazily launched Chromium browsers keyed by headless mode.

    Usage::

        pool = BrowserPool(user_agent=UA)
        async with pool.page(headless=True) as page:
            await page.goto(url)
        await pool.cleanup()
    """

    def __init__(self, *, user_agent: str, stealth: bool = True) -> None:
        self._user_agent = user_agent
        self._stealth = stealth
        self._pw: Playwright | None = None
        self._browsers: dict[bool, Browser] = {}
        self._lock = asyncio.Lock()

    def is_running(self, headless: bool = True) -> bool:
        browser = self._browsers.get(headless)
        return browser is not None and browser.is_connected()

    async def browser(self, headless: bool = True) -> Browser:
        """Return the browser for *headless*, relaunching it if it crashed."""
        if self.is_running(headless):
            return self._browsers[headless]

        async with self._lock:
            if self.is_running(headless):
                return self._browsers[headless]

            if self._pw is None:
                self._pw = await async_playwright().start()
            stale = self._browsers.pop(headless, None)
            if stale is not None:
                log.warning("browser_relaunch", headless=headless)

            browser = await self._pw.chromium.launch(
                headless=headless, args=list(LAUNCH_ARGS)
            )
            self._browsers[headless] = browser
            log.info("browser_launched", headless=headless)
            return browser

    @asynccontextmanager
    async def page(self, *, headless: bool = True) -> AsyncIterator[Page]:
        """Fresh context + page; the context is closed however the block exits."""
        browser = await self.browser(headless)
        context = await browser.new_context(
            user_agent=self._user_agent,
            viewport={"width": 1280, "height": 720},
            bypass_csp=True,
            extra_http_headers=_EXTRA_HEADERS,
        )
        try:
            if self._stealth:
                await Stealth().apply_stealth_async(context)
            yield await context.new_page()
        finally:
            try:
                await context.close()
            except Exception:  # noqa: BLE001
                log.warning("browser_context_close_error", exc_info=True)

    async def cleanup(self) -> None:
        """Close all browsers and stop Playwright (idempotent)."""
        for headless, browser in list(self._browsers.items()):
            try:
                await browser.close()
            except Exception:  # noqa: BLE001
                log.warning("browser_close_error", headless=headless, exc_info=True)
        self._browsers.clear()
        if self._pw is not None:
            try:
                await self._pw.stop()
            except Exception:  # noqa: BLE001
                log.warning("playwright_stop_error", exc_info=True)
            self._pw = None
        log.info("browser_pool_cleaned_up")
