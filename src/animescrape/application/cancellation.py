"""Cooperative cancellation for long-running scrape runs."""

from __future__ import annotations

import asyncio

from animescrape.domain.errors import ScrapeCancelledError


class CancellationToken:
    """Checked between episodes, between retry attempts and during pauses."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "Scrape cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScrapeCancelledError(self.reason or "Scrape cancelled")

    async def sleep(self, seconds: float) -> None:
        """Pause for *seconds*, waking up early (and raising) on cancel."""
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()


async def pause(seconds: float, token: CancellationToken | None = None) -> None:
    if token is not None:
        await token.sleep(seconds)
    elif seconds > 0:
        await asyncio.sleep(seconds)
