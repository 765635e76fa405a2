"""Concurrency limit plus circuit breaker around browser extractions.

After ``failure_threshold`` consecutive failures the breaker opens and
every run is rejected with CircuitOpenError for ``cooldown_seconds``.
Then a single trial run is let through (half-open): success closes the
breaker, failure re-opens it.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Callable

import structlog

from animescrape.domain.errors import CircuitOpenError, ScrapeCancelledError

log = structlog.get_logger(__name__)


class BreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class ScrapeGate:
    """Not thread-safe; safe within one asyncio event loop."""

    def __init__(
        self,
        *,
        max_concurrency: int = 2,
        failure_threshold: int = 8,
        cooldown_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._threshold = failure_threshold
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._failures = 0
        self._state = BreakerState.CLOSED
        self._opened_at = 0.0
        self._trial_running = False

    @property
    def state(self) -> BreakerState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    def _admit(self) -> bool:
        """Raise CircuitOpenError or admit; True for the half-open trial run."""
        if self._state == BreakerState.OPEN:
            remaining = self._cooldown - (self._clock() - self._opened_at)
            if remaining > 0:
                raise CircuitOpenError(
                    f"Scraper temporarily disabled after {self._failures} "
                    f"consecutive failures (retry in {remaining:.0f}s)"
                )
            self._state = BreakerState.HALF_OPEN
            log.info("scrape_gate_half_open")
        if self._state == BreakerState.HALF_OPEN:
            if self._trial_running:
                raise CircuitOpenError("Scraper recovering: a trial run is in progress")
            self._trial_running = True
            return True
        return False

    def record_success(self) -> None:
        if self._state != BreakerState.CLOSED:
            log.info("scrape_gate_closed")
        self._failures = 0
        self._state = BreakerState.CLOSED

    def record_failure(self) -> None:
        self._failures += 1
        if self._state == BreakerState.HALF_OPEN or self._failures >= self._threshold:
            if self._state != BreakerState.OPEN:
                log.warning("scrape_gate_opened", failures=self._failures)
            self._state = BreakerState.OPEN
            self._opened_at = self._clock()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Admission check, then hold one concurrency slot for the block."""
        trial = self._admit()
        try:
            async with self._semaphore:
                try:
                    yield
                except (ScrapeCancelledError, asyncio.CancelledError):
                    raise
                except Exception:
                    self.record_failure()
                    raise
                else:
                    self.record_success()
        finally:
            if trial:
                self._trial_running = False
