"""Tests for ScrapeGate (concurrency slot + circuit breaker)."""

from __future__ import annotations

import asyncio

import pytest

from animescrape.domain.errors import CircuitOpenError, ScrapeCancelledError
from animescrape.infrastructure.scraping.gate import BreakerState, ScrapeGate


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def _fail(gate: ScrapeGate) -> None:
    with pytest.raises(RuntimeError):
        async with gate.slot():
            raise RuntimeError("boom")


class TestBreaker:
    @pytest.mark.asyncio()
    async def test_opens_after_threshold(self) -> None:
        gate = ScrapeGate(failure_threshold=3, clock=_Clock())
        for _ in range(3):
            await _fail(gate)

        assert gate.state == BreakerState.OPEN
        with pytest.raises(CircuitOpenError):
            async with gate.slot():
                pass

    @pytest.mark.asyncio()
    async def test_success_resets_counter(self) -> None:
        gate = ScrapeGate(failure_threshold=3, clock=_Clock())
        await _fail(gate)
        await _fail(gate)
        async with gate.slot():
            pass
        assert gate.consecutive_failures == 0
        await _fail(gate)
        assert gate.state == BreakerState.CLOSED

    @pytest.mark.asyncio()
    async def test_half_open_success_closes(self) -> None:
        clock = _Clock()
        gate = ScrapeGate(failure_threshold=1, cooldown_seconds=30.0, clock=clock)
        await _fail(gate)
        clock.now = 31.0

        async with gate.slot():
            assert gate.state == BreakerState.HALF_OPEN
        assert gate.state == BreakerState.CLOSED

    @pytest.mark.asyncio()
    async def test_half_open_failure_reopens(self) -> None:
        clock = _Clock()
        gate = ScrapeGate(failure_threshold=5, cooldown_seconds=10.0, clock=clock)
        for _ in range(5):
            await _fail(gate)
        clock.now = 11.0

        await _fail(gate)

        assert gate.state == BreakerState.OPEN
        with pytest.raises(CircuitOpenError):
            async with gate.slot():
                pass

    @pytest.mark.asyncio()
    async def test_half_open_admits_a_single_run(self) -> None:
        clock = _Clock()
        gate = ScrapeGate(failure_threshold=1, cooldown_seconds=30.0, clock=clock)
        await _fail(gate)
        clock.now = 31.0

        async with gate.slot():
            with pytest.raises(CircuitOpenError):
                async with gate.slot():
                    pass
        assert gate.state == BreakerState.CLOSED

        async with gate.slot():
            pass

    @pytest.mark.asyncio()
    async def test_cancelled_trial_frees_the_half_open_slot(self) -> None:
        clock = _Clock()
        gate = ScrapeGate(failure_threshold=1, cooldown_seconds=30.0, clock=clock)
        await _fail(gate)
        clock.now = 31.0

        with pytest.raises(ScrapeCancelledError):
            async with gate.slot():
                raise ScrapeCancelledError("stop")
        assert gate.state == BreakerState.HALF_OPEN

        async with gate.slot():
            pass
        assert gate.state == BreakerState.CLOSED

    @pytest.mark.asyncio()
    async def test_cancellation_is_not_a_failure(self) -> None:
        gate = ScrapeGate(failure_threshold=1, clock=_Clock())
        with pytest.raises(ScrapeCancelledError):
            async with gate.slot():
                raise ScrapeCancelledError("stop")
        assert gate.state == BreakerState.CLOSED
        assert gate.consecutive_failures == 0


class TestConcurrency:
    @pytest.mark.asyncio()
    async def test_limits_parallel_slots(self) -> None:
        gate = ScrapeGate(max_concurrency=2)
        active = 0
        peak = 0

        async def work() -> None:
            nonlocal active, peak
            async with gate.slot():
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(work() for _ in range(6)))
        assert peak == 2
