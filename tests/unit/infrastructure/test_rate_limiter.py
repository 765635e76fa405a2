"""Tests for HostRateLimiter and TokenBucket."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from animescrape.infrastructure.common.rate_limiter import HostRateLimiter, TokenBucket


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestTokenBucket:
    @pytest.mark.asyncio()
    async def test_burst_is_immediate(self) -> None:
        clock = _Clock()
        bucket = TokenBucket(rate=1.0, burst=3, clock=clock)
        with patch(
            "animescrape.infrastructure.common.rate_limiter.asyncio.sleep",
            new=AsyncMock(),
        ) as sleep:
            for _ in range(3):
                await bucket.acquire()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_waits_for_refill_when_empty(self) -> None:
        clock = _Clock()
        bucket = TokenBucket(rate=2.0, burst=1, clock=clock)

        async def _advance(seconds: float) -> None:
            clock.now += seconds

        with patch(
            "animescrape.infrastructure.common.rate_limiter.asyncio.sleep",
            new=AsyncMock(side_effect=_advance),
        ) as sleep:
            await bucket.acquire()
            await bucket.acquire()

        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio()
    async def test_zero_rate_is_unlimited(self) -> None:
        bucket = TokenBucket(rate=0.0, burst=1)
        for _ in range(10):
            await bucket.acquire()

    def test_refill_is_capped_at_burst(self) -> None:
        clock = _Clock()
        bucket = TokenBucket(rate=10.0, burst=2, clock=clock)
        clock.now += 60
        bucket._refill()
        assert bucket._tokens == 2


class TestHostRateLimiter:
    def test_host_of_lowercases(self) -> None:
        assert HostRateLimiter.host_of("https://MegaPlay.Buzz/stream/1") == "megaplay.buzz"
        assert HostRateLimiter.host_of("not-a-url") == ""

    @pytest.mark.asyncio()
    async def test_one_bucket_per_host(self) -> None:
        limiter = HostRateLimiter(requests_per_second=10.0, burst=2)
        await limiter.acquire("https://9anime.test/a")
        await limiter.acquire("https://9anime.test/b")
        await limiter.acquire("https://megaplay.buzz/c")
        assert set(limiter._buckets) == {"9anime.test", "megaplay.buzz"}

    @pytest.mark.asyncio()
    async def test_unlimited_creates_no_buckets(self) -> None:
        limiter = HostRateLimiter(requests_per_second=0.0)
        await limiter.acquire("https://9anime.test/a")
        assert limiter._buckets == {}

    @pytest.mark.asyncio()
    async def test_url_without_host_is_skipped(self) -> None:
        limiter = HostRateLimiter(requests_per_second=5.0)
        await limiter.acquire("relative/path")
        assert limiter._buckets == {}
