"""Shared test fixtures for the animescrape test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from animescrape.domain.entities import (
    EpisodeRecord,
    ExtractionResult,
    ProtectionVerdict,
    ResolvedSource,
    ScrapeOutcome,
)
from animescrape.infrastructure.cache.memory_adapter import MemoryCacheAdapter

BASE_URL = "https://9anime.test"

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


def _make_outcome(
    title: str = "One Piece",
    episode: int = 1,
    *,
    stream_url: str = "https://megaplay.buzz/stream/s-2/12345/sub",
    protected: bool = False,
    reasons: tuple[str, ...] = (),
    degraded: bool = False,
) -> ScrapeOutcome:
    """ScrapeOutcome with deterministic timestamps."""
    return ScrapeOutcome(
        title=title,
        episode_number=episode,
        source=ResolvedSource(
            canonical_url=f"{BASE_URL}/one-piece-episode-{episode}/",
            content_id="one-piece",
        ),
        extraction=ExtractionResult(
            stream_url=stream_url,
            extracted_at=datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
            host_chain=(stream_url,),
            strategy="iframe",
            degraded=degraded,
        ),
        verdict=ProtectionVerdict(protected=protected, reasons=reasons),
    )


@pytest.fixture()
def make_outcome() -> Callable[..., ScrapeOutcome]:
    """Factory for ScrapeOutcome variants."""
    return _make_outcome


@pytest.fixture()
def outcome() -> ScrapeOutcome:
    return _make_outcome()


@pytest.fixture()
def episode_record(outcome: ScrapeOutcome) -> EpisodeRecord:
    return EpisodeRecord.from_outcome(outcome, anime_id="anime-1")


# ---------------------------------------------------------------------------
# Mock port fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """Mock CachePort (always a miss)."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=True)
    cache.exists = AsyncMock(return_value=False)
    cache.clear = AsyncMock()
    cache.aclose = AsyncMock()
    return cache


@pytest.fixture()
def memory_cache() -> MemoryCacheAdapter:
    """Real in-process cache for store and use-case tests."""
    return MemoryCacheAdapter(max_entries=10_000, ttl_seconds=0)
