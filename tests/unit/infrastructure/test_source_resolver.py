"""Tests for HttpSourceResolver (direct probe + search cascade)."""

from __future__ import annotations

import httpx
import pytest
import respx

from animescrape.domain.entities import ResolvedSource
from animescrape.domain.errors import NetworkFailure, ResolutionFailure
from animescrape.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from animescrape.infrastructure.scraping.resolver import (
    HttpSourceResolver,
    search_cache_key,
    title_matches,
)

BASE = "https://9anime.test"


def _resolver(cache: MemoryCacheAdapter) -> HttpSourceResolver:
    return HttpSourceResolver(http_client=httpx.AsyncClient(), cache=cache, base_url=BASE + "/")


def _search_page(*anchors: tuple[str, str]) -> str:
    links = "".join(f'<a href="{href}">{text}</a>' for href, text in anchors)
    return f"<html><body><div class='results'>{links}</div></body></html>"


class TestTitleMatches:
    def test_shared_token(self) -> None:
        assert title_matches("Frieren Beyond Journey", "Sousou no Frieren")

    def test_substring_of_long_token(self) -> None:
        assert title_matches("Bleach", "BLEACH: Thousand-Year Blood War")

    def test_no_overlap(self) -> None:
        assert not title_matches("Naruto", "Something Else")

    def test_short_tokens_ignored(self) -> None:
        assert not title_matches("Re Zero", "My Re Life")


class TestDirectProbe:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_direct_hit(self, memory_cache: MemoryCacheAdapter) -> None:
        respx.get(f"{BASE}/one-piece-episode-3/").respond(200, text="<html></html>")

        source = await _resolver(memory_cache).resolve("One Piece", 3)

        assert source == ResolvedSource(
            canonical_url=f"{BASE}/one-piece-episode-3/",
            content_id="one-piece",
            strategy="direct",
        )
        assert await memory_cache.get(search_cache_key("One Piece", 3)) == source

    @respx.mock
    @pytest.mark.asyncio()
    async def test_cached_result_skips_network(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        cached = ResolvedSource(canonical_url=f"{BASE}/x-episode-1/", content_id="x")
        await memory_cache.set(search_cache_key("X", 1), cached)

        assert await _resolver(memory_cache).resolve("X", 1) == cached
        assert len(respx.calls) == 0

    @respx.mock
    @pytest.mark.asyncio()
    async def test_probe_error_falls_through_to_search(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        respx.get(f"{BASE}/one-piece-episode-1/").mock(side_effect=httpx.ConnectError("down"))
        respx.get(host="9anime.test", path="/search").respond(
            200, text=_search_page(("/one-piece-episode-1/", "One Piece Episode 1"))
        )

        source = await _resolver(memory_cache).resolve("One Piece", 1)
        assert source.strategy == "exact"


class TestSearchCascade:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_exact_match_is_aligned_to_episode(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        respx.get(f"{BASE}/one-piece-episode-5/").respond(404)
        search = respx.get(host="9anime.test", path="/search").respond(
            200, text=_search_page(("/one-piece-episode-1/", "One Piece"))
        )

        source = await _resolver(memory_cache).resolve("One Piece", 5)

        assert source.canonical_url == f"{BASE}/one-piece-episode-5/"
        assert source.content_id == "one-piece"
        assert source.strategy == "exact"
        assert search.calls.last.request.url.params["keyword"] == "One Piece"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_fuzzy_match_on_category_link(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        respx.get(f"{BASE}/frieren-beyond-journey-episode-2/").respond(404)
        respx.get(host="9anime.test", path="/search").respond(
            200,
            text=_search_page(
                ("/category/other-show", "Other Show"),
                ("/category/sousou-no-frieren", "Frieren: Beyond Journey's End"),
            ),
        )

        source = await _resolver(memory_cache).resolve("Frieren Beyond Journey", 2)

        assert source.strategy == "fuzzy"
        assert source.canonical_url == f"{BASE}/sousou-no-frieren-episode-2/"
        assert source.content_id == "sousou-no-frieren"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_fallback_takes_first_content_link(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        respx.get(f"{BASE}/naruto-episode-1/").respond(404)
        respx.get(host="9anime.test", path="/search").respond(
            200, text=_search_page(("/watch/xyz123", "Something Else"))
        )

        source = await _resolver(memory_cache).resolve("Naruto", 1)

        assert source.strategy == "fallback"
        assert source.canonical_url == f"{BASE}/watch/xyz123"
        assert source.content_id == "xyz123"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_no_links_is_resolution_failure(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        respx.get(f"{BASE}/naruto-episode-1/").respond(404)
        respx.get(host="9anime.test", path="/search").respond(200, text=_search_page())

        with pytest.raises(ResolutionFailure):
            await _resolver(memory_cache).resolve("Naruto", 1)
        assert await memory_cache.get(search_cache_key("Naruto", 1)) is None

    @respx.mock
    @pytest.mark.asyncio()
    async def test_search_server_error_is_network_failure(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        respx.get(f"{BASE}/naruto-episode-1/").respond(404)
        respx.get(host="9anime.test", path="/search").respond(500)

        with pytest.raises(NetworkFailure):
            await _resolver(memory_cache).resolve("Naruto", 1)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_search_transport_error_is_network_failure(
        self, memory_cache: MemoryCacheAdapter
    ) -> None:
        respx.get(f"{BASE}/naruto-episode-1/").respond(404)
        respx.get(host="9anime.test", path="/search").mock(
            side_effect=httpx.ReadTimeout("slow")
        )

        with pytest.raises(NetworkFailure):
            await _resolver(memory_cache).resolve("Naruto", 1)
