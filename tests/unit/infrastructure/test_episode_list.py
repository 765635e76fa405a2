"""Tests for HttpEpisodeLister."""

from __future__ import annotations

import httpx
import pytest
import respx

from animescrape.domain.entities import AvailableEpisode
from animescrape.domain.errors import NetworkFailure
from animescrape.infrastructure.scraping.episode_list import (
    CONSTRUCTED_EPISODE_LIMIT,
    HttpEpisodeLister,
    episode_number_from,
)

BASE = "https://9anime.test"
PAGE = f"{BASE}/one-piece-episode-1/"

_LISTING = """
<html><body>
  <div class="episode-list">
    <a href="/one-piece-episode-2/">Episode 2</a>
    <a href="/one-piece-episode-1/">Episode 1</a>
    <a href="/one-piece-episode-2/">Episode 2 (dub)</a>
    <a href="/naruto-episode-3/">Episode 3</a>
    <a href="https://9anime.test/one-piece-episode-30/">Episode 30</a>
    <a href="/one-piece-episode-4/"></a>
  </div>
</body></html>
"""


def _lister() -> HttpEpisodeLister:
    return HttpEpisodeLister(http_client=httpx.AsyncClient(), base_url=BASE)


class TestEpisodeNumberFrom:
    @pytest.mark.parametrize(
        ("href", "text", "expected"),
        [
            ("/one-piece-episode-12/", "", 12),
            ("/watch/one-piece/episode/7", "", 7),
            ("/x", "Episode 9", 9),
            ("/x", "EP 4", 4),
            ("/x", "Special 3", 3),
            ("/x", "Special", None),
        ],
    )
    def test_parses(self, href: str, text: str, expected: int | None) -> None:
        assert episode_number_from(href, text) == expected


class TestHttpEpisodeLister:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_parses_listing(self) -> None:
        respx.get(PAGE).respond(200, text=_LISTING)

        episodes = await _lister().list_episodes(PAGE, "one-piece", 20)

        assert episodes == [
            AvailableEpisode(number=1, title="Episode 1", url=f"{BASE}/one-piece-episode-1/"),
            AvailableEpisode(number=2, title="Episode 2", url=f"{BASE}/one-piece-episode-2/"),
        ]

    @respx.mock
    @pytest.mark.asyncio()
    async def test_constructs_when_nothing_listed(self) -> None:
        respx.get(PAGE).respond(200, text="<html><body></body></html>")

        episodes = await _lister().list_episodes(PAGE, "one-piece", 50)

        assert len(episodes) == CONSTRUCTED_EPISODE_LIMIT
        assert episodes[4] == AvailableEpisode(
            number=5, title="Episode 5", url=f"{BASE}/one-piece-episode-5/"
        )

    @respx.mock
    @pytest.mark.asyncio()
    async def test_constructed_list_respects_max(self) -> None:
        respx.get(PAGE).respond(200, text="<html></html>")
        episodes = await _lister().list_episodes(PAGE, "one-piece", 3)
        assert [e.number for e in episodes] == [1, 2, 3]

    @respx.mock
    @pytest.mark.asyncio()
    async def test_page_without_episode_segment_is_not_multiplied(self) -> None:
        page = f"{BASE}/watch/frieren/"
        respx.get(page).respond(200, text="<html></html>")

        episodes = await _lister().list_episodes(page, "frieren", 20)

        assert episodes == [AvailableEpisode(number=1, title="Episode 1", url=page)]

    @respx.mock
    @pytest.mark.asyncio()
    async def test_film_has_single_entry(self) -> None:
        page = f"{BASE}/one-piece-film-red-episode-1/"
        respx.get(page).respond(200, text="<html></html>")

        episodes = await _lister().list_episodes(page, "one-piece-film-red", 20)

        assert episodes == [AvailableEpisode(number=1, title="Movie", url=page)]

    @respx.mock
    @pytest.mark.asyncio()
    async def test_http_error_is_network_failure(self) -> None:
        respx.get(PAGE).respond(404)
        with pytest.raises(NetworkFailure):
            await _lister().list_episodes(PAGE, "one-piece", 20)
