"""Discover the episodes listed on an anime page."""

from __future__ import annotations

import re

import httpx
import structlog

from animescrape.domain.entities.scraping import AvailableEpisode
from animescrape.domain.errors import NetworkFailure
from animescrape.infrastructure.common.html import parse_html
from animescrape.infrastructure.scraping.slug import (
    content_id_from_url,
    episode_number_in,
    is_film_slug,
    last_path_segment,
    with_episode_number,
)

log = structlog.get_logger(__name__)

EPISODE_CONTAINERS = '.episode-list, .episodes, .episode-item, [class*="episode"]'
EPISODE_ITEMS = 'a, .episode, [class*="episode"]'

_HREF_NUMBER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"-episode-(\d+)"),
    re.compile(r"/episode/(\d+)"),
    re.compile(r"/watch/.*?(\d+)"),
)
_TEXT_NUMBER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"episode\s*(\d+)", re.I),
    re.compile(r"ep\s*(\d+)", re.I),
    re.compile(r"(\d+)"),
)

CONSTRUCTED_EPISODE_LIMIT = 12


def episode_number_from(href: str, text: str) -> int | None:
    for pattern in _HREF_NUMBER_PATTERNS:
        match = pattern.search(href)
        if match:
            return int(match.group(1))
    for pattern in _TEXT_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


class HttpEpisodeLister:
    """EpisodeLister that scrapes an anime page's episode containers."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        base_url: str,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds

    async def list_episodes(
        self, page_url: str, content_id: str, max_episodes: int
    ) -> list[AvailableEpisode]:
        try:
            response = await self._http.get(page_url, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Episode list request failed: {e}") from e
        if response.status_code >= 400:
            raise NetworkFailure(f"Episode list request failed: HTTP {response.status_code}")

        slug = content_id_from_url(page_url) or content_id
        episodes = self._parse(response.text, page_url, slug, content_id, max_episodes)
        if not episodes:
            episodes = self._construct(page_url, slug, max_episodes)
            log.info("episode_list_constructed", url=page_url, count=len(episodes))
        elif is_film_slug(slug):
            episodes = [ep for ep in episodes if ep.number == 1]

        log.info("episode_list_found", url=page_url, slug=slug, count=len(episodes))
        return episodes

    def _parse(
        self,
        html: str,
        page_url: str,
        slug: str,
        content_id: str,
        max_episodes: int,
    ) -> list[AvailableEpisode]:
        page_stem = last_path_segment(page_url).split("-episode")[0]
        markers = [m for m in (slug, content_id, page_stem) if m]
        found: dict[int, AvailableEpisode] = {}

        soup = parse_html(html)
        for container in soup.select(EPISODE_CONTAINERS):
            for item in container.select(EPISODE_ITEMS):
                href = item.get("href")
                text = item.get_text(strip=True)
                if not href or not text:
                    continue
                href = str(href)
                if not any(marker in href for marker in markers):
                    continue
                number = episode_number_from(href, text)
                if not number or number > max_episodes or number in found:
                    continue
                url = href if href.startswith("http") else self._base_url + href
                found[number] = AvailableEpisode(number=number, title=text, url=url)

        return [found[n] for n in sorted(found)]

    @staticmethod
    def _construct(page_url: str, slug: str, max_episodes: int) -> list[AvailableEpisode]:
        if is_film_slug(slug):
            return [AvailableEpisode(number=1, title="Movie", url=page_url)]
        if episode_number_in(page_url) is None:
            # No -episode-N segment to rewrite: only the resolved page is known.
            return [AvailableEpisode(number=1, title="Episode 1", url=page_url)]
        limit = min(CONSTRUCTED_EPISODE_LIMIT, max_episodes)
        return [
            AvailableEpisode(
                number=n, title=f"Episode {n}", url=with_episode_number(page_url, n)
            )
            for n in range(1, limit + 1)
        ]
