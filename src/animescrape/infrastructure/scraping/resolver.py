"""Title + episode -> canonical episode page on the upstream site.

Cascade (first success wins):

1. direct: probe ``{base}/{slug}-episode-{n}/``; HTTP 200 is accepted as is.
2. exact: keyword search, anchors whose href carries the slug.
3. fuzzy: content-link anchors whose text shares a token with the title.
4. fallback: first content-link anchor of any kind.

Network errors on the probe fall through to search; network errors on
the search itself raise NetworkFailure, a clean miss raises
ResolutionFailure.
"""

from __future__ import annotations

import re
from typing import Optional

import httpx
import structlog
from bs4 import BeautifulSoup

from animescrape.domain.entities.scraping import ResolvedSource
from animescrape.domain.errors import NetworkFailure, ResolutionFailure
from animescrape.domain.ports.cache import CachePort
from animescrape.infrastructure.common.html import (
    Link,
    first_link,
    parse_html,
    select_links,
)
from animescrape.infrastructure.scraping.chain import Strategy, first_hit
from animescrape.infrastructure.scraping.slug import (
    content_id_from_url,
    episode_number_in,
    episode_url,
    last_path_segment,
    slugify,
    synthetic_content_id,
    with_episode_number,
)

log = structlog.get_logger(__name__)

CONTENT_LINK_SELECTORS: tuple[str, ...] = (
    'a[href*="/category/"]',
    'a[href*="/anime/"]',
    'a[href*="/v/"]',
    'a[href*="/watch/"]',
)

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def exact_selectors(slug: str) -> tuple[str, ...]:
    return (
        f'a[href*="/{slug}-episode-"]',
        f'a[href*="/{slug}-film-"]',
        f'a[href*="/{slug}-movie-"]',
        f'a[href*="/anime/{slug}/"]',
        f'a[href*="/{slug}/"]',
    )


def _tokens(text: str) -> list[str]:
    return [t for t in _TOKEN_SPLIT.split(text.lower()) if len(t) > 2]


def title_matches(title: str, link_text: str) -> bool:
    """Loose match between a requested title and an anchor's visible text."""
    title_tokens = _tokens(title)
    link_tokens = _tokens(link_text)
    for tt in title_tokens:
        for lt in link_tokens:
            if tt in lt or lt in tt:
                return True
    lowered = link_text.lower()
    return any(len(tt) > 3 and tt in lowered for tt in title_tokens)


def search_cache_key(title: str, episode_number: int) -> str:
    return f"search:{title}:{episode_number}"


class HttpSourceResolver:
    """SourceResolver over plain HTTP (httpx) and BeautifulSoup."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        cache: CachePort,
        base_url: str,
        probe_timeout_seconds: float = 5.0,
        search_timeout_seconds: float = 15.0,
        search_ttl_seconds: int = 3600,
    ) -> None:
        self._http = http_client
        self._cache = cache
        self._base_url = base_url.rstrip("/")
        self._probe_timeout = probe_timeout_seconds
        self._search_timeout = search_timeout_seconds
        self._search_ttl = search_ttl_seconds

    async def resolve(self, title: str, episode_number: int) -> ResolvedSource:
        key = search_cache_key(title, episode_number)
        cached = await self._cache.get(key)
        if isinstance(cached, ResolvedSource):
            log.debug("resolver_cache_hit", title=title, episode=episode_number)
            return cached

        slug = slugify(title)
        source = await self._probe_direct(slug, episode_number)
        if source is None:
            source = await self._search(title, slug, episode_number)

        await self._cache.set(key, source, ttl=self._search_ttl)
        return source

    async def _probe_direct(self, slug: str, episode_number: int) -> ResolvedSource | None:
        if not slug:
            return None
        url = episode_url(self._base_url, slug, episode_number)
        try:
            response = await self._http.get(url, timeout=self._probe_timeout)
        except httpx.HTTPError as e:
            log.info("resolver_direct_error", url=url, error=str(e))
            return None
        if response.status_code != 200:
            log.debug("resolver_direct_miss", url=url, status=response.status_code)
            return None
        log.info("resolver_direct_hit", url=url)
        return ResolvedSource(canonical_url=url, content_id=slug, strategy="direct")

    async def _fetch_search_page(self, title: str) -> BeautifulSoup:
        url = f"{self._base_url}/search"
        try:
            response = await self._http.get(
                url, params={"keyword": title}, timeout=self._search_timeout
            )
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Search request failed: {e}") from e
        if response.status_code >= 400:
            raise NetworkFailure(f"Search request failed: HTTP {response.status_code}")
        return parse_html(response.text)

    def _strategies(self, title: str, slug: str) -> list[Strategy[BeautifulSoup, Link]]:
        base = self._base_url

        async def exact(soup: BeautifulSoup) -> Optional[Link]:
            if not slug:
                return None
            return first_link(soup, *exact_selectors(slug), base_url=base)

        async def fuzzy(soup: BeautifulSoup) -> Optional[Link]:
            for link in select_links(soup, ", ".join(CONTENT_LINK_SELECTORS), base_url=base):
                if title_matches(title, link.text):
                    return link
            return None

        async def fallback(soup: BeautifulSoup) -> Optional[Link]:
            selectors = (*(exact_selectors(slug)[:3] if slug else ()), *CONTENT_LINK_SELECTORS)
            return first_link(soup, *selectors, base_url=base)

        return [
            Strategy("exact", exact),
            Strategy("fuzzy", fuzzy),
            Strategy("fallback", fallback),
        ]

    async def _search(self, title: str, slug: str, episode_number: int) -> ResolvedSource:
        soup = await self._fetch_search_page(title)
        hit = await first_hit(self._strategies(title, slug), soup, component="resolver")
        if hit is None:
            log.info("resolver_not_found", title=title, episode=episode_number)
            raise ResolutionFailure(f"No anime links found in search results for {title!r}")

        strategy, link = hit
        url = self._align_episode(link.href, episode_number)
        content_id = content_id_from_url(url) or synthetic_content_id()
        log.info(
            "resolver_search_hit",
            title=title,
            episode=episode_number,
            strategy=strategy,
            url=url,
            content_id=content_id,
        )
        return ResolvedSource(canonical_url=url, content_id=content_id, strategy=strategy)

    def _align_episode(self, url: str, episode_number: int) -> str:
        """Point a found link at the requested episode."""
        found = episode_number_in(url)
        if found is not None:
            return url if found == episode_number else with_episode_number(url, episode_number)
        if "/anime/" in url or "/category/" in url:
            segment = last_path_segment(url)
            if segment:
                return episode_url(self._base_url, segment, episode_number)
        return url
