"""Title slugs and episode-URL helpers for the upstream site's URL scheme."""

from __future__ import annotations

import re
import time
from urllib.parse import urlparse

from unidecode import unidecode

_NON_SLUG = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")
_EPISODE_SEGMENT = re.compile(r"-episode-(\d+)")

# Ordered: episode page, film, movie, then listing-style paths.
_CONTENT_ID_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"/([^/]+)-episode-\d+"),
    re.compile(r"/([^/]+)-film-"),
    re.compile(r"/([^/]+)-movie-"),
    re.compile(r"category/([^?/]+)"),
    re.compile(r"anime/([^?/]+)"),
    re.compile(r"v/([^?/]+)"),
    re.compile(r"watch/([^?/]+)"),
)


def slugify(title: str) -> str:
    """``"One Piece Film: Red"`` -> ``"one-piece-film-red"``."""
    text = unidecode(title).lower()
    text = _NON_SLUG.sub("", text)
    text = _WHITESPACE.sub("-", text.strip())
    return _HYPHENS.sub("-", text).strip("-")


def episode_url(base_url: str, slug: str, episode_number: int) -> str:
    return f"{base_url}/{slug}-episode-{episode_number}/"


def episode_number_in(url: str) -> int | None:
    match = _EPISODE_SEGMENT.search(url)
    return int(match.group(1)) if match else None


def with_episode_number(url: str, episode_number: int) -> str:
    """Rewrite the ``-episode-N`` segment in place (no-op without one)."""
    return _EPISODE_SEGMENT.sub(f"-episode-{episode_number}", url, count=1)


def content_id_from_url(url: str) -> str | None:
    for pattern in _CONTENT_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def synthetic_content_id() -> str:
    """Non-deterministic id for links that carry no usable path segment."""
    return f"unresolved-{int(time.time() * 1000)}"


def last_path_segment(url: str) -> str:
    return urlparse(url).path.rstrip("/").rsplit("/", 1)[-1]


def is_film_slug(slug: str) -> bool:
    lowered = slug.lower()
    return "film" in lowered or "movie" in lowered
