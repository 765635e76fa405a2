"""Embed-host knowledge: preferred mirror, aggregators and markup patterns."""

from __future__ import annotations

import re
from urllib.parse import urlparse

PREFERRED_MIRROR = re.compile(r"mega(play|cloud|backup|cdn|stream)", re.IGNORECASE)

# Aggregator pages wrap the real player one iframe deeper.
AGGREGATOR_MARKERS: tuple[str, ...] = ("gogoanime", "2anime.xyz")

_PREFERRED_NESTED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<iframe[^>]*\ssrc=[\"']([^\"']*megaplay[^\"']*)[\"']", re.IGNORECASE),
    re.compile(r"<iframe[^>]*data-src=[\"']([^\"']*megaplay[^\"']*)[\"']", re.IGNORECASE),
    re.compile(r"src\s*[=:]\s*[\"']([^\"']*megaplay[^\"']*)[\"']", re.IGNORECASE),
    re.compile(r"[\"']([^\"']*megaplay\.buzz[^\"']*)[\"']", re.IGNORECASE),
    re.compile(r"(https?://[^\"'\s]*mega(?:play|cloud|backup|cdn|stream)[^\"'\s]*)", re.IGNORECASE),
)

_GENERIC_NESTED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<iframe[^>]+data-src=[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(
        r"<iframe[^>]*\ssrc=[\"']([^\"']*(?:player|embed|stream)[^\"']*)[\"']",
        re.IGNORECASE,
    ),
    re.compile(r"<video[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"\"file\"\s*:\s*\"([^\"]+)\""),
    re.compile(r"\"url\"\s*:\s*\"([^\"]+)\""),
)

_QUOTED_STREAM_URL = re.compile(
    r"[\"']([^\"'\s<>]*(?:\.m3u8|embed|player)[^\"'\s<>]*)[\"']", re.IGNORECASE
)


def normalize_src(src: str | None) -> str | None:
    """Absolute http(s) URL, or None. Protocol-relative sources become https."""
    if not src:
        return None
    src = src.strip().replace("\\/", "/")
    if src.startswith("//"):
        src = "https:" + src
    if src.startswith(("http://", "https://")):
        return src
    return None


def is_preferred_mirror(url: str) -> bool:
    return bool(PREFERRED_MIRROR.search(url))


def is_preferred_host(url: str) -> bool:
    host = urlparse(url).hostname or ""
    return bool(PREFERRED_MIRROR.search(host))


def is_aggregator(url: str) -> bool:
    lowered = url.lower()
    return any(marker in lowered for marker in AGGREGATOR_MARKERS)


def _first_match(
    patterns: tuple[re.Pattern[str], ...], html: str, *, preferred_only: bool
) -> str | None:
    for pattern in patterns:
        for match in pattern.finditer(html):
            url = normalize_src(match.group(1))
            if url is None:
                continue
            if preferred_only and not is_preferred_mirror(url):
                continue
            return url
    return None


def find_nested_stream(html: str) -> str | None:
    """Stream URL inside an aggregator page.

    Any preferred-mirror match beats every generic match, wherever the
    generic one appears in the markup.
    """
    preferred = _first_match(_PREFERRED_NESTED_PATTERNS, html, preferred_only=True)
    if preferred is not None:
        return preferred
    return _first_match(_GENERIC_NESTED_PATTERNS, html, preferred_only=False)


def scan_markup_for_stream(html: str) -> str | None:
    """First quoted .m3u8/embed/player URL carrying an http(s) scheme."""
    for match in _QUOTED_STREAM_URL.finditer(html):
        url = normalize_src(match.group(1))
        if url is not None:
            return url
    return None
