"""Upstream scraping adapters (resolver, extractor, protection, listing)."""

from .browser_pool import BrowserPool
from .episode_list import HttpEpisodeLister
from .extractor import PlaywrightStreamExtractor
from .gate import ScrapeGate
from .protection import HttpProtectionDetector
from .resolver import HttpSourceResolver

__all__ = [
    "BrowserPool",
    "HttpEpisodeLister",
    "HttpProtectionDetector",
    "HttpSourceResolver",
    "PlaywrightStreamExtractor",
    "ScrapeGate",
]
