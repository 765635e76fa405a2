from .cache import CachePort
from .episode_store import EpisodeStore
from .progress_store import ProgressStore
from .scraping import EpisodeLister, ProtectionChecker, SourceResolver, StreamExtractor

__all__ = [
    "CachePort",
    "EpisodeLister",
    "EpisodeStore",
    "ProgressStore",
    "ProtectionChecker",
    "SourceResolver",
    "StreamExtractor",
]
