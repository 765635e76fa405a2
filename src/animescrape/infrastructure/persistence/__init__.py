from .episode_cache import CacheEpisodeStore
from .progress_cache import CacheProgressStore, entry_to_row, job_to_row

__all__ = ["CacheEpisodeStore", "CacheProgressStore", "entry_to_row", "job_to_row"]
