from __future__ import annotations

from .load import load_config
from .schema import AppConfig, CacheConfig, EnvOverrides, ScraperConfig

__all__ = ["AppConfig", "CacheConfig", "EnvOverrides", "ScraperConfig", "load_config"]
