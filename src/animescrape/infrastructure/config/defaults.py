"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

from .schema import DEFAULT_USER_AGENT

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "animescrape",
    "environment": "dev",
    "upstream": {
        "base_url": "https://9anime.org.lv",
        "user_agent": DEFAULT_USER_AGENT,
        "probe_timeout_seconds": 5.0,
        "search_timeout_seconds": 15.0,
        "nested_timeout_seconds": 15.0,
        "protection_timeout_seconds": 10.0,
    },
    "http": {
        "timeout_seconds": 30.0,
        "follow_redirects": True,
        "rate_limit_requests_per_second": 2.0,
        "retry_max_attempts": 2,
        "retry_backoff_base": 1.0,
        "retry_max_backoff": 15.0,
    },
    "playwright": {
        "headless": True,
        "stealth": True,
        "navigation_timeout_ms": 10_000,
        "fallback_navigation_timeout_ms": 5_000,
        "settle_ms": 2_000,
        "selector_timeout_ms": 5_000,
        "frame_settle_ms": 3_000,
    },
    "scraper": {
        "max_retries": 3,
        "retry_delay_seconds": 2.0,
        "timeout_ms": 45_000,
        "batch_delay_seconds": 2.0,
        "scrape_all_delay_seconds": 1.0,
        "chunk_delay_seconds": 2.0,
        "between_chunks_delay_seconds": 10.0,
        "max_concurrency": 2,
        "breaker_threshold": 8,
        "breaker_cooldown_seconds": 30.0,
        "default_chunk_size": 50,
        "progress_queue_size": 32,
    },
    "api": {
        "rate_limit_rpm": 60,
        "scrape_rate_limit_rpm": 10,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "dir": "./.cache/animescrape",
        "backend": "diskcache",
        "max_entries": 1000,
        "search_ttl_seconds": 3600,
        "episode_ttl_seconds": 86400,
        "store_ttl_seconds": 0,
    },
}
