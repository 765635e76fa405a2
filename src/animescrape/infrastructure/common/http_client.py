"""Shared httpx.AsyncClient factory."""

from __future__ import annotations

import httpx

from animescrape.infrastructure.common.rate_limiter import HostRateLimiter
from animescrape.infrastructure.common.retry_transport import RetryTransport
from animescrape.infrastructure.config.schema import AppConfig


def browser_headers(user_agent: str) -> dict[str, str]:
    """Headers sent with every upstream request."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    rate_limiter = HostRateLimiter(
        requests_per_second=config.rate_limit_requests_per_second,
    )
    transport = RetryTransport(
        httpx.AsyncHTTPTransport(),
        rate_limiter,
        max_retries=config.http_retry_max_attempts,
        backoff_base=config.http_retry_backoff_base,
        max_backoff=config.http_retry_max_backoff,
    )
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(config.http_timeout_seconds),
        follow_redirects=config.http_follow_redirects,
        headers=browser_headers(config.upstream_user_agent),
    )
