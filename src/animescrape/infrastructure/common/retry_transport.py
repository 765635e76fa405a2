"""httpx transport with per-host rate limiting and retry on transient statuses."""

from __future__ import annotations

import asyncio
import random

import httpx
import structlog

from animescrape.infrastructure.common.rate_limiter import HostRateLimiter

log = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


def _retry_after_seconds(headers: httpx.Headers) -> float | None:
    """``Retry-After`` in its integer-seconds form; HTTP-dates are ignored."""
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Wrap a transport with proactive rate limiting and reactive retries.

    Every attempt first takes a token from the HostRateLimiter.  Responses
    with a status in *retryable_status_codes* are retried up to
    *max_retries* times with exponential backoff plus jitter (or the
    server's Retry-After, capped at *max_backoff*).  The final response is
    returned as-is; status interpretation is left to the caller.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        rate_limiter: HostRateLimiter,
        *,
        max_retries: int = 2,
        backoff_base: float = 1.0,
        max_backoff: float = 15.0,
        retryable_status_codes: frozenset[int] = RETRYABLE_STATUS_CODES,
    ) -> None:
        self._wrapped = wrapped
        self._rate_limiter = rate_limiter
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff
        self._retryable = retryable_status_codes

    def backoff(self, response: httpx.Response, attempt: int) -> float:
        retry_after = _retry_after_seconds(response.headers)
        if retry_after is not None:
            return min(retry_after, self._max_backoff)
        delay = self._backoff_base * (2**attempt)
        jitter = random.uniform(0, self._backoff_base)  # noqa: S311
        return min(delay + jitter, self._max_backoff)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        attempt = 0
        while True:
            await self._rate_limiter.acquire(str(request.url))
            response = await self._wrapped.handle_async_request(request)
            if response.status_code not in self._retryable or attempt >= self._max_retries:
                return response

            await response.aread()
            await response.aclose()
            delay = self.backoff(response, attempt)
            log.info(
                "http_retry",
                url=str(request.url),
                status=response.status_code,
                attempt=attempt + 1,
                delay=round(delay, 2),
            )
            await asyncio.sleep(delay)
            attempt += 1

    async def aclose(self) -> None:
        await self._wrapped.aclose()
