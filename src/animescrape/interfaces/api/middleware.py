"""FastAPI middleware for API rate limiting."""

from __future__ import annotations

import time
from collections import deque

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

log = structlog.get_logger(__name__)

# How many dispatch cycles between full sweeps of stale client entries.
_GC_INTERVAL = 256

SCRAPE_PREFIXES = ("/api/scrape", "/api/batch-scrape", "/api/test-scraper")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiter per client IP, in two tiers.

    Every ``/api`` request counts against the general window; requests
    to the scrape endpoints additionally count against a stricter one.
    Paths outside ``/api`` (e.g. ``/health``) are never limited.

    Args:
        app: ASGI application.
        requests_per_minute: General limit per IP per minute. 0 = unlimited.
        scrape_requests_per_minute: Limit for scrape endpoints. 0 = unlimited.
    """

    def __init__(
        self,
        app: object,
        requests_per_minute: int = 60,
        scrape_requests_per_minute: int = 10,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._limits = {
            "general": requests_per_minute,
            "scrape": scrape_requests_per_minute,
        }
        self._window: dict[tuple[str, str], deque[float]] = {}
        self._dispatch_count = 0

    def _hit(self, tier: str, client_ip: str, now: float) -> bool:
        """Record a request; False when the tier's window is already full."""
        rpm = self._limits[tier]
        if rpm <= 0:
            return True

        timestamps = self._window.get((tier, client_ip))
        if timestamps is None:
            timestamps = deque()
            self._window[(tier, client_ip)] = timestamps

        cutoff = now - 60.0
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

        if len(timestamps) >= rpm:
            log.warning(
                "rate_limit_exceeded",
                client_ip=client_ip,
                tier=tier,
                rpm=rpm,
                current=len(timestamps),
            )
            return False
        timestamps.append(now)
        return True

    def _remaining(self, tier: str, client_ip: str) -> int:
        timestamps = self._window.get((tier, client_ip), ())
        return max(0, self._limits[tier] - len(timestamps))

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if not path.startswith("/api"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()

        tiers = ["general"]
        if path.startswith(SCRAPE_PREFIXES):
            tiers.append("scrape")
        for tier in tiers:
            if not self._hit(tier, client_ip, now):
                return JSONResponse(
                    status_code=429,
                    content={
                        "success": False,
                        "error": "Too many requests, please try again later.",
                        "retry_after_seconds": 60,
                    },
                    headers={"Retry-After": "60"},
                )

        # Periodic GC: evict IPs whose deques are empty
        self._dispatch_count += 1
        if self._dispatch_count >= _GC_INTERVAL:
            self._dispatch_count = 0
            stale = [key for key, dq in self._window.items() if not dq]
            for key in stale:
                del self._window[key]

        response = await call_next(request)
        tier = tiers[-1]
        if self._limits[tier] > 0:
            response.headers["X-RateLimit-Limit"] = str(self._limits[tier])
            response.headers["X-RateLimit-Remaining"] = str(
                self._remaining(tier, client_ip)
            )
        return response
