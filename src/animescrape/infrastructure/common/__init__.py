from .html import parse_html, select_links
from .http_client import build_http_client
from .rate_limiter import HostRateLimiter
from .retry_transport import RetryTransport

__all__ = [
    "HostRateLimiter",
    "RetryTransport",
    "build_http_client",
    "parse_html",
    "select_links",
]
