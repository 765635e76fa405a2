"""Anti-embedding heuristics over a stream host's raw markup."""

from __future__ import annotations

import re

import httpx
import structlog

from animescrape.domain.entities.scraping import ProtectionVerdict
from animescrape.domain.errors import ProtectionCheckFailure
from animescrape.infrastructure.scraping.mirrors import is_preferred_host

log = structlog.get_logger(__name__)

ANTI_EMBED_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"if\s*\(\s*window\s*==\s*window\.top\s*\)", re.I), "window/top comparison"),
    (re.compile(r"window\.location\.replace", re.I), "window.location.replace redirect"),
    (re.compile(r"window\.top\.location", re.I), "window.top.location access"),
    (re.compile(r"parent\.location", re.I), "parent.location access"),
    (re.compile(r"top\.location", re.I), "top.location access"),
    (re.compile(r"frameElement", re.I), "frameElement check"),
    (re.compile(r"anti-embed", re.I), "anti-embed marker"),
    (re.compile(r"embedding.*block", re.I), "embedding block marker"),
    (re.compile(r"no.*embed", re.I), "no-embed marker"),
)

CLOUDFLARE_MARKERS: tuple[str, ...] = ("cloudflare", "challenge-platform")


def assess_markup(html: str, stream_url: str) -> ProtectionVerdict:
    """Pure verdict for *html* served at *stream_url*.

    The preferred mirror host is exempt: its Cloudflare challenge is not
    recorded and it is never reported as protected.
    """
    exempt = is_preferred_host(stream_url)
    reasons: list[str] = [label for pattern, label in ANTI_EMBED_PATTERNS if pattern.search(html)]

    if any(marker in html for marker in CLOUDFLARE_MARKERS) and not exempt:
        reasons.append("Cloudflare protection detected")
    if "data-src" in html and "src=" not in html:
        reasons.append("Dynamic iframe loading detected")

    return ProtectionVerdict(protected=bool(reasons) and not exempt, reasons=tuple(reasons))


class HttpProtectionDetector:
    """ProtectionChecker that never raises: failures mean ``protected``."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._http = http_client
        self._timeout = timeout_seconds

    async def _fetch(self, stream_url: str) -> str:
        try:
            response = await self._http.get(stream_url, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise ProtectionCheckFailure(str(e) or type(e).__name__) from e
        if response.status_code >= 500:
            raise ProtectionCheckFailure(f"HTTP {response.status_code}")
        return response.text

    async def check(self, stream_url: str) -> ProtectionVerdict:
        try:
            html = await self._fetch(stream_url)
        except ProtectionCheckFailure as e:
            log.warning("protection_check_failed", url=stream_url, error=str(e))
            return ProtectionVerdict(protected=True, reasons=(f"check failed: {e}",))

        verdict = assess_markup(html, stream_url)
        log.info(
            "protection_checked",
            url=stream_url,
            protected=verdict.protected,
            reasons=list(verdict.reasons),
        )
        return verdict
