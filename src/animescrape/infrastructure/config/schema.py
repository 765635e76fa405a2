"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
CacheBackendName = Literal["memory", "diskcache", "redis"]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _normalize_path(value: Any) -> Path:
    """Normalize a path-like value without filesystem side-effects."""
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class CacheConfig(BaseSettings):
    """Cache configuration (backend-agnostic)."""

    backend: CacheBackendName = Field(
        default="diskcache",
        description="Cache backend: 'memory', 'diskcache' (SQLite) or 'redis'",
    )
    directory: Path = Field(
        default=Path("./.cache/animescrape"),
        alias="dir",
        description="Diskcache SQLite DB path",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (only when backend=redis)",
    )
    max_entries: int = Field(
        default=1000,
        description="Entry cap for the memory backend (oldest evicted first)",
    )
    max_concurrent: int = Field(
        default=10,
        description="Max parallel cache ops (semaphore limit)",
    )
    search_ttl_seconds: int = Field(
        default=3600,
        description="TTL for resolved search results (search: namespace).",
    )
    episode_ttl_seconds: int = Field(
        default=86400,
        description="TTL for full pipeline results (episode: namespace).",
    )
    store_ttl_seconds: int = Field(
        default=0,
        description="Expiry for episode and progress store rows; 0 keeps them.",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_dir(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("search_ttl_seconds", "episode_ttl_seconds", "store_ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache TTLs must be >= 0")
        return v


class ScraperConfig(BaseModel):
    """Orchestration defaults (retries, pacing, gate)."""

    max_retries: int = Field(default=3, description="Attempts per episode.")
    retry_delay_seconds: float = Field(
        default=2.0, description="Fixed delay between attempts."
    )
    timeout_ms: int = Field(
        default=45_000, description="Default per-request browser budget."
    )
    batch_delay_seconds: float = Field(
        default=2.0, description="Delay between episodes of a batch."
    )
    scrape_all_delay_seconds: float = Field(
        default=1.0, description="Delay between episodes of a scrape-all run."
    )
    chunk_delay_seconds: float = Field(
        default=2.0, description="Delay between episodes of a chunk."
    )
    between_chunks_delay_seconds: float = Field(
        default=10.0, description="Delay between chunks of a background run."
    )
    max_concurrency: int = Field(
        default=2, description="Parallel browser extractions across all jobs."
    )
    breaker_threshold: int = Field(
        default=8, description="Consecutive failures before the gate opens."
    )
    breaker_cooldown_seconds: float = Field(
        default=30.0, description="How long the open gate rejects runs."
    )
    default_chunk_size: int = Field(default=50, description="Episodes per chunk.")
    progress_queue_size: int = Field(
        default=32, description="Bound of the progress event channel."
    )

    @field_validator(
        "max_retries", "max_concurrency", "breaker_threshold", "default_chunk_size",
        "progress_queue_size",
    )
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @field_validator("timeout_ms")
    @classmethod
    def _validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("timeout_ms must be > 0")
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned
      (upstream/http/playwright/scraper/cache/api/logging).
    - Environment variables are handled by EnvOverrides(BaseSettings) so
      load.py controls precedence (defaults < YAML < ENV < CLI).
    """

    app_name: str = Field(default="animescrape", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # Upstream site (YAML section: upstream.*)
    upstream_base_url: str = Field(
        default="https://9anime.org.lv",
        validation_alias=AliasChoices(
            "upstream_base_url",
            AliasPath("upstream", "base_url"),
        ),
        description="Base URL of the episode site.",
    )
    upstream_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        validation_alias=AliasChoices(
            "upstream_user_agent",
            AliasPath("upstream", "user_agent"),
        ),
        description="Fixed browser User-Agent for HTTP and Playwright.",
    )
    upstream_probe_timeout_seconds: float = Field(
        default=5.0,
        validation_alias=AliasChoices(
            "upstream_probe_timeout_seconds",
            AliasPath("upstream", "probe_timeout_seconds"),
        ),
        description="Timeout of the direct-URL probe.",
    )
    upstream_search_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "upstream_search_timeout_seconds",
            AliasPath("upstream", "search_timeout_seconds"),
        ),
        description="Timeout of the keyword search request.",
    )
    upstream_nested_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "upstream_nested_timeout_seconds",
            AliasPath("upstream", "nested_timeout_seconds"),
        ),
        description="Timeout of the aggregator page fetch.",
    )
    upstream_protection_timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices(
            "upstream_protection_timeout_seconds",
            AliasPath("upstream", "protection_timeout_seconds"),
        ),
        description="Timeout of the protection check fetch.",
    )

    # HTTP client (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Default HTTP timeout in seconds.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether the HTTP client follows redirects.",
    )
    rate_limit_requests_per_second: float = Field(
        default=2.0,
        validation_alias=AliasChoices(
            "rate_limit_requests_per_second",
            AliasPath("http", "rate_limit_requests_per_second"),
        ),
        description="Per-host outgoing request rate. 0 = unlimited.",
    )
    http_retry_max_attempts: int = Field(
        default=2,
        validation_alias=AliasChoices(
            "http_retry_max_attempts",
            AliasPath("http", "retry_max_attempts"),
        ),
        description="Transport-level retries on 429/502/503/504.",
    )
    http_retry_backoff_base: float = Field(
        default=1.0,
        validation_alias=AliasChoices(
            "http_retry_backoff_base",
            AliasPath("http", "retry_backoff_base"),
        ),
        description="Base of the exponential backoff (seconds).",
    )
    http_retry_max_backoff: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_retry_max_backoff",
            AliasPath("http", "retry_max_backoff"),
        ),
        description="Upper bound of a single backoff (seconds).",
    )

    # Playwright (YAML section: playwright.*)
    playwright_headless: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "playwright_headless",
            AliasPath("playwright", "headless"),
        ),
        description="Run Chromium headless.",
    )
    playwright_stealth: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "playwright_stealth",
            AliasPath("playwright", "stealth"),
        ),
        description="Apply playwright-stealth evasions to each context.",
    )
    playwright_navigation_timeout_ms: int = Field(
        default=10_000,
        validation_alias=AliasChoices(
            "playwright_navigation_timeout_ms",
            AliasPath("playwright", "navigation_timeout_ms"),
        ),
        description="First navigation attempt (domcontentloaded).",
    )
    playwright_fallback_navigation_timeout_ms: int = Field(
        default=5_000,
        validation_alias=AliasChoices(
            "playwright_fallback_navigation_timeout_ms",
            AliasPath("playwright", "fallback_navigation_timeout_ms"),
        ),
        description="Second navigation attempt (load).",
    )
    playwright_settle_ms: int = Field(
        default=2_000,
        validation_alias=AliasChoices(
            "playwright_settle_ms",
            AliasPath("playwright", "settle_ms"),
        ),
        description="Wait after navigation for client-side player assembly.",
    )
    playwright_selector_timeout_ms: int = Field(
        default=5_000,
        validation_alias=AliasChoices(
            "playwright_selector_timeout_ms",
            AliasPath("playwright", "selector_timeout_ms"),
        ),
        description="Wait for a <video> element.",
    )
    playwright_frame_settle_ms: int = Field(
        default=3_000,
        validation_alias=AliasChoices(
            "playwright_frame_settle_ms",
            AliasPath("playwright", "frame_settle_ms"),
        ),
        description="Wait inside an aggregator iframe before scanning it.",
    )

    # API (YAML section: api.*)
    api_rate_limit_rpm: int = Field(
        default=60,
        validation_alias=AliasChoices(
            "api_rate_limit_rpm",
            AliasPath("api", "rate_limit_rpm"),
        ),
        description="Requests per minute per client under /api. 0 = unlimited.",
    )
    api_scrape_rate_limit_rpm: int = Field(
        default=10,
        validation_alias=AliasChoices(
            "api_scrape_rate_limit_rpm",
            AliasPath("api", "scrape_rate_limit_rpm"),
        ),
        description="Requests per minute per client on scrape endpoints.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description="Log renderer (console/json). If unset, derived from environment.",
    )

    scraper: ScraperConfig = Field(default_factory=ScraperConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator(
        "upstream_probe_timeout_seconds",
        "upstream_search_timeout_seconds",
        "upstream_nested_timeout_seconds",
        "upstream_protection_timeout_seconds",
        "http_timeout_seconds",
    )
    @classmethod
    def _validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator(
        "playwright_navigation_timeout_ms",
        "playwright_fallback_navigation_timeout_ms",
        "playwright_selector_timeout_ms",
    )
    @classmethod
    def _validate_playwright_timeouts(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("playwright timeouts must be > 0")
        return v

    @field_validator("upstream_base_url")
    @classmethod
    def _strip_base_url(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """Dump configuration in the sectioned shape used by config.yaml."""
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "upstream": {
                "base_url": self.upstream_base_url,
                "user_agent": self.upstream_user_agent,
                "probe_timeout_seconds": self.upstream_probe_timeout_seconds,
                "search_timeout_seconds": self.upstream_search_timeout_seconds,
                "nested_timeout_seconds": self.upstream_nested_timeout_seconds,
                "protection_timeout_seconds": self.upstream_protection_timeout_seconds,
            },
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "rate_limit_requests_per_second": self.rate_limit_requests_per_second,
                "retry_max_attempts": self.http_retry_max_attempts,
                "retry_backoff_base": self.http_retry_backoff_base,
                "retry_max_backoff": self.http_retry_max_backoff,
            },
            "playwright": {
                "headless": self.playwright_headless,
                "stealth": self.playwright_stealth,
                "navigation_timeout_ms": self.playwright_navigation_timeout_ms,
                "fallback_navigation_timeout_ms": (
                    self.playwright_fallback_navigation_timeout_ms
                ),
                "settle_ms": self.playwright_settle_ms,
                "selector_timeout_ms": self.playwright_selector_timeout_ms,
                "frame_settle_ms": self.playwright_frame_settle_ms,
            },
            "api": {
                "rate_limit_rpm": self.api_rate_limit_rpm,
                "scrape_rate_limit_rpm": self.api_scrape_rate_limit_rpm,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "scraper": self.scraper.model_dump(),
            "cache": {
                **self.cache.model_dump(exclude={"directory"}),
                "dir": str(self.cache.directory),
            },
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    load.py reads ANIMESCRAPE_* variables, keeps the set values, merges
    them over YAML/defaults and then validates AppConfig.

    Examples:
    - ANIMESCRAPE_UPSTREAM_BASE_URL
    - ANIMESCRAPE_PLAYWRIGHT_HEADLESS
    - ANIMESCRAPE_SCRAPER_MAX_RETRIES
    - ANIMESCRAPE_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="ANIMESCRAPE_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    upstream_base_url: Optional[str] = None
    upstream_user_agent: Optional[str] = None

    http_timeout_seconds: Optional[float] = None
    rate_limit_requests_per_second: Optional[float] = None

    playwright_headless: Optional[bool] = None
    playwright_stealth: Optional[bool] = None
    playwright_navigation_timeout_ms: Optional[int] = None

    scraper_max_retries: Optional[int] = None
    scraper_max_concurrency: Optional[int] = None
    scraper_batch_delay_seconds: Optional[float] = None

    api_rate_limit_rpm: Optional[int] = None
    api_scrape_rate_limit_rpm: Optional[int] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    def to_update_dict(self) -> dict[str, Any]:
        """Return only values that were actually provided (non-None)."""
        return self.model_dump(exclude_none=True)
