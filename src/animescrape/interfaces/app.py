"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.responses import Response

from animescrape import __version__
from animescrape.infrastructure.config import AppConfig
from animescrape.interfaces.api.middleware import RateLimitMiddleware
from animescrape.interfaces.app_state import AppState
from animescrape.interfaces.composition import lifespan

log = structlog.get_logger(__name__)

SERVICE_NAME = "AnimeHub Scraper API"


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = [str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(config: AppConfig) -> FastAPI:
    """Create the FastAPI app: configuration only, no resource initialization.

    Resources (cache, HTTP client, browser pool, use cases) are created
    in lifespan().
    """
    app = FastAPI(
        title="animescrape",
        description="Anime episode resolution and stream scraping API",
        version=__version__,
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config
    app.state.started_at = time.monotonic()

    if config.api_rate_limit_rpm > 0 or config.api_scrape_rate_limit_rpm > 0:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=config.api_rate_limit_rpm,
            scrape_requests_per_minute=config.api_scrape_rate_limit_rpm,
        )

    from animescrape.interfaces.api.jobs.router import router as jobs_router
    from animescrape.interfaces.api.scrape.router import router as scrape_router

    app.include_router(scrape_router)
    app.include_router(jobs_router)

    @app.exception_handler(RequestValidationError)
    async def validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        message = _validation_message(exc)
        log.info("request_validation_failed", path=request.url.path, error=message)
        return JSONResponse(status_code=400, content={"success": False, "error": message})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        log.exception("unhandled_error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500, content={"success": False, "error": "Internal server error"}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe: 200 as long as the process is running."""
        return {"status": "OK", "timestamp": _utc_timestamp(), "service": SERVICE_NAME}

    @app.get("/api/health")
    async def api_health() -> dict[str, Any]:
        state = app.state
        return {
            "status": "OK",
            "timestamp": _utc_timestamp(),
            "uptime": round(time.monotonic() - state.started_at, 3),
            "environment": state.config.environment,
            "version": __version__,
        }

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                query=str(request.url.query),
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
