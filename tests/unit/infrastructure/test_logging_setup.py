"""Tests for the logging dictConfig builder."""

from __future__ import annotations

import logging

import structlog

from animescrape.infrastructure.config import AppConfig
from animescrape.infrastructure.logging.setup import (
    _LevelRangeFilter,
    _renderer,
    build_logging_config,
)


def _record(level: int) -> logging.LogRecord:
    return logging.LogRecord("x", level, __file__, 1, "msg", None, None)


class TestBuildLoggingConfig:
    def test_uvicorn_loggers_use_configured_level(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="WARNING"))
        assert cfg["root"]["level"] == "WARNING"
        assert cfg["loggers"]["uvicorn.access"]["level"] == "WARNING"
        assert cfg["loggers"]["uvicorn"]["propagate"] is False

    def test_renderer_follows_format(self) -> None:
        assert isinstance(
            _renderer(AppConfig(environment="prod")), structlog.processors.JSONRenderer
        )
        assert isinstance(
            _renderer(AppConfig(environment="dev")), structlog.dev.ConsoleRenderer
        )


class TestLevelRangeFilter:
    def test_range(self) -> None:
        stdout_filter = _LevelRangeFilter(logging.NOTSET, logging.WARNING)
        assert stdout_filter.filter(_record(logging.INFO))
        assert stdout_filter.filter(_record(logging.WARNING))
        assert not stdout_filter.filter(_record(logging.ERROR))
