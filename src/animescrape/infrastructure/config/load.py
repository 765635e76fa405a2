from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides

_SECTION_KEYS: set[str] = {
    "upstream",
    "http",
    "playwright",
    "scraper",
    "api",
    "logging",
    "cache",
}

# Flat keys (env vars, CLI flags) -> (section, key)
_FLAT_MAP: dict[str, tuple[str, str]] = {
    "upstream_base_url": ("upstream", "base_url"),
    "upstream_user_agent": ("upstream", "user_agent"),
    "http_timeout_seconds": ("http", "timeout_seconds"),
    "rate_limit_requests_per_second": ("http", "rate_limit_requests_per_second"),
    "playwright_headless": ("playwright", "headless"),
    "playwright_stealth": ("playwright", "stealth"),
    "playwright_navigation_timeout_ms": ("playwright", "navigation_timeout_ms"),
    "scraper_max_retries": ("scraper", "max_retries"),
    "scraper_max_concurrency": ("scraper", "max_concurrency"),
    "scraper_batch_delay_seconds": ("scraper", "batch_delay_seconds"),
    "api_rate_limit_rpm": ("api", "rate_limit_rpm"),
    "api_scrape_rate_limit_rpm": ("api", "scrape_rate_limit_rpm"),
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
    "cache_dir": ("cache", "dir"),
    "cache_backend": ("cache", "backend"),
}


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge `override` into `base` (dicts merge, scalars win)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, Mapping):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _normalize_layer(data: Mapping[str, Any]) -> dict[str, Any]:
    """Bring a layer (defaults/YAML/ENV/CLI) into the sectioned shape."""
    out: dict[str, Any] = {}

    for section in _SECTION_KEYS:
        if section in data and isinstance(data[section], Mapping):
            out[section] = dict(data[section])

    for key in ("app_name", "environment"):
        if key in data:
            out[key] = data[key]

    for flat_key, (section, section_key) in _FLAT_MAP.items():
        if flat_key in data:
            out.setdefault(section, {})
            out[section][section_key] = data[flat_key]

    return out


def _read_yaml_config(config_path: Path) -> dict[str, Any]:
    parsed = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Config YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """
    Load configuration with strict precedence:
    defaults < YAML file < env vars < cli overrides

    No files or directories are created here.
    """
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        load_dotenv(dotenv_path, override=False)

    base = _normalize_layer(deepcopy(DEFAULT_CONFIG))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(config_path)
        _deep_merge(base, _normalize_layer(_read_yaml_config(config_path)))

    _deep_merge(base, _normalize_layer(EnvOverrides().to_update_dict()))
    _deep_merge(base, _normalize_layer(cli_overrides or {}))

    return AppConfig.model_validate(base)
