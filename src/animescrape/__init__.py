"""Anime episode resolution, stream extraction and batch scraping service."""

__version__ = "0.1.0"
