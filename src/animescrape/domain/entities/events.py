"""Batch progress events streamed to live callers (never persisted)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

EventType = Literal["start", "progress", "success", "error", "complete"]


@dataclass(frozen=True)
class BatchProgressEvent:
    type: EventType
    episode: int | None = None
    current: int | None = None
    total: int | None = None
    status: str | None = None
    url: str | None = None
    title: str | None = None
    error: str | None = None
    success_count: int | None = None
    error_count: int | None = None
    success_rate: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire shape: camelCase keys, unset fields omitted."""
        raw = {
            "type": self.type,
            "episode": self.episode,
            "current": self.current,
            "total": self.total,
            "status": self.status,
            "url": self.url,
            "title": self.title,
            "error": self.error,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "successRate": self.success_rate,
        }
        return {k: v for k, v in raw.items() if v is not None}
