"""Bounded channel carrying BatchProgressEvents to one consumer."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, cast

from animescrape.domain.entities.events import BatchProgressEvent

_CLOSED = object()


class ProgressChannel:
    """Single-producer/single-consumer event queue.

    ``emit`` blocks while the queue is full, so a slow consumer throttles
    the run instead of growing memory.  Iteration ends after ``close()``.
    """

    def __init__(self, maxsize: int = 32) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: BatchProgressEvent) -> None:
        if self._closed:
            return
        await self._queue.put(event)

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(_CLOSED)

    def abandon(self) -> None:
        """Consumer went away: drop queued events and accept no more.

        Frees a slot for a producer blocked in ``emit``; every later
        ``emit``/``close`` returns immediately.
        """
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()

    async def __aiter__(self) -> AsyncIterator[BatchProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield cast(BatchProgressEvent, item)
