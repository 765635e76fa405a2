"""Ordered first-hit-wins strategy chains."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import structlog

log = structlog.get_logger(__name__)

S = TypeVar("S")
R = TypeVar("R")


@dataclass(frozen=True)
class Strategy(Generic[S, R]):
    """A named lookup ``subject -> result | None``."""

    name: str
    run: Callable[[S], Awaitable[Optional[R]]]


async def first_hit(
    strategies: list[Strategy[S, R]],
    subject: S,
    *,
    component: str,
) -> tuple[str, R] | None:
    """Run *strategies* in order and return ``(name, result)`` of the first hit."""
    for strategy in strategies:
        result = await strategy.run(subject)
        if result is not None:
            log.debug("strategy_hit", component=component, strategy=strategy.name)
            return strategy.name, result
        log.debug("strategy_miss", component=component, strategy=strategy.name)
    return None
