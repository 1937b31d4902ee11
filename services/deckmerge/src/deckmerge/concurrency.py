"""Bounded fan-out for async work."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_concurrently(
    items: Sequence[T],
    limit: int,
    func: Callable[[T, int], Awaitable[R]],
) -> List[R]:
    """Apply ``func`` to every item with at most ``limit`` calls in flight.

    ``min(limit, len(items))`` workers pull indices from one shared cursor, so no
    index is claimed twice. Results land in a pre-sized list and therefore keep
    input order. The first failure cancels the remaining workers and is
    re-raised.
    """

    if limit < 1:
        raise ValueError("Concurrency limit must be at least 1")

    results: List[R] = [None] * len(items)  # type: ignore[list-item]
    cursor = iter(range(len(items)))

    async def worker() -> None:
        for index in cursor:
            results[index] = await func(items[index], index)

    workers = [asyncio.create_task(worker()) for _ in range(min(limit, len(items)))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    return results


__all__ = ["map_concurrently"]
