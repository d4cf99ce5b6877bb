"""Bounded, order-preserving fan-out for per-part upstream requests."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_in_order(
    items: Iterable[T],
    func: Callable[[T], Awaitable[R]],
    limit: int = 1,
) -> list[R]:
    """Await ``func(item)`` for every item and return results in input order.

    With ``limit <= 1`` calls run strictly one after another. Larger limits
    allow at most ``limit`` calls in flight. The first exception
    propagates once the pending calls are cancelled. No partial result is
    returned.
    """
    items = list(items)
    if limit <= 1:
        results: list[R] = []
        for item in items:
            results.append(await func(item))
        return results

    semaphore = asyncio.Semaphore(limit)

    async def run_one(item: T) -> R:
        async with semaphore:
            return await func(item)

    tasks = [asyncio.create_task(run_one(item)) for item in items]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
