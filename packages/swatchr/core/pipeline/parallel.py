"""Bounded fan-out/fan-in over a list of entries.

Used wherever a config produces independent units of work: per-entry asset
builds, per-file downloads inside a download job, batched node fetches.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
import logging
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_MAX_PARALLEL = 5


async def parallel_map_entries(
    entries: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    max_parallel: int = DEFAULT_MAX_PARALLEL,
) -> list[R]:
    """Apply ``fn`` to every entry with at most ``max_parallel`` in flight.

    A sliding window keeps exactly ``min(max_parallel, len(entries))`` tasks
    running: each completion immediately starts the next unscheduled entry.
    Results land in a pre-sized list at their input index, so the output
    order always matches the input order regardless of completion order.

    Fail-fast: the first exception cancels every in-flight sibling (they see
    ``asyncio.CancelledError``), waits for them to settle, and re-raises the
    original exception. No partial result list is returned. Cancelling the
    caller cancels all in-flight tasks the same way.

    Args:
        entries: Units of work
        fn: Async transform applied to each entry
        max_parallel: Concurrency bound; values <= 0 are treated as 1

    Returns:
        ``[await fn(e) for e in entries]``, computed concurrently

    Example:
        >>> async def double(x: int) -> int:
        ...     return x * 2
        >>> await parallel_map_entries([1, 2, 3, 4, 5], double, max_parallel=2)
        [2, 4, 6, 8, 10]
    """
    count = len(entries)
    if count == 0:
        return []
    if count == 1:
        return [await fn(entries[0])]

    limit = max(1, max_parallel)
    results: list[R | None] = [None] * count
    in_flight: dict[asyncio.Task[R], int] = {}
    next_index = 0

    async def run(index: int) -> R:
        return await fn(entries[index])

    def launch() -> None:
        nonlocal next_index
        task = asyncio.create_task(run(next_index))
        in_flight[task] = next_index
        next_index += 1

    try:
        while next_index < count and len(in_flight) < limit:
            launch()

        while in_flight:
            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                index = in_flight.pop(task)
                results[index] = task.result()
                if next_index < count:
                    launch()
    except BaseException:
        for task in in_flight:
            task.cancel()
        # Settle siblings so none outlives this call; their outcomes are discarded.
        await asyncio.gather(*in_flight, return_exceptions=True)
        raise

    return results  # type: ignore[return-value]
