"""
Bounded Worker Pool
===================
Runs an async unit of work over a list of items with at most ``limit``
units in flight.

Each unit settles into a ``TaskOutcome`` (value or error) instead of
raising across tasks; callers inspect the collection and decide whether
to continue.  ``raise_first_error`` re-raises the earliest failure.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskOutcome(Generic[T, R]):
    """Settled result of one unit of work."""
    index: int
    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None
    finished_order: int = -1

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> R:
        if self.error is not None:
            raise self.error
        return self.value


async def map_bounded(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T], Awaitable[R]],
) -> List[TaskOutcome[T, R]]:
    """
    Apply ``fn`` to every item, at most ``limit`` at a time.

    Items are handed out in input order to whichever worker frees up first.
    Returns once every unit has settled; outcomes are in input order.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    outcomes: List[Optional[TaskOutcome[T, R]]] = [None] * len(items)
    next_index = 0
    finished = 0

    async def worker(worker_id: int) -> None:
        nonlocal next_index, finished
        while next_index < len(items):
            current = next_index
            next_index += 1
            item = items[current]
            try:
                value = await fn(item)
            except Exception as e:
                logger.debug(f"[POOL] worker {worker_id} item {current} failed: {e}")
                outcome = TaskOutcome(index=current, item=item, error=e)
            else:
                outcome = TaskOutcome(index=current, item=item, value=value)
            outcome.finished_order = finished
            finished += 1
            outcomes[current] = outcome

    workers = [
        asyncio.create_task(worker(i))
        for i in range(min(limit, len(items)))
    ]
    if workers:
        await asyncio.gather(*workers)
    return outcomes


def first_error(outcomes: Sequence[TaskOutcome[Any, Any]]) -> Optional[BaseException]:
    """Earliest error by completion order, or None."""
    failed = [o for o in outcomes if not o.ok]
    if not failed:
        return None
    return min(failed, key=lambda o: o.finished_order).error


def raise_first_error(outcomes: Sequence[TaskOutcome[Any, Any]]) -> None:
    error = first_error(outcomes)
    if error is not None:
        raise error
