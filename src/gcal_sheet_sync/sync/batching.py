"""
Bounded-concurrency execution with inter-batch pacing.
"""

import asyncio
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic
from typing import TypeVar

from gcal_sheet_sync.models import DEFAULT_BATCH_DELAY

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchOutcome(Generic[T, R]):
    """Result of running one item: either ``value`` or ``error`` is set."""

    item: T
    value: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def process_in_batches(
    items: list[T],
    batch_size: int,
    fn: Callable[[T], Awaitable[R]],
    delay: float = DEFAULT_BATCH_DELAY,
) -> list[BatchOutcome[T, R]]:
    """
    Run ``fn`` over ``items`` ``batch_size`` at a time.

    Every item's outcome is collected (a failure never cancels its siblings)
    and outcomes come back in input order.  Batches after the first wait
    ``delay`` seconds to stay under the target API's write quota.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    outcomes: list[BatchOutcome[T, R]] = []
    for start in range(0, len(items), batch_size):
        if start > 0 and delay > 0:
            await asyncio.sleep(delay)
        batch = items[start : start + batch_size]
        results = await asyncio.gather(*(fn(item) for item in batch), return_exceptions=True)
        for item, result in zip(batch, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                outcomes.append(BatchOutcome(item, error=result))
            else:
                outcomes.append(BatchOutcome(item, value=result))
    return outcomes
