"""Bounded-concurrency batch executor shared by every processing stage.

Items are processed in consecutive windows of ``concurrency`` items. Each
window runs concurrently with asyncio.gather and fully settles before the
next window starts, so at most ``concurrency`` external calls are in
flight at any time.

The executor never writes item status. The work function owns the item's
transitions and reports what happened as an Outcome; the executor only
aggregates. An exception escaping a work function is counted as FAILED
and never affects sibling items.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Outcome(str, Enum):
    """Result of processing one item."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RETRIED = "retried"
    SKIPPED = "skipped"


@dataclass
class BatchCounts:
    """Aggregated outcomes of a batch."""

    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.retried + self.skipped

    def add(self, outcome: Outcome) -> None:
        if outcome is Outcome.SUCCEEDED:
            self.succeeded += 1
        elif outcome is Outcome.RETRIED:
            self.retried += 1
        elif outcome is Outcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


async def run_batch(
    items: Sequence[T],
    concurrency: int,
    work: Callable[[T], Awaitable[Outcome]],
) -> BatchCounts:
    """Run work over items in windows of at most ``concurrency``.

    Args:
        items: Items to process
        concurrency: Window size (values below 1 are treated as 1)
        work: Async function returning the Outcome for one item

    Returns:
        BatchCounts with one outcome per item

    Example:
        >>> counts = await run_batch(stories, 5, process_story)
        >>> counts.succeeded
        4
    """
    counts = BatchCounts()
    window = max(1, concurrency)

    for start in range(0, len(items), window):
        chunk = items[start:start + window]
        results = await asyncio.gather(*(work(item) for item in chunk), return_exceptions=True)

        for item, result in zip(chunk, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error(
                    "Work item raised | item=%s type=%s error=%s",
                    item, type(result).__name__, result,
                    exc_info=result,
                )
                counts.add(Outcome.FAILED)
            elif isinstance(result, Outcome):
                counts.add(result)
            else:
                logger.warning("Work item returned no outcome | item=%s result=%r", item, result)
                counts.add(Outcome.FAILED)

    logger.debug(
        "Batch done | items=%d window=%d ok=%d failed=%d retried=%d skipped=%d",
        len(items), window, counts.succeeded, counts.failed, counts.retried, counts.skipped,
    )
    return counts
