"""Shared pieces of the stage workers.

StageResult:
    Counters returned by every stage run, aggregated into the tick report.

StageWorker:
    Select candidates, then run the per-item work function through the
    batch executor. A failure to list candidates becomes a StageResult
    with ``error`` set and zero counts.

retry_or_fail:
    The recoverable-failure branch shared by extract and summarize.
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Generic, Sequence, TypeVar

from database import Database
from executor import BatchCounts, Outcome, run_batch
from models.story import ProcessingStatus, StoryRecord
from tools.utils import truncate

logger = logging.getLogger(__name__)

T = TypeVar("T")

# last_error is stored for diagnostics only
MAX_ERROR_CHARS = 500


@dataclass
class StageResult:
    """Outcome counters of one stage run.

    Attributes:
        stage: Stage name
        processed: Items that reached the stage's success state
        failed: Items that failed (terminal, or left unchanged for notify)
        retried: Items moved to a retry state
        skipped: Items skipped (lost claims, not applicable, unconfigured)
        total: Items attempted
        duration: Wall time in seconds
        error: Stage-level error (candidate listing failed), None otherwise
    """

    stage: str
    processed: int = 0
    failed: int = 0
    retried: int = 0
    skipped: int = 0
    total: int = 0
    duration: float = 0.0
    error: str | None = None

    @classmethod
    def from_counts(cls, stage: str, counts: BatchCounts, duration: float) -> "StageResult":
        return cls(
            stage=stage,
            processed=counts.succeeded,
            failed=counts.failed,
            retried=counts.retried,
            skipped=counts.skipped,
            total=counts.total,
            duration=duration,
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        return d


def error_text(error: BaseException | str) -> str:
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
        error = f"{type(error).__name__}: {message}"
    return truncate(error, MAX_ERROR_CHARS)


def retry_or_fail(
    db: Database,
    story: StoryRecord,
    in_progress: ProcessingStatus,
    retry_status: ProcessingStatus,
    max_retries: int,
    error: BaseException | str,
) -> Outcome:
    """Move a story that hit a recoverable failure to retry or FAILED.

    The story goes to retry_status while its retry_count is below
    max_retries, and to FAILED otherwise.
    """
    message = error_text(error)
    if story.retry_count < max_retries:
        moved = db.mark_retry(story.id, in_progress, retry_status, message)
        outcome = Outcome.RETRIED
        logger.warning(
            "Story retry scheduled | id=%d attempt=%d/%d error=%s",
            story.id, story.retry_count + 1, max_retries, message,
        )
    else:
        # Only a lost race or a lowered ceiling lands here; fail_exhausted sweeps the rest
        moved = db.mark_failed(story.id, in_progress, message)
        outcome = Outcome.FAILED
        logger.error(
            "Story failed after retries | id=%d retries=%d error=%s",
            story.id, story.retry_count, message,
        )
    return outcome if moved else Outcome.SKIPPED


class StageWorker(Generic[T]):
    """Base class for the batch-processing stages."""

    name = "stage"

    def __init__(self, db: Database, concurrency: int):
        self.db = db
        self.concurrency = concurrency

    def select(self) -> Sequence[T]:
        raise NotImplementedError

    async def process(self, item: T) -> Outcome:
        raise NotImplementedError

    async def run(self) -> StageResult:
        """Select candidates and process them through the batch executor."""
        start = time.monotonic()
        try:
            items = self.select()
        except Exception as e:
            logger.error("Candidate listing failed | stage=%s error=%s", self.name, e, exc_info=True)
            return StageResult(stage=self.name, duration=time.monotonic() - start, error=error_text(e))

        if not items:
            logger.info("No candidates | stage=%s", self.name)
            return StageResult(stage=self.name, duration=time.monotonic() - start)

        logger.info("Stage started | stage=%s candidates=%d", self.name, len(items))
        counts = await run_batch(items, self.concurrency, self.process)
        result = StageResult.from_counts(self.name, counts, time.monotonic() - start)
        logger.info(
            "Stage done | stage=%s processed=%d retried=%d failed=%d skipped=%d duration=%.1fs",
            self.name, result.processed, result.retried, result.failed, result.skipped,
            result.duration,
        )
        return result
