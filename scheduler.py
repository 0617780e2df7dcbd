"""Interval scheduling from persisted run timestamps.

The process holds no timers between invocations. Each tick asks the
scheduler whether a task is due, which compares the stored last run time
against the task's interval. Storage errors make a task due (fail open):
running a stage early is harmless because every transition is guarded.
"""

import logging
import time
from typing import Callable

from database import Database

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Decides which tasks are due and records completed runs.

    Args:
        db: Database holding the worker_runs table
        clock: Returns the current Unix time (injectable for tests)
    """

    def __init__(self, db: Database, clock: Callable[[], float] = time.time):
        self.db = db
        self.clock = clock

    def should_run(self, task_name: str, interval_minutes: float) -> bool:
        """Whether at least interval_minutes have passed since the last run."""
        try:
            last_run = self.db.get_last_run(task_name)
        except Exception as e:
            logger.warning("Run record unreadable, running task | task=%s error=%s", task_name, e)
            return True

        if last_run is None:
            logger.debug("Task never run | task=%s", task_name)
            return True

        elapsed = self.clock() - last_run
        due = elapsed >= interval_minutes * 60
        logger.debug(
            "Task due check | task=%s elapsed=%.0fs interval=%.0fs due=%s",
            task_name, elapsed, interval_minutes * 60, due,
        )
        return due

    def record_run(self, task_name: str, timestamp: float | None = None) -> None:
        """Store the run time for a task (now if no timestamp is given)."""
        run_time = self.clock() if timestamp is None else timestamp
        self.db.record_run(task_name, run_time)
        logger.debug("Run recorded | task=%s time=%.0f", task_name, run_time)
