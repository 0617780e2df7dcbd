"""SQLite storage for the HN Summarizer pipeline.

This module holds the item repository (stories and their processing
state), the run-timestamp store used by the task scheduler, and the
per-channel notification attempt log.

Database Schema:
    stories table:
        - id (INTEGER, PK): Hacker News item id
        - title, url, author, created_at, score: Feed fields
        - status (TEXT): ProcessingStatus value
        - content_ref (TEXT): Blob key of extracted content
        - summary_ref (TEXT): Blob key of generated summary
        - retry_count (INTEGER): Times the story entered a retry state
        - last_error (TEXT): Most recent failure diagnostic
        - processed_at (INTEGER): Insertion time (Unix epoch)
        - completed_at (INTEGER): Time the summary was stored (Unix epoch)
        - updated_at (INTEGER): Last mutation time (Unix epoch)

    worker_runs table:
        - task_name (TEXT, PK): Orchestrated task name
        - last_run_time (REAL): Last completed run (Unix epoch)
        - updated_at (REAL): Row write time (Unix epoch)

    notification_attempts table:
        - (story_id, channel) unique: one row per story per channel
        - status, attempt_count, last_attempt_at, sent_at, error

Status Transitions:
    All transitions are conditional updates of the form
    ``UPDATE ... WHERE id = ? AND status IN (...)``. A transition returns
    True only when exactly one row moved, so two overlapping runs can never
    both claim the same story or overwrite each other's result.

Features:
    - WAL mode for concurrent read/write access
    - Automatic schema migration for new columns
    - Context manager support for auto-cleanup
"""

import logging
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from models.story import SUMMARY_STATUSES, FeedItem, ProcessingStatus, StoryRecord

logger = logging.getLogger(__name__)

# Timestamp written by reset_run so the task is due on the next tick
RESET_RUN_TIME = datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp()

_EXTRACT_RETRY = ProcessingStatus.RETRY_EXTRACT.value
_SUMMARIZE_RETRY = ProcessingStatus.RETRY_SUMMARIZE.value
_SUMMARIZED = tuple(sorted(s.value for s in SUMMARY_STATUSES))


def _statuses(values: Iterable[ProcessingStatus]) -> list[str]:
    return [ProcessingStatus(v).value for v in values]


class Database:
    """SQLite database for stories, run records and notification attempts.

    Example:
        >>> with Database("hn.db") as db:
        ...     db.upsert_story(item)
        ...     for story in db.candidates_for_extract(10, max_retries=5):
        ...         db.claim(story.id, [story.status], ProcessingStatus.EXTRACTING)
    """

    SCHEMA = """
    -- One row per Hacker News story seen by the fetch stage
    CREATE TABLE IF NOT EXISTS stories (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        url TEXT,
        author TEXT NOT NULL DEFAULT '',
        created_at INTEGER NOT NULL DEFAULT 0,
        score INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'pending',
        content_ref TEXT,
        summary_ref TEXT,
        retry_count INTEGER NOT NULL DEFAULT 0,
        last_error TEXT,
        processed_at INTEGER NOT NULL,
        completed_at INTEGER,
        updated_at INTEGER NOT NULL
    );

    -- Candidate selection filters on status and orders by retry/score
    CREATE INDEX IF NOT EXISTS idx_stories_status ON stories(status, retry_count, score);

    -- Last run time per orchestrated task
    CREATE TABLE IF NOT EXISTS worker_runs (
        task_name TEXT PRIMARY KEY,
        last_run_time REAL NOT NULL,
        updated_at REAL NOT NULL
    );

    -- Per-channel delivery log
    CREATE TABLE IF NOT EXISTS notification_attempts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        story_id INTEGER NOT NULL,
        channel TEXT NOT NULL,
        status TEXT NOT NULL,
        attempt_count INTEGER NOT NULL DEFAULT 0,
        last_attempt_at INTEGER,
        sent_at INTEGER,
        error TEXT,
        UNIQUE(story_id, channel)
    );
    """

    path: Path
    conn: sqlite3.Connection

    def __init__(self, path: Path | str):
        """Open (or create) the database and ensure the schema exists.

        Args:
            path: Path to SQLite database file, or ":memory:"
        """
        self.path = Path(path)
        self.conn = sqlite3.connect(str(path))
        self.conn.row_factory = sqlite3.Row

        # WAL mode allows concurrent readers during writes
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()
        logger.debug("Database initialized | path=%s", self.path)

    def _init_schema(self) -> None:
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()
        self._migrate()

    def _migrate(self) -> None:
        """Add columns introduced after the first schema version."""
        cursor = self.conn.execute("PRAGMA table_info(stories)")
        columns = {row["name"] for row in cursor.fetchall()}

        if "last_error" not in columns:
            self.conn.execute("ALTER TABLE stories ADD COLUMN last_error TEXT")
            self.conn.commit()
            logger.info("Database migrated | added column=last_error")

        if "completed_at" not in columns:
            self.conn.execute("ALTER TABLE stories ADD COLUMN completed_at INTEGER")
            # Rows summarized before this column existed fall back to updated_at
            self.conn.execute(
                "UPDATE stories SET completed_at = updated_at WHERE status IN (?, ?)",
                _SUMMARIZED,
            )
            self.conn.commit()
            logger.info("Database migrated | added column=completed_at")

        # Notify window and digest lookback filter on completion time
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_stories_completed ON stories(completed_at)"
        )
        self.conn.commit()

    @staticmethod
    def _row_to_story(row: sqlite3.Row) -> StoryRecord:
        return StoryRecord.model_validate(dict(row))

    def _select(self, sql: str, params: tuple = ()) -> list[StoryRecord]:
        cursor = self.conn.execute(sql, params)
        return [self._row_to_story(row) for row in cursor.fetchall()]

    # ------------------------------------------------------------------
    # Item repository
    # ------------------------------------------------------------------

    def upsert_story(self, item: FeedItem) -> bool:
        """Insert a new story at PENDING or refresh feed fields in place.

        Only title, url, score and author are refreshed for an existing
        story. Status, blob refs, retry metadata and processed_at stay as
        they are, and so does completed_at, which keys the notify window.

        Args:
            item: Validated feed item

        Returns:
            True if the story was newly inserted
        """
        now = int(time.time())
        cursor = self.conn.execute(
            """
            INSERT INTO stories
            (id, title, url, author, created_at, score, status,
             retry_count, processed_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
            ON CONFLICT(id) DO NOTHING
            """,
            (item.id, item.title, item.url, item.by, item.time, item.score,
             ProcessingStatus.PENDING.value, now, now),
        )
        inserted = cursor.rowcount == 1
        if not inserted:
            self.conn.execute(
                """
                UPDATE stories
                SET title = ?, url = ?, score = ?, author = ?, updated_at = ?
                WHERE id = ?
                """,
                (item.title, item.url, item.score, item.by, now, item.id),
            )
        self.conn.commit()
        logger.debug("Story upserted | id=%d new=%s", item.id, inserted)
        return inserted

    def get_story(self, story_id: int) -> StoryRecord | None:
        cursor = self.conn.execute("SELECT * FROM stories WHERE id = ?", (story_id,))
        row = cursor.fetchone()
        return self._row_to_story(row) if row else None

    def _retry_candidates(
        self,
        retry_status: str,
        primary_status: str,
        batch_size: int,
        max_retries: int,
    ) -> list[StoryRecord]:
        # Retry items first, then fewest retries, then highest score
        return self._select(
            """
            SELECT * FROM stories
            WHERE (status = ? AND retry_count < ?) OR status = ?
            ORDER BY CASE WHEN status = ? THEN 0 ELSE 1 END,
                     retry_count ASC,
                     score DESC
            LIMIT ?
            """,
            (retry_status, max_retries, primary_status, retry_status, batch_size),
        )

    def candidates_for_extract(self, batch_size: int, max_retries: int) -> list[StoryRecord]:
        """Stories awaiting extraction (PENDING or RETRY_EXTRACT under the ceiling)."""
        return self._retry_candidates(
            _EXTRACT_RETRY, ProcessingStatus.PENDING.value, batch_size, max_retries
        )

    def candidates_for_summarize(self, batch_size: int, max_retries: int) -> list[StoryRecord]:
        """Stories awaiting summarization (EXTRACTED or RETRY_SUMMARIZE under the ceiling)."""
        return self._retry_candidates(
            _SUMMARIZE_RETRY, ProcessingStatus.EXTRACTED.value, batch_size, max_retries
        )

    def candidates_for_notify(self, batch_size: int, max_age_hours: int) -> list[StoryRecord]:
        """COMPLETED stories summarized within the notify window, best score first."""
        cutoff = int(time.time()) - max_age_hours * 3600
        return self._select(
            """
            SELECT * FROM stories
            WHERE status = ? AND completed_at >= ?
            ORDER BY score DESC, completed_at ASC
            LIMIT ?
            """,
            (ProcessingStatus.COMPLETED.value, cutoff, batch_size),
        )

    def fail_exhausted(self, retry_status: ProcessingStatus, max_retries: int) -> int:
        """Move retry-state stories that reached the ceiling to FAILED.

        Selection only returns retry items with retry_count below the
        ceiling, so without this sweep such items would never be picked
        up again.

        Returns:
            Number of stories moved to FAILED
        """
        cursor = self.conn.execute(
            """
            UPDATE stories
            SET status = ?, updated_at = ?,
                last_error = COALESCE(last_error, 'retry attempts exhausted')
            WHERE status = ? AND retry_count >= ?
            """,
            (ProcessingStatus.FAILED.value, int(time.time()),
             ProcessingStatus(retry_status).value, max_retries),
        )
        self.conn.commit()
        if cursor.rowcount:
            logger.info(
                "Exhausted retries failed | from=%s count=%d",
                ProcessingStatus(retry_status).value, cursor.rowcount,
            )
        return cursor.rowcount

    def _transition(
        self,
        story_id: int,
        expected: Iterable[ProcessingStatus],
        assignments: str,
        params: tuple,
    ) -> bool:
        expected_values = _statuses(expected)
        placeholders = ",".join("?" * len(expected_values))
        cursor = self.conn.execute(
            f"""
            UPDATE stories SET {assignments}, updated_at = ?
            WHERE id = ? AND status IN ({placeholders})
            """,
            (*params, int(time.time()), story_id, *expected_values),
        )
        self.conn.commit()
        return cursor.rowcount == 1

    def claim(
        self,
        story_id: int,
        from_statuses: Iterable[ProcessingStatus],
        to_status: ProcessingStatus,
    ) -> bool:
        """Move a story into an in-progress state if it is still in from_statuses.

        Returns:
            True if this caller won the claim
        """
        won = self._transition(story_id, from_statuses, "status = ?", (to_status.value,))
        if not won:
            logger.debug("Claim lost | id=%d to=%s", story_id, to_status.value)
        return won

    def mark_extracted(self, story_id: int, content_ref: str) -> bool:
        """EXTRACTING -> EXTRACTED, recording the content blob key."""
        return self._transition(
            story_id,
            [ProcessingStatus.EXTRACTING],
            "status = ?, content_ref = ?, last_error = NULL",
            (ProcessingStatus.EXTRACTED.value, content_ref),
        )

    def mark_completed(self, story_id: int, summary_ref: str) -> bool:
        """SUMMARIZING -> COMPLETED, recording the summary blob key."""
        return self._transition(
            story_id,
            [ProcessingStatus.SUMMARIZING],
            "status = ?, summary_ref = ?, completed_at = ?, last_error = NULL",
            (ProcessingStatus.COMPLETED.value, summary_ref, int(time.time())),
        )

    def mark_sent(self, story_id: int) -> bool:
        """COMPLETED -> SENT."""
        return self._transition(
            story_id,
            [ProcessingStatus.COMPLETED],
            "status = ?, last_error = NULL",
            (ProcessingStatus.SENT.value,),
        )

    def mark_retry(
        self,
        story_id: int,
        expected: ProcessingStatus,
        retry_status: ProcessingStatus,
        error: str,
    ) -> bool:
        """Move an in-progress story to a retry state and bump retry_count."""
        return self._transition(
            story_id,
            [expected],
            "status = ?, retry_count = retry_count + 1, last_error = ?",
            (retry_status.value, error),
        )

    def mark_failed(self, story_id: int, expected: ProcessingStatus, error: str) -> bool:
        """Move an in-progress story to the terminal FAILED state."""
        return self._transition(
            story_id,
            [expected],
            "status = ?, last_error = ?",
            (ProcessingStatus.FAILED.value, error),
        )

    def record_notification_attempt(
        self,
        story_id: int,
        channel: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        """Upsert the delivery log row for one story on one channel."""
        now = int(time.time())
        self.conn.execute(
            """
            INSERT INTO notification_attempts
            (story_id, channel, status, attempt_count, last_attempt_at, sent_at, error)
            VALUES (?, ?, ?, 1, ?, ?, ?)
            ON CONFLICT(story_id, channel) DO UPDATE SET
                status = excluded.status,
                attempt_count = attempt_count + 1,
                last_attempt_at = excluded.last_attempt_at,
                sent_at = COALESCE(excluded.sent_at, sent_at),
                error = excluded.error
            """,
            (story_id, channel, "sent" if success else "failed", now,
             now if success else None, error),
        )
        self.conn.commit()

    def notification_attempts(self, story_id: int) -> list[dict[str, Any]]:
        cursor = self.conn.execute(
            "SELECT * FROM notification_attempts WHERE story_id = ? ORDER BY channel",
            (story_id,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def stories_by_status(self, status: ProcessingStatus, limit: int = 50) -> list[StoryRecord]:
        return self._select(
            "SELECT * FROM stories WHERE status = ? ORDER BY updated_at DESC LIMIT ?",
            (ProcessingStatus(status).value, limit),
        )

    def latest_processed(self, limit: int = 20) -> list[StoryRecord]:
        """Most recently updated COMPLETED or SENT stories."""
        return self._select(
            """
            SELECT * FROM stories WHERE status IN (?, ?)
            ORDER BY updated_at DESC LIMIT ?
            """,
            (*_SUMMARIZED, limit),
        )

    def recent_processed(self, hours: int, limit: int) -> list[StoryRecord]:
        """COMPLETED or SENT stories summarized in the last N hours, best score first."""
        cutoff = int(time.time()) - hours * 3600
        return self._select(
            """
            SELECT * FROM stories
            WHERE status IN (?, ?) AND completed_at >= ?
            ORDER BY score DESC
            LIMIT ?
            """,
            (*_SUMMARIZED, cutoff, limit),
        )

    def status_counts(self) -> dict[str, int]:
        """Number of stories per status (every status present, zero if none)."""
        counts = {status.value: 0 for status in ProcessingStatus}
        cursor = self.conn.execute("SELECT status, COUNT(*) AS n FROM stories GROUP BY status")
        for row in cursor.fetchall():
            counts[row["status"]] = row["n"]
        return counts

    # ------------------------------------------------------------------
    # Run-timestamp store
    # ------------------------------------------------------------------

    def get_last_run(self, task_name: str) -> float | None:
        """Last recorded run time for a task (Unix epoch), or None if never run."""
        cursor = self.conn.execute(
            "SELECT last_run_time FROM worker_runs WHERE task_name = ?", (task_name,)
        )
        row = cursor.fetchone()
        return row["last_run_time"] if row else None

    def record_run(self, task_name: str, run_time: float) -> None:
        self.conn.execute(
            """
            INSERT INTO worker_runs (task_name, last_run_time, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(task_name) DO UPDATE SET
                last_run_time = excluded.last_run_time,
                updated_at = excluded.updated_at
            """,
            (task_name, run_time, time.time()),
        )
        self.conn.commit()

    def list_run_records(self) -> list[dict[str, Any]]:
        cursor = self.conn.execute(
            "SELECT task_name, last_run_time, updated_at FROM worker_runs ORDER BY task_name"
        )
        return [dict(row) for row in cursor.fetchall()]

    def reset_run(self, task_name: str) -> None:
        """Backdate a task's run record so it is due on the next tick."""
        self.record_run(task_name, RESET_RUN_TIME)
        logger.info("Run record reset | task=%s", task_name)

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
