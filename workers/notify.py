"""Notify stage: deliver completed summaries to notification channels.

A story moves COMPLETED -> SENT when at least one channel accepts it.
If every channel fails the story stays COMPLETED and is offered again on
the next notify run while it is inside the notify window
(NOTIFY_MAX_AGE_HOURS). Every channel attempt is logged in the
notification_attempts table.

Outcomes:
    SUCCEEDED  delivered to at least one channel
    FAILED     summary unreadable, or every channel failed
    SKIPPED    no summary reference, no configured channel, or lost update
"""

import asyncio
import logging
import sqlite3

from config import Config
from content_store import ContentStore, ContentStoreError
from database import Database
from executor import Outcome
from models.story import StoryRecord
from models.summary import Summary
from notifications import NotificationChannel
from workers.base import StageResult, StageWorker, error_text

logger = logging.getLogger(__name__)


class NotifyWorker(StageWorker[StoryRecord]):
    """Sends each completed story through every configured channel."""

    name = "notify"

    def __init__(
        self,
        config: Config,
        db: Database,
        store: ContentStore,
        channels: list[NotificationChannel],
    ):
        super().__init__(db, config.notify_concurrency)
        self.store = store
        self.channels = [c for c in channels if c.is_configured()]
        self.batch_size = config.notify_batch_size
        self.max_age_hours = config.notify_max_age_hours
        self.timeout = config.request_timeout_seconds

    def select(self) -> list[StoryRecord]:
        return self.db.candidates_for_notify(self.batch_size, self.max_age_hours)

    async def _send(self, channel: NotificationChannel, story: StoryRecord, summary: Summary) -> bool:
        error = None
        try:
            ok = await asyncio.wait_for(channel.send(story, summary), self.timeout)
            if not ok:
                error = "channel rejected the message"
        except asyncio.TimeoutError:
            ok, error = False, f"timed out after {self.timeout:.0f}s"
        except Exception as e:
            ok, error = False, error_text(e)

        try:
            self.db.record_notification_attempt(story.id, channel.name, ok, error)
        except sqlite3.Error as e:
            logger.warning("Attempt log write failed | id=%d channel=%s error=%s", story.id, channel.name, e)
        return ok

    async def process(self, story: StoryRecord) -> Outcome:
        if not story.summary_ref:
            logger.warning("Completed story has no summary reference | id=%d", story.id)
            return Outcome.SKIPPED
        if not self.channels:
            return Outcome.SKIPPED

        try:
            summary = self.store.load_summary(story.summary_ref)
        except ContentStoreError as e:
            logger.error("Summary unreadable | id=%d error=%s", story.id, e)
            return Outcome.FAILED

        results = await asyncio.gather(*(self._send(c, story, summary) for c in self.channels))
        sent_to = [c.name for c, ok in zip(self.channels, results) if ok]
        if not sent_to:
            logger.warning("Notification failed on all channels | id=%d", story.id)
            return Outcome.FAILED

        if not self.db.mark_sent(story.id):
            return Outcome.SKIPPED
        logger.info("Story sent | id=%d channels=%s", story.id, ",".join(sent_to))
        return Outcome.SUCCEEDED

    async def run(self) -> StageResult:
        if not self.channels:
            logger.warning("No notification channels configured | stage=%s", self.name)
        return await super().run()
