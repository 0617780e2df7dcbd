"""Digest stage: daily roundup of the best recently summarized stories.

Steps:
    1. Select up to DIGEST_MAX_STORIES completed or sent stories updated in
       the last DIGEST_LOOKBACK_HOURS, best score first
    2. Skip the run if fewer than DIGEST_MIN_STORIES have readable summaries
    3. Generate the digest with the digest agent
    4. Save the markdown report and deliver it to every configured channel

The digest does not change story status.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Protocol

from agents.digest import DigestInput, render_digest_markdown
from config import Config
from content_store import ContentStore, ContentStoreError
from database import Database
from models.summary import DigestReport
from notifications import NotificationChannel, save_digest_report
from workers.base import StageResult, error_text

logger = logging.getLogger(__name__)


class DigestGenerator(Protocol):
    """Digest contract (see agents.digest.DigestAgent)."""

    async def generate(
        self, entries: list[DigestInput], date: str | None = None
    ) -> tuple[DigestReport, int, int]: ...


class DigestWorker:
    """Builds, saves and delivers the daily digest."""

    name = "digest"

    def __init__(
        self,
        config: Config,
        db: Database,
        store: ContentStore,
        agent: DigestGenerator,
        channels: list[NotificationChannel],
    ):
        self.config = config
        self.db = db
        self.store = store
        self.agent = agent
        self.channels = [c for c in channels if c.is_configured()]

    def _load_entries(self) -> list[DigestInput]:
        stories = self.db.recent_processed(
            self.config.digest_lookback_hours, self.config.digest_max_stories
        )
        entries = []
        for story in stories:
            if not story.summary_ref:
                continue
            try:
                entries.append(DigestInput(story=story, summary=self.store.load_summary(story.summary_ref)))
            except ContentStoreError as e:
                logger.warning("Digest summary unreadable | id=%d error=%s", story.id, e)
        return entries

    async def _deliver(self, title: str, markdown: str) -> int:
        async def send(channel: NotificationChannel) -> bool:
            try:
                return await asyncio.wait_for(
                    channel.send_digest(title, markdown), self.config.request_timeout_seconds
                )
            except Exception as e:
                logger.warning("Digest delivery failed | channel=%s error=%s", channel.name, e)
                return False

        results = await asyncio.gather(*(send(c) for c in self.channels))
        return sum(1 for ok in results if ok)

    async def run(self) -> StageResult:
        start = time.monotonic()
        try:
            entries = self._load_entries()
        except Exception as e:
            logger.error("Digest candidate listing failed | error=%s", e, exc_info=True)
            return StageResult(stage=self.name, duration=time.monotonic() - start, error=error_text(e))

        if len(entries) < self.config.digest_min_stories:
            logger.info(
                "Digest skipped | stories=%d min=%d", len(entries), self.config.digest_min_stories
            )
            return StageResult(
                stage=self.name, skipped=len(entries), total=len(entries),
                duration=time.monotonic() - start,
            )

        date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        try:
            digest, input_tokens, output_tokens = await asyncio.wait_for(
                self.agent.generate(entries, date), self.config.summary_timeout_seconds
            )
        except Exception as e:
            logger.error("Digest generation failed | error=%s", error_text(e))
            return StageResult(
                stage=self.name, failed=len(entries), total=len(entries),
                duration=time.monotonic() - start,
            )

        markdown = render_digest_markdown(digest, entries, date)
        try:
            save_digest_report(markdown, self.config.reports_dir, date)
        except OSError as e:
            logger.error("Digest save failed | error=%s", e)

        delivered = await self._deliver(f"Hacker News Daily Digest - {date}", markdown)
        result = StageResult(
            stage=self.name, processed=len(entries), total=len(entries),
            duration=time.monotonic() - start,
        )
        logger.info(
            "Digest done | stories=%d channels=%d/%d tokens=%d/%d",
            len(entries), delivered, len(self.channels), input_tokens, output_tokens,
        )
        return result
