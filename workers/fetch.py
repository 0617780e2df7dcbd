"""Fetch stage: ingest the current top stories from the feed.

New stories are inserted at PENDING. Stories already stored get their
title, url, score and author refreshed; their processing state is left
alone, so a re-fetch never moves a story backwards.

Outcomes:
    SUCCEEDED  new story inserted
    SKIPPED    existing story refreshed, or item is not a live story
    FAILED     item lookup or write failed
"""

import asyncio
import logging
import time
from typing import Protocol

from config import Config
from database import Database
from executor import Outcome, run_batch
from models.story import FeedItem
from workers.base import StageResult, StageWorker, error_text

logger = logging.getLogger(__name__)


class FeedSource(Protocol):
    """Feed client contract (see feeds.HackerNewsClient)."""

    async def __aenter__(self) -> "FeedSource": ...
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
    async def list_top_ids(self, limit: int) -> list[int]: ...
    async def get_item(self, item_id: int) -> FeedItem | None: ...


class FetchWorker(StageWorker[int]):
    """Lists top story ids and upserts each story."""

    name = "fetch"

    def __init__(self, config: Config, db: Database, feed: FeedSource):
        super().__init__(db, config.fetch_concurrency)
        self.feed = feed
        self.limit = config.max_stories_per_fetch
        self.timeout = config.request_timeout_seconds

    async def process(self, item_id: int) -> Outcome:
        item = await asyncio.wait_for(self.feed.get_item(item_id), self.timeout)
        if item is None:
            logger.debug("Item missing | id=%d", item_id)
            return Outcome.SKIPPED
        if not item.is_story:
            logger.debug("Item skipped | id=%d type=%s dead=%s deleted=%s",
                         item_id, item.type, item.dead, item.deleted)
            return Outcome.SKIPPED

        inserted = self.db.upsert_story(item)
        if inserted:
            logger.info("Story added | id=%d score=%d title=%s", item.id, item.score, item.title[:60])
            return Outcome.SUCCEEDED
        return Outcome.SKIPPED

    async def run(self) -> StageResult:
        start = time.monotonic()
        async with self.feed:
            try:
                ids = await asyncio.wait_for(self.feed.list_top_ids(self.limit), self.timeout)
            except Exception as e:
                logger.error("Top stories listing failed | error=%s", e)
                return StageResult(stage=self.name, duration=time.monotonic() - start, error=error_text(e))

            counts = await run_batch(ids, self.concurrency, self.process)

        result = StageResult.from_counts(self.name, counts, time.monotonic() - start)
        logger.info(
            "Fetch done | listed=%d new=%d existing_or_skipped=%d failed=%d duration=%.1fs",
            len(ids), result.processed, result.skipped, result.failed, result.duration,
        )
        return result
