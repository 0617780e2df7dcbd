"""Extract stage: fetch article content for pending stories.

Transitions:
    claim      pending | retry_extract -> extracting
    success    extracting -> extracted (content_ref set)
    no url     extracting -> failed (no retry consumed)
    recoverable failure (error, timeout, empty result, blob write,
    repository write) -> retry_extract or failed at the retry ceiling
"""

import asyncio
import logging
import sqlite3
from typing import Protocol

from config import Config
from content_store import ContentStore, ContentStoreError
from database import Database
from executor import Outcome
from models.content import ExtractedContent
from models.story import ProcessingStatus, StoryRecord
from workers.base import StageWorker, retry_or_fail

logger = logging.getLogger(__name__)

CLAIMABLE = (ProcessingStatus.PENDING, ProcessingStatus.RETRY_EXTRACT)


class Extractor(Protocol):
    """Content extraction contract (see tools.extract.ContentExtractor)."""

    async def extract(self, url: str) -> ExtractedContent | None: ...


class ExtractWorker(StageWorker[StoryRecord]):
    """Extracts and stores article content for claimable stories."""

    name = "extract"

    def __init__(self, config: Config, db: Database, store: ContentStore, extractor: Extractor):
        super().__init__(db, config.content_concurrency)
        self.store = store
        self.extractor = extractor
        self.batch_size = config.content_batch_size
        self.max_retries = config.max_retry_attempts
        self.timeout = config.request_timeout_seconds

    def select(self) -> list[StoryRecord]:
        self.db.fail_exhausted(ProcessingStatus.RETRY_EXTRACT, self.max_retries)
        return self.db.candidates_for_extract(self.batch_size, self.max_retries)

    def _retry(self, story: StoryRecord, error: BaseException | str) -> Outcome:
        return retry_or_fail(
            self.db, story,
            ProcessingStatus.EXTRACTING, ProcessingStatus.RETRY_EXTRACT,
            self.max_retries, error,
        )

    async def process(self, story: StoryRecord) -> Outcome:
        if not self.db.claim(story.id, CLAIMABLE, ProcessingStatus.EXTRACTING):
            return Outcome.SKIPPED

        if not story.url:
            self.db.mark_failed(story.id, ProcessingStatus.EXTRACTING, "story has no URL")
            logger.info("Story has no URL | id=%d", story.id)
            return Outcome.FAILED

        try:
            content = await asyncio.wait_for(self.extractor.extract(story.url), self.timeout)
        except asyncio.TimeoutError:
            return self._retry(story, f"extraction timed out after {self.timeout:.0f}s")
        except Exception as e:
            return self._retry(story, e)

        if content is None:
            return self._retry(story, "no content extracted")

        try:
            content_ref = self.store.save_content(story.id, content)
        except ContentStoreError as e:
            return self._retry(story, e)

        try:
            moved = self.db.mark_extracted(story.id, content_ref)
        except sqlite3.Error as e:
            return self._retry(story, e)

        if not moved:
            return Outcome.SKIPPED
        logger.info("Content extracted | id=%d words=%d", story.id, content.word_count)
        return Outcome.SUCCEEDED
