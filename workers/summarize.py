"""Summarize stage: generate summaries for extracted stories.

Transitions:
    claim           extracted | retry_summarize -> summarizing
    success         summarizing -> completed (summary_ref set)
    no content_ref  summarizing -> failed (no retry consumed)
    recoverable failure (content read, model error or timeout, blob write,
    repository write) -> retry_summarize or failed at the retry ceiling
"""

import asyncio
import logging
import sqlite3
from typing import Protocol

from config import Config
from content_store import ContentStore, ContentStoreError
from database import Database
from executor import Outcome
from models.story import ProcessingStatus, StoryRecord
from models.summary import Summary
from workers.base import StageWorker, retry_or_fail

logger = logging.getLogger(__name__)

CLAIMABLE = (ProcessingStatus.EXTRACTED, ProcessingStatus.RETRY_SUMMARIZE)


class Summarizer(Protocol):
    """Summarization contract (see agents.summarizer.SummarizerAgent)."""

    async def summarize(self, story_id: int, title: str, text: str, word_count: int) -> Summary: ...


class SummarizeWorker(StageWorker[StoryRecord]):
    """Summarizes stored content for claimable stories."""

    name = "summarize"

    def __init__(self, config: Config, db: Database, store: ContentStore, summarizer: Summarizer):
        super().__init__(db, config.summary_concurrency)
        self.store = store
        self.summarizer = summarizer
        self.batch_size = config.summary_batch_size
        self.max_retries = config.max_retry_attempts
        self.timeout = config.summary_timeout_seconds

    def select(self) -> list[StoryRecord]:
        self.db.fail_exhausted(ProcessingStatus.RETRY_SUMMARIZE, self.max_retries)
        return self.db.candidates_for_summarize(self.batch_size, self.max_retries)

    def _retry(self, story: StoryRecord, error: BaseException | str) -> Outcome:
        return retry_or_fail(
            self.db, story,
            ProcessingStatus.SUMMARIZING, ProcessingStatus.RETRY_SUMMARIZE,
            self.max_retries, error,
        )

    async def process(self, story: StoryRecord) -> Outcome:
        if not self.db.claim(story.id, CLAIMABLE, ProcessingStatus.SUMMARIZING):
            return Outcome.SKIPPED

        if not story.content_ref:
            self.db.mark_failed(story.id, ProcessingStatus.SUMMARIZING, "story has no content_ref")
            logger.error("Story has no content reference | id=%d", story.id)
            return Outcome.FAILED

        try:
            content = self.store.load_content(story.content_ref)
        except ContentStoreError as e:
            return self._retry(story, e)

        try:
            summary = await asyncio.wait_for(
                self.summarizer.summarize(story.id, story.title, content.text, content.word_count),
                self.timeout,
            )
        except asyncio.TimeoutError:
            return self._retry(story, f"summarization timed out after {self.timeout:.0f}s")
        except Exception as e:
            return self._retry(story, e)

        try:
            summary_ref = self.store.save_summary(story.id, summary)
        except ContentStoreError as e:
            return self._retry(story, e)

        try:
            moved = self.db.mark_completed(story.id, summary_ref)
        except sqlite3.Error as e:
            return self._retry(story, e)

        if not moved:
            return Outcome.SKIPPED
        logger.info(
            "Story summarized | id=%d tokens=%d/%d title=%s",
            story.id, summary.input_tokens, summary.output_tokens, story.title[:60],
        )
        return Outcome.SUCCEEDED
