"""Story data models for Hacker News items.

This module defines the models used throughout the pipeline:

FeedItem:
    A single item as returned by the Hacker News API, validated once at
    the feed client boundary.

StoryRecord:
    One row of the stories table. Tracks the item through the processing
    lifecycle (status, blob references, retry metadata).

ProcessingStatus:
    Lifecycle states of a story.

Lifecycle:
    pending -> extracting -> extracted -> summarizing -> completed -> sent

    Retry side-states: retry_extract, retry_summarize
    Terminal failure:  failed
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ProcessingStatus(str, Enum):
    """Processing status of a story."""

    PENDING = "pending"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    SUMMARIZING = "summarizing"
    COMPLETED = "completed"
    SENT = "sent"
    RETRY_EXTRACT = "retry_extract"
    RETRY_SUMMARIZE = "retry_summarize"
    FAILED = "failed"


# Statuses in which content_ref must be set
CONTENT_STATUSES = frozenset({
    ProcessingStatus.EXTRACTED,
    ProcessingStatus.SUMMARIZING,
    ProcessingStatus.RETRY_SUMMARIZE,
    ProcessingStatus.COMPLETED,
    ProcessingStatus.SENT,
})

# Statuses in which summary_ref must be set
SUMMARY_STATUSES = frozenset({
    ProcessingStatus.COMPLETED,
    ProcessingStatus.SENT,
})


class FeedItem(BaseModel):
    """An item from the Hacker News API.

    Only stories are ingested; other item types (job, poll, comment)
    are parsed so they can be recognized and skipped.

    Example:
        >>> item = FeedItem.model_validate(
        ...     {"id": 1, "type": "story", "title": "Show HN", "by": "pg",
        ...      "time": 1700000000, "score": 42, "url": "https://example.com"}
        ... )
        >>> item.is_story
        True
    """

    id: int = Field(description="Hacker News item id")
    type: str = Field(default="story", description="Item type (story, job, poll, ...)")
    title: str = Field(default="", description="Item title")
    url: str | None = Field(default=None, description="Linked URL (None for text posts)")
    by: str = Field(default="", description="Submitter username")
    time: int = Field(default=0, description="Creation time (Unix epoch)")
    score: int = Field(default=0, description="Ranking score")
    deleted: bool = Field(default=False)
    dead: bool = Field(default=False)

    @property
    def is_story(self) -> bool:
        """Whether this is a live story worth ingesting."""
        return self.type == "story" and bool(self.title) and not (self.deleted or self.dead)


class StoryRecord(BaseModel):
    """A story tracked through the processing pipeline.

    Attributes:
        id: Hacker News item id (primary key)
        title: Story title
        url: Linked article URL (None for text posts)
        author: Submitter username
        created_at: Source timestamp (Unix epoch)
        score: Ranking score from the feed
        status: Current processing status
        content_ref: Blob key of the extracted content (None until extracted)
        summary_ref: Blob key of the generated summary (None until completed)
        retry_count: Number of times the story entered a retry state
        last_error: Diagnostic from the most recent failure or retry
        processed_at: First insertion time
        completed_at: Time the summary was stored (None until completed)
        updated_at: Last mutation time
    """

    id: int
    title: str
    url: str | None = None
    author: str = ""
    created_at: int = 0
    score: int = 0
    status: ProcessingStatus = ProcessingStatus.PENDING
    content_ref: str | None = None
    summary_ref: str | None = None
    retry_count: int = Field(default=0, ge=0)
    last_error: str | None = None
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def discussion_url(self) -> str:
        """Link to the Hacker News discussion thread."""
        return f"https://news.ycombinator.com/item?id={self.id}"

    def __str__(self) -> str:
        """Human-readable representation for logging."""
        return f"Story({self.id}, {self.status.value}, '{self.title[:50]}')"
