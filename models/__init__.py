"""Pydantic models for the HN Summarizer pipeline.

This package contains all data models used throughout the pipeline:

FeedItem:
    Hacker News API item, validated at the feed client boundary.

StoryRecord / ProcessingStatus:
    Stored story row and its lifecycle state.

ExtractedContent:
    Output of the content extraction service (stored in the blob store).

StorySummary / Summary:
    Summarization model output and the persisted summary document.

DigestReport / DigestStory:
    Structured daily digest.

Example:
    >>> from models import StoryRecord, ProcessingStatus
    >>> story = StoryRecord(id=1, title="Show HN: ...", url="https://example.com")
    >>> story.status is ProcessingStatus.PENDING
    True
"""

from models.story import FeedItem, ProcessingStatus, StoryRecord
from models.content import ExtractedContent
from models.summary import DigestReport, DigestStory, StorySummary, Summary

__all__ = [
    "FeedItem",
    "ProcessingStatus",
    "StoryRecord",
    "ExtractedContent",
    "StorySummary",
    "Summary",
    "DigestReport",
    "DigestStory",
]
