"""Stage workers for the story processing pipeline.

FetchWorker:
    Ingests top stories from the feed (insert or refresh).

ExtractWorker:
    Extracts article content into the blob store.

SummarizeWorker:
    Summarizes extracted content with the summarizer agent.

NotifyWorker:
    Delivers completed summaries to notification channels.

DigestWorker:
    Builds and delivers the optional daily digest.

Every worker exposes ``name`` and ``async run() -> StageResult``.
"""

from workers.base import StageResult, StageWorker, retry_or_fail
from workers.digest import DigestWorker
from workers.extract import ExtractWorker
from workers.fetch import FetchWorker
from workers.notify import NotifyWorker
from workers.summarize import SummarizeWorker

__all__ = [
    "StageResult",
    "StageWorker",
    "retry_or_fail",
    "FetchWorker",
    "ExtractWorker",
    "SummarizeWorker",
    "NotifyWorker",
    "DigestWorker",
]
