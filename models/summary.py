"""Summary models for per-story summaries and daily digests."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class StorySummary(BaseModel):
    """Structured output requested from the summarization model."""

    summary: str = Field(description="Concise summary of the article (2-4 paragraphs)")
    short_summary: str = Field(default="", description="1-2 sentence version of the summary")
    key_points: list[str] = Field(
        default_factory=list,
        description="3-5 key takeaways",
    )
    topics: list[str] = Field(
        default_factory=list,
        description="Topics or categories covered by the article",
    )


class Summary(BaseModel):
    """A generated summary as persisted in the blob store."""

    story_id: int
    summary: str
    short_summary: str = ""
    key_points: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    reading_time_minutes: int = Field(default=1, ge=1)
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DigestStory(BaseModel):
    """Single story summary within a daily digest."""

    title: str = Field(description="Story title")
    takeaway: str = Field(description="1-2 sentence key takeaway")
    topic: str = Field(default="", description="Topic group the story belongs to")
    story_id: int = Field(default=0, description="Hacker News item id for reference")


class DigestReport(BaseModel):
    """Structured digest output for the daily digest task."""

    overview: str = Field(description="1-2 paragraph overview of the day")
    story_summaries: list[DigestStory] = Field(
        default_factory=list,
        description="One entry per story with concise takeaway",
    )
    themes: list[str] = Field(
        default_factory=list,
        description="Cross-cutting themes or trends (3-5 items)",
    )
