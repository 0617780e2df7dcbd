"""Extracted article content model.

ExtractedContent is the validated output of the content extraction
service. It is serialized as JSON into the blob store under the
story's content_ref.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ExtractedContent(BaseModel):
    """Readable content extracted from an article URL.

    Attributes:
        url: Source URL
        title: Page title (may be empty)
        author: Byline if the page declares one
        text: Cleaned article text used for summarization
        excerpt: Short excerpt of the text
        site_name: Name of the publishing site
        word_count: Number of words in text
        extracted_at: When the extraction happened (UTC)
    """

    url: str
    title: str = ""
    author: str | None = None
    text: str = Field(description="Cleaned article text")
    excerpt: str | None = None
    site_name: str | None = None
    word_count: int = Field(default=0, ge=0)
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
