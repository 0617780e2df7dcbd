"""HTTP-facing tools used by the pipeline adapters.

ContentExtractor:
    Turns an article URL into ExtractedContent (Firecrawl or direct fetch).
    Handles SSL fallback and HTML parsing.

create_ssl_context / USER_AGENT:
    Shared HTTP settings for the feed client, extractor and channels.

Example:
    >>> from tools import ContentExtractor
    >>> content = await ContentExtractor(timeout=30).extract("https://example.com/post")
"""

from tools.extract import ContentExtractor, ExtractionError, html_to_text
from tools.utils import USER_AGENT, create_ssl_context, truncate

__all__ = [
    "ContentExtractor",
    "ExtractionError",
    "html_to_text",
    "create_ssl_context",
    "truncate",
    "USER_AGENT",
]
