"""PydanticAI agents for the HN Summarizer pipeline.

SummarizerAgent:
    Per-story article summaries with structured output.

DigestAgent:
    Daily digest over the day's summarized stories.

Example:
    >>> from agents import SummarizerAgent
    >>> summarizer = SummarizerAgent(config)
    >>> summary = await summarizer.summarize(story_id, title, text, word_count)
"""

from agents.digest import DigestAgent, render_digest_markdown
from agents.summarizer import SummarizerAgent

__all__ = [
    "SummarizerAgent",
    "DigestAgent",
    "render_digest_markdown",
]
