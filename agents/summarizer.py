"""Summarizer agent for per-story article summaries.

The agent receives the story title and the extracted article text and
returns a structured StorySummary. SummarizerAgent wraps the result into
the persisted Summary document with model and token usage metadata.

Failure Handling:
    Model errors, usage limit errors and timeouts propagate to the
    summarize stage, which treats them as recoverable and schedules a
    retry for the story.
"""

import logging
import math

from pydantic_ai import Agent, PromptedOutput, UsageLimits

from agents.providers import create_model, is_local_model, token_usage
from config import Config
from models.summary import StorySummary, Summary

logger = logging.getLogger(__name__)

# Average adult reading speed used for reading time estimates
WORDS_PER_MINUTE = 225

SUMMARY_PROMPT = """You are an expert technology editor summarizing articles linked from Hacker News.

You will receive an article title and the article's extracted text. Produce a
structured summary.

## Output requirements (must conform to StorySummary)
- summary: 2-4 paragraphs covering the main argument, important details and why it matters.
- short_summary: 1-2 sentences capturing the essence of the article.
- key_points: 3-5 key takeaways, each a single sentence.
- topics: 2-6 short topic labels (e.g. "databases", "AI", "security").

## Constraints
1. Use only information present in the article. Do not invent facts.
2. If the text is an error page, login wall, paywall or otherwise not an
   article, say so briefly in summary and short_summary, and use the topic
   "content unavailable".
3. Write in plain English without marketing language."""


def reading_time_minutes(word_count: int) -> int:
    """Estimated reading time, never below one minute."""
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def _create_agent(model: str) -> Agent[None, StorySummary]:
    """Create the underlying PydanticAI agent for article summaries."""
    output_type = PromptedOutput(StorySummary) if is_local_model(model) else StorySummary
    return Agent(
        create_model(model),
        output_type=output_type,
        system_prompt=SUMMARY_PROMPT,
        retries=2,
        defer_model_check=True,
    )


def _build_user_message(title: str, text: str) -> str:
    return "\n".join([
        f"ARTICLE TITLE: {title}",
        "",
        "=== BEGIN ARTICLE ===",
        text,
        "=== END ARTICLE ===",
    ])


class SummarizerAgent:
    """Summarizes extracted article text into a Summary.

    Example:
        >>> summarizer = SummarizerAgent(config)
        >>> summary = await summarizer.summarize(42, "Show HN: ...", text, 812)
        >>> summary.reading_time_minutes
        4
    """

    def __init__(self, config: Config):
        self.config = config
        self.model_name = config.summary_model
        self._agent = _create_agent(config.summary_model)

    async def summarize(self, story_id: int, title: str, text: str, word_count: int) -> Summary:
        """Generate a summary for one story.

        Args:
            story_id: Hacker News item id
            title: Story title
            text: Extracted article text
            word_count: Word count of the article (for reading time)

        Returns:
            Persistable Summary

        Raises:
            Exception: Any model or usage limit error (recoverable for the caller)
        """
        result = await self._agent.run(
            _build_user_message(title, text),
            usage_limits=UsageLimits(request_limit=3),
        )
        output: StorySummary = result.output
        input_tokens, output_tokens = token_usage(result)

        logger.info(
            "Summary generated | id=%d words=%d input_tokens=%d output_tokens=%d",
            story_id, word_count, input_tokens, output_tokens,
        )
        return Summary(
            story_id=story_id,
            summary=output.summary,
            short_summary=output.short_summary,
            key_points=output.key_points,
            topics=output.topics,
            reading_time_minutes=reading_time_minutes(word_count),
            model=self.model_name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
