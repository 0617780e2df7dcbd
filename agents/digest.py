"""Digest agent for the daily roundup of summarized stories.

The digest task collects the best recently summarized stories, feeds
their summaries to this agent, and renders the structured DigestReport
to markdown for the reports directory and the notification channels.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic_ai import Agent, PromptedOutput, RunContext, UsageLimits

from agents.providers import create_model, is_local_model, token_usage
from config import Config
from models.story import StoryRecord
from models.summary import DigestReport, Summary

logger = logging.getLogger(__name__)


DIGEST_PROMPT = """You are a tech news editor writing a daily digest of the top Hacker News stories.

You will receive the summaries of today's stories. **Read every summary** and
produce a structured digest.

## Output requirements (must conform to DigestReport)
- overview: 1-2 paragraphs on the overall picture and notable developments.
- story_summaries: one entry per story, **in the same order as input**.
  - title: story title
  - takeaway: 1-2 sentence key takeaway
  - topic: short topic group (e.g. "AI", "Programming", "Security")
  - story_id: the story id given in the input
- themes: 3-5 cross-cutting themes or trends

## Constraints
1. Do not invent facts beyond the provided summaries.
2. If there are many stories, still provide an entry for **each one**."""


@dataclass
class DigestContext:
    """Runtime context passed to the digest agent.

    Attributes:
        date: Date label of the digest (YYYY-MM-DD)
    """

    date: str


@dataclass
class DigestInput:
    """One story and its summary as presented to the digest agent."""

    story: StoryRecord
    summary: Summary


def _create_agent(model: str) -> Agent[DigestContext, DigestReport]:
    """Create the underlying PydanticAI agent for digests."""
    output_type = PromptedOutput(DigestReport) if is_local_model(model) else DigestReport
    agent = Agent(
        create_model(model),
        deps_type=DigestContext,
        output_type=output_type,
        system_prompt=DIGEST_PROMPT,
        retries=2,
        defer_model_check=True,
    )

    @agent.system_prompt
    def date_prompt(ctx: RunContext[DigestContext]) -> str:
        return f"Today's date: {ctx.deps.date}"

    return agent


def _build_user_message(entries: list[DigestInput]) -> str:
    lines = [f"Stories provided: {len(entries)}"]
    for i, entry in enumerate(entries, start=1):
        story, summary = entry.story, entry.summary
        lines.extend([
            "",
            f"=== STORY {i} (id={story.id}, score={story.score}) ===",
            f"Title: {story.title}",
            f"Topics: {', '.join(summary.topics) or 'n/a'}",
            summary.short_summary or summary.summary,
        ])
        if summary.key_points:
            lines.extend(f"- {point}" for point in summary.key_points)
    return "\n".join(lines)


def render_digest_markdown(
    digest: DigestReport,
    entries: list[DigestInput],
    date: str,
) -> str:
    """Render a DigestReport into markdown, grouping stories by topic."""
    stories_by_id = {entry.story.id: entry.story for entry in entries}
    lines = [
        f"# Hacker News Daily Digest - {date}",
        "",
        f"**Stories:** {len(entries)}",
    ]

    if digest.overview:
        lines.extend(["", "## Overview", "", digest.overview])

    groups: dict[str, list] = {}
    for item in digest.story_summaries:
        groups.setdefault(item.topic or "Other", []).append(item)

    for topic, items in groups.items():
        lines.extend(["", f"## {topic}", ""])
        for item in items:
            lines.append(f"### {item.title or 'Untitled'}")
            if item.takeaway:
                lines.append(item.takeaway)
            story = stories_by_id.get(item.story_id)
            if story is not None:
                links = [f"[Discuss on HN]({story.discussion_url})"]
                if story.url:
                    links.insert(0, f"[Original Article]({story.url})")
                lines.append(" | ".join(links))
            lines.append("")

    if digest.themes:
        lines.extend(["## Themes", ""])
        lines.extend(f"- {theme}" for theme in digest.themes)

    return "\n".join(lines).rstrip() + "\n"


class DigestAgent:
    """Generates the daily digest from story summaries."""

    def __init__(self, config: Config):
        self.config = config
        self._agent = _create_agent(config.digest_model)

    async def generate(
        self,
        entries: list[DigestInput],
        date: str | None = None,
    ) -> tuple[DigestReport, int, int]:
        """Generate a digest for the given stories.

        Returns:
            Tuple of (digest report, input_tokens, output_tokens)
        """
        date = date or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        result = await self._agent.run(
            _build_user_message(entries),
            deps=DigestContext(date=date),
            usage_limits=UsageLimits(request_limit=3),
        )
        input_tokens, output_tokens = token_usage(result)
        logger.info(
            "Digest generated | stories=%d input_tokens=%d output_tokens=%d",
            len(entries), input_tokens, output_tokens,
        )
        return result.output, input_tokens, output_tokens
