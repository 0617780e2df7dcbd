import asyncio
import json

from agents.digest import DigestInput, render_digest_markdown
from config import Config
from fakes import make_summary
from models.story import StoryRecord
from models.summary import DigestReport, DigestStory
from notifications import (
    AlertsFileChannel,
    DiscordChannel,
    TelegramChannel,
    _chunks,
    build_channels,
    save_digest_report,
)


def _story(**overrides):
    fields = {"id": 42, "title": "Rust <3 & C", "url": "https://example.com/x", "score": 120}
    fields.update(overrides)
    return StoryRecord(**fields)


def test_build_channels_only_configured():
    assert build_channels(Config()) == []

    channels = build_channels(Config(discord_webhook_url="https://discord/hook", alerts_file="a.jsonl"))

    assert [c.name for c in channels] == ["discord", "alerts_file"]


def test_telegram_requires_token_and_chat():
    assert not TelegramChannel("token", "").is_configured()
    assert TelegramChannel("token", "chat").is_configured()


def test_telegram_message_escapes_html():
    text = TelegramChannel.format_story(_story(), make_summary(42))

    assert "<b>Rust &lt;3 &amp; C</b>" in text
    assert "120 points" in text
    assert 'href="https://news.ycombinator.com/item?id=42"' in text


def test_discord_embed_links_discussion_for_text_posts():
    payload = DiscordChannel.build_payload(_story(url=None), make_summary(42))

    embed = payload["embeds"][0]
    assert embed["url"] == "https://news.ycombinator.com/item?id=42"
    assert embed["footer"]["text"] == "testing"


def test_alerts_file_appends_jsonl(tmp_path):
    path = tmp_path / "alerts" / "alerts.jsonl"
    channel = AlertsFileChannel(str(path))

    assert asyncio.run(channel.send(_story(), make_summary(42)))
    assert asyncio.run(channel.send_digest("Digest", "# Body"))

    records = [json.loads(line) for line in path.read_text().splitlines()]
    assert [r["type"] for r in records] == ["story_summary", "daily_digest"]
    assert records[0]["id"] == 42
    assert records[1]["markdown"] == "# Body"


def test_unconfigured_channel_does_not_send(tmp_path):
    assert not asyncio.run(AlertsFileChannel("").send(_story(), make_summary(42)))


def test_chunks_prefer_line_breaks():
    text = "aaaa\nbbbb\ncccc"

    assert _chunks(text, 6) == ["aaaa", "bbbb", "cccc"]
    assert _chunks(text, 9) == ["aaaa", "bbbb\ncccc"]
    assert _chunks("x" * 10, 4) == ["xxxx", "xxxx", "xx"]
    assert _chunks("short", 100) == ["short"]


def test_digest_markdown_groups_by_topic_and_saves(tmp_path):
    entries = [
        DigestInput(story=_story(id=1, title="One"), summary=make_summary(1)),
        DigestInput(story=_story(id=2, title="Two", url=None), summary=make_summary(2)),
    ]
    digest = DigestReport(
        overview="Busy day.",
        story_summaries=[
            DigestStory(title="One", takeaway="First", topic="AI", story_id=1),
            DigestStory(title="Two", takeaway="Second", topic="", story_id=2),
        ],
        themes=["agents"],
    )

    markdown = render_digest_markdown(digest, entries, "2024-05-01")

    assert markdown.startswith("# Hacker News Daily Digest - 2024-05-01")
    assert "## AI" in markdown
    assert "## Other" in markdown
    assert "[Original Article](https://example.com/x)" in markdown
    assert "- agents" in markdown

    path = save_digest_report(markdown, tmp_path / "reports", "2024-05-01")
    assert path.name == "2024-05-01_digest.md"
    assert path.read_text() == markdown
