"""Notification channels for summarized stories and daily digests.

Each channel implements the same small contract:

    name              Stable channel identifier (used in the attempts log)
    is_configured()   Whether the channel has the settings it needs
    send(story, summary) -> bool
    send_digest(title, markdown) -> bool

All send methods are async and fail gracefully: errors are logged and
reported as False, never raised, so one channel cannot affect another.

Channels:
    Telegram: Bot API sendMessage (HTML parse mode)
    Discord: Incoming webhook with an embed
    Webhook: JSON POST for integration with external systems
    AlertsFile: One JSON object per line for log aggregation
"""

import asyncio
import html
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiohttp

from config import Config
from models.story import StoryRecord
from models.summary import Summary
from tools.utils import truncate

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_MAX_CHARS = 4096
DISCORD_MAX_CHARS = 2000
DISCORD_EMBED_MAX_CHARS = 4096


def _chunks(text: str, size: int) -> list[str]:
    """Split text into pieces of at most size characters, preferring line breaks."""
    pieces: list[str] = []
    remaining = text
    while len(remaining) > size:
        cut = remaining.rfind("\n", 0, size)
        if cut <= 0:
            cut = size
        pieces.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining:
        pieces.append(remaining)
    return pieces


class NotificationChannel:
    """Base class for notification channels."""

    name = "base"

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def is_configured(self) -> bool:
        raise NotImplementedError

    async def send(self, story: StoryRecord, summary: Summary) -> bool:
        raise NotImplementedError

    async def send_digest(self, title: str, markdown: str) -> bool:
        raise NotImplementedError

    async def _post_json(self, url: str, payload: dict[str, Any], label: str) -> bool:
        """POST a JSON payload, returning True on any 2xx response."""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url, json=payload, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as resp:
                    if resp.status < 300:
                        logger.debug("Notification sent | channel=%s item=%s", self.name, label)
                        return True
                    body = await resp.text()
                    logger.warning(
                        "Notification rejected | channel=%s status=%d item=%s body=%s",
                        self.name, resp.status, label, body[:200],
                    )
                    return False
        except asyncio.TimeoutError:
            logger.warning("Notification timeout | channel=%s item=%s", self.name, label)
            return False
        except Exception as e:
            logger.error(
                "Notification error | channel=%s item=%s error=%s (%s)",
                self.name, label, e, type(e).__name__, exc_info=True,
            )
            return False


class TelegramChannel(NotificationChannel):
    """Telegram Bot API channel."""

    name = "telegram"

    def __init__(self, bot_token: str, chat_id: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.bot_token = bot_token
        self.chat_id = chat_id

    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @property
    def _endpoint(self) -> str:
        return f"{TELEGRAM_API_BASE}/bot{self.bot_token}/sendMessage"

    @staticmethod
    def format_story(story: StoryRecord, summary: Summary) -> str:
        lines = [f"<b>{html.escape(story.title)}</b>", ""]
        lines.append(html.escape(summary.short_summary or summary.summary))
        if summary.key_points:
            lines.append("")
            lines.extend(f"• {html.escape(point)}" for point in summary.key_points)
        meta = [f"{story.score} points", f"{summary.reading_time_minutes} min read"]
        if summary.topics:
            meta.append(", ".join(html.escape(t) for t in summary.topics[:4]))
        lines.extend(["", "<i>" + " · ".join(meta) + "</i>"])
        links = [f'<a href="{html.escape(story.discussion_url)}">Discussion</a>']
        if story.url:
            links.insert(0, f'<a href="{html.escape(story.url)}">Article</a>')
        lines.append(" | ".join(links))
        return truncate("\n".join(lines), TELEGRAM_MAX_CHARS)

    async def send(self, story: StoryRecord, summary: Summary) -> bool:
        if not self.is_configured():
            return False
        payload = {
            "chat_id": self.chat_id,
            "text": self.format_story(story, summary),
            "parse_mode": "HTML",
            "disable_web_page_preview": False,
        }
        return await self._post_json(self._endpoint, payload, str(story.id))

    async def send_digest(self, title: str, markdown: str) -> bool:
        if not self.is_configured():
            return False
        for part in _chunks(f"{title}\n\n{markdown}", TELEGRAM_MAX_CHARS):
            payload = {"chat_id": self.chat_id, "text": part, "disable_web_page_preview": True}
            if not await self._post_json(self._endpoint, payload, "digest"):
                return False
        return True


class DiscordChannel(NotificationChannel):
    """Discord incoming webhook channel."""

    name = "discord"

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.webhook_url = webhook_url

    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    @staticmethod
    def build_payload(story: StoryRecord, summary: Summary) -> dict[str, Any]:
        description = summary.short_summary or summary.summary
        if summary.key_points:
            description += "\n\n" + "\n".join(f"- {p}" for p in summary.key_points)
        embed: dict[str, Any] = {
            "title": truncate(story.title, 256),
            "url": story.url or story.discussion_url,
            "description": truncate(description, DISCORD_EMBED_MAX_CHARS),
            "fields": [
                {"name": "Score", "value": str(story.score), "inline": True},
                {"name": "Reading time", "value": f"{summary.reading_time_minutes} min", "inline": True},
                {"name": "Discussion", "value": story.discussion_url, "inline": False},
            ],
        }
        if summary.topics:
            embed["footer"] = {"text": ", ".join(summary.topics[:6])}
        return {"embeds": [embed]}

    async def send(self, story: StoryRecord, summary: Summary) -> bool:
        if not self.is_configured():
            return False
        return await self._post_json(self.webhook_url, self.build_payload(story, summary), str(story.id))

    async def send_digest(self, title: str, markdown: str) -> bool:
        if not self.is_configured():
            return False
        for part in _chunks(f"**{title}**\n\n{markdown}", DISCORD_MAX_CHARS):
            if not await self._post_json(self.webhook_url, {"content": part}, "digest"):
                return False
        return True


class WebhookChannel(NotificationChannel):
    """Generic JSON webhook channel."""

    name = "webhook"

    def __init__(self, url: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.url = url

    def is_configured(self) -> bool:
        return bool(self.url)

    async def send(self, story: StoryRecord, summary: Summary) -> bool:
        if not self.is_configured():
            return False
        payload = {
            "type": "story_summary",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "id": story.id,
            "title": story.title,
            "url": story.url,
            "discussion_url": story.discussion_url,
            "score": story.score,
            "summary": summary.summary,
            "short_summary": summary.short_summary,
            "key_points": summary.key_points,
            "topics": summary.topics,
        }
        return await self._post_json(self.url, payload, str(story.id))

    async def send_digest(self, title: str, markdown: str) -> bool:
        if not self.is_configured():
            return False
        payload = {
            "type": "daily_digest",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "title": title,
            "markdown": markdown,
        }
        return await self._post_json(self.url, payload, "digest")


class AlertsFileChannel(NotificationChannel):
    """Appends one JSON object per notification to a JSONL file."""

    name = "alerts_file"

    def __init__(self, filepath: str):
        super().__init__()
        self.filepath = filepath

    def is_configured(self) -> bool:
        return bool(self.filepath)

    def _append(self, record: dict[str, Any]) -> bool:
        try:
            path = Path(self.filepath)
            path.parent.mkdir(parents=True, exist_ok=True)

            # Warn if file is getting large (> 100MB)
            if path.exists():
                size_mb = path.stat().st_size / (1024 * 1024)
                if size_mb > 100:
                    logger.warning("Alerts file large | size=%.1fMB path=%s", size_mb, self.filepath)

            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
            return True
        except Exception as e:
            logger.error("Alerts file error: %s (%s)", e, type(e).__name__, exc_info=True)
            return False

    async def send(self, story: StoryRecord, summary: Summary) -> bool:
        if not self.is_configured():
            return False
        return self._append({
            "type": "story_summary",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "id": story.id,
            "title": story.title,
            "url": story.url,
            "score": story.score,
            "short_summary": summary.short_summary,
            "topics": summary.topics,
        })

    async def send_digest(self, title: str, markdown: str) -> bool:
        if not self.is_configured():
            return False
        return self._append({
            "type": "daily_digest",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "title": title,
            "markdown": markdown,
        })


def build_channels(config: Config) -> list[NotificationChannel]:
    """All channels whose settings are present in config."""
    timeout = min(config.request_timeout_seconds, 30.0)
    channels: list[NotificationChannel] = [
        TelegramChannel(config.telegram_bot_token, config.telegram_chat_id, timeout),
        DiscordChannel(config.discord_webhook_url, timeout),
        WebhookChannel(config.webhook_url, timeout),
        AlertsFileChannel(config.alerts_file),
    ]
    configured = [channel for channel in channels if channel.is_configured()]
    logger.debug("Notification channels | configured=%s", [c.name for c in configured])
    return configured


def save_digest_report(markdown: str, reports_dir: Path, date: str) -> Path:
    """Write a digest markdown file to the reports directory.

    Raises:
        OSError: If the report cannot be written
    """
    reports_dir.mkdir(parents=True, exist_ok=True)
    safe_date = re.sub(r"[^0-9A-Za-z_-]", "_", date)
    filepath = reports_dir / f"{safe_date}_digest.md"
    filepath.write_text(markdown, encoding="utf-8")
    logger.info("Digest saved | file=%s", filepath.name)
    return filepath
