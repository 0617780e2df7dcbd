"""Async Hacker News API client.

This module talks to the public Hacker News Firebase API and converts
items into validated FeedItem models for the fetch stage.

Endpoints:
    {base}/topstories.json   Ranked list of story ids
    {base}/item/{id}.json    One item (story, job, poll, comment, ...)

Error Handling Strategy:
    - Listing failures raise FeedError; the fetch stage reports them as a
      stage-level error and the run is retried on the next tick
    - Item failures raise FeedError and are counted per item
    - A missing item (JSON null) is returned as None
    - SSL errors trigger a retry without verification
"""

import asyncio
import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from models.story import FeedItem
from tools.utils import USER_AGENT, create_ssl_context

logger = logging.getLogger(__name__)


class FeedError(Exception):
    """Raised when the feed API cannot be reached or returns bad data."""


class HackerNewsClient:
    """Client for the Hacker News Firebase API.

    Use as an async context manager so one connection pool is shared by
    all requests of a fetch pass.

    Example:
        >>> async with HackerNewsClient(base_url, timeout=30) as client:
        ...     ids = await client.list_top_ids(30)
        ...     item = await client.get_item(ids[0])
    """

    def __init__(self, base_url: str, timeout: float = 30.0, max_connections: int = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_connections = max_connections
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "HackerNewsClient":
        connector = aiohttp.TCPConnector(limit=self.max_connections)
        self._session = aiohttp.ClientSession(
            connector=connector,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_json(self, path: str, verify_ssl: bool = True) -> Any:
        if self._session is None:
            raise RuntimeError("HackerNewsClient must be used as an async context manager")

        url = f"{self.base_url}/{path}"
        try:
            async with self._session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                ssl=create_ssl_context(verify_ssl),
            ) as resp:
                if resp.status != 200:
                    raise FeedError(f"HTTP {resp.status} for {url}")
                return await resp.json(content_type=None)
        except aiohttp.ClientSSLError as e:
            if verify_ssl:
                logger.debug("SSL error, retrying without verification | url=%s", url)
                return await self._get_json(path, verify_ssl=False)
            raise FeedError(f"SSL verification failed for {url}: {e}") from e
        except asyncio.TimeoutError as e:
            raise FeedError(f"Timed out after {self.timeout}s for {url}") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise FeedError(f"{type(e).__name__} for {url}: {e}") from e

    async def list_top_ids(self, limit: int) -> list[int]:
        """Return up to limit ids from the top stories list, in rank order."""
        data = await self._get_json("topstories.json")
        if not isinstance(data, list):
            raise FeedError(f"Unexpected top stories payload: {type(data).__name__}")
        ids = [int(i) for i in data[:limit]]
        logger.info("Top stories listed | available=%d requested=%d", len(data), len(ids))
        return ids

    async def get_item(self, item_id: int) -> FeedItem | None:
        """Fetch one item, or None if the API has no such item."""
        data = await self._get_json(f"item/{item_id}.json")
        if data is None:
            return None
        try:
            return FeedItem.model_validate(data)
        except ValidationError as e:
            raise FeedError(f"Invalid item {item_id}: {e}") from e
