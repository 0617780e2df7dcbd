"""Article content extraction.

This module turns an article URL into ExtractedContent for the extract
stage. Two backends are supported:

    Firecrawl: POST {FIRECRAWL_API_URL}/v1/scrape, markdown output with
        page metadata. Used when FIRECRAWL_API_URL is configured.
    Direct: GET the page with aiohttp and convert the HTML to plain text.

Features:
    - SSL fallback for problematic certificates
    - HTML-to-text conversion (strips scripts, styles, navigation)
    - Content truncation for large pages
    - Word count and excerpt generation

Contract:
    extract(url) returns ExtractedContent, or None when the page yields
    no usable text. Transport and HTTP errors raise ExtractionError.
    Both are recoverable failures for the calling stage.
"""

import asyncio
import html
import logging
import re
from html.parser import HTMLParser
from io import StringIO

import aiohttp
from pydantic import ValidationError

from models.content import ExtractedContent
from tools.utils import USER_AGENT, create_ssl_context

logger = logging.getLogger(__name__)

# Pages with fewer words than this are treated as unusable
MIN_WORDS = 20
EXCERPT_CHARS = 200

_CODE_BLOCK = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE = re.compile(r"`[^`]*`")
_MD_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_MD_MARKERS = re.compile(r"^\s*(#+|[-*+]|\d+\.)\s+", re.MULTILINE)


class ExtractionError(Exception):
    """Raised when the extraction backend cannot be reached or rejects the request."""


class _HTMLTextExtractor(HTMLParser):
    """Collect readable text from HTML, skipping non-content tags.

    Usage:
        >>> parser = _HTMLTextExtractor()
        >>> parser.feed("<p>Hello <script>ignored</script> world</p>")
        >>> parser.get_text()
        'Hello  world'
    """

    SKIP_TAGS = frozenset({"script", "style", "head", "meta", "link", "nav", "footer", "noscript"})
    BLOCK_TAGS = frozenset({"p", "div", "br", "li", "h1", "h2", "h3", "h4", "section", "article"})

    def __init__(self):
        super().__init__()
        self._buffer = StringIO()
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in self.SKIP_TAGS:
            self._skip_depth += 1
        elif tag in self.BLOCK_TAGS and self._skip_depth == 0:
            self._buffer.write("\n")

    def handle_endtag(self, tag):
        if tag in self.SKIP_TAGS and self._skip_depth > 0:
            self._skip_depth -= 1

    def handle_data(self, data):
        if self._skip_depth == 0:
            self._buffer.write(data)

    def get_text(self) -> str:
        return self._buffer.getvalue()


def html_to_text(markup: str) -> str:
    """Extract readable text from HTML, one paragraph per line."""
    parser = _HTMLTextExtractor()
    try:
        parser.feed(markup)
        text = parser.get_text()
    except Exception:
        # Malformed markup: strip tags with a regex instead
        text = re.sub(r"<[^>]+>", " ", markup)

    lines = (re.sub(r"[ \t\r\f\v]+", " ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def _page_title(markup: str) -> str:
    match = re.search(r"<title[^>]*>([^<]+)</title>", markup, re.IGNORECASE)
    return html.unescape(match.group(1).strip()) if match else ""


def _plain_words(text: str) -> list[str]:
    """Words of markdown text with code, links and list markers removed."""
    cleaned = _CODE_BLOCK.sub(" ", text)
    cleaned = _INLINE_CODE.sub(" ", cleaned)
    cleaned = _MD_LINK.sub(r"\1", cleaned)
    cleaned = _MD_MARKERS.sub("", cleaned)
    return cleaned.split()


def make_excerpt(text: str, max_chars: int = EXCERPT_CHARS) -> str:
    """First max_chars of text, cut back to a word boundary."""
    flat = " ".join(_plain_words(text))
    if len(flat) <= max_chars:
        return flat
    cut = flat[:max_chars].rsplit(" ", 1)[0]
    return cut + "..."


class ContentExtractor:
    """Extracts article content through Firecrawl or a direct fetch.

    Args:
        firecrawl_api_url: Firecrawl base URL (empty for direct fetch)
        firecrawl_api_key: Optional bearer token for Firecrawl
        timeout: Per-request timeout in seconds
        max_chars: Truncate extracted text beyond this length
    """

    def __init__(
        self,
        firecrawl_api_url: str = "",
        firecrawl_api_key: str = "",
        timeout: float = 30.0,
        max_chars: int = 100_000,
    ):
        self.firecrawl_api_url = firecrawl_api_url.rstrip("/")
        self.firecrawl_api_key = firecrawl_api_key
        self.timeout = timeout
        self.max_chars = max_chars

    @property
    def backend(self) -> str:
        return "firecrawl" if self.firecrawl_api_url else "direct"

    async def extract(self, url: str) -> ExtractedContent | None:
        """Extract readable content from url.

        Returns:
            ExtractedContent, or None if the page has no usable text

        Raises:
            ExtractionError: On transport, HTTP or payload errors
        """
        logger.debug("Extracting content | url=%s backend=%s", url[:80], self.backend)
        if self.firecrawl_api_url:
            content = await self._extract_firecrawl(url)
        else:
            content = await self._extract_direct(url)

        if content is None:
            return None
        if content.word_count < MIN_WORDS:
            logger.info("Extracted content too short | url=%s words=%d", url[:80], content.word_count)
            return None

        logger.debug(
            "Content extracted | url=%s title='%s' words=%d",
            url[:80], content.title[:40], content.word_count,
        )
        return content

    def _build(self, url: str, text: str, **meta) -> ExtractedContent:
        if len(text) > self.max_chars:
            text = text[:self.max_chars] + "... [truncated]"
        try:
            return ExtractedContent(
                url=url,
                text=text,
                word_count=len(_plain_words(text)),
                excerpt=meta.pop("excerpt", None) or make_excerpt(text),
                **meta,
            )
        except ValidationError as e:
            raise ExtractionError(f"Invalid extraction result for {url}: {e}") from e

    async def _extract_firecrawl(self, url: str) -> ExtractedContent | None:
        endpoint = self.firecrawl_api_url
        if not endpoint.endswith("/v1"):
            endpoint += "/v1"
        headers = {"Content-Type": "application/json"}
        if self.firecrawl_api_key:
            headers["Authorization"] = f"Bearer {self.firecrawl_api_key}"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{endpoint}/scrape",
                    json={"url": url, "formats": ["markdown"], "onlyMainContent": True},
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        raise ExtractionError(f"Firecrawl HTTP {resp.status} for {url}")
                    payload = await resp.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ExtractionError(f"Firecrawl timed out after {self.timeout}s") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise ExtractionError(f"Firecrawl request failed: {e}") from e

        if not isinstance(payload, dict) or not payload.get("success"):
            error = payload.get("error") if isinstance(payload, dict) else payload
            raise ExtractionError(f"Firecrawl scrape unsuccessful: {error}")

        data = payload.get("data") or {}
        markdown = (data.get("markdown") or "").strip()
        if not markdown:
            return None

        metadata = data.get("metadata") or {}
        return self._build(
            url,
            markdown,
            title=metadata.get("title") or "",
            author=metadata.get("author") or None,
            excerpt=metadata.get("description") or None,
            site_name=metadata.get("ogSiteName") or None,
        )

    async def _fetch_html(self, session: aiohttp.ClientSession, url: str, verify: bool) -> str:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={"User-Agent": USER_AGENT},
            ssl=create_ssl_context(verify),
        ) as resp:
            if resp.status != 200:
                raise ExtractionError(f"HTTP {resp.status} for {url}")
            content_type = resp.headers.get("Content-Type", "")
            if content_type and "html" not in content_type and "text" not in content_type:
                raise ExtractionError(f"Unsupported content type {content_type} for {url}")
            return await resp.text(errors="replace")

    async def _extract_direct(self, url: str) -> ExtractedContent | None:
        try:
            async with aiohttp.ClientSession() as session:
                try:
                    markup = await self._fetch_html(session, url, verify=True)
                except aiohttp.ClientSSLError:
                    logger.debug("SSL error, retrying without verification | url=%s", url[:80])
                    markup = await self._fetch_html(session, url, verify=False)
        except asyncio.TimeoutError as e:
            raise ExtractionError(f"Timed out after {self.timeout}s for {url}") from e
        except aiohttp.ClientError as e:
            raise ExtractionError(f"{type(e).__name__} for {url}: {e}") from e

        text = html_to_text(markup)
        if not text:
            return None
        return self._build(url, text, title=_page_title(markup))
