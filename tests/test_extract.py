import asyncio

from models.content import ExtractedContent
from tools.extract import MIN_WORDS, ContentExtractor, html_to_text, make_excerpt
from tools.utils import truncate


PAGE = """
<html><head><title>Ignored</title><style>p { color: red }</style></head>
<body>
  <nav>Home | About</nav>
  <h1>Headline</h1>
  <p>Hello <b>world</b>, this is   text.</p>
  <script>track()</script>
  <p>Second paragraph</p>
  <footer>Copyright</footer>
</body></html>
"""


def test_html_to_text_keeps_content_blocks():
    assert html_to_text(PAGE) == "Headline\nHello world, this is text.\nSecond paragraph"


def test_excerpt_cuts_at_word_boundary():
    text = "alpha beta gamma delta epsilon"

    assert make_excerpt(text, max_chars=100) == text
    assert make_excerpt(text, max_chars=14) == "alpha beta..."


def test_excerpt_ignores_markdown_syntax():
    assert make_excerpt("# Title\n\n- [docs](https://x.y) are `here`") == "Title docs are"


def test_build_counts_plain_words():
    extractor = ContentExtractor()
    markdown = "## Intro\n\nSee [the docs](https://example.com) for `x = 1` details.\n\n```\ncode block\n```"

    content = extractor._build("https://example.com", markdown, title="Intro")

    # Intro, See, the, docs, for, details.
    assert content.word_count == 6
    assert content.title == "Intro"
    assert content.excerpt == "Intro See the docs for details."


def test_build_truncates_long_text():
    extractor = ContentExtractor(max_chars=40)

    content = extractor._build("https://example.com", "word " * 50)

    assert content.text.endswith("... [truncated]")
    assert len(content.text) == 40 + len("... [truncated]")


def test_short_pages_are_rejected(monkeypatch):
    extractor = ContentExtractor()

    async def short_page(url):
        return ExtractedContent(url=url, text="too short", word_count=2)

    monkeypatch.setattr(extractor, "_extract_direct", short_page)

    assert asyncio.run(extractor.extract("https://example.com")) is None


def test_long_pages_are_returned(monkeypatch):
    extractor = ContentExtractor()
    words = " ".join(["word"] * MIN_WORDS)

    async def page(url):
        return extractor._build(url, words)

    monkeypatch.setattr(extractor, "_extract_direct", page)

    content = asyncio.run(extractor.extract("https://example.com"))
    assert content.word_count == MIN_WORDS
    assert extractor.backend == "direct"


def test_firecrawl_backend_selected_by_url():
    assert ContentExtractor("https://firecrawl.local/").backend == "firecrawl"


def test_truncate():
    assert truncate("abcdef", 10) == "abcdef"
    assert truncate("abcdefghij", 6) == "abc..."
