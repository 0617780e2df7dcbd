import asyncio

from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.usage import RunUsage

from agents.digest import DigestAgent, DigestInput
from agents.providers import create_model, is_local_model, parse_local_model, token_usage
from agents.summarizer import SummarizerAgent, reading_time_minutes
from fakes import make_summary
from models.story import StoryRecord


def test_parse_local_model():
    assert parse_local_model("openai:qwen3@http://127.0.0.1:8080/v1") == (
        "qwen3", "http://127.0.0.1:8080/v1",
    )
    assert parse_local_model("google-gla:gemini-2.5-flash") is None
    assert not is_local_model("openai:gpt-4o")


def test_create_model_passes_remote_names_through():
    assert create_model("google-gla:gemini-2.5-flash") == "google-gla:gemini-2.5-flash"
    assert isinstance(create_model("openai:qwen3@http://127.0.0.1:8080/v1"), OpenAIChatModel)


def test_reading_time_never_below_one_minute():
    assert reading_time_minutes(0) == 1
    assert reading_time_minutes(225) == 1
    assert reading_time_minutes(226) == 2


def test_summarizer_builds_summary_document(config):
    summarizer = SummarizerAgent(config)

    summary = asyncio.run(summarizer.summarize(42, "A title", "Some article text. " * 50, 900))

    assert summary.story_id == 42
    assert summary.reading_time_minutes == 4
    assert summary.model == "test"
    assert summary.input_tokens > 0


def test_digest_agent_returns_report_and_usage(config):
    entries = [
        DigestInput(story=StoryRecord(id=i, title=f"Story {i}", score=i), summary=make_summary(i))
        for i in (1, 2)
    ]

    report, input_tokens, output_tokens = asyncio.run(DigestAgent(config).generate(entries, "2024-05-01"))

    assert isinstance(report.overview, str)
    assert input_tokens > 0
    assert output_tokens > 0


class _MethodUsageResult:
    def usage(self):
        return RunUsage(input_tokens=12, output_tokens=5)


class _PropertyUsageResult:
    usage = RunUsage(input_tokens=12, output_tokens=None)


def test_token_usage_reads_method_or_property():
    assert token_usage(_MethodUsageResult()) == (12, 5)
    assert token_usage(_PropertyUsageResult()) == (12, 0)
