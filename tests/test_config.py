from pathlib import Path

import pytest

from config import DEFAULT_MODEL, Config


def test_defaults_without_environment(monkeypatch):
    for key in ("GEMINI_API_KEY", "SUMMARY_MODEL", "MAX_RETRY_ATTEMPTS", "DIGEST_ENABLED", "DB_PATH"):
        monkeypatch.delenv(key, raising=False)

    config = Config.load()

    assert config.summary_model == DEFAULT_MODEL
    assert config.max_retry_attempts == 5
    assert config.digest_enabled is False
    assert config.db_path == Path("hn.db")


def test_load_reads_environment(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "key")
    monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "3")
    monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("DIGEST_ENABLED", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CONTENT_DIR", "/tmp/blobs")

    config = Config.load()

    assert config.gemini_api_key == "key"
    assert config.max_retry_attempts == 3
    assert config.request_timeout_seconds == 2.5
    assert config.digest_enabled is True
    assert config.log_level == "DEBUG"
    assert config.content_dir == Path("/tmp/blobs")


def test_invalid_integer_raises(monkeypatch):
    monkeypatch.setenv("FETCH_CONCURRENCY", "many")

    with pytest.raises(ValueError, match="FETCH_CONCURRENCY"):
        Config.load()


def test_validate_requires_key_for_gemini_models():
    config = Config(gemini_api_key="")

    assert "GEMINI_API_KEY" in config.validate()
    assert config.validate(require_api_key=False) is None


def test_validate_accepts_local_model_without_key():
    config = Config(
        summary_model="openai:qwen3@http://127.0.0.1:8080/v1",
        digest_model="openai:qwen3@http://127.0.0.1:8080/v1",
    )

    assert config.validate() is None


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"content_concurrency": 0}, "CONTENT_CONCURRENCY"),
        ({"max_retry_attempts": -1}, "MAX_RETRY_ATTEMPTS"),
        ({"notify_interval_minutes": -5}, "NOTIFY_INTERVAL_MINUTES"),
        ({"telegram_bot_token": "t"}, "TELEGRAM_CHAT_ID"),
        ({"digest_min_stories": 10, "digest_max_stories": 5}, "DIGEST_MIN_STORIES"),
        ({"log_format": "xml"}, "LOG_FORMAT"),
    ],
)
def test_validate_rejects_bad_values(overrides, fragment):
    config = Config(gemini_api_key="key", **overrides)

    assert fragment in config.validate()


def test_stage_intervals_and_channels():
    config = Config(fetch_interval_minutes=5, alerts_file="alerts.jsonl")

    assert config.stage_intervals()["fetch"] == 5
    assert set(config.stage_intervals()) == {"fetch", "extract", "summarize", "notify", "digest"}
    assert config.notification_channels_configured
    assert not Config().notification_channels_configured
