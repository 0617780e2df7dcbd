import pytest

from config import Config
from content_store import ContentStore
from database import Database


@pytest.fixture
def config(tmp_path):
    return Config(
        summary_model="test",
        digest_model="test",
        db_path=tmp_path / "hn.db",
        content_dir=tmp_path / "content",
        reports_dir=tmp_path / "reports",
        log_dir=tmp_path / "log",
        max_retry_attempts=2,
        request_timeout_seconds=1.0,
        summary_timeout_seconds=1.0,
        content_concurrency=2,
        summary_concurrency=2,
        notify_concurrency=2,
        digest_min_stories=2,
    )


@pytest.fixture
def db(config):
    database = Database(config.db_path)
    yield database
    database.close()


@pytest.fixture
def store(config):
    return ContentStore(config.content_dir)
