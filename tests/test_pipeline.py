import asyncio

import pytest

from fakes import (
    FakeChannel,
    FakeClock,
    FakeDigestAgent,
    FakeExtractor,
    FakeFeed,
    FakeSummarizer,
    make_item,
)
from models.story import CONTENT_STATUSES, SUMMARY_STATUSES
from models.story import ProcessingStatus as S
from pipeline import Pipeline


class BrokenFeed(FakeFeed):
    async def __aenter__(self):
        raise RuntimeError("session setup failed")


def _pipeline(config, db, store, feed=None, channels=None, clock=None, **kwargs):
    return Pipeline(
        config,
        db=db,
        store=store,
        feed=feed if feed is not None else FakeFeed([make_item(1), make_item(2, url=None)]),
        extractor=FakeExtractor(),
        summarizer=FakeSummarizer(),
        digest_agent=kwargs.pop("digest_agent", FakeDigestAgent()),
        channels=[FakeChannel()] if channels is None else channels,
        clock=clock or FakeClock(),
    )


def test_tick_runs_due_stages_end_to_end(config, db, store):
    channel = FakeChannel()
    pipeline = _pipeline(config, db, store, channels=[channel])

    report = asyncio.run(pipeline.run_tick())

    assert report.ran == ["fetch", "extract", "summarize", "notify"]
    assert report.errors == {}
    assert db.get_story(1).status == S.SENT
    assert db.get_story(2).status == S.FAILED
    assert channel.sent == [1]
    assert {r["task_name"] for r in db.list_run_records()} == {
        "fetch", "extract", "summarize", "notify",
    }


def test_second_tick_within_interval_runs_nothing(config, db, store):
    clock = FakeClock()
    pipeline = _pipeline(config, db, store, clock=clock)
    asyncio.run(pipeline.run_tick())

    report = asyncio.run(pipeline.run_tick())

    assert report.ran == []
    assert report.not_due == ["fetch", "extract", "summarize", "notify"]

    clock.advance(config.summarize_interval_minutes)
    report = asyncio.run(pipeline.run_tick())
    assert report.ran == ["summarize"]


def test_raising_stage_is_not_recorded_and_later_stages_run(config, db, store):
    pipeline = _pipeline(config, db, store, feed=BrokenFeed())

    report = asyncio.run(pipeline.run_tick())

    assert "fetch" in report.errors
    assert "session setup failed" in report.errors["fetch"]
    assert report.ran == ["extract", "summarize", "notify"]
    assert db.get_last_run("fetch") is None
    assert db.get_last_run("extract") is not None


def test_stage_error_result_is_not_recorded(config, db, store):
    feed = FakeFeed(list_error=ConnectionError("HN down"))
    pipeline = _pipeline(config, db, store, feed=feed)

    report = asyncio.run(pipeline.run_tick())

    assert report.results["fetch"].error is not None
    assert db.get_last_run("fetch") is None

    # Still due on the next tick
    report = asyncio.run(pipeline.run_tick())
    assert "fetch" in report.ran


def test_digest_only_when_enabled(config, db, store):
    report = asyncio.run(_pipeline(config, db, store).run_tick())
    assert "digest" not in report.ran
    assert "digest" not in report.not_due

    config.digest_enabled = True
    agent = FakeDigestAgent()
    report = asyncio.run(_pipeline(config, db, store, digest_agent=agent).run_tick())
    assert "digest" in report.ran
    assert db.get_last_run("digest") is not None


def test_run_stage_honours_interval_unless_forced(config, db, store):
    pipeline = _pipeline(config, db, store)
    first = asyncio.run(pipeline.run_stage("fetch"))
    assert first.processed == 2

    assert asyncio.run(pipeline.run_stage("fetch")) is None

    forced = asyncio.run(pipeline.run_stage("fetch", force=True))
    assert forced is not None
    assert forced.processed == 0
    assert forced.skipped == 2


def test_run_stage_rejects_unknown_name(config, db, store):
    pipeline = _pipeline(config, db, store)

    with pytest.raises(ValueError):
        asyncio.run(pipeline.run_stage("publish"))


def test_tick_report_serializes(config, db, store):
    report = asyncio.run(_pipeline(config, db, store).run_tick())

    data = report.to_dict()

    assert data["run_id"] == report.run_id
    assert data["results"]["fetch"]["processed"] == 2
    assert data["errors"] == {}


def test_blob_references_follow_status(config, db, store):
    feed = FakeFeed([make_item(i) for i in range(1, 5)])
    pipeline = _pipeline(config, db, store, feed=feed)
    pipeline.summarizer.fail_ids.add(3)

    asyncio.run(pipeline.run_tick())

    for item_id in range(1, 5):
        story = db.get_story(item_id)
        if story.status in CONTENT_STATUSES:
            assert story.content_ref is not None
        if story.status in SUMMARY_STATUSES:
            assert story.summary_ref is not None
            assert story.completed_at is not None
    assert db.get_story(3).status == S.RETRY_SUMMARIZE
