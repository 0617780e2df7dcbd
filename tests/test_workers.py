import asyncio

from agents.summarizer import SummarizerAgent
from executor import Outcome
from fakes import (
    FakeChannel,
    FakeDigestAgent,
    FakeExtractor,
    FakeFeed,
    FakeSummarizer,
    make_content,
    make_item,
    make_summary,
    seed_story,
)
from models.story import ProcessingStatus as S
from workers import DigestWorker, ExtractWorker, FetchWorker, NotifyWorker, SummarizeWorker
from workers.base import retry_or_fail


# --- fetch ---------------------------------------------------------------


def test_fetch_inserts_new_and_refreshes_existing(config, db):
    seed_story(db, 2, S.EXTRACTED, content_ref="c")
    feed = FakeFeed([make_item(1), make_item(2, score=77), make_item(3, type="job")])

    result = asyncio.run(FetchWorker(config, db, feed).run())

    assert result.processed == 1
    assert result.skipped == 2
    assert result.error is None
    assert db.get_story(1).status == S.PENDING
    assert db.get_story(2).status == S.EXTRACTED
    assert db.get_story(2).score == 77
    assert db.get_story(3) is None
    assert feed.entered == 1


def test_fetch_item_error_fails_only_that_item(config, db):
    feed = FakeFeed([make_item(1)], item_errors=[9])

    result = asyncio.run(FetchWorker(config, db, feed).run())

    assert result.processed == 1
    assert result.failed == 1
    assert result.error is None


def test_fetch_listing_error_is_stage_error(config, db):
    feed = FakeFeed(list_error=ConnectionError("HN down"))

    result = asyncio.run(FetchWorker(config, db, feed).run())

    assert result.error is not None
    assert "HN down" in result.error
    assert result.total == 0


def test_fetch_respects_story_limit(config, db):
    config.max_stories_per_fetch = 2
    feed = FakeFeed([make_item(i) for i in range(1, 6)])

    result = asyncio.run(FetchWorker(config, db, feed).run())

    assert result.processed == 2
    assert db.status_counts()["pending"] == 2


# --- extract -------------------------------------------------------------


def test_extract_success_stores_content(config, db, store):
    seed_story(db, 1, S.PENDING)

    result = asyncio.run(ExtractWorker(config, db, store, FakeExtractor()).run())

    assert result.processed == 1
    story = db.get_story(1)
    assert story.status == S.EXTRACTED
    assert store.load_content(story.content_ref).word_count == 300


def test_extract_without_url_fails_without_retry(config, db, store):
    seed_story(db, 1, S.PENDING, url=None)
    extractor = FakeExtractor()

    result = asyncio.run(ExtractWorker(config, db, store, extractor).run())

    assert result.failed == 1
    story = db.get_story(1)
    assert story.status == S.FAILED
    assert story.retry_count == 0
    assert extractor.calls == []


def test_extract_empty_result_schedules_retry(config, db, store):
    seed_story(db, 1, S.PENDING)

    result = asyncio.run(ExtractWorker(config, db, store, FakeExtractor(default=None)).run())

    assert result.retried == 1
    story = db.get_story(1)
    assert story.status == S.RETRY_EXTRACT
    assert story.retry_count == 1
    assert story.content_ref is None
    assert "no content" in story.last_error


def test_extract_timeout_schedules_retry(config, db, store):
    config.request_timeout_seconds = 0.01
    seed_story(db, 1, S.PENDING)

    result = asyncio.run(ExtractWorker(config, db, store, FakeExtractor(default="slow")).run())

    assert result.retried == 1
    assert "timed out" in db.get_story(1).last_error


def test_extract_failures_fail_within_retry_ceiling(config, db, store):
    seed_story(db, 1, S.PENDING)
    worker = ExtractWorker(config, db, store, FakeExtractor(default=RuntimeError("403")))

    statuses = []
    for _ in range(config.max_retry_attempts + 1):
        asyncio.run(worker.run())
        statuses.append(db.get_story(1).status)

    assert statuses == [S.RETRY_EXTRACT, S.RETRY_EXTRACT, S.FAILED]
    assert db.get_story(1).retry_count == config.max_retry_attempts
    assert asyncio.run(worker.run()).total == 0


def test_retry_or_fail_at_lowered_ceiling_fails(db):
    story = seed_story(db, 1, S.SUMMARIZING, retry_count=3, content_ref="c")

    outcome = retry_or_fail(db, story, S.SUMMARIZING, S.RETRY_SUMMARIZE, 2, RuntimeError("boom"))

    assert outcome == Outcome.FAILED
    assert db.get_story(1).status == S.FAILED
    assert db.get_story(1).last_error == "RuntimeError: boom"


def test_retry_or_fail_after_lost_race_is_skipped(db):
    story = seed_story(db, 1, S.SUMMARIZING, retry_count=2, content_ref="c")
    db.mark_completed(1, "s")

    outcome = retry_or_fail(db, story, S.SUMMARIZING, S.RETRY_SUMMARIZE, 2, "late failure")

    assert outcome == Outcome.SKIPPED
    assert db.get_story(1).status == S.COMPLETED


def test_extract_one_failure_does_not_affect_others(config, db, store):
    seed_story(db, 1, S.PENDING, url="https://example.com/ok")
    seed_story(db, 2, S.PENDING, url="https://example.com/bad")
    extractor = FakeExtractor({"https://example.com/bad": ValueError("parse error")})

    result = asyncio.run(ExtractWorker(config, db, store, extractor).run())

    assert (result.processed, result.retried) == (1, 1)
    assert db.get_story(1).status == S.EXTRACTED
    assert db.get_story(2).status == S.RETRY_EXTRACT


def test_extract_lost_claim_is_skipped(config, db, store):
    story = seed_story(db, 1, S.PENDING)
    worker = ExtractWorker(config, db, store, FakeExtractor())
    assert db.claim(1, [S.PENDING], S.EXTRACTING)

    outcome = asyncio.run(worker.process(story))

    assert outcome is Outcome.SKIPPED
    assert db.get_story(1).status == S.EXTRACTING


# --- summarize -----------------------------------------------------------


def _extracted(db, store, story_id):
    ref = store.save_content(story_id, make_content())
    return seed_story(db, story_id, S.EXTRACTED, content_ref=ref)


def test_summarize_success(config, db, store):
    _extracted(db, store, 1)

    result = asyncio.run(SummarizeWorker(config, db, store, FakeSummarizer()).run())

    assert result.processed == 1
    story = db.get_story(1)
    assert story.status == S.COMPLETED
    assert store.load_summary(story.summary_ref).summary == "Summary of 1"


def test_summarize_with_model_agent_completes(config, db, store):
    _extracted(db, store, 1)

    result = asyncio.run(SummarizeWorker(config, db, store, SummarizerAgent(config)).run())

    story = db.get_story(1)
    assert result.processed == 1
    assert result.retried == 0
    assert story.status == S.COMPLETED
    assert story.last_error is None
    assert store.load_summary(story.summary_ref).model == "test"


def test_summarize_missing_content_ref_fails(config, db, store):
    seed_story(db, 1, S.EXTRACTED, content_ref=None)
    summarizer = FakeSummarizer()

    result = asyncio.run(SummarizeWorker(config, db, store, summarizer).run())

    assert result.failed == 1
    assert db.get_story(1).status == S.FAILED
    assert summarizer.calls == []


def test_summarize_model_error_schedules_retry(config, db, store):
    _extracted(db, store, 1)
    _extracted(db, store, 2)

    result = asyncio.run(SummarizeWorker(config, db, store, FakeSummarizer(fail_ids=[2])).run())

    assert (result.processed, result.retried) == (1, 1)
    story = db.get_story(2)
    assert story.status == S.RETRY_SUMMARIZE
    assert story.retry_count == 1
    assert "model unavailable" in story.last_error
    assert story.content_ref is not None


def test_summarize_unreadable_content_schedules_retry(config, db, store):
    seed_story(db, 1, S.EXTRACTED, content_ref="content/1/missing.json")

    result = asyncio.run(SummarizeWorker(config, db, store, FakeSummarizer()).run())

    assert result.retried == 1
    assert db.get_story(1).status == S.RETRY_SUMMARIZE


def test_summarize_retries_before_new_work(config, db, store):
    _extracted(db, store, 1)
    ref = store.save_content(2, make_content())
    seed_story(db, 2, S.RETRY_SUMMARIZE, retry_count=1, content_ref=ref)
    config.summary_batch_size = 1
    summarizer = FakeSummarizer()

    asyncio.run(SummarizeWorker(config, db, store, summarizer).run())

    assert summarizer.calls == [2]


# --- notify --------------------------------------------------------------


def _completed(db, store, story_id):
    ref = store.save_summary(story_id, make_summary(story_id))
    return seed_story(db, story_id, S.COMPLETED, content_ref="c", summary_ref=ref)


def test_notify_partial_success_marks_sent(config, db, store):
    _completed(db, store, 1)
    good, bad = FakeChannel("good"), FakeChannel("bad", raises=True)

    result = asyncio.run(NotifyWorker(config, db, store, [good, bad]).run())

    assert result.processed == 1
    assert db.get_story(1).status == S.SENT
    assert good.sent == [1]
    attempts = {a["channel"]: a["status"] for a in db.notification_attempts(1)}
    assert attempts == {"bad": "failed", "good": "sent"}


def test_notify_all_channels_failing_leaves_completed(config, db, store):
    _completed(db, store, 1)
    channels = [FakeChannel("a", ok=False), FakeChannel("b", raises=True)]

    result = asyncio.run(NotifyWorker(config, db, store, channels).run())

    assert result.failed == 1
    assert db.get_story(1).status == S.COMPLETED

    # Offered again on the next run
    result = asyncio.run(NotifyWorker(config, db, store, channels).run())
    assert result.total == 1
    assert all(a["attempt_count"] == 2 for a in db.notification_attempts(1))


def test_notify_without_configured_channels_skips(config, db, store):
    _completed(db, store, 1)

    result = asyncio.run(NotifyWorker(config, db, store, [FakeChannel(configured=False)]).run())

    assert result.skipped == 1
    assert db.get_story(1).status == S.COMPLETED


def test_notify_missing_summary_ref_skips(config, db, store):
    seed_story(db, 1, S.COMPLETED, content_ref="c", summary_ref=None)
    channel = FakeChannel()

    result = asyncio.run(NotifyWorker(config, db, store, [channel]).run())

    assert result.skipped == 1
    assert channel.sent == []


def test_notify_unreadable_summary_fails(config, db, store):
    seed_story(db, 1, S.COMPLETED, content_ref="c", summary_ref="summary/1/missing.json")

    result = asyncio.run(NotifyWorker(config, db, store, [FakeChannel()]).run())

    assert result.failed == 1
    assert db.get_story(1).status == S.COMPLETED


# --- digest --------------------------------------------------------------


def test_digest_skipped_below_minimum(config, db, store):
    _completed(db, store, 1)
    agent = FakeDigestAgent()

    result = asyncio.run(DigestWorker(config, db, store, agent, [FakeChannel()]).run())

    assert result.skipped == 1
    assert agent.calls == 0
    assert not config.reports_dir.exists()


def test_digest_generated_saved_and_delivered(config, db, store):
    _completed(db, store, 1)
    _completed(db, store, 2)
    channel = FakeChannel()

    result = asyncio.run(DigestWorker(config, db, store, FakeDigestAgent(), [channel]).run())

    assert result.processed == 2
    assert result.error is None
    reports = list(config.reports_dir.glob("*_digest.md"))
    assert len(reports) == 1
    assert "Story 1" in reports[0].read_text()
    assert len(channel.digests) == 1
    assert channel.digests[0][0].startswith("Hacker News Daily Digest")
    assert db.get_story(1).status == S.COMPLETED
