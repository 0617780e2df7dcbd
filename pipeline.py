"""Pipeline orchestration for the HN Summarizer.

This module coordinates the per-stage workers on each tick:

Tick Flow:
    1. FETCH: Ingest the current top stories
    2. EXTRACT: Fetch article content for pending stories
    3. SUMMARIZE: Summarize extracted content
    4. NOTIFY: Deliver completed summaries
    5. DIGEST: Daily roundup (only when DIGEST_ENABLED)

Each stage runs only when its interval has elapsed since its last
recorded run (see scheduler.TaskScheduler). A stage that returns
normally has its run time recorded. A stage that raises, or reports a
stage-level error (candidate listing failed), is not recorded and is
due again on the next tick. One stage failing never prevents the later
stages from being evaluated.

The process keeps no state between ticks: all progress lives in the
stories and worker_runs tables, so a tick can be driven by cron or by
``run_continuous``.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from config import Config
from content_store import ContentStore
from database import Database
from feeds import HackerNewsClient
from notifications import NotificationChannel, build_channels
from observability.logging import clear_context, set_run_context, set_stage_context
from observability.tracing import setup_tracing, trace_operation
from scheduler import TaskScheduler
from tools.extract import ContentExtractor
from workers import (
    DigestWorker,
    ExtractWorker,
    FetchWorker,
    NotifyWorker,
    StageResult,
    SummarizeWorker,
)

logger = logging.getLogger(__name__)

STAGE_ORDER = ("fetch", "extract", "summarize", "notify", "digest")


@dataclass
class TickReport:
    """Outcome of one orchestrator tick.

    Attributes:
        run_id: Short id shared by all log lines of the tick
        results: StageResult per stage that ran
        not_due: Stages skipped because their interval had not elapsed
        errors: Exception text per stage that raised
        duration: Total tick time in seconds
    """

    run_id: str
    results: dict[str, StageResult] = field(default_factory=dict)
    not_due: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def ran(self) -> list[str]:
        return list(self.results)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "results": {name: r.to_dict() for name, r in self.results.items()},
            "not_due": self.not_due,
            "errors": self.errors,
            "duration": round(self.duration, 2),
        }


class Pipeline:
    """Runs due stages in order and records their run times.

    Collaborators default to the production adapters built from config.
    Tests pass fakes satisfying the same contracts.

    Example:
        >>> pipeline = Pipeline(config)
        >>> report = await pipeline.run_tick()
        >>> report.ran
        ['fetch', 'extract', 'summarize', 'notify']
    """

    def __init__(
        self,
        config: Config,
        db: Database | None = None,
        store: ContentStore | None = None,
        feed: Any = None,
        extractor: Any = None,
        summarizer: Any = None,
        digest_agent: Any = None,
        channels: list[NotificationChannel] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.db = db or Database(config.db_path)
        self.store = store or ContentStore(config.content_dir)
        self.scheduler = TaskScheduler(self.db, clock=clock)
        self.feed = feed or HackerNewsClient(
            config.hn_api_base_url,
            timeout=config.request_timeout_seconds,
            max_connections=config.fetch_concurrency,
        )
        self.extractor = extractor or ContentExtractor(
            config.firecrawl_api_url,
            config.firecrawl_api_key,
            timeout=config.request_timeout_seconds,
            max_chars=config.max_content_chars,
        )
        self._summarizer = summarizer
        self._digest_agent = digest_agent
        self.channels = build_channels(config) if channels is None else channels

        if config.enable_logfire:
            setup_tracing(enabled=True, service_name="hn-summarizer", token=config.logfire_token)

    # Agents are built on first use so commands that never summarize
    # do not need model credentials
    @property
    def summarizer(self):
        if self._summarizer is None:
            from agents.summarizer import SummarizerAgent
            self._summarizer = SummarizerAgent(self.config)
        return self._summarizer

    @property
    def digest_agent(self):
        if self._digest_agent is None:
            from agents.digest import DigestAgent
            self._digest_agent = DigestAgent(self.config)
        return self._digest_agent

    def stages(self) -> list[str]:
        """Stages evaluated on each tick, in order."""
        return [s for s in STAGE_ORDER if s != "digest" or self.config.digest_enabled]

    def _worker(self, name: str):
        if name == "fetch":
            return FetchWorker(self.config, self.db, self.feed)
        if name == "extract":
            return ExtractWorker(self.config, self.db, self.store, self.extractor)
        if name == "summarize":
            return SummarizeWorker(self.config, self.db, self.store, self.summarizer)
        if name == "notify":
            return NotifyWorker(self.config, self.db, self.store, self.channels)
        if name == "digest":
            return DigestWorker(self.config, self.db, self.store, self.digest_agent, self.channels)
        raise ValueError(f"Unknown stage: {name}")

    async def _execute(self, name: str, force: bool = False) -> StageResult | None:
        """Run one stage if due (or forced) and record its run time.

        Returns:
            StageResult, or None if the stage was not due
        """
        interval = self.config.stage_intervals()[name]
        if not force and not self.scheduler.should_run(name, interval):
            logger.debug("Stage not due | stage=%s interval=%dm", name, interval)
            return None

        set_stage_context(name)
        try:
            with trace_operation(f"stage.{name}", {"stage": name, "forced": force}) as attrs:
                result = await self._worker(name).run()
                attrs.update(result.to_dict())
        finally:
            set_stage_context("-")

        if result.error:
            logger.warning("Stage error, run not recorded | stage=%s error=%s", name, result.error)
        else:
            self.scheduler.record_run(name)
        return result

    async def run_stage(self, name: str, force: bool = False) -> StageResult | None:
        """Run a single stage through the same path as a tick."""
        if name not in STAGE_ORDER:
            raise ValueError(f"Unknown stage: {name}")
        set_run_context(uuid.uuid4().hex[:8])
        try:
            return await self._execute(name, force=force)
        finally:
            clear_context()

    async def run_tick(self) -> TickReport:
        """Evaluate every stage once, in order.

        Exceptions from a stage are logged and recorded in the report;
        only cancellation propagates.
        """
        run_id = uuid.uuid4().hex[:8]
        set_run_context(run_id)
        report = TickReport(run_id=run_id)
        start = time.monotonic()
        logger.info("Tick started | stages=%s", ",".join(self.stages()))

        try:
            with trace_operation("pipeline.tick", {"run_id": run_id}) as attrs:
                for name in self.stages():
                    try:
                        result = await self._execute(name)
                    except asyncio.CancelledError:
                        logger.info("Tick cancelled | stage=%s", name)
                        raise
                    except Exception as e:
                        logger.error(
                            "Stage raised | stage=%s type=%s error=%s",
                            name, type(e).__name__, e, exc_info=True,
                        )
                        report.errors[name] = f"{type(e).__name__}: {e}"
                        continue

                    if result is None:
                        report.not_due.append(name)
                    else:
                        report.results[name] = result

                attrs["ran"] = ",".join(report.ran)
                attrs["errors"] = len(report.errors)
        finally:
            report.duration = time.monotonic() - start
            logger.info(
                "Tick done | ran=%s not_due=%s errors=%d duration=%.1fs",
                ",".join(report.ran) or "-", ",".join(report.not_due) or "-",
                len(report.errors), report.duration,
            )
            clear_context()

        return report

    async def run_continuous(self) -> None:
        """Run ticks forever, sleeping TICK_INTERVAL_SECONDS between them."""
        tick_count = 0
        total_errors = 0
        logger.info("Starting continuous mode | interval=%ds", self.config.tick_interval_seconds)

        try:
            while True:
                tick_count += 1
                report = await self.run_tick()
                total_errors += len(report.errors)
                logger.info("Tick complete | tick=%d total_errors=%d", tick_count, total_errors)
                await asyncio.sleep(self.config.tick_interval_seconds)
        except asyncio.CancelledError:
            logger.info("Pipeline stopped | ticks=%d total_errors=%d", tick_count, total_errors)
            raise

    def close(self) -> None:
        """Clean up resources."""
        self.db.close()


async def run_once(config: Config) -> dict[str, Any]:
    """Run one tick and return the report as a dict."""
    pipeline = Pipeline(config)
    try:
        return (await pipeline.run_tick()).to_dict()
    finally:
        pipeline.close()


async def run_continuous(config: Config) -> None:
    """Run ticks continuously until cancelled."""
    pipeline = Pipeline(config)
    try:
        await pipeline.run_continuous()
    finally:
        pipeline.close()
