#!/usr/bin/env python3
"""HN Summarizer: Hacker News story processing pipeline.

This CLI tool ingests top Hacker News stories, extracts the linked
articles, summarizes them with a PydanticAI agent, and delivers the
summaries to notification channels.

Commands:
    run         Run one tick of due stages (or loop with -c)
    stage       Run a single stage now (--force ignores its interval)
    status      Show configuration, story counts and stage run times
    stories     List stories, optionally filtered by status
    show        Show one story with its summary
    workers     Show stage run records, or reset one so it runs next tick

Examples:
    python main.py run                    # Single tick
    python main.py run -c                 # Tick every TICK_INTERVAL_SECONDS
    python main.py stage extract --force  # Extract now
    python main.py stories --status failed --limit 10
    python main.py show 41234567
    python main.py workers --reset notify

Environment:
    GEMINI_API_KEY: Required for the summarize and digest stages
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from config import Config
from content_store import ContentStore, ContentStoreError
from database import Database
from models.story import ProcessingStatus
from observability.logging import setup_logging

STAGE_NAMES = ("fetch", "extract", "summarize", "notify", "digest")

# Stages that call a model and need its credentials
MODEL_STAGES = ("summarize", "digest")


def _fmt_time(value: float | datetime | None) -> str:
    if value is None:
        return "-"
    if isinstance(value, datetime):
        return value.astimezone().strftime("%Y-%m-%d %H:%M")
    return datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M:%S")


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Run the pipeline once or continuously.

    Returns:
        Exit code (0 for success)
    """
    from pipeline import run_continuous, run_once

    if args.interval:
        config.tick_interval_seconds = args.interval

    logger = logging.getLogger(__name__)
    try:
        if args.continuous:
            try:
                asyncio.run(run_continuous(config))
            except KeyboardInterrupt:
                logger.info("Stopped by user (Ctrl+C)")
            return 0

        report = asyncio.run(run_once(config))
        logger.info("Run complete | report=%s", json.dumps(report))
        return 1 if report["errors"] else 0
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        logger.error("Pipeline failed | error=%s type=%s", e, type(e).__name__, exc_info=True)
        return 1


def cmd_stage(args: argparse.Namespace, config: Config) -> int:
    """Run a single stage through the orchestrator."""
    from pipeline import Pipeline

    async def run_stage():
        pipeline = Pipeline(config)
        try:
            return await pipeline.run_stage(args.name, force=args.force)
        finally:
            pipeline.close()

    result = asyncio.run(run_stage())
    if result is None:
        print(f"Stage '{args.name}' is not due yet (use --force to run it now).")
        return 0

    print(json.dumps(result.to_dict(), indent=2))
    return 1 if result.error else 0


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration, story counts and stage run records."""
    with Database(config.db_path) as db:
        counts = db.status_counts()
        runs = db.list_run_records()

    status = {
        "config": {
            "summary_model": config.summary_model,
            "digest_model": config.digest_model,
            "digest_enabled": config.digest_enabled,
            "extraction": "firecrawl" if config.firecrawl_api_url else "direct",
            "max_stories_per_fetch": config.max_stories_per_fetch,
            "max_retry_attempts": config.max_retry_attempts,
            "intervals_minutes": config.stage_intervals(),
            "notification_channels": config.notification_channels_configured,
            "enable_logfire": config.enable_logfire,
        },
        "database": {
            "path": str(config.db_path),
            "total_stories": sum(counts.values()),
            "by_status": counts,
        },
        "workers": {
            run["task_name"]: _fmt_time(run["last_run_time"]) for run in runs
        },
    }

    print(json.dumps(status, indent=2))
    return 0


def cmd_stories(args: argparse.Namespace, config: Config) -> int:
    """List stories by status, or the latest processed ones."""
    with Database(config.db_path) as db:
        if args.status:
            stories = db.stories_by_status(ProcessingStatus(args.status), limit=args.limit)
            heading = f"Stories with status '{args.status}'"
        else:
            stories = db.latest_processed(limit=args.limit)
            heading = "Latest processed stories"

    if not stories:
        print("No stories found.")
        return 0

    print(f"\n=== {heading} ({len(stories)}) ===\n")
    for story in stories:
        print(f"[{story.id}] {story.title}")
        print(f"   Status: {story.status.value}  Score: {story.score}  Retries: {story.retry_count}")
        print(f"   Updated: {_fmt_time(story.updated_at)}")
        if story.url:
            print(f"   URL: {story.url}")
        if story.last_error:
            print(f"   Last error: {story.last_error[:200]}")
        print()
    return 0


def cmd_show(args: argparse.Namespace, config: Config) -> int:
    """Show one story with its summary."""
    with Database(config.db_path) as db:
        story = db.get_story(args.id)
        attempts = db.notification_attempts(args.id) if story else []

    if story is None:
        print(f"Story {args.id} not found.", file=sys.stderr)
        return 1

    print(f"\n# {story.title}\n")
    print(f"Status: {story.status.value}")
    print(f"Score: {story.score}  Author: {story.author}")
    print(f"URL: {story.url or '-'}")
    print(f"Discussion: {story.discussion_url}")
    print(f"Added: {_fmt_time(story.processed_at)}  Updated: {_fmt_time(story.updated_at)}")
    if story.completed_at:
        print(f"Completed: {_fmt_time(story.completed_at)}")
    if story.last_error:
        print(f"Last error: {story.last_error}")

    if story.summary_ref:
        try:
            summary = ContentStore(config.content_dir).load_summary(story.summary_ref)
        except ContentStoreError as e:
            print(f"\nSummary unavailable: {e}")
        else:
            print(f"\n## Summary ({summary.reading_time_minutes} min read, {summary.model})\n")
            print(summary.summary)
            if summary.key_points:
                print("\n## Key Points\n")
                for point in summary.key_points:
                    print(f"- {point}")
            if summary.topics:
                print(f"\nTopics: {', '.join(summary.topics)}")

    if attempts:
        print("\n## Notifications\n")
        for attempt in attempts:
            print(
                f"- {attempt['channel']}: {attempt['status']} "
                f"(attempts={attempt['attempt_count']}, last={_fmt_time(attempt['last_attempt_at'])})"
            )
    return 0


def cmd_workers(args: argparse.Namespace, config: Config) -> int:
    """Show stage run records, or reset one."""
    with Database(config.db_path) as db:
        if args.reset:
            db.reset_run(args.reset)
            print(f"Reset '{args.reset}'; it will run on the next tick.")
            return 0
        runs = db.list_run_records()

    intervals = config.stage_intervals()
    print("\n=== Stage run records ===\n")
    recorded = {run["task_name"]: run for run in runs}
    for name in STAGE_NAMES:
        run = recorded.get(name)
        last = _fmt_time(run["last_run_time"]) if run else "never"
        print(f"{name:<10} every {intervals[name]:>5}m   last run: {last}")
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="HN Summarizer: Hacker News story processing pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run one tick of due stages")
    run_parser.add_argument(
        "-c", "--continuous",
        action="store_true",
        help="Keep running ticks until interrupted",
    )
    run_parser.add_argument(
        "--interval",
        type=int,
        help="Seconds between ticks in continuous mode (overrides TICK_INTERVAL_SECONDS)",
    )

    # stage command
    stage_parser = subparsers.add_parser("stage", help="Run a single stage")
    stage_parser.add_argument("name", choices=STAGE_NAMES, help="Stage to run")
    stage_parser.add_argument(
        "--force",
        action="store_true",
        help="Run even if the stage's interval has not elapsed",
    )

    # status command
    subparsers.add_parser("status", help="Show configuration and statistics")

    # stories command
    stories_parser = subparsers.add_parser("stories", help="List stories")
    stories_parser.add_argument(
        "--status",
        choices=[s.value for s in ProcessingStatus],
        help="Only stories with this status (default: latest processed)",
    )
    stories_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum stories to list (default: 20)",
    )

    # show command
    show_parser = subparsers.add_parser("show", help="Show one story with its summary")
    show_parser.add_argument("id", type=int, help="Hacker News item id")

    # workers command
    workers_parser = subparsers.add_parser("workers", help="Show or reset stage run records")
    workers_parser.add_argument(
        "--reset",
        choices=STAGE_NAMES,
        help="Backdate this stage's run record so it runs on the next tick",
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = Config.load()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_logging(config, verbose=args.verbose)

    # Validate configuration for commands that run stages
    if args.command in ("run", "stage"):
        needs_key = args.command == "run" or args.name in MODEL_STAGES
        error = config.validate(require_api_key=needs_key)
        if error:
            print(f"Configuration error: {error}", file=sys.stderr)
            return 1

    # Route to command handler
    commands = {
        "run": cmd_run,
        "stage": cmd_stage,
        "status": cmd_status,
        "stories": cmd_stories,
        "show": cmd_show,
        "workers": cmd_workers,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except Exception as e:
            logging.getLogger(__name__).error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
