"""Configuration management for the HN Summarizer pipeline.

This module provides centralized configuration for all pipeline components.
All settings are loaded from environment variables with sensible defaults.
A single Config instance is built at process entry (main.py) and passed
explicitly to the pipeline, stage workers and service adapters.

Environment Variables:
    Required:
        GEMINI_API_KEY: Google Gemini API key for the summarizer

    Models (PydanticAI format - provider:model):
        SUMMARY_MODEL: Model for per-story summaries
        DIGEST_MODEL: Model for the daily digest
        Local OpenAI-compatible servers: openai:<model_name>@<base_url>

    Storage:
        DB_PATH: SQLite database file path
        CONTENT_DIR: Root directory of the blob content store
        REPORTS_DIR: Directory for digest markdown reports
        LOG_DIR: Directory for log files

    Feed:
        HN_API_BASE_URL: Hacker News API base URL
        MAX_STORIES_PER_FETCH: Top stories to fetch per pass
        FETCH_CONCURRENCY: Concurrent item lookups

    Content Extraction:
        FIRECRAWL_API_URL: Firecrawl scrape API (direct fetch if unset)
        FIRECRAWL_API_KEY: Optional bearer token for Firecrawl
        CONTENT_PROCESSOR_BATCH_SIZE / CONTENT_PROCESSOR_CONCURRENCY
        MAX_CONTENT_CHARS: Truncate extracted text beyond this length

    Summarization:
        SUMMARY_GENERATOR_BATCH_SIZE / SUMMARY_GENERATOR_CONCURRENCY

    Notifications:
        NOTIFICATION_SENDER_BATCH_SIZE / NOTIFICATION_SENDER_CONCURRENCY
        NOTIFY_MAX_AGE_HOURS: Completed stories older than this are not sent
        TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID: Telegram Bot API channel
        DISCORD_WEBHOOK_URL: Discord webhook channel
        NOTIFICATION_WEBHOOK_URL: Generic JSON webhook channel
        ALERTS_FILE: Path for JSONL alert file channel

    Retry / Timeouts:
        MAX_RETRY_ATTEMPTS: Retry ceiling for extract and summarize
        REQUEST_TIMEOUT_SECONDS: Per external call time bound
        SUMMARY_TIMEOUT_SECONDS: Time bound for one summarization model call

    Scheduling (minutes unless noted):
        FETCH_INTERVAL_MINUTES, EXTRACT_INTERVAL_MINUTES,
        SUMMARIZE_INTERVAL_MINUTES, NOTIFY_INTERVAL_MINUTES,
        DIGEST_INTERVAL_MINUTES
        TICK_INTERVAL_SECONDS: Delay between ticks in continuous mode

    Daily Digest:
        DIGEST_ENABLED, DIGEST_MIN_STORIES, DIGEST_MAX_STORIES,
        DIGEST_LOOKBACK_HOURS

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Environment variable value or default
    """
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Parsed integer or default value

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


DEFAULT_HN_API_BASE_URL = "https://hacker-news.firebaseio.com/v0"
DEFAULT_MODEL = "google-gla:gemini-2.5-flash"


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Use Config.load() to create an instance with values from the environment,
    or construct one directly in tests.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Required ===
    gemini_api_key: str = ""  # GEMINI_API_KEY - Google AI API key

    # === AI Models ===
    summary_model: str = DEFAULT_MODEL  # SUMMARY_MODEL - Per-story summaries
    digest_model: str = DEFAULT_MODEL  # DIGEST_MODEL - Daily digest

    # === Storage ===
    db_path: Path = field(default_factory=lambda: Path("hn.db"))  # DB_PATH
    content_dir: Path = field(default_factory=lambda: Path("content"))  # CONTENT_DIR
    reports_dir: Path = field(default_factory=lambda: Path("reports"))  # REPORTS_DIR
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR

    # === Feed ===
    hn_api_base_url: str = DEFAULT_HN_API_BASE_URL  # HN_API_BASE_URL
    max_stories_per_fetch: int = 30  # MAX_STORIES_PER_FETCH
    fetch_concurrency: int = 5  # FETCH_CONCURRENCY

    # === Content Extraction ===
    firecrawl_api_url: str = ""  # FIRECRAWL_API_URL - empty = direct fetch
    firecrawl_api_key: str = ""  # FIRECRAWL_API_KEY
    content_batch_size: int = 10  # CONTENT_PROCESSOR_BATCH_SIZE
    content_concurrency: int = 5  # CONTENT_PROCESSOR_CONCURRENCY
    max_content_chars: int = 100_000  # MAX_CONTENT_CHARS

    # === Summarization ===
    summary_batch_size: int = 5  # SUMMARY_GENERATOR_BATCH_SIZE
    summary_concurrency: int = 3  # SUMMARY_GENERATOR_CONCURRENCY

    # === Notifications ===
    notify_batch_size: int = 5  # NOTIFICATION_SENDER_BATCH_SIZE
    notify_concurrency: int = 3  # NOTIFICATION_SENDER_CONCURRENCY
    notify_max_age_hours: int = 72  # NOTIFY_MAX_AGE_HOURS
    telegram_bot_token: str = ""  # TELEGRAM_BOT_TOKEN
    telegram_chat_id: str = ""  # TELEGRAM_CHAT_ID
    discord_webhook_url: str = ""  # DISCORD_WEBHOOK_URL
    webhook_url: str = ""  # NOTIFICATION_WEBHOOK_URL - POST endpoint for alerts
    alerts_file: str = ""  # ALERTS_FILE - JSONL file path for alerts

    # === Retry Behavior ===
    max_retry_attempts: int = 5  # MAX_RETRY_ATTEMPTS
    request_timeout_seconds: float = 30.0  # REQUEST_TIMEOUT_SECONDS
    summary_timeout_seconds: float = 120.0  # SUMMARY_TIMEOUT_SECONDS - Per model call

    # === Scheduling ===
    fetch_interval_minutes: int = 30  # FETCH_INTERVAL_MINUTES
    extract_interval_minutes: int = 15  # EXTRACT_INTERVAL_MINUTES
    summarize_interval_minutes: int = 10  # SUMMARIZE_INTERVAL_MINUTES
    notify_interval_minutes: int = 30  # NOTIFY_INTERVAL_MINUTES
    digest_interval_minutes: int = 1440  # DIGEST_INTERVAL_MINUTES
    tick_interval_seconds: int = 300  # TICK_INTERVAL_SECONDS

    # === Daily Digest ===
    digest_enabled: bool = False  # DIGEST_ENABLED
    digest_min_stories: int = 5  # DIGEST_MIN_STORIES
    digest_max_stories: int = 30  # DIGEST_MAX_STORIES
    digest_lookback_hours: int = 24  # DIGEST_LOOKBACK_HOURS

    # === Logging Configuration ===
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT - Number of rotated logs to keep
    log_max_bytes: int = 0  # LOG_MAX_BYTES - Max file size (0 = time-based rotation)
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json' for structured logging

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE - Enable distributed tracing
    logfire_token: str = ""  # LOGFIRE_TOKEN - Authentication token

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            gemini_api_key=_env("GEMINI_API_KEY"),
            summary_model=_env("SUMMARY_MODEL", DEFAULT_MODEL),
            digest_model=_env("DIGEST_MODEL", DEFAULT_MODEL),
            db_path=Path(_env("DB_PATH", "hn.db")),
            content_dir=Path(_env("CONTENT_DIR", "content")),
            reports_dir=Path(_env("REPORTS_DIR", "reports")),
            log_dir=Path(_env("LOG_DIR", "log")),
            hn_api_base_url=_env("HN_API_BASE_URL", DEFAULT_HN_API_BASE_URL),
            max_stories_per_fetch=_env_int("MAX_STORIES_PER_FETCH", 30),
            fetch_concurrency=_env_int("FETCH_CONCURRENCY", 5),
            firecrawl_api_url=_env("FIRECRAWL_API_URL"),
            firecrawl_api_key=_env("FIRECRAWL_API_KEY"),
            content_batch_size=_env_int("CONTENT_PROCESSOR_BATCH_SIZE", 10),
            content_concurrency=_env_int("CONTENT_PROCESSOR_CONCURRENCY", 5),
            max_content_chars=_env_int("MAX_CONTENT_CHARS", 100_000),
            summary_batch_size=_env_int("SUMMARY_GENERATOR_BATCH_SIZE", 5),
            summary_concurrency=_env_int("SUMMARY_GENERATOR_CONCURRENCY", 3),
            notify_batch_size=_env_int("NOTIFICATION_SENDER_BATCH_SIZE", 5),
            notify_concurrency=_env_int("NOTIFICATION_SENDER_CONCURRENCY", 3),
            notify_max_age_hours=_env_int("NOTIFY_MAX_AGE_HOURS", 72),
            telegram_bot_token=_env("TELEGRAM_BOT_TOKEN"),
            telegram_chat_id=_env("TELEGRAM_CHAT_ID"),
            discord_webhook_url=_env("DISCORD_WEBHOOK_URL"),
            webhook_url=_env("NOTIFICATION_WEBHOOK_URL"),
            alerts_file=_env("ALERTS_FILE"),
            max_retry_attempts=_env_int("MAX_RETRY_ATTEMPTS", 5),
            request_timeout_seconds=_env_float("REQUEST_TIMEOUT_SECONDS", 30.0),
            summary_timeout_seconds=_env_float("SUMMARY_TIMEOUT_SECONDS", 120.0),
            fetch_interval_minutes=_env_int("FETCH_INTERVAL_MINUTES", 30),
            extract_interval_minutes=_env_int("EXTRACT_INTERVAL_MINUTES", 15),
            summarize_interval_minutes=_env_int("SUMMARIZE_INTERVAL_MINUTES", 10),
            notify_interval_minutes=_env_int("NOTIFY_INTERVAL_MINUTES", 30),
            digest_interval_minutes=_env_int("DIGEST_INTERVAL_MINUTES", 1440),
            tick_interval_seconds=_env_int("TICK_INTERVAL_SECONDS", 300),
            digest_enabled=_env_bool("DIGEST_ENABLED", False),
            digest_min_stories=_env_int("DIGEST_MIN_STORIES", 5),
            digest_max_stories=_env_int("DIGEST_MAX_STORIES", 30),
            digest_lookback_hours=_env_int("DIGEST_LOOKBACK_HOURS", 24),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
        )

    def stage_intervals(self) -> dict[str, int]:
        """Minimum minutes between runs, keyed by orchestrated task name."""
        return {
            "fetch": self.fetch_interval_minutes,
            "extract": self.extract_interval_minutes,
            "summarize": self.summarize_interval_minutes,
            "notify": self.notify_interval_minutes,
            "digest": self.digest_interval_minutes,
        }

    def validate(self, require_api_key: bool = True) -> str | None:
        """Validate configuration for required fields and valid values.

        Args:
            require_api_key: Whether a model API key is needed (summarize/digest)

        Returns:
            Error message string if invalid, None if valid.
        """
        uses_gemini = any(m.startswith("google") for m in (self.summary_model, self.digest_model))
        if require_api_key and uses_gemini and not self.gemini_api_key:
            return "GEMINI_API_KEY environment variable is required"
        if self.telegram_bot_token and not self.telegram_chat_id:
            return "TELEGRAM_CHAT_ID is required when TELEGRAM_BOT_TOKEN is set"
        for name in (
            "max_stories_per_fetch", "fetch_concurrency",
            "content_batch_size", "content_concurrency",
            "summary_batch_size", "summary_concurrency",
            "notify_batch_size", "notify_concurrency",
            "tick_interval_seconds",
        ):
            if getattr(self, name) <= 0:
                return f"{name.upper()} must be positive"
        if self.max_retry_attempts < 0:
            return "MAX_RETRY_ATTEMPTS must be non-negative"
        if self.request_timeout_seconds <= 0:
            return "REQUEST_TIMEOUT_SECONDS must be positive"
        if self.summary_timeout_seconds <= 0:
            return "SUMMARY_TIMEOUT_SECONDS must be positive"
        for task, minutes in self.stage_intervals().items():
            if minutes < 0:
                return f"{task.upper()}_INTERVAL_MINUTES must be non-negative"
        if self.digest_min_stories > self.digest_max_stories:
            return "DIGEST_MIN_STORIES must not exceed DIGEST_MAX_STORIES"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None

    @property
    def notification_channels_configured(self) -> bool:
        """Whether at least one notification channel is configured."""
        return bool(
            (self.telegram_bot_token and self.telegram_chat_id)
            or self.discord_webhook_url
            or self.webhook_url
            or self.alerts_file
        )
