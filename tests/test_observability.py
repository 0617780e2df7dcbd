import json
import logging

import pytest

from observability.logging import (
    LOG_FILE_NAME,
    ContextFilter,
    JsonFormatter,
    clear_context,
    set_run_context,
    set_stage_context,
    setup_logging,
)
from observability.tracing import trace_operation, tracing_enabled


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    clear_context()


def _record(message="Story sent | id=%d", args=(1,)):
    return logging.LogRecord("workers.notify", logging.INFO, __file__, 10, message, args, None)


def test_context_filter_injects_run_and_stage():
    set_run_context("abc12345")
    set_stage_context("notify")
    record = _record()

    try:
        assert ContextFilter().filter(record)
    finally:
        clear_context()

    assert record.run_id == "abc12345"
    assert record.stage == "notify"


def test_json_formatter_emits_one_object_per_record():
    record = _record()
    ContextFilter().filter(record)
    record.story_id = 1

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Story sent | id=1"
    assert data["logger"] == "workers.notify"
    assert data["run_id"] == "-"
    assert data["story_id"] == 1


def test_setup_logging_writes_log_file(config, restore_root_logger):
    config.log_format = "json"

    assert setup_logging(config)
    set_run_context("tick0001")
    logging.getLogger("pipeline").info("Tick started | stages=fetch")
    for handler in restore_root_logger.handlers:
        handler.flush()

    lines = (config.log_dir / LOG_FILE_NAME).read_text().splitlines()
    entry = json.loads(lines[-1])
    assert entry["message"] == "Tick started | stages=fetch"
    assert entry["run_id"] == "tick0001"


def test_trace_operation_is_noop_without_logfire():
    assert not tracing_enabled()

    with trace_operation("stage.fetch", {"stage": "fetch"}) as attrs:
        attrs["processed"] = 3

    assert attrs == {"processed": 3}
