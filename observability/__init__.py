"""Observability infrastructure: logging context and optional tracing.

setup_logging / set_run_context / set_stage_context / clear_context:
    Console and rotating file logging with run and stage context.

setup_tracing / trace_operation:
    Optional Logfire tracing with PydanticAI instrumentation.

Example:
    >>> from observability import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="hn-summarizer")
    >>> with trace_operation("stage.fetch"):
    ...     pass
"""

from observability.logging import (
    clear_context,
    set_run_context,
    set_stage_context,
    setup_logging,
)
from observability.tracing import TracingContext, setup_tracing, trace_operation

__all__ = [
    "setup_logging",
    "set_run_context",
    "set_stage_context",
    "clear_context",
    "setup_tracing",
    "trace_operation",
    "TracingContext",
]
