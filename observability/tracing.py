"""Tracing and observability using Logfire/OpenTelemetry.

This module provides optional distributed tracing for the pipeline.
It integrates with Logfire (Pydantic's observability platform) and
automatically instruments PydanticAI agent calls.

Requirements:
    pip install logfire

Enable via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional for cloud dashboard

Usage:
    >>> from observability.tracing import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="hn-summarizer")
    >>> with trace_operation("stage.extract", {"run_id": "abc123"}) as attrs:
    ...     attrs["processed"] = 4
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Process-wide tracing state."""
    enabled: bool = False
    service_name: str = "hn-summarizer"
    token: str = ""
    _logfire_configured: bool = field(default=False, init=False)


_context = TracingContext()


def setup_tracing(
    enabled: bool = False,
    service_name: str = "hn-summarizer",
    token: str = "",
) -> TracingContext:
    """Set up tracing with Logfire.

    Args:
        enabled: Whether to enable tracing
        service_name: Name of the service for tracing
        token: Logfire authentication token

    Returns:
        TracingContext for the session
    """
    _context.enabled = enabled
    _context.service_name = service_name
    _context.token = token

    if not enabled:
        logger.debug("Tracing disabled")
        return _context

    try:
        import logfire

        logfire.configure(
            service_name=service_name,
            token=token or None,
            send_to_logfire="if-token-present",
        )
        logfire.instrument_pydantic_ai()

        _context._logfire_configured = True
        logger.info("Logfire tracing enabled | service=%s", service_name)

    except ImportError:
        logger.warning("Logfire not installed. Tracing disabled.")
        _context.enabled = False
    except Exception as e:
        logger.error("Failed to configure Logfire: %s", e)
        _context.enabled = False

    return _context


def tracing_enabled() -> bool:
    return _context.enabled and _context._logfire_configured


@contextmanager
def trace_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[dict[str, Any], None, None]:
    """Context manager for tracing an operation.

    Yields a dict; keys added to it during the operation are attached to
    the span as attributes on exit. Without Logfire this is a no-op apart
    from a debug timing log.

    Args:
        name: Name of the operation
        attributes: Optional attributes to attach to the span
    """
    span_attrs = attributes or {}
    result_attrs: dict[str, Any] = {}
    start = time.monotonic()

    try:
        if tracing_enabled():
            import logfire

            with logfire.span(name, **span_attrs) as span:
                try:
                    yield result_attrs
                finally:
                    for key, value in result_attrs.items():
                        span.set_attribute(key, value)
        else:
            yield result_attrs
    finally:
        logger.debug("Operation '%s' completed in %.2fs", name, time.monotonic() - start)
