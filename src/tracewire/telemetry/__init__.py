"""Telemetry module for the tracer's own structured logging.

This module provides:
- Structured logging via structlog
- Semantic event constants
"""

from tracewire.telemetry.events import (
    ATTRIBUTE_REJECTED,
    COMPLETION_CALLBACK_FAILED,
    CONTEXT_DECODE_FAILED,
    CONTEXT_EXTRACTED,
    CONTEXT_INJECTED,
    CREATE_SPAN_SKIPPED,
    NO_UPSTREAM_CONTEXT,
    REPORTER_FAILED,
    SPAN_DROPPED_UNSAMPLED,
    SPAN_FINISHED,
    SPAN_MISUSE,
    SPAN_PAYLOAD_TRUNCATED,
    SPAN_STARTED,
    TRACE_JOINED,
    TRACE_STARTED,
    TRACER_CLOSED,
    TRACER_CREATED,
)
from tracewire.telemetry.logger import configure_logging, get_logger

__all__ = [
    # Core exports
    "get_logger",
    "configure_logging",
    # Event constants
    "SPAN_STARTED",
    "SPAN_FINISHED",
    "SPAN_MISUSE",
    "SPAN_PAYLOAD_TRUNCATED",
    "TRACER_CREATED",
    "TRACER_CLOSED",
    "TRACE_STARTED",
    "TRACE_JOINED",
    "CREATE_SPAN_SKIPPED",
    "CONTEXT_INJECTED",
    "CONTEXT_EXTRACTED",
    "CONTEXT_DECODE_FAILED",
    "NO_UPSTREAM_CONTEXT",
    "ATTRIBUTE_REJECTED",
    "REPORTER_FAILED",
    "SPAN_DROPPED_UNSAMPLED",
    "COMPLETION_CALLBACK_FAILED",
]
