"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings to ensure
consistency and enable reliable querying and analysis.
"""

# Span lifecycle events
SPAN_STARTED = "span_started"
SPAN_FINISHED = "span_finished"
SPAN_MISUSE = "span_misuse"
SPAN_PAYLOAD_TRUNCATED = "span_payload_truncated"

# Tracer events
TRACER_CREATED = "tracer_created"
TRACER_CLOSED = "tracer_closed"
TRACE_STARTED = "trace_started"
TRACE_JOINED = "trace_joined"
CREATE_SPAN_SKIPPED = "create_span_skipped"

# Propagation events
CONTEXT_INJECTED = "context_injected"
CONTEXT_EXTRACTED = "context_extracted"
CONTEXT_DECODE_FAILED = "context_decode_failed"
NO_UPSTREAM_CONTEXT = "no_upstream_context"
ATTRIBUTE_REJECTED = "attribute_rejected"

# Collaborator events
REPORTER_FAILED = "reporter_failed"
SPAN_DROPPED_UNSAMPLED = "span_dropped_unsampled"
COMPLETION_CALLBACK_FAILED = "completion_callback_failed"
