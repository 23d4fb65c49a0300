"""Tracing core: spans, trace contexts, propagation and collaborators."""

from tracewire.tracing.attributes import AttributeMap, is_valid_key, normalize_key
from tracewire.tracing.codec import (
    ATTRIBUTE_PREFIX,
    SAMPLED_KEY,
    SPAN_ID_KEY,
    TEXT_MAP_PREFIX,
    TRACE_ID_KEY,
)
from tracewire.tracing.completion import finish_on_completion, traced_call
from tracewire.tracing.context import DEBUG_ATTRIBUTE, TraceContext
from tracewire.tracing.reporter import InMemoryReporter, LoggingReporter, NullReporter, Reporter
from tracewire.tracing.sampler import ConstSampler, Sampler
from tracewire.tracing.scope import (
    ContextVarScopeManager,
    ExplicitScopeManager,
    ScopeManager,
    ThreadLocalScopeManager,
)
from tracewire.tracing.span import Span
from tracewire.tracing.tracer import Tracer, new_span_id, new_trace_id
from tracewire.tracing.types import (
    ContextSnapshot,
    DecodeError,
    FinishedSpan,
    Format,
    InvalidAttributeKey,
    LogRecord,
    SpanMisuseError,
    TracingError,
    UnsupportedTagValueType,
)

__all__ = [
    # Core
    "Tracer",
    "Span",
    "TraceContext",
    "ContextSnapshot",
    "AttributeMap",
    "FinishedSpan",
    "LogRecord",
    "Format",
    "new_trace_id",
    "new_span_id",
    "normalize_key",
    "is_valid_key",
    "DEBUG_ATTRIBUTE",
    # Wire keys
    "TEXT_MAP_PREFIX",
    "TRACE_ID_KEY",
    "SPAN_ID_KEY",
    "SAMPLED_KEY",
    "ATTRIBUTE_PREFIX",
    # Collaborators
    "Reporter",
    "InMemoryReporter",
    "LoggingReporter",
    "NullReporter",
    "Sampler",
    "ConstSampler",
    "ScopeManager",
    "ExplicitScopeManager",
    "ContextVarScopeManager",
    "ThreadLocalScopeManager",
    # Async completion
    "finish_on_completion",
    "traced_call",
    # Errors
    "TracingError",
    "InvalidAttributeKey",
    "DecodeError",
    "UnsupportedTagValueType",
    "SpanMisuseError",
]
