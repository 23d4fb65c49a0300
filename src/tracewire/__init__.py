"""tracewire - distributed tracing core with in-band context propagation.

This package provides:
- Tracer / Span / TraceContext for modelling causally related work
- Binary and text-map propagation codecs
- Pluggable sampler, reporter and ambient-storage collaborators
"""

from tracewire.tracing import (
    ContextSnapshot,
    DecodeError,
    FinishedSpan,
    Format,
    InvalidAttributeKey,
    Span,
    SpanMisuseError,
    TraceContext,
    Tracer,
    TracingError,
    UnsupportedTagValueType,
)

__version__ = "0.1.0"

__all__ = [
    "Tracer",
    "Span",
    "TraceContext",
    "ContextSnapshot",
    "FinishedSpan",
    "Format",
    # Errors
    "TracingError",
    "InvalidAttributeKey",
    "DecodeError",
    "UnsupportedTagValueType",
    "SpanMisuseError",
]
