"""Type definitions for the tracing core.

This module defines the core types shared by the tracer, spans and codecs:
- ContextSnapshot: immutable identifying state of a TraceContext
- LogRecord / FinishedSpan: the read-only view handed to reporters
- Format: propagation formats understood by Tracer.inject/extract
- Error classes: hierarchy of tracing errors
"""

import re
from dataclasses import dataclass
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

TagValue = Union[str, bool, int, float]

TRACE_ID_HEX_LEN = 32
SPAN_ID_HEX_LEN = 16

_HEX_RE = re.compile(r"[0-9a-f]+")


class Format(str, Enum):
    """Propagation formats."""

    BINARY = "binary"
    TEXT_MAP = "text_map"


@dataclass(frozen=True)
class ContextSnapshot:
    """Immutable identifying state carried by a TraceContext.

    Attributes:
        trace_id: 32 lowercase hex characters shared by every span of a trace.
        span_id: 16 lowercase hex characters naming the enclosing span.
        sampled: Sampling decision made when the trace was started.
    """

    trace_id: str
    span_id: str
    sampled: bool = True

    def __post_init__(self) -> None:
        _check_hex_id("trace_id", self.trace_id, TRACE_ID_HEX_LEN)
        _check_hex_id("span_id", self.span_id, SPAN_ID_HEX_LEN)


def _check_hex_id(name: str, value: str, length: int) -> None:
    if not isinstance(value, str) or len(value) != length or not _HEX_RE.fullmatch(value):
        raise ValueError(f"{name} must be {length} lowercase hex characters, got {value!r}")
    if int(value, 16) == 0:
        raise ValueError(f"{name} must not be all zeros")


class LogRecord(BaseModel):
    """A timestamped event recorded on a span."""

    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(..., description="Wall-clock time in seconds since the epoch")
    event: str = Field(..., description="Event name")
    payload: Any | None = Field(None, description="Optional opaque payload")
    truncated: bool = Field(False, description="Whether payload content was cut or dropped")


class FinishedSpan(BaseModel):
    """Read-only snapshot of a span handed to the reporter at finish time."""

    model_config = ConfigDict(frozen=True)

    operation_name: str = Field(..., description="Operation name given at creation")
    trace_id: str = Field(..., description="Trace identifier")
    span_id: str = Field(..., description="Span identifier")
    parent_span_id: str | None = Field(None, description="Parent span identifier (None for root)")
    start_time: float = Field(..., description="Start time in seconds since the epoch")
    end_time: float = Field(..., description="End time in seconds since the epoch")
    sampled: bool = Field(True, description="Sampling decision carried by the span's context")
    tags: Mapping[str, TagValue] = Field(default_factory=dict, description="Span tags (read-only)")
    logs: tuple[LogRecord, ...] = Field(default=(), description="Log events in record order")

    @field_validator("tags", mode="after")
    @classmethod
    def freeze_tags(cls, v: Mapping[str, TagValue]) -> Mapping[str, TagValue]:
        return MappingProxyType(dict(v))

    @field_serializer("tags")
    def serialize_tags(self, tags: Mapping[str, TagValue]) -> dict[str, TagValue]:
        return dict(tags)

    @property
    def duration(self) -> float:
        """Span duration in seconds."""
        return self.end_time - self.start_time

    @property
    def is_root(self) -> bool:
        """True when the span has no parent."""
        return self.parent_span_id is None


# Error hierarchy


class TracingError(Exception):
    """Base exception for all tracing errors."""

    pass


class InvalidAttributeKey(TracingError, ValueError):
    """Raised when a trace attribute key does not match the allowed pattern."""

    pass


class DecodeError(TracingError, ValueError):
    """Raised when propagated context data is malformed, truncated or foreign."""

    pass


class UnsupportedTagValueType(TracingError, TypeError):
    """Raised when a tag value is not a string, bool or number."""

    pass


class SpanMisuseError(TracingError, RuntimeError):
    """Raised on double-finish or mutation of a finished span."""

    pass
