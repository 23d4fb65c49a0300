"""Span: a timed unit of work with tags and logs.

State machine: created -> (tags/logs)* -> finished. Finishing hands a frozen
FinishedSpan to the tracer's reporter. Double-finish and mutation after
finish raise SpanMisuseError and leave the span untouched.

Tag, log and finish calls are serialized by a per-span lock, so a span may be
finished from a completion callback running on another thread.
"""

import copy
import threading
import time
from collections.abc import Mapping
from types import TracebackType
from typing import TYPE_CHECKING, Any

from tracewire.telemetry import SPAN_MISUSE, SPAN_PAYLOAD_TRUNCATED, get_logger
from tracewire.tracing.types import (
    FinishedSpan,
    LogRecord,
    SpanMisuseError,
    TagValue,
    UnsupportedTagValueType,
)

if TYPE_CHECKING:
    from tracewire.tracing.context import TraceContext
    from tracewire.tracing.tracer import Tracer

log = get_logger(__name__)

DEFAULT_MAX_LOG_EVENTS = 1000
DEFAULT_MAX_PAYLOAD_CHARS = 4096


class Span:
    """A timed unit of work bound to one TraceContext.

    Spans are created by a Tracer; do not instantiate directly.

    Args:
        tracer: Tracer that receives the span at finish time.
        operation_name: Name of the operation (immutable).
        context: Context derived for this span's children.
        parent_span_id: Id of the enclosing span, None for a root span.
        start_time: Start time in seconds since the epoch (default: now).
        max_log_events: Events kept with payload before payloads are dropped.
        max_payload_chars: Truncation length for str/bytes payloads.
    """

    def __init__(
        self,
        tracer: "Tracer",
        operation_name: str,
        context: "TraceContext",
        parent_span_id: str | None = None,
        start_time: float | None = None,
        max_log_events: int = DEFAULT_MAX_LOG_EVENTS,
        max_payload_chars: int = DEFAULT_MAX_PAYLOAD_CHARS,
    ) -> None:  # noqa: D107
        self._tracer = tracer
        self._operation_name = operation_name
        self._context = context
        self._parent_span_id = parent_span_id
        self._start_time = time.time() if start_time is None else float(start_time)
        self._end_time: float | None = None
        self._tags: dict[str, TagValue] = {}
        self._logs: list[LogRecord] = []
        self._max_log_events = max_log_events
        self._max_payload_chars = max_payload_chars
        self._lock = threading.Lock()
        context._bind_span(self)

    # Identity

    @property
    def operation_name(self) -> str:
        return self._operation_name

    @property
    def context(self) -> "TraceContext":
        """Context to derive child spans from and to encode for outbound calls."""
        return self._context

    @property
    def trace_id(self) -> str:
        return self._context.trace_id

    @property
    def span_id(self) -> str:
        return self._context.span_id

    @property
    def parent_span_id(self) -> str | None:
        return self._parent_span_id

    @property
    def start_time(self) -> float:
        return self._start_time

    @property
    def end_time(self) -> float | None:
        return self._end_time

    @property
    def finished(self) -> bool:
        return self._end_time is not None

    @property
    def duration(self) -> float | None:
        """Seconds between start and finish, or None while the span is open."""
        if self._end_time is None:
            return None
        return self._end_time - self._start_time

    @property
    def tags(self) -> dict[str, TagValue]:
        """Copy of the current tags."""
        with self._lock:
            return dict(self._tags)

    @property
    def logs(self) -> tuple[LogRecord, ...]:
        """Copy of the log records in record order."""
        with self._lock:
            return tuple(self._logs)

    # Mutation

    def set_tag(self, key: str, value: TagValue) -> None:
        """Set a tag. Setting an existing key replaces its value (last write wins).

        Args:
            key: Tag name.
            value: str, bool, int or float.

        Raises:
            ValueError: If key is not a non-empty string. No tag is set.
            UnsupportedTagValueType: If value has another type. No tag is set.
            SpanMisuseError: If the span is already finished.
        """
        _check_tag(key, value)
        with self._lock:
            self._ensure_open("set_tag")
            self._tags[key] = value

    def set_tags(self, tags: Mapping[str, TagValue]) -> None:
        """Set several tags; all keys and values are checked before any is applied."""
        for key, value in tags.items():
            _check_tag(key, value)
        for key, value in tags.items():
            self.set_tag(key, value)

    def log_event(self, name: str, payload: Any = None, timestamp: float | None = None) -> None:
        """Record a timestamped event.

        Payloads are kept best-effort: long str/bytes payloads are truncated,
        and past ``max_log_events`` records payloads are dropped. Other
        payloads are deep-copied, so mutating them afterwards does not change
        the record. The event name and timestamp are always kept.

        Args:
            name: Event name.
            payload: Optional opaque payload.
            timestamp: Explicit time in seconds since the epoch (default: now).

        Raises:
            SpanMisuseError: If the span is already finished.
        """
        ts = time.time() if timestamp is None else float(timestamp)
        with self._lock:
            self._ensure_open("log_event")
            truncated = False
            if payload is not None:
                if len(self._logs) >= self._max_log_events:
                    payload = None
                    truncated = True
                elif (
                    isinstance(payload, (str, bytes))
                    and len(payload) > self._max_payload_chars
                ):
                    payload = payload[: self._max_payload_chars]
                    truncated = True
                elif not isinstance(payload, (str, bytes)):
                    payload, truncated = _copy_payload(payload)
            self._logs.append(
                LogRecord(timestamp=ts, event=name, payload=payload, truncated=truncated)
            )

        if truncated:
            log.debug(
                SPAN_PAYLOAD_TRUNCATED,
                trace_id=self.trace_id,
                span_id=self.span_id,
                event_name=name,
            )

    def log_event_with_payload(
        self, name: str, payload: Any, timestamp: float | None = None
    ) -> None:
        """Record a timestamped event carrying ``payload``."""
        self.log_event(name, payload=payload, timestamp=timestamp)

    def finish(self, end_time: float | None = None) -> None:
        """Finish the span and hand it to the reporter.

        Args:
            end_time: Explicit end time in seconds since the epoch (default: now).

        Raises:
            SpanMisuseError: If the span was already finished.
            ValueError: If an explicit end_time precedes the start time.
        """
        if end_time is not None and end_time < self._start_time:
            raise ValueError(
                f"end_time {end_time} precedes start_time {self._start_time} "
                f"for span {self.span_id}"
            )
        with self._lock:
            self._ensure_open("finish")
            # Clock steps backwards must not produce a negative duration.
            end = max(time.time(), self._start_time) if end_time is None else float(end_time)
            self._end_time = end
            record = self._build_record()

        self._tracer._report(self, record)

    def to_record(self) -> FinishedSpan:
        """Return the frozen reporter view of a finished span.

        Raises:
            SpanMisuseError: If the span is still open.
        """
        with self._lock:
            if self._end_time is None:
                raise SpanMisuseError(f"Span {self.span_id} is not finished")
            return self._build_record()

    def _build_record(self) -> FinishedSpan:
        return FinishedSpan(
            operation_name=self._operation_name,
            trace_id=self.trace_id,
            span_id=self.span_id,
            parent_span_id=self._parent_span_id,
            start_time=self._start_time,
            end_time=self._end_time,
            sampled=self._context.sampled,
            tags=dict(self._tags),
            logs=tuple(self._logs),
        )

    def _ensure_open(self, operation: str) -> None:
        if self._end_time is not None:
            log.warning(
                SPAN_MISUSE,
                operation=operation,
                operation_name=self._operation_name,
                trace_id=self.trace_id,
                span_id=self.span_id,
            )
            raise SpanMisuseError(
                f"{operation} called on finished span {self.span_id} ({self._operation_name})"
            )

    # Context manager

    def __enter__(self) -> "Span":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.finished:
            return
        if exc is not None:
            self.set_tag("error", True)
            self.log_event("error", payload=f"{type(exc).__name__}: {exc}")
        self.finish()

    def __repr__(self) -> str:
        state = "finished" if self.finished else "open"
        return (
            f"Span(operation_name={self._operation_name!r}, trace_id={self.trace_id!r}, "
            f"span_id={self.span_id!r}, parent_span_id={self._parent_span_id!r}, {state})"
        )


def _check_tag(key: str, value: TagValue) -> None:
    if not isinstance(key, str) or not key:
        raise ValueError(f"Tag keys must be non-empty strings, got {key!r}")
    if not isinstance(value, (str, bool, int, float)):
        raise UnsupportedTagValueType(
            f"Tag {key!r} has unsupported value type {type(value).__name__}"
        )


def _copy_payload(payload: Any) -> tuple[Any, bool]:
    """Deep-copy a payload so later caller mutations do not reach the record.

    Payloads that cannot be copied are kept as their repr and marked truncated.
    """
    try:
        return copy.deepcopy(payload), False
    except (TypeError, copy.Error):
        return repr(payload), True
