"""Tracer: allocates identifiers, links spans and hands finished spans off.

The three entry points differ only in how they treat a missing context:

- ``start_trace`` continues the given context, or starts a fresh root span.
- ``create_span`` returns None for a missing context, allocating nothing.
- ``join_trace`` is ``create_span`` for contexts decoded from the wire,
  returning just the span; None tells the caller to fall back to start_trace.

Usage:
    tracer = Tracer(reporter=InMemoryReporter())

    ctx, span = tracer.start_trace("handle_request", tracer.extract(Format.TEXT_MAP, headers))
    ctx.set_attribute("tenant", "acme")
    outbound_headers = tracer.inject(ctx, Format.TEXT_MAP)
    span.finish()
"""

import secrets
import threading
import weakref
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager

from tracewire.config import TracerSettings, get_settings
from tracewire.telemetry import (
    CONTEXT_DECODE_FAILED,
    CONTEXT_EXTRACTED,
    CONTEXT_INJECTED,
    CREATE_SPAN_SKIPPED,
    NO_UPSTREAM_CONTEXT,
    REPORTER_FAILED,
    SPAN_DROPPED_UNSAMPLED,
    SPAN_STARTED,
    TRACE_JOINED,
    TRACE_STARTED,
    TRACER_CLOSED,
    TRACER_CREATED,
    get_logger,
)
from tracewire.tracing.context import TraceContext
from tracewire.tracing.reporter import InMemoryReporter, LoggingReporter, NullReporter, Reporter
from tracewire.tracing.sampler import ConstSampler, Sampler
from tracewire.tracing.scope import ScopeManager, scope_manager_for
from tracewire.tracing.span import Span
from tracewire.tracing.types import ContextSnapshot, DecodeError, FinishedSpan, Format, TagValue

log = get_logger(__name__)


def new_trace_id() -> str:
    """Generate a random, non-zero 128-bit trace id as 32 hex characters."""
    while True:
        value = secrets.randbits(128)
        if value:
            return f"{value:032x}"


def new_span_id() -> str:
    """Generate a random, non-zero 64-bit span id as 16 hex characters."""
    while True:
        value = secrets.randbits(64)
        if value:
            return f"{value:016x}"


def reporter_for(kind: str, service_name: str) -> Reporter:
    """Build the reporter named by a settings value.

    Raises:
        ValueError: If kind is unknown.
    """
    if kind == "logging":
        return LoggingReporter(service_name=service_name)
    if kind == "memory":
        return InMemoryReporter()
    if kind == "null":
        return NullReporter()
    raise ValueError(f"Unknown reporter kind: {kind!r}")


class Tracer:
    """Factory for spans and trace contexts.

    Collaborators left as None are built from settings.

    Args:
        reporter: Receives finished, sampled spans.
        sampler: Decides whether new traces are recorded.
        scope_manager: Ambient storage for the active context.
        settings: Configuration (default: the settings singleton).
    """

    def __init__(
        self,
        reporter: Reporter | None = None,
        sampler: Sampler | None = None,
        scope_manager: ScopeManager | None = None,
        settings: TracerSettings | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.reporter: Reporter = (
            reporter
            if reporter is not None
            else reporter_for(self.settings.reporter, self.settings.service_name)
        )
        self.sampler: Sampler = (
            sampler if sampler is not None else ConstSampler(self.settings.sample_by_default)
        )
        self.scope_manager: ScopeManager = (
            scope_manager if scope_manager is not None else scope_manager_for(self.settings.scope)
        )
        self._open: weakref.WeakValueDictionary[str, Span] = weakref.WeakValueDictionary()
        self._open_lock = threading.Lock()
        log.debug(
            TRACER_CREATED,
            service_name=self.settings.service_name,
            reporter=type(self.reporter).__name__,
            sampler=type(self.sampler).__name__,
            scope_manager=type(self.scope_manager).__name__,
        )

    @classmethod
    def from_settings(cls, settings: TracerSettings | None = None) -> "Tracer":
        """Build a tracer whose collaborators all come from settings."""
        return cls(settings=settings)

    # Span creation

    def start_trace(
        self,
        operation_name: str,
        context: TraceContext | None = None,
        *,
        tags: Mapping[str, TagValue] | None = None,
        start_time: float | None = None,
    ) -> tuple[TraceContext, Span]:
        """Continue ``context`` if present, else start a new trace.

        Args:
            operation_name: Name of the operation.
            context: Enclosing context, or None for a new root span.
            tags: Initial tags.
            start_time: Explicit start time in seconds since the epoch.

        Returns:
            (context derived for the new span, new span).
        """
        if context is not None:
            return self._start_child(operation_name, context, tags, start_time)

        trace_id = new_trace_id()
        span_id = new_span_id()
        sampled = bool(self.sampler.is_sampled(trace_id, operation_name))
        root_context = TraceContext(
            ContextSnapshot(trace_id=trace_id, span_id=span_id, sampled=sampled)
        )
        span = self._new_span(operation_name, root_context, None, tags, start_time)
        log.debug(
            TRACE_STARTED,
            operation_name=operation_name,
            trace_id=trace_id,
            span_id=span_id,
            sampled=sampled,
        )
        return root_context, span

    def create_span(
        self,
        operation_name: str,
        context: TraceContext | None,
        *,
        tags: Mapping[str, TagValue] | None = None,
        start_time: float | None = None,
    ) -> tuple[TraceContext, Span] | None:
        """Create a child span of ``context``.

        Args:
            operation_name: Name of the operation.
            context: Enclosing context. None means tracing is inactive.
            tags: Initial tags.
            start_time: Explicit start time in seconds since the epoch.

        Returns:
            (context derived for the new span, new span), or None when
            ``context`` is None. Nothing is allocated in that case.
        """
        if context is None:
            log.debug(CREATE_SPAN_SKIPPED, operation_name=operation_name)
            return None
        return self._start_child(operation_name, context, tags, start_time)

    def join_trace(
        self,
        operation_name: str,
        context: TraceContext | None,
        *,
        tags: Mapping[str, TagValue] | None = None,
        start_time: float | None = None,
    ) -> Span | None:
        """Join a trace whose context was decoded from an inbound request.

        Returns:
            The new span (its ``context`` is the one to propagate), or None
            when no upstream context was found; callers then use start_trace.
        """
        created = self.create_span(operation_name, context, tags=tags, start_time=start_time)
        if created is None:
            return None
        _, span = created
        log.debug(
            TRACE_JOINED,
            operation_name=operation_name,
            trace_id=span.trace_id,
            parent_span_id=span.parent_span_id,
        )
        return span

    def _start_child(
        self,
        operation_name: str,
        context: TraceContext,
        tags: Mapping[str, TagValue] | None,
        start_time: float | None,
    ) -> tuple[TraceContext, Span]:
        span_id = new_span_id()
        child_context = context.derive(span_id)
        span = self._new_span(operation_name, child_context, context.span_id, tags, start_time)
        return child_context, span

    def _new_span(
        self,
        operation_name: str,
        context: TraceContext,
        parent_span_id: str | None,
        tags: Mapping[str, TagValue] | None,
        start_time: float | None,
    ) -> Span:
        span = Span(
            self,
            operation_name,
            context,
            parent_span_id=parent_span_id,
            start_time=start_time,
            max_log_events=self.settings.max_log_events,
            max_payload_chars=self.settings.max_payload_chars,
        )
        if tags:
            span.set_tags(tags)
        with self._open_lock:
            self._open[span.span_id] = span
        log.debug(
            SPAN_STARTED,
            operation_name=operation_name,
            trace_id=span.trace_id,
            span_id=span.span_id,
            parent_span_id=parent_span_id,
        )
        return span

    # Propagation

    def inject(
        self, context: TraceContext, fmt: Format = Format.TEXT_MAP
    ) -> bytes | dict[str, str]:
        """Encode ``context`` for an outbound call.

        Returns:
            bytes for Format.BINARY, a header dict for Format.TEXT_MAP.
        """
        fmt = Format(fmt)
        encoded: bytes | dict[str, str]
        if fmt is Format.BINARY:
            encoded = context.to_binary()
        else:
            encoded = context.to_text_map()
        log.debug(CONTEXT_INJECTED, format=fmt.value, trace_id=context.trace_id)
        return encoded

    def extract(
        self, fmt: Format, carrier: bytes | Mapping[str, str] | None
    ) -> TraceContext | None:
        """Decode an inbound context without ever raising on bad input.

        Malformed data is logged and treated like a missing context, so the
        caller simply starts a new trace.

        Returns:
            The decoded context, or None.
        """
        fmt = Format(fmt)
        try:
            if fmt is Format.BINARY:
                context = TraceContext.from_binary(carrier)  # type: ignore[arg-type]
            else:
                context = TraceContext.from_text_map(carrier)  # type: ignore[arg-type]
        except DecodeError as e:
            log.warning(CONTEXT_DECODE_FAILED, format=fmt.value, error=str(e))
            return None

        if context is None:
            log.debug(NO_UPSTREAM_CONTEXT, format=fmt.value)
        else:
            log.debug(CONTEXT_EXTRACTED, format=fmt.value, trace_id=context.trace_id)
        return context

    # Implicit propagation

    def active_context(self) -> TraceContext | None:
        """Context made active through the scope manager, if any."""
        return self.scope_manager.active()

    def active_span(self) -> Span | None:
        """Span of the active context, if any."""
        context = self.active_context()
        return context.get_current_span() if context is not None else None

    def activate(
        self, context: TraceContext | None
    ) -> AbstractContextManager[TraceContext | None]:
        """Make ``context`` active for a ``with`` block."""
        return self.scope_manager.activate(context)

    @contextmanager
    def start_active_span(
        self,
        operation_name: str,
        context: TraceContext | None = None,
        *,
        tags: Mapping[str, TagValue] | None = None,
    ) -> Iterator[Span]:
        """Start a span under ``context`` (or the active context), activate it
        and finish it when the block exits.

        An exception leaving the block tags the span ``error=True`` and is re-raised.
        """
        parent = context if context is not None else self.active_context()
        span_context, span = self.start_trace(operation_name, parent, tags=tags)
        with self.activate(span_context):
            with span:
                yield span

    # Reporting

    def _report(self, span: Span, record: FinishedSpan) -> None:
        with self._open_lock:
            self._open.pop(span.span_id, None)

        if not (record.sampled or span.context.is_debug()):
            log.debug(SPAN_DROPPED_UNSAMPLED, trace_id=record.trace_id, span_id=record.span_id)
            return

        try:
            self.reporter.report(record)
        except Exception as e:
            log.error(
                REPORTER_FAILED,
                reporter=type(self.reporter).__name__,
                trace_id=record.trace_id,
                span_id=record.span_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    def open_spans(self) -> list[Span]:
        """Spans started but not finished yet (garbage-collected spans drop out)."""
        with self._open_lock:
            return list(self._open.values())

    def close(self) -> None:
        """Close the reporter."""
        self.reporter.close()
        log.debug(TRACER_CLOSED, open_spans=len(self.open_spans()))
