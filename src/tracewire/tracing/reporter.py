"""Reporter collaborator interface and basic reporters.

A reporter receives each finished span exactly once, as a frozen
FinishedSpan. Shipping spans to a backend store is left to host
applications implementing the Reporter protocol.
"""

import threading
from typing import Protocol, runtime_checkable

from tracewire.telemetry import SPAN_FINISHED, get_logger
from tracewire.tracing.types import FinishedSpan

log = get_logger(__name__)


@runtime_checkable
class Reporter(Protocol):
    """Receives finished spans."""

    def report(self, span: FinishedSpan) -> None:
        """Accept one finished span."""
        ...

    def close(self) -> None:
        """Flush and release resources."""
        ...


class NullReporter:
    """Discards every span."""

    def report(self, span: FinishedSpan) -> None:
        pass

    def close(self) -> None:
        pass


class InMemoryReporter:
    """Keeps finished spans in memory (tests and diagnostics).

    Thread-safe: spans may be reported from any thread.
    """

    def __init__(self) -> None:  # noqa: D107
        self._spans: list[FinishedSpan] = []
        self._lock = threading.Lock()
        self.closed = False

    def report(self, span: FinishedSpan) -> None:
        with self._lock:
            self._spans.append(span)

    def close(self) -> None:
        self.closed = True

    @property
    def spans(self) -> list[FinishedSpan]:
        """Copy of the reported spans in report order."""
        with self._lock:
            return list(self._spans)

    def find(self, operation_name: str) -> list[FinishedSpan]:
        """Reported spans with the given operation name."""
        return [s for s in self.spans if s.operation_name == operation_name]

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()


class LoggingReporter:
    """Emits each finished span as a structured ``span_finished`` log event.

    Args:
        service_name: Added to every event.
        include_logs: Also include the span's log records.
    """

    def __init__(self, service_name: str = "unknown-service", include_logs: bool = False) -> None:  # noqa: D107
        self.service_name = service_name
        self.include_logs = include_logs

    def report(self, span: FinishedSpan) -> None:
        fields = {
            "service_name": self.service_name,
            "operation_name": span.operation_name,
            "trace_id": span.trace_id,
            "span_id": span.span_id,
            "parent_span_id": span.parent_span_id,
            "duration_ms": round(span.duration * 1000, 3),
            "tags": dict(span.tags),
            "log_count": len(span.logs),
        }
        if self.include_logs:
            fields["logs"] = [record.model_dump() for record in span.logs]
        log.info(SPAN_FINISHED, **fields)

    def close(self) -> None:
        pass
