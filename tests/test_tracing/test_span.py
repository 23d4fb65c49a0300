"""Tests for Span tags, logs and finish semantics."""

import threading
import time
from decimal import Decimal

import pytest

from tracewire.config import TracerSettings
from tracewire.tracing import InMemoryReporter, SpanMisuseError, Tracer, UnsupportedTagValueType


class TestTags:
    """Test set_tag and set_tags."""

    @pytest.mark.parametrize("value", ["text", True, False, 0, 42, 3.5])
    def test_supported_values(self, tracer: Tracer, value: object) -> None:
        """str, bool, int and float values are kept as given."""
        _, span = tracer.start_trace("op")
        span.set_tag("k", value)  # type: ignore[arg-type]
        assert span.tags["k"] == value
        assert type(span.tags["k"]) is type(value)

    @pytest.mark.parametrize("value", [None, b"bytes", [1], {"a": 1}, Decimal("1.5"), object()])
    def test_unsupported_values_rejected(self, tracer: Tracer, value: object) -> None:
        """Other types raise UnsupportedTagValueType and set nothing."""
        _, span = tracer.start_trace("op")
        with pytest.raises(UnsupportedTagValueType):
            span.set_tag("k", value)  # type: ignore[arg-type]
        assert "k" not in span.tags

    def test_unsupported_value_is_type_error(self, tracer: Tracer) -> None:
        """UnsupportedTagValueType can be caught as TypeError."""
        _, span = tracer.start_trace("op")
        with pytest.raises(TypeError):
            span.set_tag("k", None)  # type: ignore[arg-type]

    def test_last_write_wins(self, tracer: Tracer) -> None:
        """Setting the same key twice keeps the second value."""
        _, span = tracer.start_trace("op")
        span.set_tag("k", "first")
        span.set_tag("k", "second")
        assert span.tags == {"k": "second"}

    def test_set_tags_is_all_or_nothing(self, tracer: Tracer) -> None:
        """A bad value in set_tags prevents every tag from being applied."""
        _, span = tracer.start_trace("op")
        with pytest.raises(UnsupportedTagValueType):
            span.set_tags({"good": 1, "bad": None})  # type: ignore[dict-item]
        assert span.tags == {}

    def test_set_tags_checks_keys_first(self, tracer: Tracer) -> None:
        """An empty key in set_tags prevents every tag from being applied."""
        _, span = tracer.start_trace("op")
        with pytest.raises(ValueError):
            span.set_tags({"good": 1, "": 2})
        assert span.tags == {}

    def test_error_does_not_abort_span(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """A rejected tag leaves the span usable."""
        _, span = tracer.start_trace("op")
        with pytest.raises(UnsupportedTagValueType):
            span.set_tag("bad", None)  # type: ignore[arg-type]
        span.set_tag("good", 1)
        span.finish()
        assert reporter.spans[0].tags == {"good": 1}


class TestLogs:
    """Test log_event and payload retention."""

    def test_log_event_records_time(self, tracer: Tracer) -> None:
        """Events get the current time when none is given."""
        _, span = tracer.start_trace("op")
        before = time.time()
        span.log_event("cache_miss")
        after = time.time()

        (record,) = span.logs
        assert record.event == "cache_miss"
        assert record.payload is None
        assert before <= record.timestamp <= after

    def test_explicit_timestamp(self, tracer: Tracer) -> None:
        """Callers may supply the timestamp."""
        _, span = tracer.start_trace("op")
        span.log_event("replayed", timestamp=1234.5)
        assert span.logs[0].timestamp == 1234.5

    def test_log_with_payload(self, tracer: Tracer) -> None:
        """Payloads are kept as opaque values."""
        _, span = tracer.start_trace("op")
        payload = {"rows": 3}
        span.log_event_with_payload("query", payload)
        assert span.logs[0].payload == payload

    def test_logs_keep_order(self, tracer: Tracer) -> None:
        """Events are kept in record order."""
        _, span = tracer.start_trace("op")
        for name in ("a", "b", "c"):
            span.log_event(name)
        assert [r.event for r in span.logs] == ["a", "b", "c"]

    def test_long_payload_truncated(self, reporter: InMemoryReporter) -> None:
        """str/bytes payloads over max_payload_chars are cut and flagged."""
        settings = TracerSettings(max_payload_chars=5)
        tracer = Tracer(reporter=reporter, settings=settings)
        _, span = tracer.start_trace("op")
        span.log_event("big", payload="abcdefghij")
        span.log_event("small", payload=b"abc")

        big, small = span.logs
        assert big.payload == "abcde" and big.truncated
        assert small.payload == b"abc" and not small.truncated

    def test_payload_dropped_past_event_limit(self, reporter: InMemoryReporter) -> None:
        """Past max_log_events payloads are dropped; names and times are kept."""
        tracer = Tracer(reporter=reporter, settings=TracerSettings(max_log_events=2))
        _, span = tracer.start_trace("op")
        for i in range(4):
            span.log_event(f"e{i}", payload=i)

        logs = span.logs
        assert [r.event for r in logs] == ["e0", "e1", "e2", "e3"]
        assert [r.payload for r in logs] == [0, 1, None, None]
        assert [r.truncated for r in logs] == [False, False, True, True]


class TestFinish:
    """Test finish terminality."""

    def test_finish_reports_once(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """Finished span reaches the reporter exactly once with end >= start."""
        _, span = tracer.start_trace("op")
        span.set_tag("k", "v")
        span.log_event("e")
        span.finish()

        (record,) = reporter.spans
        assert record.operation_name == "op"
        assert record.end_time >= record.start_time
        assert record.tags == {"k": "v"}
        assert [r.event for r in record.logs] == ["e"]
        assert span.finished
        assert span.duration is not None and span.duration >= 0

    def test_double_finish_raises(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """A second finish is a misuse and reports nothing more."""
        _, span = tracer.start_trace("op")
        span.finish()
        with pytest.raises(SpanMisuseError):
            span.finish()
        assert len(reporter.spans) == 1

    def test_mutation_after_finish_raises(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """Tags and logs after finish are rejected; the record stays frozen."""
        _, span = tracer.start_trace("op")
        span.finish()

        with pytest.raises(SpanMisuseError):
            span.set_tag("late", 1)
        with pytest.raises(SpanMisuseError):
            span.log_event("late")

        record = reporter.spans[0]
        assert record.tags == {}
        assert record.logs == ()

    def test_record_is_frozen(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """The reported view cannot be reassigned."""
        _, span = tracer.start_trace("op")
        span.finish()
        record = reporter.spans[0]
        with pytest.raises(Exception):
            record.operation_name = "changed"  # type: ignore[misc]

    def test_record_tags_are_read_only(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """Reporters cannot rewrite the tags of a finished span."""
        _, span = tracer.start_trace("op", tags={"k": "v"})
        span.finish()
        record = reporter.spans[0]

        with pytest.raises(TypeError):
            record.tags["k"] = "changed"  # type: ignore[index]

        assert record.tags == {"k": "v"}
        assert span.to_record().tags == {"k": "v"}
        assert record.model_dump()["tags"] == {"k": "v"}

    def test_payload_mutation_after_logging_is_not_recorded(
        self, tracer: Tracer, reporter: InMemoryReporter
    ) -> None:
        """Container payloads are copied when logged."""
        payload = {"a": 1, "rows": [1, 2]}
        _, span = tracer.start_trace("op")
        span.log_event_with_payload("query", payload)
        span.finish()

        payload["a"] = 2
        payload["rows"].append(3)  # type: ignore[attr-defined]

        logged = reporter.spans[0].logs[0]
        assert logged.payload == {"a": 1, "rows": [1, 2]}
        assert not logged.truncated

    def test_uncopyable_payload_kept_as_repr(self, tracer: Tracer) -> None:
        """Payloads that cannot be copied are kept as their repr and flagged."""
        lock = threading.Lock()
        _, span = tracer.start_trace("op")
        span.log_event_with_payload("held", lock)

        (logged,) = span.logs
        assert logged.payload == repr(lock)
        assert logged.truncated

    def test_explicit_end_time(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """An explicit end time is recorded as given."""
        _, span = tracer.start_trace("op", start_time=100.0)
        span.finish(end_time=101.5)
        assert reporter.spans[0].duration == pytest.approx(1.5)

    def test_end_before_start_rejected(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """An end time earlier than the start leaves the span open."""
        _, span = tracer.start_trace("op", start_time=100.0)
        with pytest.raises(ValueError):
            span.finish(end_time=99.0)
        assert not span.finished
        assert reporter.spans == []

    def test_to_record_requires_finish(self, tracer: Tracer) -> None:
        """to_record on an open span is a misuse."""
        _, span = tracer.start_trace("op")
        with pytest.raises(SpanMisuseError):
            span.to_record()
        span.finish()
        assert span.to_record().span_id == span.span_id

    def test_finish_from_other_thread(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """A span may be finished on a different thread than it was created on."""
        _, span = tracer.start_trace("op")
        worker = threading.Thread(target=span.finish)
        worker.start()
        worker.join()
        assert [s.span_id for s in reporter.spans] == [span.span_id]

    def test_racing_finishers_report_once(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """Concurrent finish calls report the span once; the rest are misuses."""
        _, span = tracer.start_trace("op")
        errors: list[Exception] = []

        def _finish() -> None:
            try:
                span.finish()
            except SpanMisuseError as e:
                errors.append(e)

        threads = [threading.Thread(target=_finish) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(reporter.spans) == 1
        assert len(errors) == 7


class TestContextManager:
    """Test using a span as a context manager."""

    def test_with_block_finishes(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """Leaving the block finishes the span."""
        _, span = tracer.start_trace("op")
        with span:
            pass
        assert span.finished
        assert "error" not in reporter.spans[0].tags

    def test_exception_tags_error(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """An exception is tagged, logged and re-raised."""
        _, span = tracer.start_trace("op")
        with pytest.raises(KeyError):
            with span:
                raise KeyError("missing")

        record = reporter.spans[0]
        assert record.tags["error"] is True
        assert record.logs[-1].event == "error"
        assert "KeyError" in record.logs[-1].payload

    def test_finished_inside_block(self, tracer: Tracer, reporter: InMemoryReporter) -> None:
        """Finishing inside the block does not double-finish on exit."""
        _, span = tracer.start_trace("op")
        with span:
            span.finish()
        assert len(reporter.spans) == 1
