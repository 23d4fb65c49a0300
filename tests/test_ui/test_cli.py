"""Tests for the tracewire CLI."""

import base64
import json

from typer.testing import CliRunner

from tracewire.tracing.context import TraceContext
from tracewire.tracing.types import ContextSnapshot
from tracewire.ui.cli import app

TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
SPAN_ID = "00f067aa0ba902b7"

runner = CliRunner()


def _context(**attributes: str) -> TraceContext:
    return TraceContext(ContextSnapshot(TRACE_ID, SPAN_ID), attributes)


class TestDecodeHeaders:
    """Test the decode-headers command."""

    def test_decodes_context(self) -> None:
        """Snapshot fields and attributes are printed."""
        result = runner.invoke(
            app,
            [
                "decode-headers",
                f"tw-trace-id={TRACE_ID}",
                f"tw-span-id={SPAN_ID}",
                "tw-attr-tenant=acme",
                "content-type=text/plain",
            ],
        )

        assert result.exit_code == 0
        assert TRACE_ID in result.stdout
        assert SPAN_ID in result.stdout
        assert "attr:tenant" in result.stdout
        assert "acme" in result.stdout

    def test_no_tracing_keys(self) -> None:
        """Headers without tw- keys report a missing context."""
        result = runner.invoke(app, ["decode-headers", "content-type=text/plain"])

        assert result.exit_code == 0
        assert "No trace context" in result.stdout

    def test_malformed_context_exits_nonzero(self) -> None:
        """A tw- key without the required ids is rejected."""
        result = runner.invoke(app, ["decode-headers", "tw-attr-tenant=acme"])

        assert result.exit_code == 1
        assert "Malformed context" in result.stdout

    def test_pair_without_separator(self) -> None:
        """Arguments must be KEY=VALUE."""
        result = runner.invoke(app, ["decode-headers", "tw-trace-id"])

        assert result.exit_code != 0


class TestDecodeBinary:
    """Test the decode-binary command."""

    def test_decodes_context(self) -> None:
        encoded = base64.b64encode(_context(tenant="acme").to_binary()).decode("ascii")

        result = runner.invoke(app, ["decode-binary", encoded])

        assert result.exit_code == 0
        assert TRACE_ID in result.stdout
        assert "acme" in result.stdout

    def test_invalid_base64(self) -> None:
        result = runner.invoke(app, ["decode-binary", "not base64!"])

        assert result.exit_code == 1
        assert "Invalid base64" in result.stdout

    def test_foreign_bytes(self) -> None:
        """Bytes that are not a tracewire context are rejected."""
        encoded = base64.b64encode(b"definitely not a context").decode("ascii")

        result = runner.invoke(app, ["decode-binary", encoded])

        assert result.exit_code == 1
        assert "Malformed context" in result.stdout

    def test_empty_input(self) -> None:
        result = runner.invoke(app, ["decode-binary", ""])

        assert result.exit_code == 0
        assert "Empty binary context" in result.stdout


class TestDemo:
    """Test the demo command."""

    def _spans(self, *args: str) -> list[dict]:
        result = runner.invoke(app, ["demo", "--json", *args])
        assert result.exit_code == 0
        return json.loads(result.stdout)

    def test_spans_form_one_trace(self) -> None:
        """Client, server and db spans share a trace and link up."""
        spans = {span["operation_name"]: span for span in self._spans()}

        assert set(spans) == {"client_request", "server_handle", "db_query"}
        assert len({span["trace_id"] for span in spans.values()}) == 1
        assert spans["client_request"]["parent_span_id"] is None
        assert spans["server_handle"]["parent_span_id"] == spans["client_request"]["span_id"]
        assert spans["db_query"]["parent_span_id"] == spans["server_handle"]["span_id"]
        assert spans["db_query"]["tags"] == {"db": "users"}

    def test_binary_format(self) -> None:
        """Attributes cross the hop in the binary format too."""
        spans = {span["operation_name"]: span for span in self._spans("--format", "binary")}

        server_logs = spans["server_handle"]["logs"]
        assert [entry["event"] for entry in server_logs] == ["tenant_seen"]
        assert server_logs[0]["payload"] == "acme"

    def test_tree_output(self) -> None:
        result = runner.invoke(app, ["demo"])

        assert result.exit_code == 0
        assert "wire (text_map)" in result.stdout
        assert "server_handle" in result.stdout
