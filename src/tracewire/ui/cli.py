"""CLI interface for tracewire.

This module provides a Typer-based command-line interface for decoding
propagated contexts and for demonstrating a traced client/server hop.
"""

import base64
import binascii

import orjson
import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from tracewire.config import get_settings
from tracewire.tracing import (
    DecodeError,
    FinishedSpan,
    Format,
    InMemoryReporter,
    TraceContext,
    Tracer,
)

app = typer.Typer(help="tracewire - trace context propagation tools")
console = Console()


def _context_table(context: TraceContext, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("trace_id", context.trace_id)
    table.add_row("span_id", context.span_id)
    table.add_row("sampled", str(context.sampled))
    for key, value in sorted(context.attributes.items()):
        table.add_row(f"attr:{key}", value)
    return table


def _parse_pairs(pairs: list[str]) -> dict[str, str]:
    carrier: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}")
        carrier[key.strip()] = value
    return carrier


@app.command(name="decode-headers")
def decode_headers(
    pairs: list[str] = typer.Argument(..., help="Header pairs as KEY=VALUE"),
) -> None:
    """Decode a text-map context (e.g., copied HTTP headers).

    Examples:
        tracewire decode-headers tw-trace-id=... tw-span-id=... tw-attr-tenant=acme
    """
    carrier = _parse_pairs(pairs)
    try:
        context = TraceContext.from_text_map(carrier)
    except DecodeError as e:
        console.print(f"[red]Malformed context:[/red] {e}")
        raise typer.Exit(code=1) from e

    if context is None:
        console.print("[yellow]No trace context in the given headers.[/yellow]")
        return
    console.print(_context_table(context, "Text-map context"))


@app.command(name="decode-binary")
def decode_binary(
    data: str = typer.Argument(..., help="Base64-encoded binary context"),
) -> None:
    """Decode a base64-encoded binary context."""
    try:
        raw = base64.b64decode(data, validate=True)
    except binascii.Error as e:
        console.print(f"[red]Invalid base64:[/red] {e}")
        raise typer.Exit(code=1) from e

    try:
        context = TraceContext.from_binary(raw)
    except DecodeError as e:
        console.print(f"[red]Malformed context:[/red] {e}")
        raise typer.Exit(code=1) from e

    if context is None:
        console.print("[yellow]Empty binary context.[/yellow]")
        return
    console.print(_context_table(context, "Binary context"))


def _span_tree(spans: list[FinishedSpan]) -> Tree:
    by_parent: dict[str | None, list[FinishedSpan]] = {}
    for span in spans:
        by_parent.setdefault(span.parent_span_id, []).append(span)

    roots = by_parent.get(None, [])
    tree = Tree(f"trace {roots[0].trace_id if roots else '?'}")

    def _add(node: Tree, span: FinishedSpan) -> None:
        label = f"[bold]{span.operation_name}[/bold] {span.span_id} ({span.duration * 1000:.2f} ms)"
        child = node.add(label)
        for sub in sorted(by_parent.get(span.span_id, []), key=lambda s: s.start_time):
            _add(child, sub)

    for root in roots:
        _add(tree, root)
    return tree


@app.command(name="demo")
def demo(
    fmt: Format = typer.Option(Format.TEXT_MAP, "--format", "-f", help="Propagation format"),
    json_output: bool = typer.Option(False, "--json", help="Print finished spans as JSON"),
) -> None:
    """Simulate a client calling a server across an encoded context hop."""
    reporter = InMemoryReporter()
    tracer = Tracer(reporter=reporter, settings=get_settings())

    # Client side
    client_ctx, client_span = tracer.start_trace("client_request", tags={"peer": "server"})
    client_ctx.set_attribute("tenant", "acme")
    wire = tracer.inject(client_ctx, fmt)

    # Server side: only the encoded form crosses the boundary
    upstream = tracer.extract(fmt, wire)
    server_span = tracer.join_trace("server_handle", upstream)
    if server_span is None:
        _, server_span = tracer.start_trace("server_handle")
    server_span.log_event("tenant_seen", payload=server_span.context.get_attribute("tenant"))
    created = tracer.create_span("db_query", server_span.context, tags={"db": "users"})
    if created is not None:
        created[1].finish()
    server_span.finish()
    client_span.finish()

    spans = reporter.spans
    if json_output:
        payload = [span.model_dump() for span in spans]
        typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))
        return

    if isinstance(wire, bytes):
        console.print(f"[dim]wire ({fmt.value}): {base64.b64encode(wire).decode('ascii')}[/dim]")
    else:
        console.print(f"[dim]wire ({fmt.value}): {wire}[/dim]")
    console.print(_span_tree(spans))


if __name__ == "__main__":
    app()
