"""Finishing spans from asynchronous completions.

Handing a span to ``finish_on_completion`` transfers ownership to the
future's done-callback: it becomes the only code allowed to finish the span,
and it does so on every outcome (result, exception, cancellation).
"""

import asyncio
import concurrent.futures
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tracewire.telemetry import COMPLETION_CALLBACK_FAILED, get_logger
from tracewire.tracing.context import TraceContext
from tracewire.tracing.span import Span
from tracewire.tracing.tracer import Tracer

log = get_logger(__name__)

T = TypeVar("T")

AnyFuture = asyncio.Future[Any] | concurrent.futures.Future[Any]


def finish_on_completion(span: Span, future: AnyFuture) -> AnyFuture:
    """Finish ``span`` exactly once when ``future`` completes.

    Cancellation tags ``cancelled=True``; an exception tags ``error=True``
    and logs an ``error`` event carrying the exception text.

    Args:
        span: Open span whose ownership moves to the callback.
        future: asyncio or concurrent.futures future.

    Returns:
        The same future, for chaining.
    """

    def _on_done(done: AnyFuture) -> None:
        try:
            if done.cancelled():
                span.set_tag("cancelled", True)
            else:
                exc = done.exception()
                if exc is not None:
                    span.set_tag("error", True)
                    span.log_event("error", payload=f"{type(exc).__name__}: {exc}")
        except Exception as e:
            # The span is finished below either way.
            log.warning(
                COMPLETION_CALLBACK_FAILED,
                trace_id=span.trace_id,
                span_id=span.span_id,
                error=str(e),
            )
        finally:
            if not span.finished:
                span.finish()

    future.add_done_callback(_on_done)
    return future


async def traced_call(
    tracer: Tracer,
    operation_name: str,
    context: TraceContext | None,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Await ``fn(child_context, *args, **kwargs)`` inside a child span of ``context``.

    ``fn`` receives the child context (None when tracing is inactive) as its
    first argument so it can propagate it further. The span is finished on
    every path; exceptions tag it and propagate, cancellation tags it and
    propagates.

    Returns:
        Whatever ``fn`` returns.
    """
    created = tracer.create_span(operation_name, context)
    if created is None:
        return await fn(None, *args, **kwargs)

    child_context, span = created
    try:
        return await fn(child_context, *args, **kwargs)
    except asyncio.CancelledError:
        span.set_tag("cancelled", True)
        raise
    except Exception as e:
        span.set_tag("error", True)
        span.log_event("error", payload=f"{type(e).__name__}: {e}")
        raise
    finally:
        span.finish()
