"""Ambient-storage providers for implicit context propagation.

Explicit propagation (passing TraceContext as a parameter) always works and
is the default. A ScopeManager adds an "active context" that code can look
up without parameter threading. Each ``activate`` restores the previous
active context on exit, so activations nest.
"""

import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from typing import Protocol, runtime_checkable

from tracewire.tracing.context import TraceContext


@runtime_checkable
class ScopeManager(Protocol):
    """Get/set-current operations over some ambient storage."""

    def active(self) -> TraceContext | None:
        """Return the active context, or None."""
        ...

    def activate(
        self, context: TraceContext | None
    ) -> AbstractContextManager[TraceContext | None]:
        """Make ``context`` active for the duration of a ``with`` block."""
        ...


class ExplicitScopeManager:
    """No ambient storage: nothing is ever active."""

    def active(self) -> TraceContext | None:
        return None

    @contextmanager
    def activate(self, context: TraceContext | None) -> Iterator[TraceContext | None]:
        yield context


class ContextVarScopeManager:
    """Active context stored in a ContextVar.

    Task-local under asyncio (each task runs in a copy of its creator's
    context) and thread-local across threads.
    """

    def __init__(self, name: str = "tracewire_active_context") -> None:  # noqa: D107
        self._var: ContextVar[TraceContext | None] = ContextVar(name, default=None)

    def active(self) -> TraceContext | None:
        return self._var.get()

    @contextmanager
    def activate(self, context: TraceContext | None) -> Iterator[TraceContext | None]:
        token = self._var.set(context)
        try:
            yield context
        finally:
            self._var.reset(token)


class ThreadLocalScopeManager:
    """Active context stored per thread (not task-aware)."""

    def __init__(self) -> None:  # noqa: D107
        self._local = threading.local()

    def active(self) -> TraceContext | None:
        return getattr(self._local, "context", None)

    @contextmanager
    def activate(self, context: TraceContext | None) -> Iterator[TraceContext | None]:
        previous = getattr(self._local, "context", None)
        self._local.context = context
        try:
            yield context
        finally:
            self._local.context = previous


def scope_manager_for(kind: str) -> ScopeManager:
    """Build the scope manager named by a settings value.

    Args:
        kind: "explicit", "contextvar" or "thread".

    Raises:
        ValueError: If kind is unknown.
    """
    if kind == "explicit":
        return ExplicitScopeManager()
    if kind == "contextvar":
        return ContextVarScopeManager()
    if kind == "thread":
        return ThreadLocalScopeManager()
    raise ValueError(f"Unknown scope manager kind: {kind!r}")
