"""Sampler collaborator interface.

The tracer asks the sampler once per trace, when a root span is started;
children inherit the decision. A context whose ``debug`` attribute is true
is recorded regardless of the decision. No sampling policy ships here
beyond a constant one.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Sampler(Protocol):
    """Decides whether a new trace is recorded."""

    def is_sampled(self, trace_id: str, operation_name: str) -> bool:
        """Return True if the trace starting with ``operation_name`` is recorded."""
        ...


class ConstSampler:
    """Sampler returning the same decision for every trace.

    Args:
        decision: Value returned by is_sampled.
    """

    def __init__(self, decision: bool = True) -> None:  # noqa: D107
        self.decision = decision

    def is_sampled(self, trace_id: str, operation_name: str) -> bool:
        return self.decision

    def __repr__(self) -> str:  # noqa: D105
        return f"ConstSampler(decision={self.decision})"
