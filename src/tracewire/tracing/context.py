"""TraceContext: the propagated carrier of trace identity and trace attributes.

A TraceContext pairs an immutable ContextSnapshot with a reference to an
immutable AttributeMap. ``set_attribute`` swaps that reference for a new map
(copy-then-publish under a per-context lock); ``derive`` captures the current
reference. A child therefore sees exactly the writes that happened before it
was derived, never later ones, and never a partially updated map.

Reads take no lock and are safe from any thread.
"""

import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING

from tracewire.telemetry import ATTRIBUTE_REJECTED, get_logger
from tracewire.tracing import codec
from tracewire.tracing.attributes import EMPTY_ATTRIBUTES, AttributeMap
from tracewire.tracing.types import ContextSnapshot, InvalidAttributeKey

if TYPE_CHECKING:
    from tracewire.tracing.span import Span

log = get_logger(__name__)

DEBUG_ATTRIBUTE = "debug"
_TRUTHY = {"1", "true", "yes", "on"}


class TraceContext:
    """Snapshot plus trace attributes, as held by one span (or decoded from the wire).

    Args:
        snapshot: Identifying state (trace id, enclosing span id, sampling).
        attributes: Initial trace attributes.
        span: Span this context belongs to, when known locally.
    """

    __slots__ = ("_snapshot", "_attributes", "_span", "_lock")

    def __init__(
        self,
        snapshot: ContextSnapshot,
        attributes: AttributeMap | Mapping[str, str] | None = None,
        span: "Span | None" = None,
    ) -> None:  # noqa: D107
        if attributes is None:
            attributes = EMPTY_ATTRIBUTES
        elif not isinstance(attributes, AttributeMap):
            attributes = AttributeMap(attributes)
        self._snapshot = snapshot
        self._attributes: AttributeMap = attributes
        self._span = span
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> ContextSnapshot:
        """Immutable identifying state."""
        return self._snapshot

    @property
    def trace_id(self) -> str:
        return self._snapshot.trace_id

    @property
    def span_id(self) -> str:
        """Id of the span enclosing this context (the parent of derived spans)."""
        return self._snapshot.span_id

    @property
    def sampled(self) -> bool:
        return self._snapshot.sampled

    @property
    def attributes(self) -> AttributeMap:
        """The attribute map currently visible at this context (read-only)."""
        return self._attributes

    def get_attribute(self, key: str) -> str | None:
        """Look up a trace attribute (case-insensitive).

        Args:
            key: Attribute key.

        Returns:
            The value, or None if the attribute is not set here.
        """
        return self._attributes.get(key)

    def set_attribute(self, key: str, value: str) -> None:
        """Set a trace attribute on this context.

        The new value is visible to this context and to every context derived
        from it afterwards; contexts derived earlier keep their old view.

        Args:
            key: Attribute key matching ``[a-z0-9][-a-z0-9]*`` (case-insensitive).
            value: Attribute value.

        Raises:
            InvalidAttributeKey: If the key is malformed. The context is unchanged.
            TypeError: If the value is not a string.
        """
        with self._lock:
            try:
                self._attributes = self._attributes.set(key, value)
            except InvalidAttributeKey:
                log.warning(ATTRIBUTE_REJECTED, trace_id=self.trace_id, key=repr(key))
                raise

    def is_debug(self) -> bool:
        """True when the ``debug`` attribute asks for force-recording."""
        value = self._attributes.get(DEBUG_ATTRIBUTE)
        return value is not None and value.strip().lower() in _TRUTHY

    def get_current_span(self) -> "Span | None":
        """Return the span this context belongs to, if it was created locally."""
        return self._span

    def _bind_span(self, span: "Span") -> None:
        self._span = span

    def derive(self, span_id: str, span: "Span | None" = None) -> "TraceContext":
        """Derive the context for a child span.

        The child keeps this trace id, records ``span_id`` as its enclosing
        span and captures the attribute map as it is right now. A debug
        context forces the child to be sampled.

        Args:
            span_id: Id of the newly created child span.
            span: The child span object.

        Returns:
            New TraceContext for the child.
        """
        attributes = self._attributes
        sampled = self._snapshot.sampled or self.is_debug()
        snapshot = ContextSnapshot(trace_id=self.trace_id, span_id=span_id, sampled=sampled)
        return TraceContext(snapshot, attributes, span=span)

    # Propagation

    def to_binary(self) -> bytes:
        """Encode snapshot and attributes into the opaque binary format."""
        return codec.encode_binary(self._snapshot, self._attributes)

    @classmethod
    def from_binary(cls, data: bytes | None) -> "TraceContext | None":
        """Decode a binary context.

        Returns:
            The decoded context, or None when ``data`` is empty (no upstream trace).

        Raises:
            DecodeError: If the data is corrupted, truncated or foreign.
        """
        decoded = codec.decode_binary(data)
        if decoded is None:
            return None
        snapshot, attributes = decoded
        return cls(snapshot, attributes)

    def to_text_map(self) -> dict[str, str]:
        """Encode snapshot and attributes as header-safe string pairs."""
        return codec.encode_text_map(self._snapshot, self._attributes)

    @classmethod
    def from_text_map(cls, carrier: Mapping[str, str] | None) -> "TraceContext | None":
        """Decode a text-map context (e.g., from transport headers).

        Returns:
            The decoded context, or None when the carrier holds no tracing keys.

        Raises:
            DecodeError: If tracing keys are present but incomplete or malformed.
        """
        decoded = codec.decode_text_map(carrier)
        if decoded is None:
            return None
        snapshot, attributes = decoded
        return cls(snapshot, attributes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TraceContext):
            return NotImplemented
        return self._snapshot == other._snapshot and self._attributes == other._attributes

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"TraceContext(trace_id={self.trace_id!r}, span_id={self.span_id!r}, "
            f"sampled={self.sampled}, attributes={self._attributes.to_dict()!r})"
        )
