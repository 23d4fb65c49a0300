"""Trace attribute keys and the copy-on-write attribute map.

An AttributeMap is persistent: ``set`` never touches the receiver, it returns
a new map that shares structure with it. A TraceContext derived from a parent
captures the parent's current map reference, so later writes on the parent
publish a new map the child never sees.

Each write adds one overlay node on top of the previous map. Lookups walk the
overlay chain down to a flat base dict; once the chain grows past
MAX_CHAIN_DEPTH it is collapsed into a new base.
"""

import re
from collections.abc import Iterator, Mapping

from tracewire.tracing.types import InvalidAttributeKey

ATTRIBUTE_KEY_PATTERN = re.compile(r"[a-z0-9][-a-z0-9]*", re.IGNORECASE | re.ASCII)
MAX_KEY_LENGTH = 255
MAX_CHAIN_DEPTH = 16


def normalize_key(key: str) -> str:
    """Validate an attribute key and return its canonical lowercase form.

    Args:
        key: Attribute key as given by the caller.

    Returns:
        Lowercased key.

    Raises:
        InvalidAttributeKey: If the key is not a string matching
            ``[a-z0-9][-a-z0-9]*`` (case-insensitive) or is too long.
    """
    if not isinstance(key, str) or not ATTRIBUTE_KEY_PATTERN.fullmatch(key):
        raise InvalidAttributeKey(f"Invalid trace attribute key: {key!r}")
    if len(key) > MAX_KEY_LENGTH:
        raise InvalidAttributeKey(
            f"Trace attribute key longer than {MAX_KEY_LENGTH} characters: {key[:32]!r}..."
        )
    return key.lower()


def is_valid_key(key: str) -> bool:
    """Return True if ``key`` would be accepted by normalize_key."""
    try:
        normalize_key(key)
    except InvalidAttributeKey:
        return False
    return True


class AttributeMap(Mapping[str, str]):
    """Immutable, structurally shared mapping of trace attributes.

    Keys are stored lowercase; lookups are case-insensitive. Instances are
    safe to read from any number of threads.
    """

    __slots__ = ("_parent", "_key", "_value", "_depth", "_flat")

    def __init__(self, items: Mapping[str, str] | None = None) -> None:
        """Build a base map from ``items`` (keys validated, values must be str)."""
        flat: dict[str, str] = {}
        for key, value in (items or {}).items():
            flat[normalize_key(key)] = _check_value(value)
        self._parent: AttributeMap | None = None
        self._key: str | None = None
        self._value: str | None = None
        self._depth = 0
        self._flat: dict[str, str] | None = flat

    @classmethod
    def _overlay(cls, parent: "AttributeMap", key: str, value: str) -> "AttributeMap":
        node = cls.__new__(cls)
        node._parent = parent
        node._key = key
        node._value = value
        node._depth = parent._depth + 1
        node._flat = None
        return node

    def set(self, key: str, value: str) -> "AttributeMap":
        """Return a new map with ``key`` bound to ``value``.

        Raises:
            InvalidAttributeKey: If the key is malformed.
            TypeError: If the value is not a string.
        """
        normalized = normalize_key(key)
        _check_value(value)
        if self._depth >= MAX_CHAIN_DEPTH:
            flat = dict(self._flatten())
            flat[normalized] = value
            return AttributeMap(flat)
        return AttributeMap._overlay(self, normalized, value)

    def _flatten(self) -> dict[str, str]:
        if self._flat is not None:
            return self._flat

        overlays: list[tuple[str, str]] = []
        node: AttributeMap | None = self
        while node is not None and node._flat is None:
            overlays.append((node._key, node._value))  # type: ignore[arg-type]
            node = node._parent

        flat = dict(node._flat) if node is not None and node._flat is not None else {}
        for key, value in reversed(overlays):
            flat[key] = value
        # Racing readers compute the same dict; publishing either is fine.
        self._flat = flat
        return flat

    def __getitem__(self, key: str) -> str:
        if not isinstance(key, str):
            raise KeyError(key)
        wanted = key.lower()
        node: AttributeMap | None = self
        while node is not None:
            if node._flat is not None:
                return node._flat[wanted]
            if node._key == wanted:
                return node._value  # type: ignore[return-value]
            node = node._parent
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._flatten())

    def __len__(self) -> int:
        return len(self._flatten())

    def to_dict(self) -> dict[str, str]:
        """Return a plain dict copy of the attributes."""
        return dict(self._flatten())

    @property
    def depth(self) -> int:
        """Number of overlay nodes above the flat base."""
        return self._depth

    def __repr__(self) -> str:
        return f"AttributeMap({self.to_dict()!r})"


EMPTY_ATTRIBUTES = AttributeMap()


def _check_value(value: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"Trace attribute values must be str, got {type(value).__name__}")
    return value
