"""Binary and text-map propagation codecs.

Both encodings carry the same logical payload: a ContextSnapshot plus the
trace attributes. Decoders return None when the input carries no trace data
at all and raise DecodeError when it carries broken trace data, so callers
can tell "no upstream trace" apart from "malformed upstream trace".

Text map format (keys are lowercase on encode, matched case-insensitively on
decode; keys without the ``tw-`` prefix are ignored)::

    tw-trace-id   32 hex chars
    tw-span-id    16 hex chars
    tw-sampled    "1" or "0" (optional on decode, defaults to "1")
    tw-attr-<k>   attribute <k>, value percent-encoded (UTF-8)

Binary format (big-endian)::

    b"TW" | version u8 | flags u8 (bit 0: sampled) | trace_id 16B | span_id 8B
    | attr_count u16 | attr_count x (key_len u8 | key | value_len u32 | value)
"""

import struct
from collections.abc import Mapping
from urllib.parse import quote, unquote

from tracewire.tracing.attributes import AttributeMap, normalize_key
from tracewire.tracing.types import ContextSnapshot, DecodeError, InvalidAttributeKey

# Text map keys
TEXT_MAP_PREFIX = "tw-"
TRACE_ID_KEY = "tw-trace-id"
SPAN_ID_KEY = "tw-span-id"
SAMPLED_KEY = "tw-sampled"
ATTRIBUTE_PREFIX = "tw-attr-"
_SNAPSHOT_KEYS = (TRACE_ID_KEY, SPAN_ID_KEY, SAMPLED_KEY)

# Binary layout
BINARY_MAGIC = b"TW"
BINARY_VERSION = 1
FLAG_SAMPLED = 0x01
_KNOWN_FLAGS = FLAG_SAMPLED
_HEADER = struct.Struct(">2sBB16s8sH")
_KEY_LEN = struct.Struct(">B")
_VALUE_LEN = struct.Struct(">I")
MAX_ATTRIBUTES = 0xFFFF

DecodedContext = tuple[ContextSnapshot, AttributeMap]


def encode_binary(snapshot: ContextSnapshot, attributes: Mapping[str, str]) -> bytes:
    """Encode a snapshot and its attributes into bytes.

    Raises:
        ValueError: If there are more attributes than the format can count.
    """
    if len(attributes) > MAX_ATTRIBUTES:
        raise ValueError(f"Cannot encode more than {MAX_ATTRIBUTES} trace attributes")

    flags = FLAG_SAMPLED if snapshot.sampled else 0
    parts = [
        _HEADER.pack(
            BINARY_MAGIC,
            BINARY_VERSION,
            flags,
            bytes.fromhex(snapshot.trace_id),
            bytes.fromhex(snapshot.span_id),
            len(attributes),
        )
    ]
    for key in sorted(attributes):
        key_bytes = key.encode("ascii")
        value_bytes = attributes[key].encode("utf-8")
        parts.append(_KEY_LEN.pack(len(key_bytes)))
        parts.append(key_bytes)
        parts.append(_VALUE_LEN.pack(len(value_bytes)))
        parts.append(value_bytes)
    return b"".join(parts)


def decode_binary(data: bytes | bytearray | memoryview | None) -> DecodedContext | None:
    """Decode bytes produced by encode_binary.

    Args:
        data: Encoded context. None or empty means no upstream context.

    Returns:
        (snapshot, attributes), or None for empty input.

    Raises:
        DecodeError: If the buffer is truncated, foreign, or has trailing bytes.
    """
    if data is None:
        return None
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise DecodeError(f"Binary context must be bytes, got {type(data).__name__}")

    buf = bytes(data)
    if not buf:
        return None
    if len(buf) < _HEADER.size:
        raise DecodeError(f"Binary context truncated: {len(buf)} < {_HEADER.size} header bytes")

    magic, version, flags, raw_trace, raw_span, count = _HEADER.unpack_from(buf, 0)
    if magic != BINARY_MAGIC:
        raise DecodeError(f"Not a tracewire binary context (magic {magic!r})")
    if version != BINARY_VERSION:
        raise DecodeError(f"Unsupported binary context version {version}")
    if flags & ~_KNOWN_FLAGS:
        raise DecodeError(f"Unknown binary context flags 0x{flags:02x}")

    snapshot = _make_snapshot(raw_trace.hex(), raw_span.hex(), bool(flags & FLAG_SAMPLED))

    offset = _HEADER.size
    items: dict[str, str] = {}
    for _ in range(count):
        (key_len,) = _read(buf, offset, _KEY_LEN)
        offset += _KEY_LEN.size
        key_bytes = _take(buf, offset, key_len)
        offset += key_len
        (value_len,) = _read(buf, offset, _VALUE_LEN)
        offset += _VALUE_LEN.size
        value_bytes = _take(buf, offset, value_len)
        offset += value_len

        try:
            key = normalize_key(key_bytes.decode("ascii"))
            value = value_bytes.decode("utf-8")
        except (UnicodeDecodeError, InvalidAttributeKey) as e:
            raise DecodeError(f"Invalid attribute in binary context: {e}") from e
        if key in items:
            raise DecodeError(f"Duplicate attribute {key!r} in binary context")
        items[key] = value

    if offset != len(buf):
        raise DecodeError(f"{len(buf) - offset} trailing bytes after binary context")

    return snapshot, AttributeMap(items)


def encode_text_map(snapshot: ContextSnapshot, attributes: Mapping[str, str]) -> dict[str, str]:
    """Encode a snapshot and its attributes as a flat, header-safe mapping."""
    carrier = {
        TRACE_ID_KEY: snapshot.trace_id,
        SPAN_ID_KEY: snapshot.span_id,
        SAMPLED_KEY: "1" if snapshot.sampled else "0",
    }
    for key, value in attributes.items():
        carrier[ATTRIBUTE_PREFIX + key] = quote(value, safe="")
    return carrier


def decode_text_map(carrier: Mapping[str, str] | None) -> DecodedContext | None:
    """Decode a mapping produced by encode_text_map.

    Args:
        carrier: Header-like mapping. Keys outside the ``tw-`` namespace are ignored.

    Returns:
        (snapshot, attributes), or None when no ``tw-`` keys are present.

    Raises:
        DecodeError: If ``tw-`` keys are present but required ones are missing,
            duplicated (case-insensitively), unknown or malformed, or if the
            carrier is not a mapping.
    """
    if not carrier:
        return None
    if not isinstance(carrier, Mapping):
        raise DecodeError(f"Text map carrier must be a mapping, got {type(carrier).__name__}")

    fields: dict[str, str] = {}
    items: dict[str, str] = {}
    for raw_key, raw_value in carrier.items():
        if not isinstance(raw_key, str):
            continue
        key = raw_key.lower()
        if not key.startswith(TEXT_MAP_PREFIX):
            continue
        if not isinstance(raw_value, str):
            raise DecodeError(f"Value for {raw_key!r} must be str, got {type(raw_value).__name__}")

        if key.startswith(ATTRIBUTE_PREFIX):
            try:
                attr_key = normalize_key(key[len(ATTRIBUTE_PREFIX) :])
                value = unquote(raw_value, encoding="utf-8", errors="strict")
            except (UnicodeDecodeError, InvalidAttributeKey) as e:
                raise DecodeError(f"Invalid attribute entry {raw_key!r}: {e}") from e
            if attr_key in items:
                raise DecodeError(f"Duplicate attribute entry {raw_key!r}")
            items[attr_key] = value
        elif key in _SNAPSHOT_KEYS:
            if key in fields:
                raise DecodeError(f"Duplicate context entry {raw_key!r}")
            fields[key] = raw_value.strip()
        else:
            raise DecodeError(f"Unknown reserved context entry {raw_key!r}")

    if not fields and not items:
        return None

    missing = [k for k in (TRACE_ID_KEY, SPAN_ID_KEY) if k not in fields]
    if missing:
        raise DecodeError(f"Text map context missing required entries: {', '.join(missing)}")

    sampled_raw = fields.get(SAMPLED_KEY, "1")
    if sampled_raw not in ("0", "1"):
        raise DecodeError(f"{SAMPLED_KEY} must be '0' or '1', got {sampled_raw!r}")

    snapshot = _make_snapshot(
        fields[TRACE_ID_KEY].lower(), fields[SPAN_ID_KEY].lower(), sampled_raw == "1"
    )
    return snapshot, AttributeMap(items)


def _make_snapshot(trace_id: str, span_id: str, sampled: bool) -> ContextSnapshot:
    try:
        return ContextSnapshot(trace_id=trace_id, span_id=span_id, sampled=sampled)
    except ValueError as e:
        raise DecodeError(str(e)) from e


def _read(buf: bytes, offset: int, fmt: struct.Struct) -> tuple[int, ...]:
    if offset + fmt.size > len(buf):
        raise DecodeError("Binary context truncated inside attribute block")
    return fmt.unpack_from(buf, offset)


def _take(buf: bytes, offset: int, length: int) -> bytes:
    if offset + length > len(buf):
        raise DecodeError("Binary context truncated inside attribute block")
    return buf[offset : offset + length]
