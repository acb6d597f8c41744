"""
Pure-Python SafeTensors header codec for partial (byte-range) reads.

A safetensors file starts with an 8-byte little-endian u64 giving the length of
a UTF-8 JSON header, followed by the header itself and then the tensor payload.
Only the first ``8 + header_size`` bytes are ever needed here.
"""

from __future__ import annotations

import json
import math
import struct
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from weightscope.errors import HeaderParseError

HEADER_PREFIX_SIZE = 8
METADATA_KEY = "__metadata__"


@dataclass(frozen=True)
class TensorDescriptor:
    dtype: str
    shape: Tuple[int, ...]

    @property
    def n_elements(self) -> int:
        """Number of stored elements; a scalar (empty shape) holds one."""
        return math.prod(self.shape)

    @classmethod
    def from_json(cls, name: str, meta: Any) -> "TensorDescriptor":
        if isinstance(meta, TensorDescriptor):
            return meta
        if not isinstance(meta, Mapping):
            raise HeaderParseError(f"Invalid tensor meta for {name}")
        dtype = meta.get("dtype")
        shape = meta.get("shape")
        if not (isinstance(dtype, str) and isinstance(shape, (list, tuple))):
            raise HeaderParseError(f"Missing/invalid fields for {name}")
        if not all(isinstance(x, int) and not isinstance(x, bool) and x >= 0 for x in shape):
            raise HeaderParseError(f"Invalid shape for {name}")
        return cls(dtype=dtype, shape=tuple(shape))


def is_tensor_entry(name: str) -> bool:
    """False for reserved header keys that do not describe a tensor."""
    return name != METADATA_KEY


def iter_tensor_entries(header: Mapping[str, Any]) -> Iterator[Tuple[str, Any]]:
    """Yield ``(name, meta)`` pairs of a header, reserved keys removed."""
    return ((name, meta) for name, meta in header.items() if is_tensor_entry(name))


def parse_header_size(buf: bytes) -> int:
    """Decode the u64 little-endian header length from the first 8 bytes.

    Python integers are arbitrary precision, so values above 2**53 decode
    exactly; there is no rounding boundary to worry about on this host.
    """
    if len(buf) < HEADER_PREFIX_SIZE:
        raise HeaderParseError(
            f"Need at least {HEADER_PREFIX_SIZE} bytes for safetensors header, got {len(buf)}"
        )
    return struct.unpack_from("<Q", buf, 0)[0]


def combine(first: bytes, second: bytes) -> bytes:
    """Return a new buffer holding ``first`` followed by ``second``."""
    return b"".join((first, second))


def missing_metadata_range(available: int, header_size: int) -> Optional[Tuple[int, int]]:
    """Inclusive byte range still needed to cover the header, or None.

    ``available`` is the number of leading file bytes already held.
    """
    end = HEADER_PREFIX_SIZE + header_size
    if available >= end:
        return None
    return available, end - 1


def extract_metadata_text(buf: bytes, header_size: int) -> str:
    """Decode bytes ``[8, 8 + header_size)`` of ``buf`` as UTF-8."""
    end = HEADER_PREFIX_SIZE + header_size
    if len(buf) < end:
        raise HeaderParseError(f"Not enough bytes: need 8+{header_size}, got {len(buf)}")
    try:
        return bytes(buf[HEADER_PREFIX_SIZE:end]).decode("utf-8")
    except UnicodeDecodeError as e:
        raise HeaderParseError(f"Header is not valid UTF-8: {e}") from e


def parse_header_text(text: str) -> Dict[str, TensorDescriptor]:
    """Parse header JSON into tensor descriptors keyed by tensor name."""
    raw = text.lstrip()
    if not raw or raw[:1] != "{":
        raise HeaderParseError("Header does not start with '{'")
    try:
        header = json.loads(raw)
    except ValueError as e:
        raise HeaderParseError(f"Invalid JSON header: {e}") from e
    if not isinstance(header, dict):
        raise HeaderParseError("Header is not a JSON object")
    return {name: TensorDescriptor.from_json(name, meta) for name, meta in iter_tensor_entries(header)}


def parse_header(buf: bytes) -> Dict[str, TensorDescriptor]:
    """Parse a buffer holding at least the full prefix and header."""
    header_size = parse_header_size(buf)
    return parse_header_text(extract_metadata_text(buf, header_size))


def encode_header(header: Mapping[str, Any]) -> bytes:
    """Serialize a header as ``u64 length + JSON``; used to build fixtures."""
    payload = json.dumps(header, separators=(",", ":")).encode("utf-8")
    return struct.pack("<Q", len(payload)) + payload
