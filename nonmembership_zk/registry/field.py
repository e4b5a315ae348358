"""
Fixed-width big-endian codec for field elements.

The on-chain verifier takes every coordinate and public input as a 32-byte
big-endian value. Proof artifacts carry them as decimal strings.
"""

from __future__ import annotations

from .config import (
    FIELD_HEX_DIGITS,
    FIELD_WIDTH_BYTES,
    MAX_ENCODABLE,
    SNARK_SCALAR_FIELD,
)
from .exceptions import EncodingRangeError


def require_encodable(value, label: str = "value") -> int:
    """Return ``value`` if it fits the codec, else raise EncodingRangeError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingRangeError(f"{label} must be an int, got {type(value).__name__}")
    if value < 0:
        raise EncodingRangeError(f"{label} must be non-negative")
    if value >= MAX_ENCODABLE:
        raise EncodingRangeError(f"{label} does not fit in {FIELD_WIDTH_BYTES} bytes")
    return value


def encode_fixed_width(value: int) -> bytes:
    """
    Encode a non-negative integer as 32 big-endian bytes, left zero-padded.

    Raises:
        EncodingRangeError: If value is negative or >= 2**256
    """
    require_encodable(value)
    return value.to_bytes(FIELD_WIDTH_BYTES, byteorder="big")


def decode(data: bytes | bytearray) -> int:
    """Exact inverse of :func:`encode_fixed_width`."""
    if not isinstance(data, (bytes, bytearray)):
        raise EncodingRangeError("encoded field element must be bytes")
    if len(data) != FIELD_WIDTH_BYTES:
        raise EncodingRangeError(
            f"encoded field element must be {FIELD_WIDTH_BYTES} bytes, got {len(data)}"
        )
    return int.from_bytes(data, byteorder="big")


def to_hex32(value: int) -> str:
    """Encode as exactly 64 lowercase hex digits, no prefix."""
    return encode_fixed_width(value).hex()


def from_hex32(text: str) -> int:
    if text.startswith(("0x", "0X")):
        text = text[2:]
    if len(text) != FIELD_HEX_DIGITS:
        raise EncodingRangeError(f"hex field element must have {FIELD_HEX_DIGITS} digits")
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise EncodingRangeError(f"invalid hex field element: {text!r}") from exc
    return decode(raw)


def parse_decimal(text, label: str = "value") -> int:
    """
    Parse a decimal-string field element as emitted by the prover.

    Ints are accepted as-is. Anything else that is not a plain run of ASCII
    digits (signs, whitespace, hex) is treated as corruption.
    """
    if isinstance(text, int) and not isinstance(text, bool):
        return require_encodable(text, label)
    if not isinstance(text, str) or not text or not (text.isascii() and text.isdigit()):
        raise EncodingRangeError(f"{label} must be a decimal string, got {text!r}")
    return require_encodable(int(text), label)


def to_decimal(value: int) -> str:
    return str(require_encodable(value))


def pack_bytes(data: bytes | bytearray) -> int:
    """
    Pack a byte string into one field element.

    The bytes are read as a single big-endian integer and reduced into the
    scalar field, the same way the circuit's field constructor does.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("data must be bytes")
    return int.from_bytes(data, byteorder="big") % SNARK_SCALAR_FIELD
