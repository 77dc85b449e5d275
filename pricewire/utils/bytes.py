"""
Hex and 32-byte word helpers shared by the ABI codec, the payload encoders
and the CLI.
"""

from __future__ import annotations

from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]

WORD = 32
_WORD_LIMIT = 1 << (8 * WORD)


def from_hex(s: str) -> bytes:
    """``"0xdead"`` or ``"DEAD"`` -> ``b"\\xde\\xad"``."""
    if not isinstance(s, str):
        raise TypeError(f"expected a hex string, got {type(s).__name__}")
    body = s[2:] if s[:2] in ("0x", "0X") else s
    if len(body) % 2:
        raise ValueError(f"odd-length hex string ({len(body)} nibbles)")
    try:
        return bytes.fromhex(body)
    except ValueError:
        # Do not echo the input: it may be key material.
        raise ValueError("invalid hex string") from None


def to_hex(data: BytesLike, prefix: bool = True) -> str:
    body = bytes(data).hex()
    return "0x" + body if prefix else body


def ensure_bytes(data: Union[BytesLike, str]) -> bytes:
    """Raw bytes pass through; strings are read as hex."""
    if isinstance(data, str):
        return from_hex(data)
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"expected bytes or a hex string, got {type(data).__name__}")


def int_to_word(n: int) -> bytes:
    """Unsigned integer -> 32-byte big-endian word."""
    if not 0 <= n < _WORD_LIMIT:
        raise ValueError(f"value out of uint256 range: {n}")
    return n.to_bytes(WORD, "big")


def word_to_int(b: BytesLike) -> int:
    raw = bytes(b)
    if len(raw) != WORD:
        raise ValueError(f"expected a {WORD}-byte word, got {len(raw)} bytes")
    return int.from_bytes(raw, "big")


__all__ = ["BytesLike", "WORD", "from_hex", "to_hex", "ensure_bytes", "int_to_word", "word_to_int"]
