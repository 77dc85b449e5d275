"""
20-byte account addresses: EIP-55 checksum formatting and normalization.
"""

from __future__ import annotations

import re
from typing import Union

from .bytes import BytesLike
from .hash import keccak256

_ADDR_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")

ZERO_ADDRESS = "0x" + "00" * 20


def is_address(value: object) -> bool:
    """True for 20 raw bytes or a 40-nibble hex string (checksum not enforced)."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return len(bytes(value)) == 20
    return isinstance(value, str) and bool(_ADDR_RE.match(value))


def to_checksum_address(value: Union[str, BytesLike]) -> str:
    """
    Format an address with the EIP-55 mixed-case checksum.

    >>> to_checksum_address("0x7e5f4552091a69125d5dfcb7b8c2659029395bdf")
    '0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf'
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != 20:
            raise ValueError(f"address must be 20 bytes, got {len(raw)}")
        hex_addr = raw.hex()
    else:
        if not _ADDR_RE.match(value):
            raise ValueError(f"not a 20-byte hex address: {value!r}")
        hex_addr = value[2:].lower() if value[:2] in ("0x", "0X") else value.lower()
    digest = keccak256(hex_addr.encode("ascii")).hex()
    return "0x" + "".join(
        ch.upper() if ch.isalpha() and int(digest[i], 16) >= 8 else ch for i, ch in enumerate(hex_addr)
    )


def normalize_address(value: Union[str, BytesLike]) -> str:
    """
    Accept raw bytes, lowercase, uppercase or checksummed hex and return the
    checksummed form. Mixed-case input must carry a valid checksum.
    """
    if isinstance(value, str):
        body = value[2:] if value[:2] in ("0x", "0X") else value
        mixed = body != body.lower() and body != body.upper()
        out = to_checksum_address(value)
        if mixed and out[2:] != body:
            raise ValueError(f"bad EIP-55 checksum: {value!r}")
        return out
    return to_checksum_address(value)


def address_to_bytes(value: Union[str, BytesLike]) -> bytes:
    return bytes.fromhex(normalize_address(value)[2:])


def same_address(a: Union[str, BytesLike], b: Union[str, BytesLike]) -> bool:
    """Case-insensitive comparison; malformed input compares unequal."""
    try:
        return address_to_bytes(a) == address_to_bytes(b)
    except ValueError:
        return False


__all__ = [
    "ZERO_ADDRESS",
    "is_address",
    "to_checksum_address",
    "normalize_address",
    "address_to_bytes",
    "same_address",
]
