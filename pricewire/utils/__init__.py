"""
Small shared helpers: hex/bytes conversion, Keccak-256, addresses and async
retries.
"""

from .address import (ZERO_ADDRESS, address_to_bytes, is_address,
                      normalize_address, same_address, to_checksum_address)
from .bytes import BytesLike, ensure_bytes, from_hex, int_to_word, to_hex, word_to_int
from .hash import keccak256, keccak256_hex

__all__ = [
    "BytesLike",
    "ensure_bytes",
    "from_hex",
    "to_hex",
    "int_to_word",
    "word_to_int",
    "keccak256",
    "keccak256_hex",
    "ZERO_ADDRESS",
    "is_address",
    "to_checksum_address",
    "normalize_address",
    "address_to_bytes",
    "same_address",
]
