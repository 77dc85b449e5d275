"""
pricewire.encoding
==================

Canonical byte form of a price package and the two calldata payload layouts.

Canonical bytes (what gets hashed and signed)::

    [SYMBOL|32][VALUE|32] ... [SYMBOL|32][VALUE|32][TIMESTAMP_SECONDS|32]

Full payload (appended after the original calldata; the receiver calls
``setPrices`` before dispatching and ``clearPrices`` afterwards)::

    [SIG_CLEAR|4][SIG_SET|4][SET_ARGS|...][SET_LEN|2][MARKER|32]

    SIG_CLEAR : selector of clearPrices((bytes32[],uint256[],uint256))
    SIG_SET   : selector of setPrices((bytes32[],uint256[],uint256),bytes)
    SET_ARGS  : ABI-encoded (priceData, signature)
    SET_LEN   : big-endian length of SIG_SET + SET_ARGS
    MARKER    : keccak256("Redstone.version.0.0.1")

Lite payload (read directly by a PriceAware receiver)::

    [CANONICAL_BYTES|64*n+32][COUNT|1][SIGNATURE|65]

Every decoder here is the exact inverse of its encoder; failures raise
`MalformedPayload`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Tuple, Union

from .abi import FunctionSpec
from .errors import MalformedPayload
from .types import SYMBOL_BYTES, PriceEntry, PricePackage, SignedPackage, bytes32_to_symbol
from .utils.bytes import WORD, int_to_word
from .utils.hash import keccak256
from .version import PROTOCOL_VERSION

SIGNATURE_LENGTH = 65
SELECTOR_LENGTH = 4
LENGTH_FIELD_BYTES = 2
COUNT_FIELD_BYTES = 1
MAX_SET_CALLDATA = (1 << (8 * LENGTH_FIELD_BYTES)) - 1
MAX_LITE_ENTRIES = (1 << (8 * COUNT_FIELD_BYTES)) - 1
ENTRY_BYTES = SYMBOL_BYTES + WORD

PROTOCOL_MARKER: bytes = keccak256(f"Redstone.version.{PROTOCOL_VERSION}".encode("ascii"))

PRICE_DATA_TYPE = "(bytes32[],uint256[],uint256)"
SET_PRICES = FunctionSpec("setPrices", (PRICE_DATA_TYPE, "bytes"))
CLEAR_PRICES = FunctionSpec("clearPrices", (PRICE_DATA_TYPE,))


class Encoding(str, Enum):
    FULL = "full"
    LITE = "lite"


# --------------------------------------------------------------------------- canonical form


def canonical_bytes(package: PricePackage) -> bytes:
    parts = [e.symbol_bytes + int_to_word(e.value) for e in package.entries]
    parts.append(int_to_word(package.timestamp))
    return b"".join(parts)


def canonical_hash(package: PricePackage) -> bytes:
    return keccak256(canonical_bytes(package))


def parse_canonical(data: bytes) -> PricePackage:
    """Inverse of `canonical_bytes`."""
    if len(data) < WORD or (len(data) - WORD) % ENTRY_BYTES:
        raise MalformedPayload(
            "canonical bytes must be 64*n + 32 long", encoding="canonical", actual=len(data)
        )
    entries = []
    for off in range(0, len(data) - WORD, ENTRY_BYTES):
        symbol = bytes32_to_symbol(data[off : off + SYMBOL_BYTES])
        value = int.from_bytes(data[off + SYMBOL_BYTES : off + ENTRY_BYTES], "big")
        entries.append(PriceEntry(symbol, value))
    return PricePackage(tuple(entries), int.from_bytes(data[-WORD:], "big"))


def _require_signature(signed: SignedPackage) -> bytes:
    sig = bytes(signed.signature)
    if len(sig) != SIGNATURE_LENGTH:
        raise MalformedPayload(
            "signature must be 65 bytes (r || s || v)", expected=SIGNATURE_LENGTH, actual=len(sig)
        )
    return sig


def price_data_args(package: PricePackage) -> tuple:
    """The ``(bytes32[], uint256[], uint256)`` struct passed to setPrices/clearPrices."""
    return ([e.symbol_bytes for e in package.entries], list(package.values), package.timestamp)


def package_from_args(args: tuple) -> PricePackage:
    symbols, values, timestamp = args
    if len(symbols) != len(values):
        raise MalformedPayload(
            "symbols/values length mismatch", encoding="abi", expected=len(symbols), actual=len(values)
        )
    return PricePackage(tuple(PriceEntry(bytes32_to_symbol(s), v) for s, v in zip(symbols, values)), timestamp)


# --------------------------------------------------------------------------- encoders


class PayloadEncoder(ABC):
    """Common surface of the full and lite payload codecs."""

    encoding: Encoding

    @abstractmethod
    def encode(self, signed: SignedPackage) -> bytes:
        """Payload bytes to append to an outbound calldata blob."""

    @abstractmethod
    def extract(self, calldata: bytes) -> Tuple[bytes, SignedPackage]:
        """Split ``calldata`` into (original_calldata, package found at its tail)."""

    def decode(self, blob: bytes) -> SignedPackage:
        """Decode a blob that consists of exactly one payload."""
        original, signed = self.extract(blob)
        if original:
            raise MalformedPayload(
                "unexpected bytes before payload", encoding=self.encoding.value, actual=len(original), expected=0
            )
        return signed

    def append(self, calldata: bytes, signed: SignedPackage) -> bytes:
        return bytes(calldata) + self.encode(signed)


class FullEncoder(PayloadEncoder):
    encoding = Encoding.FULL

    def set_calldata(self, signed: SignedPackage) -> bytes:
        return SET_PRICES.encode_call([price_data_args(signed.package), _require_signature(signed)])

    def clear_calldata(self, package: PricePackage) -> bytes:
        return CLEAR_PRICES.encode_call([price_data_args(package)])

    def encode(self, signed: SignedPackage) -> bytes:
        set_data = self.set_calldata(signed)
        if len(set_data) > MAX_SET_CALLDATA:
            raise MalformedPayload(
                "setPrices calldata too long for the 2-byte length field",
                encoding="full",
                expected=MAX_SET_CALLDATA,
                actual=len(set_data),
            )
        return CLEAR_PRICES.selector + set_data + len(set_data).to_bytes(LENGTH_FIELD_BYTES, "big") + PROTOCOL_MARKER

    @staticmethod
    def has_marker(calldata: bytes) -> bool:
        return len(calldata) >= WORD and bytes(calldata[-WORD:]) == PROTOCOL_MARKER

    def extract(self, calldata: bytes) -> Tuple[bytes, SignedPackage]:
        data = bytes(calldata)
        trailer = LENGTH_FIELD_BYTES + WORD
        if len(data) < trailer + SELECTOR_LENGTH:
            raise MalformedPayload("calldata shorter than full payload trailer", encoding="full", actual=len(data))
        if data[-WORD:] != PROTOCOL_MARKER:
            raise MalformedPayload(
                "protocol marker not found",
                encoding="full",
                expected="0x" + PROTOCOL_MARKER.hex(),
                actual="0x" + data[-WORD:].hex(),
            )
        set_len = int.from_bytes(data[-trailer:-WORD], "big")
        set_start = len(data) - trailer - set_len
        clear_start = set_start - SELECTOR_LENGTH
        if set_len < SELECTOR_LENGTH or clear_start < 0:
            raise MalformedPayload(
                "length field out of range", encoding="full", actual=set_len, offset=len(data) - trailer
            )
        if data[clear_start:set_start] != CLEAR_PRICES.selector:
            raise MalformedPayload(
                "clearPrices selector mismatch",
                encoding="full",
                expected="0x" + CLEAR_PRICES.selector.hex(),
                actual="0x" + data[clear_start:set_start].hex(),
                offset=clear_start,
            )
        price_args, signature = SET_PRICES.decode_call(data[set_start : len(data) - trailer])
        if len(signature) != SIGNATURE_LENGTH:
            raise MalformedPayload(
                "signature must be 65 bytes", encoding="full", expected=SIGNATURE_LENGTH, actual=len(signature)
            )
        package = package_from_args(price_args)
        return data[:clear_start], SignedPackage(package, signature)


class LiteEncoder(PayloadEncoder):
    encoding = Encoding.LITE

    def encode(self, signed: SignedPackage) -> bytes:
        sig = _require_signature(signed)
        n = len(signed.package)
        if n > MAX_LITE_ENTRIES:
            raise MalformedPayload(
                "too many entries for the 1-byte count field", encoding="lite", expected=MAX_LITE_ENTRIES, actual=n
            )
        return canonical_bytes(signed.package) + n.to_bytes(COUNT_FIELD_BYTES, "big") + sig

    def extract(self, calldata: bytes) -> Tuple[bytes, SignedPackage]:
        data = bytes(calldata)
        trailer = COUNT_FIELD_BYTES + SIGNATURE_LENGTH
        if len(data) < trailer + WORD:
            raise MalformedPayload("calldata shorter than lite payload", encoding="lite", actual=len(data))
        signature = data[-SIGNATURE_LENGTH:]
        count = data[-trailer]
        body_len = count * ENTRY_BYTES + WORD
        start = len(data) - trailer - body_len
        if start < 0:
            raise MalformedPayload(
                "entry count exceeds calldata length",
                encoding="lite",
                expected=body_len + trailer,
                actual=len(data),
                offset=len(data) - trailer,
            )
        package = parse_canonical(data[start : len(data) - trailer])
        return data[:start], SignedPackage(package, signature)


_ENCODERS = {Encoding.FULL: FullEncoder(), Encoding.LITE: LiteEncoder()}


def encoder_for(encoding: Union[Encoding, str]) -> PayloadEncoder:
    try:
        return _ENCODERS[Encoding(encoding)]
    except ValueError:
        raise ValueError(f"unknown encoding {encoding!r}; expected one of {[e.value for e in Encoding]}") from None


__all__ = [
    "Encoding",
    "PROTOCOL_MARKER",
    "SIGNATURE_LENGTH",
    "MAX_SET_CALLDATA",
    "MAX_LITE_ENTRIES",
    "PRICE_DATA_TYPE",
    "SET_PRICES",
    "CLEAR_PRICES",
    "canonical_bytes",
    "canonical_hash",
    "parse_canonical",
    "price_data_args",
    "package_from_args",
    "PayloadEncoder",
    "FullEncoder",
    "LiteEncoder",
    "encoder_for",
]
