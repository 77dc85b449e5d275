"""
pricewire.types
===============

Value types shared by the encoder, signer, price feed and connectors.

- `PriceEntry`     : one (symbol, value) pair, value in 10^8 fixed point
- `PricePackage`   : ordered entries plus one shared timestamp (seconds)
- `SignedPackage`  : package + 65-byte recoverable signature + claimed signer

Symbols travel as 32-byte fields: UTF-8 bytes, left-aligned, zero padded on the
right (at most 31 bytes so the field always ends in a NUL). Values are plain
unsigned integers; `serialize_value` converts a human price (``1800.25``) into
the fixed-point integer (``180025000000``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence, Tuple, Union

from .errors import MalformedPayload

PRICE_DECIMALS = 8
PRICE_SCALE = 10 ** PRICE_DECIMALS

SYMBOL_BYTES = 32
MAX_SYMBOL_LENGTH = SYMBOL_BYTES - 1
MAX_UINT256 = (1 << 256) - 1

Number = Union[int, float, str, Decimal]


# --------------------------------------------------------------------------- helpers


def symbol_to_bytes32(symbol: str) -> bytes:
    """
    Encode a short symbol as a 32-byte field ("ETH" -> b"ETH" + 29 * b"\\x00").
    """
    raw = symbol.encode("utf-8")
    if not raw:
        raise ValueError("symbol must not be empty")
    if b"\x00" in raw:
        raise ValueError(f"symbol {symbol!r} contains a NUL byte")
    if len(raw) > MAX_SYMBOL_LENGTH:
        raise ValueError(f"symbol {symbol!r} longer than {MAX_SYMBOL_LENGTH} bytes")
    return raw.ljust(SYMBOL_BYTES, b"\x00")


def bytes32_to_symbol(field_bytes: bytes) -> str:
    """Inverse of `symbol_to_bytes32`; rejects fields without a NUL terminator."""
    if len(field_bytes) != SYMBOL_BYTES:
        raise MalformedPayload(
            "symbol field must be 32 bytes", encoding="symbol", expected=SYMBOL_BYTES, actual=len(field_bytes)
        )
    raw = field_bytes.rstrip(b"\x00")
    if not raw or len(raw) > MAX_SYMBOL_LENGTH or b"\x00" in raw:
        raise MalformedPayload("invalid symbol field", encoding="symbol", actual="0x" + field_bytes.hex())
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayload("symbol is not valid UTF-8", encoding="symbol", cause=e) from e


def serialize_value(value: Number) -> int:
    """
    Convert a human price into its 10^8 fixed-point integer, rounding half-up.

    >>> serialize_value(1800)
    180000000000
    >>> serialize_value("0.123456789")
    12345679
    """
    if isinstance(value, bool):
        raise TypeError("price value must be numeric, not bool")
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ValueError(f"price value must be finite, got {value!r}")
    try:
        dec = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e
    scaled = int((dec * PRICE_SCALE).to_integral_value(rounding=ROUND_HALF_UP))
    if scaled < 0:
        raise ValueError(f"price value must be non-negative, got {value!r}")
    return scaled


def deserialize_value(value: int) -> Decimal:
    """Fixed-point integer -> Decimal price (informational; never used for hashing)."""
    return Decimal(value) / PRICE_SCALE


def millis_to_seconds(ms: int) -> int:
    """Provider timestamps are milliseconds; the wire carries ceil(ms / 1000)."""
    return -(-int(ms) // 1000)


# --------------------------------------------------------------------------- entries


@dataclass(frozen=True)
class PriceEntry:
    """
    One price point.

    Attributes
    ----------
    symbol : str
        Short identifier, at most 31 UTF-8 bytes.
    value : int
        Non-negative fixed-point integer (scale 10^8).
    timestamp : Optional[int]
        Informational per-entry timestamp; not encoded, hashed or compared.
    """

    symbol: str
    value: int
    timestamp: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        symbol_to_bytes32(self.symbol)
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"value for {self.symbol!r} must be an int, got {type(self.value).__name__}")
        if not 0 <= self.value <= MAX_UINT256:
            raise ValueError(f"value for {self.symbol!r} out of uint256 range: {self.value}")

    @property
    def symbol_bytes(self) -> bytes:
        return symbol_to_bytes32(self.symbol)


@dataclass(frozen=True)
class PricePackage:
    """
    Ordered sequence of entries sharing one timestamp (seconds since epoch).

    Entry order is significant: it is the order used for the canonical hash and
    for both wire encodings.
    """

    entries: Tuple[PriceEntry, ...]
    timestamp: int

    def __post_init__(self) -> None:
        if not isinstance(self.entries, tuple):
            object.__setattr__(self, "entries", tuple(self.entries))
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int):
            raise TypeError("package timestamp must be an int (seconds)")
        if not 0 <= self.timestamp <= MAX_UINT256:
            raise ValueError(f"package timestamp out of range: {self.timestamp}")

    # -- constructors ---------------------------------------------------------

    @classmethod
    def from_values(cls, values: Mapping[str, int] | Iterable[Tuple[str, int]], timestamp: int) -> "PricePackage":
        """Build from already-serialized integer values."""
        items = values.items() if isinstance(values, Mapping) else values
        return cls(tuple(PriceEntry(s, int(v)) for s, v in items), int(timestamp))

    @classmethod
    def from_prices(cls, prices: Mapping[str, Number] | Iterable[Tuple[str, Number]], timestamp: int) -> "PricePackage":
        """Build from human prices (``{"ETH": 1800.5}``), scaling by 10^8."""
        items = prices.items() if isinstance(prices, Mapping) else prices
        return cls(tuple(PriceEntry(s, serialize_value(v)) for s, v in items), int(timestamp))

    @classmethod
    def from_millis(cls, entries: Sequence[PriceEntry], timestamp_ms: int) -> "PricePackage":
        return cls(tuple(entries), millis_to_seconds(timestamp_ms))

    # -- views ----------------------------------------------------------------

    @property
    def symbols(self) -> Tuple[str, ...]:
        return tuple(e.symbol for e in self.entries)

    @property
    def values(self) -> Tuple[int, ...]:
        return tuple(e.value for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[PriceEntry]:
        return iter(self.entries)

    def value_of(self, symbol: str) -> Optional[int]:
        for e in self.entries:
            if e.symbol == symbol:
                return e.value
        return None

    def filtered(self, symbols: Iterable[str]) -> "PricePackage":
        wanted = set(symbols)
        return PricePackage(tuple(e for e in self.entries if e.symbol in wanted), self.timestamp)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "prices": [{"symbol": e.symbol, "value": e.value} for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PricePackage":
        """Inverse of `to_dict` (integer values, seconds)."""
        prices = data.get("prices")
        if not isinstance(prices, list):
            raise ValueError("package dict must contain a 'prices' list")
        return cls(
            tuple(PriceEntry(str(p["symbol"]), int(p["value"])) for p in prices),
            int(data["timestamp"]),
        )


@dataclass(frozen=True)
class SignedPackage:
    """
    A package plus its 65-byte recoverable signature.

    `signer` is the *claimed* identity (checksummed address). Decoders leave it
    as None; use `pricewire.signer.recover_signer` or `verify()` to bind the
    signature to an identity.
    """

    package: PricePackage
    signature: bytes
    signer: Optional[str] = None

    def recover(self) -> str:
        from .signer import recover_signer

        return recover_signer(self.package, self.signature)

    def verify(self) -> bool:
        """True iff a claimed signer is present and the signature recovers to it."""
        if self.signer is None:
            return False
        from .signer import InvalidSignature, same_address

        try:
            return same_address(self.recover(), self.signer)
        except InvalidSignature:
            return False

    def with_signer(self, signer: str) -> "SignedPackage":
        return SignedPackage(self.package, self.signature, signer)

    def to_dict(self) -> dict:
        out = self.package.to_dict()
        out["signature"] = "0x" + self.signature.hex()
        if self.signer is not None:
            out["signer"] = self.signer
        return out


__all__ = [
    "PRICE_DECIMALS",
    "PRICE_SCALE",
    "SYMBOL_BYTES",
    "MAX_SYMBOL_LENGTH",
    "PriceEntry",
    "PricePackage",
    "SignedPackage",
    "symbol_to_bytes32",
    "bytes32_to_symbol",
    "serialize_value",
    "deserialize_value",
    "millis_to_seconds",
]
