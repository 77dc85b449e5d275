"""
pricewire errors

Structured exceptions raised by the encoder, signer, price feed, connectors and
wrapper. Each error carries a stable integer code and a small context dict
(symbol, timestamps, recovered identity, ...) so callers can diagnose a failure
without inspecting internal state.

Design goals
------------
- Stable, integer error codes (see `ErrorCode`).
- Human-friendly messages with structured context.
- Safe to log: context never contains key material.
- Play nicely with `raise ... from cause` and `__cause__`.

Construction-time errors (`InvalidVerifier`, `DelayTooShort`) are fatal: the
object under construction is never returned. Nothing in the core retries or
defaults on any of these; retries belong to the caller or a Connector.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Sequence


class ErrorCode(IntEnum):
    """Stable error codes for pricewire exceptions."""
    GENERIC             = 4000
    INVALID_VERIFIER    = 4001
    DELAY_TOO_SHORT     = 4002
    UNAUTHORIZED        = 4003
    UNAUTHORIZED_SIGNER = 4004
    STALE_TIMESTAMP     = 4005
    OVERWRITE_CONFLICT  = 4006
    NO_PRICING_DATA     = 4007
    MALFORMED_PAYLOAD   = 4008
    INVALID_SIGNATURE   = 4009
    FETCH_ERROR         = 4010
    ABI                 = 4011
    CONFIG              = 4012


class PriceWireError(Exception):
    """
    Base class for pricewire exceptions.

    Parameters
    ----------
    message : str
        Human-readable description.
    code : ErrorCode | int
        Stable code for programmatic handling.
    context : Mapping[str, Any] | None
        Optional structured fields (small dict).
    cause : BaseException | None
        Optional underlying exception; also set via `raise ... from ...`.
    """

    default_code: ErrorCode = ErrorCode.GENERIC

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | int | None = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.code: int = int(code if code is not None else self.default_code)
        self.context: Dict[str, Any] = dict(context) if context else {}
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:  # pragma: no cover - trivial
        tail = f" context={self.context}" if self.context else ""
        return f"[{self.code}] {self.message}{tail}"

    def to_dict(self) -> Dict[str, Any]:
        """Structured view suitable for logs or CLI JSON output."""
        out: Dict[str, Any] = {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
        }
        if self.context:
            out["context"] = self.context
        return out


def _ctx(**fields: Any) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


# --------------------------------------------------------------------------- construction


class InvalidVerifier(PriceWireError):
    """A price feed was constructed without a verifier reference."""

    default_code = ErrorCode.INVALID_VERIFIER

    def __init__(self, message: str = "Cannot set an empty verifier", **kw: Any) -> None:
        super().__init__(message, **kw)


class DelayTooShort(PriceWireError):
    """Maximum price delay below the protocol minimum."""

    default_code = ErrorCode.DELAY_TOO_SHORT

    def __init__(self, delay: int, minimum: int) -> None:
        super().__init__(
            f"Maximum price delay must be greater or equal to {minimum} seconds (got {delay})",
            context=_ctx(max_price_delay=delay, minimum=minimum),
        )
        self.delay = delay
        self.minimum = minimum


# --------------------------------------------------------------------------- authorization


class Unauthorized(PriceWireError):
    """An administrative action was attempted by someone other than the owner."""

    default_code = ErrorCode.UNAUTHORIZED

    def __init__(self, caller: Optional[str], owner: Optional[str], action: str) -> None:
        super().__init__(
            f"Caller is not the owner (action={action})",
            context=_ctx(caller=caller, owner=owner, action=action),
        )
        self.caller = caller
        self.owner = owner
        self.action = action


class UnauthorizedSigner(PriceWireError):
    """The recovered package signer is not in the authorized signer set."""

    default_code = ErrorCode.UNAUTHORIZED_SIGNER

    def __init__(
        self,
        signer: str,
        *,
        symbols: Optional[Sequence[str]] = None,
        timestamp: Optional[int] = None,
    ) -> None:
        super().__init__(
            f"Unauthorized price data signer {signer}",
            context=_ctx(signer=signer, symbols=list(symbols) if symbols else None, timestamp=timestamp),
        )
        self.signer = signer


# --------------------------------------------------------------------------- freshness / store


class StaleTimestamp(PriceWireError):
    """Package is older than the configured freshness window."""

    default_code = ErrorCode.STALE_TIMESTAMP

    def __init__(
        self,
        *,
        timestamp: int,
        reference_time: int,
        max_delay: int,
        signer: Optional[str] = None,
        symbols: Optional[Sequence[str]] = None,
    ) -> None:
        age = reference_time - timestamp
        super().__init__(
            f"Price data timestamp too old: age={age}s > max_delay={max_delay}s",
            context=_ctx(
                timestamp=timestamp,
                reference_time=reference_time,
                age=age,
                max_delay=max_delay,
                signer=signer,
                symbols=list(symbols) if symbols else None,
            ),
        )
        self.symbols = tuple(symbols or ())
        self.timestamp = timestamp
        self.reference_time = reference_time
        self.max_delay = max_delay
        self.age = age


class OverwriteConflict(PriceWireError):
    """A symbol already holds a present price and was not cleared first."""

    default_code = ErrorCode.OVERWRITE_CONFLICT

    def __init__(self, symbol: str, *, existing: Optional[int] = None, incoming: Optional[int] = None) -> None:
        super().__init__(
            f"Cannot overwrite existing price for {symbol!r}",
            context=_ctx(symbol=symbol, existing=existing, incoming=incoming),
        )
        self.symbol = symbol


class NoPricingData(PriceWireError):
    """Query for a symbol with no present price."""

    default_code = ErrorCode.NO_PRICING_DATA

    def __init__(self, symbol: str) -> None:
        super().__init__(f"No pricing data for symbol {symbol!r}", context=_ctx(symbol=symbol))
        self.symbol = symbol


# --------------------------------------------------------------------------- codec


class MalformedPayload(PriceWireError):
    """
    Decode failure: wrong lengths, bad marker, truncated signature, bad offsets.

    Context fields
    --------------
    - encoding : "full" | "lite" | "abi"
    - expected, actual : lengths or values that mismatched
    - offset : byte offset where parsing failed (if known)
    """

    default_code = ErrorCode.MALFORMED_PAYLOAD

    def __init__(
        self,
        message: str,
        *,
        encoding: Optional[str] = None,
        expected: Any = None,
        actual: Any = None,
        offset: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        base = _ctx(encoding=encoding, expected=expected, actual=actual, offset=offset)
        if context:
            base.update(context)
        super().__init__(message, context=base, cause=cause)


class InvalidSignature(MalformedPayload):
    """Signature bytes cannot be parsed or do not recover to a public key."""

    default_code = ErrorCode.INVALID_SIGNATURE


class AbiError(PriceWireError):
    """
    Raised when ABI encoding input is invalid (wrong arg count/type, out-of-range
    integers, oversized fixed bytes).
    """

    default_code = ErrorCode.ABI

    def __init__(
        self,
        message: str,
        *,
        function: Optional[str] = None,
        parameter: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, context=_ctx(function=function, parameter=parameter), cause=cause)
        self.function = function
        self.parameter = parameter


# --------------------------------------------------------------------------- connectors / config


class FetchError(PriceWireError):
    """
    Connector I/O failure (network, timeout, non-2xx, unparsable response,
    signature mismatch). Retries belong to the connector; once this is raised
    the fetch is over.
    """

    default_code = ErrorCode.FETCH_ERROR

    def __init__(
        self,
        message: str,
        *,
        source: Optional[str] = None,
        asset: Optional[str] = None,
        url: Optional[str] = None,
        status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            context=_ctx(source=source, asset=asset, url=url, status=status),
            cause=cause,
        )
        self.source = source
        self.status = status


class ConfigError(PriceWireError, ValueError):
    default_code = ErrorCode.CONFIG


__all__ = [
    "ErrorCode",
    "PriceWireError",
    "InvalidVerifier",
    "DelayTooShort",
    "Unauthorized",
    "UnauthorizedSigner",
    "StaleTimestamp",
    "OverwriteConflict",
    "NoPricingData",
    "MalformedPayload",
    "InvalidSignature",
    "AbiError",
    "FetchError",
    "ConfigError",
]
