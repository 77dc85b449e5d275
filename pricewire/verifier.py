"""
pricewire.verifier
==================

Authorization & freshness gate plus the transient price store.

`PriceFeed` holds the durable side of the protocol:

- an authorized signer set (administered by an owner),
- a fixed maximum price delay (>= 15 seconds),
- a symbol -> value store in which each symbol moves ``Absent -> Set -> Absent``.

Admission (`set_prices`) is all-or-nothing: every check runs before the first
write, so a rejected package leaves the store untouched.

Typical usage
-------------
    feed = PriceFeed(PriceVerifier(), 300, owner=admin)
    feed.authorize_signer(admin, provider_address)
    feed.set_prices(package, signature)
    feed.get_price("ETH")
    feed.clear_prices(package)
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set

from . import logging as plog
from .errors import (DelayTooShort, InvalidSignature, InvalidVerifier, NoPricingData, OverwriteConflict,
                     StaleTimestamp, Unauthorized, UnauthorizedSigner)
from .metrics import METRICS
from .signer import recover_signer
from .types import PricePackage
from .utils.address import normalize_address
from .utils.bytes import BytesLike

MIN_MAX_PRICE_DELAY = 15

Clock = Callable[[], int]

_LOG = plog.get_logger("pricewire.verifier")


def system_clock() -> int:
    """Wall-clock seconds since the epoch."""
    return int(time.time())


class ClearPolicy(str, Enum):
    """Who may clear prices: anyone (OPEN) or authorized signers only (SIGNED)."""

    OPEN = "open"
    SIGNED = "signed"


class PriceVerifier:
    """Recovers the identity that signed a package. Stateless."""

    def recover_signer(self, package: PricePackage, signature: BytesLike) -> str:
        return recover_signer(package, signature)


class PriceFeed:
    """
    Price store guarded by signer authorization and a freshness window.

    Parameters
    ----------
    verifier : PriceVerifier
        Delegate used to recover package signers. Required.
    max_price_delay : int
        Maximum accepted package age in seconds (>= 15).
    owner : str
        Administrator address; only it may change the signer set.
    clock : Callable[[], int] | None
        Source of "now" in seconds when `set_prices` is called without `now`.
    clear_policy : ClearPolicy
        OPEN (default) or SIGNED.
    """

    def __init__(
        self,
        verifier: Optional[PriceVerifier],
        max_price_delay: int,
        *,
        owner: str,
        clock: Optional[Clock] = None,
        clear_policy: ClearPolicy = ClearPolicy.OPEN,
    ) -> None:
        if verifier is None:
            raise InvalidVerifier()
        if max_price_delay < MIN_MAX_PRICE_DELAY:
            raise DelayTooShort(max_price_delay, MIN_MAX_PRICE_DELAY)
        self._verifier = verifier
        self._max_price_delay = int(max_price_delay)
        self._owner = normalize_address(owner)
        self._clock: Clock = clock or system_clock
        self._clear_policy = ClearPolicy(clear_policy)
        self._signers: Set[str] = set()
        self._prices: Dict[str, int] = {}

    # ---- read-only properties ----------------------------------------------------

    @property
    def verifier(self) -> PriceVerifier:
        return self._verifier

    @property
    def max_price_delay(self) -> int:
        return self._max_price_delay

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def clear_policy(self) -> ClearPolicy:
        return self._clear_policy

    @property
    def authorized_signers(self) -> frozenset:
        return frozenset(self._signers)

    # ---- administration ------------------------------------------------------------

    def _require_owner(self, caller: str, action: str) -> None:
        try:
            ok = normalize_address(caller) == self._owner
        except (TypeError, ValueError):
            ok = False
        if not ok:
            raise Unauthorized(caller, self._owner, action)

    def authorize_signer(self, caller: str, identity: str) -> None:
        self._require_owner(caller, "authorize_signer")
        signer = normalize_address(identity)
        self._signers.add(signer)
        _LOG.info("signer authorized", extra={"signer": signer})

    def revoke_signer(self, caller: str, identity: str) -> None:
        self._require_owner(caller, "revoke_signer")
        signer = normalize_address(identity)
        self._signers.discard(signer)
        _LOG.info("signer revoked", extra={"signer": signer})

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._require_owner(caller, "transfer_ownership")
        previous, self._owner = self._owner, normalize_address(new_owner)
        _LOG.info("ownership transferred", extra={"previous": previous, "new": self._owner})

    def is_signer_authorized(self, identity: str) -> bool:
        try:
            return normalize_address(identity) in self._signers
        except ValueError:
            return False

    # ---- admission -----------------------------------------------------------------

    def now(self) -> int:
        return int(self._clock())

    def set_prices(self, package: PricePackage, signature: BytesLike, *, now: Optional[int] = None) -> str:
        """
        Admit a signed package. Returns the recovered signer.

        Raises UnauthorizedSigner, StaleTimestamp or OverwriteConflict; nothing
        is written unless every check passes.
        """
        try:
            signer = self._verifier.recover_signer(package, signature)
        except InvalidSignature:
            METRICS.record_reject(reason="invalid_signature")
            raise
        if signer not in self._signers:
            METRICS.record_reject(reason="unauthorized_signer")
            raise UnauthorizedSigner(signer, symbols=package.symbols, timestamp=package.timestamp)

        reference = self.now() if now is None else int(now)
        if reference - package.timestamp > self._max_price_delay:
            METRICS.record_reject(reason="stale_timestamp")
            raise StaleTimestamp(
                timestamp=package.timestamp,
                reference_time=reference,
                max_delay=self._max_price_delay,
                signer=signer,
                symbols=package.symbols,
            )

        seen: Set[str] = set()
        for entry in package.entries:
            if entry.symbol in self._prices or entry.symbol in seen:
                METRICS.record_reject(reason="overwrite_conflict")
                raise OverwriteConflict(entry.symbol, existing=self._prices.get(entry.symbol), incoming=entry.value)
            seen.add(entry.symbol)

        for entry in package.entries:
            self._prices[entry.symbol] = entry.value
        METRICS.record_admit(symbols=len(package))
        _LOG.debug(
            "prices set",
            extra={"signer": signer, "symbols": list(package.symbols), "timestamp": package.timestamp},
        )
        return signer

    def clear_prices(self, package: PricePackage, signature: Optional[BytesLike] = None) -> None:
        """Remove every symbol of `package` from the store; absent symbols are ignored."""
        if self._clear_policy is ClearPolicy.SIGNED:
            if signature is None:
                raise UnauthorizedSigner("<unsigned>", symbols=package.symbols, timestamp=package.timestamp)
            signer = self._verifier.recover_signer(package, signature)
            if signer not in self._signers:
                raise UnauthorizedSigner(signer, symbols=package.symbols, timestamp=package.timestamp)
        for symbol in package.symbols:
            self._prices.pop(symbol, None)
        _LOG.debug("prices cleared", extra={"symbols": list(package.symbols)})

    # ---- queries -------------------------------------------------------------------

    def has_price(self, symbol: str) -> bool:
        return symbol in self._prices

    def get_price(self, symbol: str) -> int:
        try:
            return self._prices[symbol]
        except KeyError:
            raise NoPricingData(symbol) from None

    def get_prices(self, symbols: Iterable[str]) -> List[int]:
        return [self.get_price(s) for s in symbols]

    def __repr__(self) -> str:
        return (
            f"PriceFeed(owner={self._owner}, max_price_delay={self._max_price_delay}, "
            f"signers={len(self._signers)}, prices={len(self._prices)})"
        )


__all__ = [
    "MIN_MAX_PRICE_DELAY",
    "Clock",
    "system_clock",
    "ClearPolicy",
    "PriceVerifier",
    "PriceFeed",
]
