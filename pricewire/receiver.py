"""
pricewire.receiver
==================

Receiving side of both payload layouts, written against the devnet contract
model (`InterfaceContract` + `ExecutionContext`).

- `PriceFeedContract`: ABI surface over a `PriceFeed` (setPrices, clearPrices,
  getPrice, ...), so the same selectors that the full payload embeds can be
  called directly.
- `PriceFeedProxy`: sits in front of a business contract. When calldata ends
  with the protocol marker it admits the embedded package, dispatches the
  original calldata to the target and clears the same symbols afterwards,
  whether or not the target call succeeded.
- `PriceAware`: mixin for contracts that read a lite payload straight from
  their own calldata instead of going through a price feed.
"""

from __future__ import annotations

from typing import Optional, Set

from . import logging as plog
from .devnet import ExecutionContext, InterfaceContract, abi_function
from .encoding import PRICE_DATA_TYPE, FullEncoder, LiteEncoder, package_from_args
from .errors import StaleTimestamp, UnauthorizedSigner
from .signer import recover_signer
from .types import bytes32_to_symbol
from .utils.address import normalize_address
from .verifier import PriceFeed

_LOG = plog.get_logger("pricewire.receiver")

_FULL = FullEncoder()
_LITE = LiteEncoder()


class PriceFeedContract(InterfaceContract):
    """Exposes a `PriceFeed` through the ABI the full payload is built from."""

    def __init__(self, feed: PriceFeed) -> None:
        self.feed = feed

    @abi_function(f"setPrices({PRICE_DATA_TYPE},bytes)")
    def set_prices(self, ctx: ExecutionContext, price_data: tuple, signature: bytes) -> None:
        self.feed.set_prices(package_from_args(price_data), signature, now=ctx.block_time)

    @abi_function(f"clearPrices({PRICE_DATA_TYPE})")
    def clear_prices(self, ctx: ExecutionContext, price_data: tuple) -> None:
        self.feed.clear_prices(package_from_args(price_data))

    @abi_function("getPrice(bytes32)", ["uint256"], view=True)
    def get_price(self, ctx: ExecutionContext, symbol: bytes) -> int:
        return self.feed.get_price(bytes32_to_symbol(symbol))

    @abi_function("authorizeSigner(address)")
    def authorize_signer(self, ctx: ExecutionContext, signer: str) -> None:
        self.feed.authorize_signer(ctx.sender, signer)

    @abi_function("revokeSigner(address)")
    def revoke_signer(self, ctx: ExecutionContext, signer: str) -> None:
        self.feed.revoke_signer(ctx.sender, signer)

    @abi_function("isSignerAuthorized(address)", ["bool"], view=True)
    def is_signer_authorized(self, ctx: ExecutionContext, signer: str) -> bool:
        return self.feed.is_signer_authorized(signer)

    @abi_function("maxPriceDelay()", ["uint256"], view=True)
    def max_price_delay(self, ctx: ExecutionContext) -> int:
        return self.feed.max_price_delay


class PriceFeedProxy(InterfaceContract):
    """
    Forwards calls to `target`, admitting a full payload first when present.

    The proxy presents the target's interface, so a client `Contract` built
    for the target can simply be attached to the proxy's address.
    """

    def __init__(self, target: InterfaceContract, price_feed: PriceFeed, *, clear_after_call: bool = True) -> None:
        self.target = target
        self.price_feed = price_feed
        self.clear_after_call = clear_after_call
        self.INTERFACE = target.INTERFACE  # type: ignore[misc]

    def handle(self, ctx: ExecutionContext) -> bytes:
        if not _FULL.has_marker(ctx.calldata):
            return self.target.handle(ctx)

        original, signed = _FULL.extract(ctx.calldata)
        package = signed.package
        signer = self.price_feed.set_prices(package, signed.signature, now=ctx.block_time)
        _LOG.debug(
            "payload admitted",
            extra={"target": type(self.target).__name__, "signer": signer, "symbols": list(package.symbols)},
        )
        try:
            return self.target.handle(ctx.with_calldata(original))
        finally:
            if self.clear_after_call:
                self.price_feed.clear_prices(package, signed.signature)


class PriceAware:
    """
    Mixin reading a lite payload from the tail of the current calldata.

    Subclasses may override `is_signer_authorized` or `max_price_delay`.
    """

    max_price_delay: int = 180

    def _trusted(self) -> Set[str]:
        trusted = self.__dict__.get("_trusted_signers")
        if trusted is None:
            trusted = self.__dict__["_trusted_signers"] = set()
        return trusted

    def authorize_provider(self, identity: str) -> None:
        self._trusted().add(normalize_address(identity))

    def revoke_provider(self, identity: str) -> None:
        self._trusted().discard(normalize_address(identity))

    def is_signer_authorized(self, identity: str) -> bool:
        return normalize_address(identity) in self._trusted()

    def get_price_from_msg(self, ctx: ExecutionContext, symbol: str, *, now: Optional[int] = None) -> int:
        """
        Value of `symbol` in the payload attached to this call, or 0 when the
        package does not carry it.
        """
        _, signed = _LITE.extract(ctx.calldata)
        package = signed.package
        signer = recover_signer(package, signed.signature)
        if not self.is_signer_authorized(signer):
            raise UnauthorizedSigner(signer, symbols=package.symbols, timestamp=package.timestamp)
        reference = ctx.block_time if now is None else now
        if reference - package.timestamp > self.max_price_delay:
            raise StaleTimestamp(
                timestamp=package.timestamp,
                reference_time=reference,
                max_delay=self.max_price_delay,
                signer=signer,
                symbols=package.symbols,
            )
        value = package.value_of(symbol)
        return 0 if value is None else value


__all__ = ["PriceFeedContract", "PriceFeedProxy", "PriceAware"]
