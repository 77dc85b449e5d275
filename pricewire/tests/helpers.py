"""
Shared test fixtures: well-known keys, a manual clock and two sample
contracts (a lending-style MockDefi read through a price feed, and a
PriceAware contract reading lite payloads).
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Tuple

from pricewire.devnet import ExecutionContext, InterfaceContract, abi_function
from pricewire.receiver import PriceAware
from pricewire.signer import address_of, sign_package
from pricewire.types import PricePackage, bytes32_to_symbol, symbol_to_bytes32
from pricewire.verifier import PriceFeed

# secp256k1 keys 1 and 2: well-known addresses, handy for cross-checking.
KEY_A = 1
KEY_B = 2
ADDR_A = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
ADDR_B = "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"

ADMIN_KEY = 0xA11CE
ADMIN = address_of(ADMIN_KEY)
ALICE = address_of(0xA1)

T0 = 1_700_000_000

ETH = symbol_to_bytes32("ETH")
AVAX = symbol_to_bytes32("AVAX")


class FakeClock:
    """Seconds clock that only moves when told to."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class MockDefi(InterfaceContract):
    """Balances per (account, symbol); valuations read from a PriceFeed."""

    def __init__(self, feed: PriceFeed) -> None:
        self.feed = feed
        self.balances: Dict[Tuple[str, bytes], int] = defaultdict(int)

    def _price(self, symbol: bytes) -> int:
        return self.feed.get_price(bytes32_to_symbol(symbol))

    @abi_function("deposit(bytes32,uint256)")
    def deposit(self, ctx: ExecutionContext, symbol: bytes, amount: int) -> None:
        self.balances[(ctx.sender, symbol)] += amount

    @abi_function("balanceOf(address,bytes32)", ["uint256"], view=True)
    def balance_of(self, ctx: ExecutionContext, account: str, symbol: bytes) -> int:
        return self.balances[(account, symbol)]

    @abi_function("currentValueOf(address,bytes32)", ["uint256"], view=True)
    def current_value_of(self, ctx: ExecutionContext, account: str, symbol: bytes) -> int:
        return self.balances[(account, symbol)] * self._price(symbol)

    @abi_function("swap(bytes32,bytes32,uint256)")
    def swap(self, ctx: ExecutionContext, from_symbol: bytes, to_symbol: bytes, amount: int) -> None:
        received = amount * self._price(from_symbol) // self._price(to_symbol)
        self.balances[(ctx.sender, from_symbol)] -= amount
        self.balances[(ctx.sender, to_symbol)] += received


class SamplePriceAware(PriceAware, InterfaceContract):
    @abi_function("getPriceFromMsgPublic(bytes32)", ["uint256"], view=True)
    def get_price_from_msg_public(self, ctx: ExecutionContext, symbol: bytes) -> int:
        return self.get_price_from_msg(ctx, bytes32_to_symbol(symbol))

    @abi_function("executeWithPrice(uint256)", ["uint256"], view=True)
    def execute_with_price(self, ctx: ExecutionContext, quantity: int) -> int:
        return quantity * self.get_price_from_msg(ctx, "ETH")


def cache_body(prices=None, ts: int = T0, key=KEY_A, signer=ADDR_A) -> dict:
    """A cache-layer ``/packages/latest`` response body (human prices, ms timestamp)."""
    prices = prices or {"ETH": 10, "AVAX": 5}
    signed = sign_package(PricePackage.from_prices(prices, ts), key)
    body = {
        "timestamp": ts * 1000,
        "prices": [{"symbol": s, "value": v} for s, v in prices.items()],
        "liteSignature": "0x" + signed.signature.hex(),
    }
    if signer is not None:
        body["signer"] = signer
    return body
