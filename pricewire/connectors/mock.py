"""
Mock connector: a fixed (or injected) set of prices signed with a well-known
development key.

The package timestamp is ``now - timestamp_offset`` seconds, so a freshly
fetched mock package is always inside any freshness window. Tests that need
different data inject a `package_factory` instead of patching module state::

    def factory(for_time_ms: int) -> dict:
        return {"prices": [{"symbol": "ETH", "value": 1800}], "timestamp": for_time_ms}

    MockConnector(package_factory=factory)

Factory values are human prices (scaled by 10^8 here); the factory timestamp
is in milliseconds.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping, Optional, Union

from ..errors import FetchError
from ..signer import PriceSigner
from ..types import Number, PriceEntry, PricePackage, SignedPackage, millis_to_seconds, serialize_value
from .base import Connector

# Development key shared with the reference mock provider. Never use it for real data.
MOCK_PRIVATE_KEY = "0xae2b81c1fe9e3b01f060362f03abd0c80a6447cfe00ff7fc7fcf000000000000"

DEFAULT_PRICES: Mapping[str, Number] = {"ETH": 10, "AVAX": 5}

PackageFactory = Callable[[int], Mapping[str, Any]]


class MockConnector(Connector):
    """
    Parameters
    ----------
    prices : Mapping[str, Number]
        Human prices to serve (ignored when `package_factory` is given).
    private_key : str | bytes | int | None
        Signing key; None returns unsigned packages.
    clock : Callable[[], float] | None
        Seconds since the epoch (default: wall clock).
    timestamp_offset : int
        Seconds subtracted from "now" for the package timestamp.
    package_factory : Callable[[int], Mapping] | None
        Called with the target time in ms; returns ``{"prices": [...], "timestamp": ms}``.
    """

    data_source_id = "mock"

    def __init__(
        self,
        prices: Mapping[str, Number] = DEFAULT_PRICES,
        *,
        private_key: Union[str, bytes, int, None] = MOCK_PRIVATE_KEY,
        clock: Optional[Callable[[], float]] = None,
        timestamp_offset: int = 1,
        package_factory: Optional[PackageFactory] = None,
    ) -> None:
        self.prices = dict(prices)
        self.signer = PriceSigner(private_key) if private_key is not None else None
        self.clock = clock or time.time
        self.timestamp_offset = int(timestamp_offset)
        self.package_factory = package_factory

    @property
    def signer_address(self) -> Optional[str]:
        return self.signer.address if self.signer is not None else None

    def build_package(self) -> PricePackage:
        target_ms = int(self.clock() * 1000) - self.timestamp_offset * 1000
        if self.package_factory is None:
            return PricePackage.from_prices(self.prices, millis_to_seconds(target_ms))
        data = self.package_factory(target_ms)
        try:
            entries = tuple(PriceEntry(str(p["symbol"]), serialize_value(p["value"])) for p in data["prices"])
            return PricePackage.from_millis(entries, int(data["timestamp"]))
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(f"mock package factory returned invalid data: {e}", source=self.data_source_id, cause=e) from e

    async def _fetch(self, asset: Optional[str]) -> Union[SignedPackage, PricePackage]:
        package = self.build_package()
        if self.signer is None:
            return package
        return self.signer.sign(package)


__all__ = ["MockConnector", "MOCK_PRIVATE_KEY", "DEFAULT_PRICES", "PackageFactory"]
