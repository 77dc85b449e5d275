"""
Aggregator connector: merges several connectors into one package.

All sources are fetched concurrently. Symbols present in every successful
response are kept; each value is the median across sources (the lower middle
value for an even count, so the result is always a value some provider
actually reported) and the package timestamp is the oldest source timestamp.

The merged package is new data, so no provider signature applies to it: it is
returned unsigned unless a `signing_key` is configured.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Union

from .. import logging as plog
from ..errors import FetchError
from ..signer import PriceSigner, PrivateKeyLike
from ..types import PriceEntry, PricePackage, SignedPackage
from .base import Connector

_LOG = plog.get_logger("pricewire.connectors.aggregator")


def _lower_median(values: List[int]) -> int:
    ordered = sorted(values)
    return ordered[(len(ordered) - 1) // 2]


class AggregatorConnector(Connector):
    data_source_id = "aggregator"

    def __init__(
        self,
        connectors: Sequence[Connector],
        *,
        signing_key: Optional[PrivateKeyLike] = None,
        min_sources: Optional[int] = None,
    ) -> None:
        if not connectors:
            raise ValueError("aggregator needs at least one connector")
        self.connectors = list(connectors)
        self.min_sources = len(self.connectors) if min_sources is None else int(min_sources)
        if not 1 <= self.min_sources <= len(self.connectors):
            raise ValueError(f"min_sources must be in [1, {len(self.connectors)}]")
        self.signer = PriceSigner(signing_key) if signing_key is not None else None

    async def _fetch(self, asset: Optional[str]) -> Union[SignedPackage, PricePackage]:
        results = await asyncio.gather(*(c.fetch(asset) for c in self.connectors), return_exceptions=True)

        packages: List[PricePackage] = []
        failures: Dict[str, str] = {}
        for conn, res in zip(self.connectors, results):
            if isinstance(res, asyncio.CancelledError):
                raise res
            if isinstance(res, FetchError):
                failures[conn.data_source_id] = res.message
                continue
            if isinstance(res, BaseException):
                raise res
            packages.append(res.package if isinstance(res, SignedPackage) else res)

        if failures:
            _LOG.warning("aggregator sources failed", extra={"failures": failures})
        if len(packages) < self.min_sources:
            raise FetchError(
                f"only {len(packages)} of {len(self.connectors)} sources succeeded (need {self.min_sources})",
                source=self.data_source_id,
                asset=asset,
            )

        # Preserve the first package's symbol order.
        common = [s for s in packages[0].symbols if all(p.value_of(s) is not None for p in packages[1:])]
        if not common:
            raise FetchError("sources share no symbols", source=self.data_source_id, asset=asset)

        entries = tuple(PriceEntry(s, _lower_median([p.value_of(s) for p in packages])) for s in common)
        merged = PricePackage(entries, min(p.timestamp for p in packages))
        if self.signer is None:
            return merged
        return self.signer.sign(merged)


__all__ = ["AggregatorConnector"]
