"""
Connector base class: a pluggable source of price packages.

A connector's `fetch` either returns a complete package (every entry present,
one shared timestamp) or raises `FetchError`; it never returns a partial
package. Networked connectors own their retries; callers see only the final
outcome.
"""

from __future__ import annotations

import abc
import time
from typing import Optional, Union

from .. import logging as plog
from ..errors import FetchError
from ..metrics import METRICS
from ..types import PricePackage, SignedPackage

FetchResult = Union[SignedPackage, PricePackage]

_LOG = plog.get_logger("pricewire.connectors")


class Connector(abc.ABC):
    """Source of signed (or unsigned) price packages."""

    #: Short identifier used in logs, metrics and error context.
    data_source_id: str = "connector"

    async def fetch(self, asset: Optional[str] = None) -> FetchResult:
        """
        Fetch the latest package, optionally scoped to `asset`.

        Wraps `_fetch` with latency/outcome metrics and checks that the result
        is a non-empty package; anything other than a `FetchError` escaping
        `_fetch` is converted into one (cancellation is left untouched).
        """
        started = time.perf_counter()
        outcome = "error"
        try:
            result = await self._fetch(asset)
            _check_complete(result, self.data_source_id, asset)
            outcome = "ok"
            return result
        except FetchError:
            raise
        except (ValueError, TypeError, KeyError) as e:
            raise FetchError(
                f"{self.data_source_id}: invalid package: {e}", source=self.data_source_id, asset=asset, cause=e
            ) from e
        finally:
            elapsed = time.perf_counter() - started
            METRICS.observe_fetch(connector=self.data_source_id, outcome=outcome, seconds=elapsed)
            _LOG.debug(
                "fetch finished",
                extra={"source": self.data_source_id, "outcome": outcome, "elapsed_ms": round(elapsed * 1000, 2)},
            )

    @abc.abstractmethod
    async def _fetch(self, asset: Optional[str]) -> FetchResult:
        """Do the actual fetch."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(data_source_id={self.data_source_id!r})"


def _check_complete(result: FetchResult, source: str, asset: Optional[str]) -> None:
    package = result.package if isinstance(result, SignedPackage) else result
    if not isinstance(package, PricePackage):
        raise FetchError(f"{source}: connector returned {type(result).__name__}", source=source, asset=asset)
    if len(package) == 0:
        raise FetchError(f"{source}: empty price package", source=source, asset=asset)
    if asset is not None and asset not in package.symbols:
        raise FetchError(f"{source}: package does not contain {asset!r}", source=source, asset=asset)


__all__ = ["Connector", "FetchResult"]
