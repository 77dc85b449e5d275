"""
Cache-layer connector: reads the latest signed package for a provider from an
HTTP cache service.

Request::

    GET {url}/packages/latest?asset=<asset>&provider=<provider_id>

Response (JSON)::

    {
      "timestamp": 1700000000123,                       # milliseconds
      "prices": [{"symbol": "ETH", "value": 1800.25}],  # human prices
      "liteSignature": "0x<65 bytes>",
      "signer": "0x<address>"
    }

A single-asset response may carry ``symbol``/``value`` at the top level instead
of a ``prices`` list. The signature is checked against the claimed signer
before the package is returned.

Retries: transport errors, timeouts, 429 and 5xx are retried with exponential
backoff; any other failure (4xx, bad JSON, malformed body, signer mismatch) is
final. Every failure surfaces as `FetchError`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import httpx

from .. import logging as plog
from ..errors import FetchError, InvalidSignature
from ..signer import recover_signer
from ..types import PriceEntry, PricePackage, SignedPackage, serialize_value
from ..utils.address import normalize_address, same_address
from ..utils.bytes import from_hex
from ..utils.retry import RetryError, RetryPolicy, aretry_call
from ..version import __version__
from .base import Connector

_LOG = plog.get_logger("pricewire.connectors.cache_layer")


class _Transient(Exception):
    """Internal marker for retryable failures."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def _is_retriable_http(status: int) -> bool:
    return status == 429 or 500 <= status <= 599


class CacheLayerConnector(Connector):
    """
    Parameters
    ----------
    url : str
        Base URL of the cache service (http/https).
    provider_id : str
        Provider identifier passed as the ``provider`` query parameter.
    client : httpx.AsyncClient | None
        Shared client; when None a client is created per fetch.
    timeout : float
        Per-request timeout in seconds.
    retries : int
        Additional attempts after the first for retryable failures.
    backoff : float
        Base delay for exponential backoff (seconds).
    """

    data_source_id = "cache-layer"

    def __init__(
        self,
        url: str,
        provider_id: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        retries: int = 3,
        backoff: float = 0.25,
        user_agent: str = f"pricewire-py/{__version__}",
    ) -> None:
        if not url.lower().startswith(("http://", "https://")):
            raise ValueError(f"cache layer URL must be http(s): {url!r}")
        self.url = url.rstrip("/")
        self.provider_id = provider_id
        self.client = client
        self.timeout = float(timeout)
        self.retries = int(retries)
        self.backoff = float(backoff)
        self.retry_policy = RetryPolicy(retries=self.retries, base=self.backoff, max_delay=self.backoff * 8)
        self.headers = {"Accept": "application/json", "User-Agent": user_agent}

    @property
    def endpoint(self) -> str:
        return f"{self.url}/packages/latest"

    def params(self, asset: Optional[str]) -> Dict[str, str]:
        p = {"provider": self.provider_id}
        if asset is not None:
            p["asset"] = asset
        return p

    # ---- HTTP ----------------------------------------------------------------------

    async def _get_once(self, client: httpx.AsyncClient, asset: Optional[str]) -> Any:
        try:
            r = await client.get(self.endpoint, params=self.params(asset), headers=self.headers, timeout=self.timeout)
        except httpx.TransportError as e:
            raise _Transient(f"transport error: {e!r}") from e
        if _is_retriable_http(r.status_code):
            raise _Transient(f"HTTP {r.status_code}", status=r.status_code)
        if r.status_code >= 400:
            raise FetchError(
                f"cache layer returned HTTP {r.status_code}: {r.text[:256]}",
                source=self.data_source_id,
                asset=asset,
                url=self.endpoint,
                status=r.status_code,
            )
        try:
            return r.json()
        except ValueError as e:
            raise FetchError(
                "cache layer returned non-JSON body",
                source=self.data_source_id,
                asset=asset,
                url=self.endpoint,
                status=r.status_code,
                cause=e,
            ) from e

    async def _get(self, asset: Optional[str]) -> Any:
        def _on_retry(attempt: int, exc: BaseException, sleep_s: float) -> None:
            _LOG.warning(
                "cache layer fetch retry",
                extra={"attempt": attempt, "error": str(exc), "sleep_s": round(sleep_s, 3)},
            )

        async def _run(client: httpx.AsyncClient) -> Any:
            try:
                return await aretry_call(
                    self._get_once,
                    client,
                    asset,
                    policy=self.retry_policy,
                    retry_on=_Transient,
                    on_retry=_on_retry,
                )
            except RetryError as e:
                last = e.last_exception
                raise FetchError(
                    f"cache layer unavailable after {e.attempts} attempts: {last}",
                    source=self.data_source_id,
                    asset=asset,
                    url=self.endpoint,
                    status=getattr(last, "status", None),
                    cause=last,
                ) from e

        if self.client is not None:
            return await _run(self.client)
        async with httpx.AsyncClient() as client:
            return await _run(client)

    # ---- parsing -------------------------------------------------------------------

    def parse_response(self, body: Any, asset: Optional[str] = None) -> SignedPackage:
        """Turn a cache-layer JSON body into a verified `SignedPackage`."""
        if not isinstance(body, Mapping):
            raise self._malformed("response body must be an object", asset)
        try:
            timestamp_ms = int(body["timestamp"])
            raw_prices = body.get("prices")
            if raw_prices is None and "symbol" in body:
                raw_prices = [{"symbol": body["symbol"], "value": body["value"]}]
            if not isinstance(raw_prices, list) or not raw_prices:
                raise self._malformed("response has no prices", asset)
            entries: List[PriceEntry] = [
                PriceEntry(str(p["symbol"]), serialize_value(p["value"])) for p in raw_prices
            ]
            signature = from_hex(str(body["liteSignature"]))
            claimed = body.get("signer")
        except FetchError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise self._malformed(f"malformed response: {e}", asset, cause=e) from e

        package = PricePackage.from_millis(entries, timestamp_ms)
        try:
            recovered = recover_signer(package, signature)
        except InvalidSignature as e:
            raise self._malformed("invalid liteSignature", asset, cause=e) from e
        if claimed is not None and not same_address(recovered, str(claimed)):
            raise FetchError(
                f"signature recovers to {recovered}, response claims {claimed}",
                source=self.data_source_id,
                asset=asset,
                url=self.endpoint,
            )
        signer = normalize_address(str(claimed)) if claimed is not None else recovered
        return SignedPackage(package, signature, signer)

    def _malformed(self, message: str, asset: Optional[str], cause: Optional[BaseException] = None) -> FetchError:
        return FetchError(message, source=self.data_source_id, asset=asset, url=self.endpoint, cause=cause)

    async def _fetch(self, asset: Optional[str]) -> SignedPackage:
        with plog.trace_scope(feed=self.provider_id, asset=asset):
            body = await self._get(asset)
            signed = self.parse_response(body, asset)
            _LOG.debug(
                "cache layer package",
                extra={"signer": signed.signer, "symbols": list(signed.package.symbols), "timestamp": signed.package.timestamp},
            )
            return signed


__all__ = ["CacheLayerConnector"]
