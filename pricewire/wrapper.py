"""
pricewire.wrapper
=================

Call wrapping: every invocation of a wrapped contract carries a freshly
fetched, signed price payload at the tail of its calldata.

Per invocation:

1. build the calldata an unwrapped call would send,
2. fetch a package from the connector (signing it when the connector returns
   unsigned data),
3. encode it (full or lite layout) and append it,
4. read-only functions: simulate through ``backend.call`` and decode the
   result; mutating functions: ``backend.send_transaction`` and return the
   receipt unchanged.

Typical usage
-------------
    defi = WrapperBuilder.wrap(contract).using_price_feed("redstone", asset="ETH")
    value = await defi.currentValueOf(alice, eth32)

    sample = WrapperBuilder.mock_lite(contract).using({"ETH": 1800})
    await sample.executeWithPrice(7)

Cancelling a wrapped call while the fetch is in flight propagates
`asyncio.CancelledError`; nothing is signed, encoded or submitted.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping, Optional, Union

from . import logging as plog
from .abi import ContractInterface
from .config import PriceWireConfig
from .connectors import MOCK_PRIVATE_KEY, Connector, MockConnector
from .contract import CallRequest, Contract, ExecutionBackend
from .encoding import Encoding, PayloadEncoder, encoder_for
from .errors import FetchError
from .feeds import FeedRegistry, build_connector
from .metrics import METRICS
from .signer import PriceSigner, PrivateKeyLike
from .types import PricePackage, SignedPackage

_LOG = plog.get_logger("pricewire.wrapper")


class PriceInjector:
    """
    Fetches, signs (if needed), validates and encodes one payload per call.

    Parameters
    ----------
    connector : Connector
        Price source.
    encoding : Encoding
        FULL (price-feed proxy receivers) or LITE (PriceAware receivers).
    asset : str | None
        Optional asset filter passed to every fetch.
    signing_key : key | None
        Used only when the connector returns unsigned packages.
    fetch_timeout : float | None
        Upper bound for one fetch in seconds.
    """

    def __init__(
        self,
        connector: Connector,
        *,
        encoding: Union[Encoding, str] = Encoding.FULL,
        asset: Optional[str] = None,
        signing_key: Optional[PrivateKeyLike] = None,
        fetch_timeout: Optional[float] = None,
    ) -> None:
        self.connector = connector
        self.encoder: PayloadEncoder = encoder_for(encoding)
        self.asset = asset
        self.signer = PriceSigner(signing_key) if signing_key is not None else None
        self.fetch_timeout = fetch_timeout

    @property
    def encoding(self) -> Encoding:
        return self.encoder.encoding

    async def _fetch(self) -> Union[SignedPackage, PricePackage]:
        if self.fetch_timeout is None:
            return await self.connector.fetch(self.asset)
        try:
            return await asyncio.wait_for(self.connector.fetch(self.asset), self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(
                f"fetch timed out after {self.fetch_timeout}s",
                source=self.connector.data_source_id,
                asset=self.asset,
                cause=e,
            ) from e

    async def signed_package(self) -> SignedPackage:
        result = await self._fetch()
        if isinstance(result, PricePackage):
            if self.signer is None:
                raise FetchError(
                    "connector returned an unsigned package and no signing key is configured",
                    source=self.connector.data_source_id,
                    asset=self.asset,
                )
            return self.signer.sign(result)
        if result.signer is not None and not result.verify():
            raise FetchError(
                f"package signature does not match claimed signer {result.signer}",
                source=self.connector.data_source_id,
                asset=self.asset,
            )
        return result

    async def payload(self) -> bytes:
        signed = await self.signed_package()
        data = self.encoder.encode(signed)
        METRICS.observe_payload(encoding=self.encoding.value, size_bytes=len(data))
        return data

    async def inject(self, request: CallRequest) -> CallRequest:
        return request.with_data(request.data + await self.payload())

    def __repr__(self) -> str:
        return f"PriceInjector(connector={self.connector!r}, encoding={self.encoding.value}, asset={self.asset!r})"


class WrappedFunction:
    __slots__ = ("wrapped", "name")

    def __init__(self, wrapped: "WrappedContract", name: str) -> None:
        self.wrapped = wrapped
        self.name = name

    async def __call__(self, *args: Any) -> Any:
        return await self.wrapped.invoke(self.name, *args)

    def __repr__(self) -> str:
        return f"<WrappedFunction {self.name}>"


class WrappedContract:
    """
    Same function surface as the wrapped `Contract`, with price payloads
    injected. Wrapping a `WrappedContract` wraps its underlying contract, so
    the most recent wrap decides the payload.
    """

    def __init__(self, contract: Union[Contract, "WrappedContract"], injector: PriceInjector) -> None:
        if isinstance(contract, WrappedContract):
            contract = contract.unwrap()
        self._contract = contract
        self._injector = injector

    def unwrap(self) -> Contract:
        return self._contract

    @property
    def injector(self) -> PriceInjector:
        return self._injector

    @property
    def address(self) -> str:
        return self._contract.address

    @property
    def interface(self) -> ContractInterface:
        return self._contract.interface

    @property
    def backend(self) -> ExecutionBackend:
        return self._contract.backend

    async def invoke(self, fn: str, *args: Any) -> Any:
        request = self._contract.populate_transaction(fn, *args)
        with plog.trace_scope(contract=self.address, function=fn, encoding=self._injector.encoding.value):
            request = await self._injector.inject(request)
            _LOG.debug("payload injected", extra={"calldata_bytes": len(request.data)})
            return await self._contract.execute(fn, request)

    @property
    def functions(self) -> Mapping[str, WrappedFunction]:
        return {name: WrappedFunction(self, name) for name in self.interface.names}

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        contract = self.__dict__.get("_contract")
        if contract is None:
            raise AttributeError(name)
        if name in contract.interface:
            return WrappedFunction(self, name)
        # Non-function helpers (populate_transaction, decode_result, sender, ...)
        return getattr(contract, name)

    def connect(self, sender: str) -> "WrappedContract":
        return WrappedContract(self._contract.connect(sender), self._injector)

    def attach(self, address: str) -> "WrappedContract":
        return WrappedContract(self._contract.attach(address), self._injector)

    def __repr__(self) -> str:
        return f"WrappedContract({self._contract!r}, {self._injector!r})"


PricesOrFactory = Union[Mapping[str, Any], Callable[[int], Mapping[str, Any]]]


class WrapperBuilder:
    """
    Fluent entry point::

        WrapperBuilder.wrap(c).using_price_feed("redstone")
        WrapperBuilder.wrap_lite(c).using_connector(my_connector)
        WrapperBuilder.mock(c).using({"ETH": 1800})
        WrapperBuilder.mock_lite(c).using(lambda ms: {...})
    """

    def __init__(self, contract: Union[Contract, WrappedContract], encoding: Encoding, *, mock: bool = False) -> None:
        self.contract = contract
        self.encoding = Encoding(encoding)
        self.is_mock = mock

    @classmethod
    def wrap(cls, contract: Union[Contract, WrappedContract]) -> "WrapperBuilder":
        return cls(contract, Encoding.FULL)

    @classmethod
    def wrap_lite(cls, contract: Union[Contract, WrappedContract]) -> "WrapperBuilder":
        return cls(contract, Encoding.LITE)

    @classmethod
    def mock(cls, contract: Union[Contract, WrappedContract]) -> "WrapperBuilder":
        return cls(contract, Encoding.FULL, mock=True)

    @classmethod
    def mock_lite(cls, contract: Union[Contract, WrappedContract]) -> "WrapperBuilder":
        return cls(contract, Encoding.LITE, mock=True)

    def using_connector(
        self,
        connector: Connector,
        *,
        asset: Optional[str] = None,
        signing_key: Optional[PrivateKeyLike] = None,
        fetch_timeout: Optional[float] = None,
    ) -> WrappedContract:
        injector = PriceInjector(
            connector, encoding=self.encoding, asset=asset, signing_key=signing_key, fetch_timeout=fetch_timeout
        )
        return WrappedContract(self.contract, injector)

    def using_price_feed(
        self,
        feed_id: str,
        asset: Optional[str] = None,
        *,
        config: Optional[PriceWireConfig] = None,
        registry: Optional[FeedRegistry] = None,
    ) -> WrappedContract:
        if self.is_mock:
            raise ValueError("mock builders take prices via using(); use wrap()/wrap_lite() for price feeds")
        cfg = config or PriceWireConfig.from_env()
        connector = build_connector(feed_id, asset, cfg, registry=registry)
        return self.using_connector(connector, asset=asset, fetch_timeout=cfg.http_timeout * (cfg.max_retries + 1))

    def using(
        self,
        prices: Optional[PricesOrFactory] = None,
        *,
        clock: Optional[Callable[[], float]] = None,
        private_key: PrivateKeyLike = MOCK_PRIVATE_KEY,
        timestamp_offset: int = 1,
    ) -> WrappedContract:
        """Mock builders only: fixed prices (mapping) or a package factory (callable)."""
        if not self.is_mock:
            raise ValueError("using() is only available on mock builders")
        if callable(prices):
            connector = MockConnector(
                private_key=private_key, clock=clock, timestamp_offset=timestamp_offset, package_factory=prices
            )
        elif prices is not None:
            connector = MockConnector(prices, private_key=private_key, clock=clock, timestamp_offset=timestamp_offset)
        else:
            connector = MockConnector(private_key=private_key, clock=clock, timestamp_offset=timestamp_offset)
        return self.using_connector(connector)


__all__ = [
    "PriceInjector",
    "WrappedFunction",
    "WrappedContract",
    "WrapperBuilder",
]
