"""
pricewire: signed off-chain price data carried in contract calldata.

Price packages are signed by trusted providers, packed into a compact payload
and appended to the calldata of an ordinary contract call. The receiving side
recovers the signer, checks freshness and applies the prices atomically with
the call they accompany.

Modules
-------
- types       : PriceEntry / PricePackage / SignedPackage
- encoding    : canonical bytes, full and lite payload layouts
- signer      : secp256k1 signing and signer recovery
- verifier    : PriceFeed authorization & freshness gate
- receiver    : PriceFeedProxy, PriceAware (receiving side)
- connectors  : mock, cache-layer and aggregator price sources
- wrapper     : PriceInjector, WrappedContract, WrapperBuilder
- contract    : Contract handle over an ExecutionBackend
- devnet      : in-memory LocalExecutor for development and tests
"""

from .connectors import AggregatorConnector, CacheLayerConnector, Connector, MockConnector
from .contract import CallRequest, Contract, ExecutionBackend, TxReceipt
from .encoding import (PROTOCOL_MARKER, Encoding, FullEncoder, LiteEncoder, canonical_bytes,
                       canonical_hash, encoder_for)
from .errors import (DelayTooShort, FetchError, InvalidSignature, InvalidVerifier, MalformedPayload,
                     NoPricingData, OverwriteConflict, PriceWireError, StaleTimestamp, Unauthorized,
                     UnauthorizedSigner)
from .signer import PriceSigner, address_of, recover_signer, sign_package
from .types import PriceEntry, PricePackage, SignedPackage
from .verifier import ClearPolicy, PriceFeed, PriceVerifier
from .version import __version__
from .wrapper import PriceInjector, WrappedContract, WrapperBuilder

__all__ = [
    "__version__",
    # types
    "PriceEntry",
    "PricePackage",
    "SignedPackage",
    # encoding
    "Encoding",
    "PROTOCOL_MARKER",
    "FullEncoder",
    "LiteEncoder",
    "canonical_bytes",
    "canonical_hash",
    "encoder_for",
    # signer
    "PriceSigner",
    "sign_package",
    "recover_signer",
    "address_of",
    # verifier
    "PriceVerifier",
    "PriceFeed",
    "ClearPolicy",
    # contracts & wrapping
    "CallRequest",
    "TxReceipt",
    "ExecutionBackend",
    "Contract",
    "PriceInjector",
    "WrappedContract",
    "WrapperBuilder",
    # connectors
    "Connector",
    "MockConnector",
    "CacheLayerConnector",
    "AggregatorConnector",
    # errors
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
    "FetchError",
]
