"""
Pluggable price sources.

- `MockConnector`       : fixed or injected prices signed with a dev key
- `CacheLayerConnector` : HTTP cache service (``/packages/latest``)
- `AggregatorConnector` : median of several connectors
"""

from .aggregator import AggregatorConnector
from .base import Connector, FetchResult
from .cache_layer import CacheLayerConnector
from .mock import DEFAULT_PRICES, MOCK_PRIVATE_KEY, MockConnector

__all__ = [
    "Connector",
    "FetchResult",
    "MockConnector",
    "MOCK_PRIVATE_KEY",
    "DEFAULT_PRICES",
    "CacheLayerConnector",
    "AggregatorConnector",
]
