"""
Feeds: named price sources resolved into connectors.

A feed id ("redstone", "redstone-stocks", ...) names a provider on a cache
service, or a local mock. The built-in registry can be extended or overridden
with a YAML/JSON file (``PRICEWIRE_FEEDS_FILE``)::

    feeds:
      redstone-stocks:
        url: https://cache.example.org
        provider: redstone-stocks
        assets: [IBM, AAPL, FB]
      local:
        kind: mock
        prices: {ETH: 1800, BTC: 30000}

Typical usage
-------------
    from pricewire.feeds import build_connector

    connector = build_connector("redstone-stocks", asset="IBM")
    signed = await connector.fetch("IBM")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from . import logging as plog
from .config import PriceWireConfig, load_structured_file
from .connectors import CacheLayerConnector, Connector, MockConnector
from .errors import ConfigError

_LOG = plog.get_logger("pricewire.feeds")

KINDS = ("cache-layer", "mock")


@dataclass(frozen=True)
class FeedSource:
    """
    Attributes:
        feed_id: Public name of the feed.
        kind: "cache-layer" or "mock".
        url: Cache service base URL; None means the configured default.
        provider_id: Provider passed to the cache service (defaults to feed_id).
        assets: Optional allow-list of assets the feed serves.
        prices: Human prices served by a mock feed.
    """

    feed_id: str
    kind: str = "cache-layer"
    url: Optional[str] = None
    provider_id: Optional[str] = None
    assets: Tuple[str, ...] = ()
    prices: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise ConfigError(f"feed {self.feed_id!r}: unknown kind {self.kind!r}", context={"feed": self.feed_id})
        if self.kind == "mock" and not self.prices:
            raise ConfigError(f"mock feed {self.feed_id!r} needs prices", context={"feed": self.feed_id})

    @property
    def provider(self) -> str:
        return self.provider_id or self.feed_id

    def serves(self, asset: Optional[str]) -> bool:
        return asset is None or not self.assets or asset in self.assets

    @classmethod
    def from_mapping(cls, feed_id: str, data: Mapping[str, Any]) -> "FeedSource":
        if not isinstance(data, Mapping):
            raise ConfigError(f"feed {feed_id!r} must be a mapping", context={"feed": feed_id})
        assets = data.get("assets") or ()
        if isinstance(assets, str):
            assets = (assets,)
        return cls(
            feed_id=feed_id,
            kind=str(data.get("kind", "cache-layer")),
            url=data.get("url"),
            provider_id=data.get("provider"),
            assets=tuple(str(a) for a in assets),
            prices=dict(data.get("prices") or {}),
        )


DEFAULT_FEEDS: Tuple[FeedSource, ...] = (
    FeedSource("redstone"),
    FeedSource("redstone-stocks"),
    FeedSource("redstone-rapid"),
)


class FeedRegistry:
    def __init__(self, sources: Iterable[FeedSource] = DEFAULT_FEEDS) -> None:
        self._sources: Dict[str, FeedSource] = {}
        for s in sources:
            self.register(s)

    def register(self, source: FeedSource) -> None:
        """Add or replace a feed."""
        self._sources[source.feed_id] = source

    def get(self, feed_id: str) -> FeedSource:
        try:
            return self._sources[feed_id]
        except KeyError:
            raise ConfigError(
                f"unknown price feed {feed_id!r}; known: {sorted(self._sources)}", context={"feed": feed_id}
            ) from None

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(sorted(self._sources))

    def __contains__(self, feed_id: object) -> bool:
        return feed_id in self._sources

    def load_file(self, path: str) -> None:
        """Merge feeds from a YAML/JSON document with a top-level ``feeds`` mapping."""
        doc = load_structured_file(path)
        feeds = doc.get("feeds") if isinstance(doc, Mapping) else None
        if not isinstance(feeds, Mapping):
            raise ConfigError(f"{path}: expected a top-level 'feeds' mapping", context={"path": str(path)})
        for feed_id, data in feeds.items():
            self.register(FeedSource.from_mapping(str(feed_id), data))
        _LOG.info("feeds loaded", extra={"path": str(path), "count": len(feeds)})

    @classmethod
    def from_config(cls, config: Optional[PriceWireConfig] = None) -> "FeedRegistry":
        cfg = config or PriceWireConfig.from_env()
        registry = cls()
        if cfg.feeds_file:
            registry.load_file(cfg.feeds_file)
        return registry


def build_connector(
    feed_id: str,
    asset: Optional[str] = None,
    config: Optional[PriceWireConfig] = None,
    *,
    registry: Optional[FeedRegistry] = None,
) -> Connector:
    """Resolve `feed_id` into a ready-to-use connector."""
    cfg = config or PriceWireConfig.from_env()
    reg = registry or FeedRegistry.from_config(cfg)
    source = reg.get(feed_id)
    if not source.serves(asset):
        raise ConfigError(
            f"feed {feed_id!r} does not serve asset {asset!r}", context={"feed": feed_id, "asset": asset}
        )
    if source.kind == "mock":
        return MockConnector(source.prices)
    return CacheLayerConnector(
        source.url or cfg.cache_url,
        source.provider,
        timeout=cfg.http_timeout,
        retries=cfg.max_retries,
        backoff=cfg.backoff,
        user_agent=cfg.user_agent,
    )


__all__ = ["FeedSource", "FeedRegistry", "DEFAULT_FEEDS", "build_connector"]
