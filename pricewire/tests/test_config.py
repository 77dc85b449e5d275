import json

import pytest

from pricewire.config import PriceWireConfig, load_structured_file
from pricewire.connectors import CacheLayerConnector, MockConnector
from pricewire.errors import ConfigError
from pricewire.feeds import FeedRegistry, FeedSource, build_connector

FEEDS_YAML = """
feeds:
  redstone-stocks:
    url: https://stocks.cache.test
    assets: [IBM, AAPL]
  local:
    kind: mock
    prices: {ETH: 1800, BTC: 30000}
"""


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("CACHE_URL", "FEEDS_FILE", "HTTP_TIMEOUT", "MAX_RETRIES", "BACKOFF", "MAX_PRICE_DELAY",
                 "ENCODING", "LOG_LEVEL", "USER_AGENT"):
        monkeypatch.delenv(f"PRICEWIRE_{name}", raising=False)
    return monkeypatch


def test_defaults(clean_env):
    cfg = PriceWireConfig.from_env()
    assert cfg == PriceWireConfig()
    assert cfg.cache_url == "https://api.redstone.finance"
    assert cfg.max_price_delay == 180
    assert cfg.http_headers()["User-Agent"].startswith("pricewire-py/")


def test_from_env(clean_env):
    clean_env.setenv("PRICEWIRE_CACHE_URL", "http://localhost:8080")
    clean_env.setenv("PRICEWIRE_MAX_RETRIES", "0")
    clean_env.setenv("PRICEWIRE_ENCODING", "LITE")
    clean_env.setenv("PRICEWIRE_LOG_LEVEL", "debug")
    cfg = PriceWireConfig.from_env()
    assert cfg.cache_url == "http://localhost:8080"
    assert cfg.max_retries == 0
    assert cfg.encoding == "lite"
    assert cfg.log_level == "DEBUG"


@pytest.mark.parametrize(
    "name,value",
    [
        ("CACHE_URL", "ftp://cache.test"),
        ("MAX_RETRIES", "three"),
        ("HTTP_TIMEOUT", "0"),
        ("MAX_PRICE_DELAY", "14"),
        ("ENCODING", "compact"),
        ("LOG_LEVEL", "chatty"),
    ],
)
def test_invalid_env(clean_env, name, value):
    clean_env.setenv(f"PRICEWIRE_{name}", value)
    with pytest.raises(ConfigError):
        PriceWireConfig.from_env()


def test_config_error_is_value_error():
    with pytest.raises(ValueError):
        PriceWireConfig(backoff=-1)


def test_with_overrides(clean_env):
    base = PriceWireConfig(max_retries=1)
    cfg = PriceWireConfig.with_overrides(base, max_retries=5, backoff=None, unknown="x")
    assert cfg.max_retries == 5
    assert cfg.backoff == base.backoff
    assert base.max_retries == 1


def test_load_structured_file(tmp_path):
    yml = tmp_path / "feeds.yaml"
    yml.write_text(FEEDS_YAML)
    assert load_structured_file(yml)["feeds"]["local"]["kind"] == "mock"

    js = tmp_path / "feeds.json"
    js.write_text(json.dumps({"feeds": {}}))
    assert load_structured_file(js) == {"feeds": {}}

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ConfigError):
        load_structured_file(bad)
    with pytest.raises(ConfigError):
        load_structured_file(tmp_path / "missing.yaml")


# ---- feeds -----------------------------------------------------------------------


def test_default_registry():
    registry = FeedRegistry()
    assert {"redstone", "redstone-stocks", "redstone-rapid"} <= set(registry.ids)
    assert registry.get("redstone").provider == "redstone"
    with pytest.raises(ConfigError):
        registry.get("nope")


def test_registry_from_file(tmp_path, clean_env):
    path = tmp_path / "feeds.yaml"
    path.write_text(FEEDS_YAML)
    cfg = PriceWireConfig(feeds_file=str(path))
    registry = FeedRegistry.from_config(cfg)
    assert "local" in registry
    assert registry.get("redstone-stocks").assets == ("IBM", "AAPL")

    stocks = build_connector("redstone-stocks", "IBM", cfg, registry=registry)
    assert isinstance(stocks, CacheLayerConnector)
    assert stocks.endpoint == "https://stocks.cache.test/packages/latest"
    assert stocks.params("IBM") == {"provider": "redstone-stocks", "asset": "IBM"}

    local = build_connector("local", config=cfg, registry=registry)
    assert isinstance(local, MockConnector)
    assert local.prices == {"ETH": 1800, "BTC": 30000}

    with pytest.raises(ConfigError):
        build_connector("redstone-stocks", "ETH", cfg, registry=registry)


def test_default_feed_uses_configured_cache_url(clean_env):
    cfg = PriceWireConfig(cache_url="http://cache.local", max_retries=1, http_timeout=2.5)
    connector = build_connector("redstone", config=cfg, registry=FeedRegistry())
    assert connector.url == "http://cache.local"
    assert connector.retries == 1
    assert connector.timeout == 2.5


@pytest.mark.parametrize(
    "doc",
    [
        "feeds: [a, b]\n",
        "other: {}\n",
        "feeds:\n  x:\n    kind: carrier-pigeon\n",
        "feeds:\n  x:\n    kind: mock\n",
        "feeds:\n  x: 5\n",
    ],
)
def test_invalid_feed_files(tmp_path, doc):
    path = tmp_path / "feeds.yaml"
    path.write_text(doc)
    with pytest.raises(ConfigError):
        FeedRegistry().load_file(str(path))


def test_feed_source_single_asset_string():
    source = FeedSource.from_mapping("x", {"assets": "ETH"})
    assert source.assets == ("ETH",)
    assert source.serves("ETH") and not source.serves("BTC")
    assert source.serves(None)
