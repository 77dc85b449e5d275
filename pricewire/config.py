"""
pricewire configuration: cache-layer endpoint, feed registry file, HTTP
timeouts/retries, freshness window and default payload encoding.

- Loads sane defaults and supports overrides via environment variables
  (PRICEWIRE_*).
- Provides helpers for building HTTP headers and loading YAML/JSON files.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .version import __version__

DEFAULT_CACHE_URL = "https://api.redstone.finance"
MIN_PRICE_DELAY = 15
DEFAULT_MAX_PRICE_DELAY = 180

_ENCODINGS = ("full", "lite")
_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None and v != "" else default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ConfigError(f"URL must start with {allowed}, got: {url!r}", context={"url": url})
    return url


def _as_number(name: str, raw: Any, kind: type) -> Any:
    try:
        return kind(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a {kind.__name__}, got {raw!r}", context={"key": name}) from e


def load_structured_file(path: str | Path) -> Any:
    """
    Load a YAML or JSON document. The format is picked by suffix; unknown
    suffixes are parsed as YAML (a superset of JSON).
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read {p}: {e}", context={"path": str(p)}) from e
    try:
        if p.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot parse {p}: {e}", context={"path": str(p)}) from e


@dataclass(slots=True)
class PriceWireConfig:
    # Data source
    cache_url: str = DEFAULT_CACHE_URL
    feeds_file: Optional[str] = None
    # HTTP behavior
    http_timeout: float = 10.0
    max_retries: int = 3
    backoff: float = 0.25
    user_agent: str = field(default_factory=lambda: f"pricewire-py/{__version__}")
    # Receiver / wrapper defaults
    max_price_delay: int = DEFAULT_MAX_PRICE_DELAY
    encoding: str = "full"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        _ensure_scheme(self.cache_url, ("http", "https"))
        if self.http_timeout <= 0:
            raise ConfigError("http_timeout must be > 0", context={"http_timeout": self.http_timeout})
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0", context={"max_retries": self.max_retries})
        if self.backoff < 0:
            raise ConfigError("backoff must be >= 0", context={"backoff": self.backoff})
        if self.max_price_delay < MIN_PRICE_DELAY:
            raise ConfigError(
                f"max_price_delay must be >= {MIN_PRICE_DELAY}",
                context={"max_price_delay": self.max_price_delay},
            )
        if self.encoding not in _ENCODINGS:
            raise ConfigError(f"encoding must be one of {_ENCODINGS}", context={"encoding": self.encoding})
        if self.log_level.upper() not in _LEVELS:
            raise ConfigError(f"log_level must be one of {_LEVELS}", context={"log_level": self.log_level})

    @classmethod
    def from_env(cls, prefix: str = "PRICEWIRE_") -> "PriceWireConfig":
        """
        Create config from environment variables:

        PRICEWIRE_CACHE_URL        (http/https)
        PRICEWIRE_FEEDS_FILE       (path to YAML/JSON feed registry) optional
        PRICEWIRE_HTTP_TIMEOUT     (float seconds)
        PRICEWIRE_MAX_RETRIES      (int)
        PRICEWIRE_BACKOFF          (float seconds, base of exponential backoff)
        PRICEWIRE_MAX_PRICE_DELAY  (int seconds, >= 15)
        PRICEWIRE_ENCODING         (full|lite)
        PRICEWIRE_LOG_LEVEL        (str)
        PRICEWIRE_USER_AGENT       (str)
        """
        return cls(
            cache_url=_env(f"{prefix}CACHE_URL", DEFAULT_CACHE_URL) or DEFAULT_CACHE_URL,
            feeds_file=_env(f"{prefix}FEEDS_FILE"),
            http_timeout=_as_number("HTTP_TIMEOUT", _env(f"{prefix}HTTP_TIMEOUT", "10.0"), float),
            max_retries=_as_number("MAX_RETRIES", _env(f"{prefix}MAX_RETRIES", "3"), int),
            backoff=_as_number("BACKOFF", _env(f"{prefix}BACKOFF", "0.25"), float),
            max_price_delay=_as_number(
                "MAX_PRICE_DELAY", _env(f"{prefix}MAX_PRICE_DELAY", str(DEFAULT_MAX_PRICE_DELAY)), int
            ),
            encoding=(_env(f"{prefix}ENCODING", "full") or "full").lower(),
            log_level=(_env(f"{prefix}LOG_LEVEL", "INFO") or "INFO").upper(),
            user_agent=_env(f"{prefix}USER_AGENT", f"pricewire-py/{__version__}") or f"pricewire-py/{__version__}",
        )

    @classmethod
    def with_overrides(cls, base: Optional["PriceWireConfig"] = None, **overrides: Any) -> "PriceWireConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys are ignored; None values leave the base value in place.
        """
        base = base or cls.from_env()
        data = base.to_dict()
        data.update({k: v for k, v in overrides.items() if k in data and v is not None})
        return cls(**data)

    def http_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache_url": self.cache_url,
            "feeds_file": self.feeds_file,
            "http_timeout": float(self.http_timeout),
            "max_retries": int(self.max_retries),
            "backoff": float(self.backoff),
            "user_agent": self.user_agent,
            "max_price_delay": int(self.max_price_delay),
            "encoding": self.encoding,
            "log_level": self.log_level,
        }


__all__ = [
    "PriceWireConfig",
    "DEFAULT_CACHE_URL",
    "MIN_PRICE_DELAY",
    "DEFAULT_MAX_PRICE_DELAY",
    "load_structured_file",
]
