"""
pricewire.metrics
=================

Prometheus metrics for the price feed, connectors and wrapper.

- Labels are kept small & bounded (reason / connector / outcome / encoding).
- Tests can inject their own `CollectorRegistry`.

Typical usage:

    from .metrics import METRICS

    METRICS.record_admit(symbols=2)
    METRICS.record_reject(reason="stale_timestamp")
    METRICS.observe_fetch(connector="cache-layer", outcome="ok", seconds=0.12)
    METRICS.observe_payload(encoding="lite", size_bytes=197)

Exposed metrics
---------------
Counters
- pricewire_packages_admitted_total
- pricewire_prices_admitted_total
- pricewire_packages_rejected_total{reason}
- pricewire_fetch_total{connector,outcome}

Histograms
- pricewire_fetch_latency_seconds{connector}
- pricewire_payload_bytes{encoding}
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram

# Latencies (seconds): local mocks to slow gateways
_LAT_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)

# Payload sizes: one lite entry (~163 bytes) up to a few hundred entries
_SIZE_BUCKETS = (128, 256, 512, 1024, 2048, 4096, 8192, 16_384, 32_768, 65_536)


class PriceWireMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        # Default registry unless the caller injects one.
        self.registry = registry
        kw = {"registry": registry} if registry is not None else {}

        self.packages_admitted = Counter(
            "pricewire_packages_admitted_total",
            "Signed price packages accepted into a price feed.",
            **kw,
        )
        self.prices_admitted = Counter(
            "pricewire_prices_admitted_total",
            "Individual price entries written by accepted packages.",
            **kw,
        )
        self.packages_rejected = Counter(
            "pricewire_packages_rejected_total",
            "Price packages rejected by a price feed or receiver.",
            labelnames=("reason",),
            **kw,
        )
        self.fetch_total = Counter(
            "pricewire_fetch_total",
            "Connector fetches by outcome.",
            labelnames=("connector", "outcome"),
            **kw,
        )
        self.fetch_latency = Histogram(
            "pricewire_fetch_latency_seconds",
            "Connector fetch latency.",
            labelnames=("connector",),
            buckets=_LAT_BUCKETS,
            **kw,
        )
        self.payload_bytes = Histogram(
            "pricewire_payload_bytes",
            "Size of encoded price payloads appended to calldata.",
            labelnames=("encoding",),
            buckets=_SIZE_BUCKETS,
            **kw,
        )

    # --- helpers ---

    def record_admit(self, *, symbols: int) -> None:
        self.packages_admitted.inc()
        self.prices_admitted.inc(symbols)

    def record_reject(self, *, reason: str) -> None:
        self.packages_rejected.labels(reason=reason).inc()

    def observe_fetch(self, *, connector: str, outcome: str, seconds: float) -> None:
        self.fetch_total.labels(connector=connector, outcome=outcome).inc()
        self.fetch_latency.labels(connector=connector).observe(max(0.0, seconds))

    def observe_payload(self, *, encoding: str, size_bytes: int) -> None:
        self.payload_bytes.labels(encoding=encoding).observe(size_bytes)


# Process-wide metrics on the default registry.
METRICS = PriceWireMetrics()

__all__ = ["PriceWireMetrics", "METRICS"]
