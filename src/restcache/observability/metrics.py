"""Prometheus metrics for restcache.

Records:
- Requests by cache outcome (HIT, MISS, HITPASS, NOT_MODIFIED)
- Store failures by operation (read, write)

Each CacheMetrics owns a CollectorRegistry unless one is passed in, so
several gateways (and test cases) can coexist in one process.
"""

from __future__ import annotations

import logging
from typing import Any

from prometheus_client import CollectorRegistry, Counter, generate_latest

logger = logging.getLogger(__name__)


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, **kwargs: Any) -> "NoOpMetric":
        return self

    def inc(self, amount: float = 1) -> None:
        pass


class CacheMetrics:
    """Counters observed by the gateway."""

    def __init__(self, registry: CollectorRegistry | None = None, enabled: bool = True):
        self.enabled = enabled
        self.registry = registry if registry is not None else CollectorRegistry()

        if not enabled:
            logger.info("Metrics are disabled")
            self.requests_total: Any = NoOpMetric()
            self.store_failures_total: Any = NoOpMetric()
            return

        self.requests_total = Counter(
            "restcache_requests_total",
            "Requests handled by the cache gateway",
            ["status"],
            registry=self.registry,
        )
        self.store_failures_total = Counter(
            "restcache_store_failures_total",
            "Cache store operations that failed",
            ["operation"],
            registry=self.registry,
        )

    def record_status(self, status: str) -> None:
        self.requests_total.labels(status=status).inc()

    def record_store_failure(self, operation: str) -> None:
        self.store_failures_total.labels(operation=operation).inc()

    def value(self, name: str, **labels: str) -> float:
        """Current value of a sample, 0.0 if it has not been recorded."""
        if not self.enabled:
            return 0.0
        result = self.registry.get_sample_value(name, labels)
        return result if result is not None else 0.0

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if not self.enabled:
            return b"# Metrics disabled\n"
        return generate_latest(self.registry)
