"""Observability module for restcache.

Provides structured logging and Prometheus metrics:
- JSON structured logging with cache key context
- Counters for cache outcomes and store failures
"""

from restcache.observability.logging import (
    CacheKeyContext,
    cache_key_var,
    configure_logging,
)
from restcache.observability.metrics import CacheMetrics

__all__ = [
    # Logging
    "configure_logging",
    "CacheKeyContext",
    "cache_key_var",
    # Metrics
    "CacheMetrics",
]
