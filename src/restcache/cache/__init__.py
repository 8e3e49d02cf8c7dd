"""Cache layer for restcache.

Provides the collaborators the gateway consumes:
- Key derivation from declared request attributes
- Lookup eligibility (hitpass policies)
- ETag generation and conditional-request matching
- Memory and Redis stores with TTL
"""

from restcache.cache.etag import etag_matches, generate_etag, lookup_etag
from restcache.cache.keys import CacheKeys, derive_cache_key
from restcache.cache.lookup import is_lookup_eligible
from restcache.cache.models import (
    CacheEntry,
    CacheKeysConfig,
    CacheRouteConfig,
    CacheStatus,
    StrategyConfig,
    default_hitpass,
)
from restcache.cache.routes import RouteTable
from restcache.cache.store import CacheStore, MemoryCacheStore, RedisCacheStore, create_store

__all__ = [
    # Keys
    "CacheKeys",
    "derive_cache_key",
    # Policy
    "is_lookup_eligible",
    "default_hitpass",
    "CacheKeysConfig",
    "CacheRouteConfig",
    "StrategyConfig",
    "RouteTable",
    # ETags
    "etag_matches",
    "generate_etag",
    "lookup_etag",
    # Stores
    "CacheEntry",
    "CacheStatus",
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "create_store",
]
