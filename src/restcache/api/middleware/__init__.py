"""Middleware for restcache.

Provides:
- REST response caching (HIT / MISS / HITPASS with ETag validation)
"""

from restcache.api.middleware.caching import RestCacheMiddleware, build_response

__all__ = [
    "RestCacheMiddleware",
    "build_response",
]
