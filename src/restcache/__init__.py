"""restcache: REST response caching for Starlette and FastAPI."""

from restcache.cache.models import CacheKeysConfig, CacheRouteConfig, StrategyConfig
from restcache.context import RequestContext
from restcache.gateway import CacheGateway

__version__ = "0.1.0"

__all__ = [
    "CacheGateway",
    "CacheKeysConfig",
    "CacheRouteConfig",
    "RequestContext",
    "StrategyConfig",
]
