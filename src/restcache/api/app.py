"""FastAPI application factory for restcache.

Creates an application with:
- RestCacheMiddleware in front of the application's own routers
- Lifecycle management for the cache store (optional reset on startup,
  pending writes drained and connections closed on shutdown)
- /health and /metrics endpoints, never cached
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette.responses import Response

from restcache.api.middleware import RestCacheMiddleware
from restcache.cache.models import CacheRouteConfig
from restcache.cache.routes import RouteTable
from restcache.cache.store import CacheStore, create_store
from restcache.config import Settings
from restcache.config import settings as default_settings
from restcache.gateway import CacheGateway
from restcache.observability import CacheMetrics, configure_logging

logger = logging.getLogger(__name__)


def create_app(
    routes: Iterable[CacheRouteConfig],
    settings: Settings | None = None,
    store: CacheStore | None = None,
    metrics: CacheMetrics | None = None,
) -> FastAPI:
    """Create a FastAPI application with response caching installed.

    Application routers are added to the returned app as usual; only the
    paths listed in ``routes`` are cached.
    """
    settings = settings or default_settings
    store = store if store is not None else create_store(settings)
    metrics = metrics or CacheMetrics(enabled=settings.enable_metrics)
    gateway = CacheGateway(store, settings.strategy(), metrics=metrics)
    route_table = RouteTable(routes)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(
            json_format=settings.env != "dev",
            level=settings.log_level,
        )
        logger.info(
            f"Starting {settings.app_name} ({settings.env}) with "
            f"{settings.store_backend} store and {len(route_table)} cached routes"
        )

        if settings.reset_on_startup:
            cleared = await store.reset()
            logger.info(f"Cleared {cleared} cache entries on startup")

        yield

        logger.info(f"Shutting down {settings.app_name}")
        await gateway.drain()
        await store.close()

    app = FastAPI(
        title=settings.app_name,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.gateway = gateway
    app.state.cache_store = store
    app.state.cache_metrics = metrics

    app.add_middleware(RestCacheMiddleware, routes=route_table, gateway=gateway)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        store_ok = await store.ping()
        return {"status": "ok" if store_ok else "degraded", "store": settings.store_backend}

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics() -> Response:
        return Response(
            content=metrics.generate_latest(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return app
