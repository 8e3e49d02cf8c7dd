"""REST response caching middleware.

Routes registered in the RouteTable go through the CacheGateway; every
other request is passed through untouched.
"""

from __future__ import annotations

from collections.abc import Iterable

from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from restcache.cache.models import CacheRouteConfig, StrategyConfig
from restcache.cache.routes import RouteTable
from restcache.cache.store import CacheStore
from restcache.context import RequestContext
from restcache.gateway import CacheGateway

# Recomputed when the response is rebuilt
_DROPPED_HEADERS = {b"content-length"}


class RestCacheMiddleware(BaseHTTPMiddleware):
    """Serve cacheable GET routes from the cache store.

    Features:
    - HIT / MISS / HITPASS decisions per request
    - Optional ETag validation with 304 Not Modified
    - Optional X-Cache diagnostic header
    - Best-effort cache population that never delays the response

    Pass either a ready ``gateway`` or a ``store`` (plus optional
    ``strategy``) to build one.
    """

    def __init__(
        self,
        app: ASGIApp,
        routes: Iterable[CacheRouteConfig] | RouteTable,
        gateway: CacheGateway | None = None,
        store: CacheStore | None = None,
        strategy: StrategyConfig | None = None,
    ):
        super().__init__(app)
        self.routes = routes if isinstance(routes, RouteTable) else RouteTable(routes)
        if gateway is None:
            if store is None:
                raise ValueError("RestCacheMiddleware requires a gateway or a store")
            gateway = CacheGateway(store, strategy)
        self.gateway = gateway

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        route = self.routes.match(request.method, request.url.path)
        if route is None:
            return await call_next(request)

        ctx = RequestContext(request=request, route=route)

        async def backend(ctx: RequestContext) -> None:
            response = await call_next(request)
            chunks = [chunk async for chunk in response.body_iterator]  # type: ignore[attr-defined]
            ctx.status_code = response.status_code
            ctx.body = b"".join(
                chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk)
                for chunk in chunks
            )
            ctx.headers = MutableHeaders(
                raw=[(k, v) for k, v in response.raw_headers if k.lower() not in _DROPPED_HEADERS]
            )
            ctx.media_type = response.headers.get("content-type")

        await self.gateway.process(ctx, backend)
        return build_response(ctx)


def build_response(ctx: RequestContext) -> Response:
    """Turn the context's response slot into a Starlette response.

    Headers set by the backend (including repeated ones such as
    Set-Cookie) are kept as-is.
    """
    has_content_type = "content-type" in ctx.headers
    response = Response(
        content=ctx.body,
        status_code=ctx.status_code,
        media_type=None if has_content_type else ctx.media_type,
    )
    own = {key for key, _ in ctx.headers.raw}
    generated = [(k, v) for k, v in response.raw_headers if k not in own]
    response.raw_headers = list(ctx.headers.raw) + generated
    return response
