"""Tests for RestCacheMiddleware through a FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient

from restcache.api.app import create_app
from restcache.api.middleware import RestCacheMiddleware
from restcache.cache.models import CacheKeysConfig, CacheRouteConfig
from restcache.config import Settings
from restcache.observability.metrics import CacheMetrics

ROUTES = [
    CacheRouteConfig(
        path="/articles",
        hitpass=False,
        max_age=300,
        keys=CacheKeysConfig(use_query_params=["page"]),
    ),
    CacheRouteConfig(path="/articles/{article_id}", max_age=300),
    CacheRouteConfig(path="/drafts", hitpass=True),
]


class Counter:
    def __init__(self) -> None:
        self.calls: dict[str, int] = {}

    def hit(self, name: str) -> int:
        self.calls[name] = self.calls.get(name, 0) + 1
        return self.calls[name]


@pytest.fixture
def counter() -> Counter:
    return Counter()


@pytest.fixture
def app(store, counter: Counter) -> FastAPI:
    settings = Settings(_env_file=None, enable_etag=True, enable_x_cache_headers=True)
    app = create_app(ROUTES, settings=settings, store=store, metrics=CacheMetrics())

    @app.get("/articles")
    async def list_articles(page: int = 1) -> dict:
        version = counter.hit("list")
        return {"page": page, "version": version}

    @app.get("/articles/{article_id}")
    async def get_article(article_id: int, response: Response) -> dict:
        if article_id == 404:
            return JSONResponse(status_code=404, content={"error": "not found"})
        response.set_cookie("seen", str(article_id))
        response.headers["X-Backend"] = "live"
        return {"id": article_id, "version": counter.hit(f"article-{article_id}")}

    @app.get("/drafts")
    async def list_drafts() -> dict:
        return {"version": counter.hit("drafts")}

    @app.get("/uncached")
    async def uncached() -> dict:
        return {"version": counter.hit("uncached")}

    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def get_and_drain(client: AsyncClient, app: FastAPI, url: str, **kwargs):
    response = await client.get(url, **kwargs)
    await app.state.gateway.drain()
    return response


class TestRestCacheMiddleware:
    """End-to-end behavior of the caching middleware."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, client, app, counter) -> None:
        first = await get_and_drain(client, app, "/articles")
        second = await client.get("/articles")

        assert first.status_code == 200
        assert first.headers["X-Cache"] == "MISS"
        assert second.status_code == 200
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == first.json() == {"page": 1, "version": 1}
        assert second.headers["content-type"] == "application/json"
        assert second.headers["ETag"] == first.headers["ETag"]
        assert counter.calls["list"] == 1

    @pytest.mark.asyncio
    async def test_conditional_request_returns_304(self, client, app, counter) -> None:
        first = await get_and_drain(client, app, "/articles")

        second = await client.get("/articles", headers={"If-None-Match": first.headers["ETag"]})

        assert second.status_code == 304
        assert second.content == b""
        assert second.headers["X-Cache"] == "HIT"
        assert counter.calls["list"] == 1

    @pytest.mark.asyncio
    async def test_declared_query_param_varies_key(self, client, app, counter) -> None:
        await get_and_drain(client, app, "/articles?page=1")
        second = await get_and_drain(client, app, "/articles?page=2")
        ignored = await client.get("/articles?page=1&utm=x")

        assert second.headers["X-Cache"] == "MISS"
        assert second.json()["page"] == 2
        assert ignored.headers["X-Cache"] == "HIT"
        assert counter.calls["list"] == 2

    @pytest.mark.asyncio
    async def test_miss_preserves_backend_headers(self, client, app) -> None:
        response = await get_and_drain(client, app, "/articles/7")

        assert response.headers["X-Backend"] == "live"
        assert "seen=7" in response.headers["set-cookie"]
        assert int(response.headers["content-length"]) == len(response.content)

    @pytest.mark.asyncio
    async def test_not_found_is_never_cached(self, client, app, store) -> None:
        first = await get_and_drain(client, app, "/articles/404")
        second = await get_and_drain(client, app, "/articles/404")

        assert first.status_code == second.status_code == 404
        assert second.headers["X-Cache"] == "MISS"
        assert store.sets == []

    @pytest.mark.asyncio
    async def test_hitpass_route(self, client, app, counter, store) -> None:
        first = await get_and_drain(client, app, "/drafts")
        second = await get_and_drain(client, app, "/drafts")

        assert first.headers["X-Cache"] == second.headers["X-Cache"] == "HITPASS"
        assert second.json() == {"version": 2}
        assert store.sets == []

    @pytest.mark.asyncio
    async def test_authorized_request_bypasses_cache(self, client, app, counter) -> None:
        await get_and_drain(client, app, "/articles/3")
        response = await client.get("/articles/3", headers={"Authorization": "Bearer t"})

        assert response.headers["X-Cache"] == "HITPASS"
        assert response.json()["version"] == 2

    @pytest.mark.asyncio
    async def test_unregistered_route_untouched(self, client, app, counter, store) -> None:
        await get_and_drain(client, app, "/uncached")
        response = await client.get("/uncached")

        assert "X-Cache" not in response.headers
        assert response.json() == {"version": 2}
        assert store.gets == []

    @pytest.mark.asyncio
    async def test_store_outage_serves_backend(self, client, app, counter, store) -> None:
        store.fail_reads.add("*")
        store.fail_writes.add("*")

        first = await get_and_drain(client, app, "/articles")
        second = await get_and_drain(client, app, "/articles")

        assert first.status_code == second.status_code == 200
        assert second.headers["X-Cache"] == "MISS"
        assert counter.calls["list"] == 2

    @pytest.mark.asyncio
    async def test_health_and_metrics(self, client, app) -> None:
        await get_and_drain(client, app, "/articles")
        await client.get("/articles")

        health = await client.get("/health")
        metrics = await client.get("/metrics")

        assert health.json() == {"status": "ok", "store": "memory"}
        assert 'restcache_requests_total{status="HIT"} 1.0' in metrics.text
        assert 'restcache_requests_total{status="MISS"} 1.0' in metrics.text


class TestKeyDerivationFailure:
    """A key derivation failure surfaces as a server error."""

    @pytest.mark.asyncio
    async def test_returns_500(self, store) -> None:
        app = FastAPI()
        broken = CacheRouteConfig(
            path="/broken", hitpass=False, keys=CacheKeysConfig(use_headers="accept")
        )
        app.add_middleware(RestCacheMiddleware, routes=[broken], store=store)

        @app.get("/broken")
        async def endpoint() -> dict:
            return {"ok": True}

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/broken")

        assert response.status_code == 500
        assert store.sets == []


class TestMiddlewareConstruction:
    """Tests for RestCacheMiddleware construction."""

    def test_requires_gateway_or_store(self) -> None:
        with pytest.raises(ValueError, match="requires a gateway or a store"):
            RestCacheMiddleware(FastAPI(), routes=[])


class TestLifespan:
    """Store lifecycle around application startup and shutdown."""

    @pytest.mark.asyncio
    async def test_reset_on_startup_and_flush_on_shutdown(self, store) -> None:
        await store.set("/stale?&", b"old", 60)
        settings = Settings(_env_file=None, reset_on_startup=True)
        app = create_app(ROUTES, settings=settings, store=store, metrics=CacheMetrics())

        @app.get("/articles")
        async def list_articles() -> dict:
            return {"page": 1}

        async with app.router.lifespan_context(app):
            assert len(store) == 0

            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/articles")
            assert response.status_code == 200
            assert not store.closed

        assert app.state.gateway.pending_writes == 0
        assert "/articles?&" in store.set_keys()
        assert store.closed
