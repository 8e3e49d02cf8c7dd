"""Global pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from starlette.requests import Request

from restcache.cache.models import CacheKeysConfig, CacheRouteConfig
from restcache.cache.store import MemoryCacheStore
from restcache.context import RequestContext


class RecordingStore(MemoryCacheStore):
    """Memory store that records calls and can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.gets: list[str] = []
        self.sets: list[tuple[str, bytes | str, int | None]] = []
        self.fail_reads: set[str] = set()
        self.fail_writes: set[str] = set()
        self.closed = False

    async def get(self, key: str) -> bytes | None:
        self.gets.append(key)
        if "*" in self.fail_reads or key in self.fail_reads:
            raise ConnectionError(f"store unavailable for {key}")
        return await super().get(key)

    async def set(self, key: str, value: bytes | str, ttl: int | None = None) -> None:
        self.sets.append((key, value, ttl))
        if "*" in self.fail_writes or key in self.fail_writes:
            raise ConnectionError(f"store unavailable for {key}")
        await super().set(key, value, ttl)

    async def close(self) -> None:
        self.closed = True
        await super().close()

    def set_keys(self) -> list[str]:
        return [key for key, _, _ in self.sets]


def build_request(
    path: str = "/articles",
    query: str = "",
    headers: dict[str, str] | None = None,
    method: str = "GET",
) -> Request:
    scope = {
        "type": "http",
        "method": method,
        "scheme": "http",
        "server": ("test", 80),
        "path": path,
        "root_path": "",
        "query_string": query.encode("latin-1"),
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
    }
    return Request(scope)


@pytest.fixture
def make_request() -> Callable[..., Request]:
    return build_request


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def route() -> CacheRouteConfig:
    return CacheRouteConfig(
        path="/articles",
        hitpass=False,
        max_age=120,
        keys=CacheKeysConfig(use_query_params=True),
    )


@pytest.fixture
def make_ctx(route: CacheRouteConfig) -> Callable[..., RequestContext]:
    def _make(
        path: str = "/articles",
        query: str = "",
        headers: dict[str, str] | None = None,
        route_config: CacheRouteConfig | None = None,
    ) -> RequestContext:
        return RequestContext(
            request=build_request(path, query, headers),
            route=route_config or route,
        )

    return _make
