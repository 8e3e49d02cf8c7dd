"""Key-value stores backing the response cache.

Provides:
- MemoryCacheStore: in-process store with TTL expiry and an LRU bound
- RedisCacheStore: redis-py async client with connection pooling
- create_store: factory selecting a backend from settings

Both adapters report failures as StoreReadFailure / StoreWriteFailure so
the gateway can degrade without knowing which backend is in use.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Protocol, cast

import redis.asyncio as redis
from redis.exceptions import RedisError

from restcache.errors import StoreReadFailure, StoreWriteFailure

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from restcache.config import Settings

logger = logging.getLogger(__name__)

# Default TTL (1 hour)
DEFAULT_TTL = 3600


class CacheStore(Protocol):
    """Interface the gateway consumes for both responses and ETags."""

    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes | str, ttl: int) -> None: ...

    async def reset(self) -> int: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def _to_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


class MemoryCacheStore:
    """In-process cache store.

    Entries expire after their TTL and the least recently used entry is
    evicted once ``max_entries`` is reached. Safe for concurrent tasks on
    one event loop.
    """

    def __init__(self, max_entries: int = 10_000, default_ttl: int = DEFAULT_TTL):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._data: OrderedDict[str, tuple[float, bytes]] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            item = self._data.get(key)
            if item is None:
                return None

            expires_at, value = item
            if expires_at <= time.monotonic():
                del self._data[key]
                return None

            self._data.move_to_end(key)
            return value

    async def set(self, key: str, value: bytes | str, ttl: int | None = None) -> None:
        expires_at = time.monotonic() + (ttl or self.default_ttl)
        async with self._lock:
            self._data[key] = (expires_at, _to_bytes(value))
            self._data.move_to_end(key)
            while len(self._data) > self.max_entries:
                evicted, _ = self._data.popitem(last=False)
                logger.debug(f"Evicted {evicted} from memory cache")

    async def reset(self) -> int:
        async with self._lock:
            count = len(self._data)
            self._data.clear()
        return count

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        await self.reset()

    def __len__(self) -> int:
        return len(self._data)


class RedisCacheStore:
    """Redis-backed cache store.

    Keys are namespaced with ``prefix`` so reset() only touches this
    cache's keys.
    """

    def __init__(self, client: Redis, prefix: str = "restcache:", default_ttl: int = DEFAULT_TTL):
        self.client = client
        self.prefix = prefix
        self.default_ttl = default_ttl

    @classmethod
    def from_url(cls, url: str, **kwargs: object) -> "RedisCacheStore":
        """Create a store with its own connection pool."""
        client = redis.from_url(  # type: ignore[no-untyped-call]
            url,
            encoding="utf-8",
            decode_responses=False,  # We're storing bytes
        )
        return cls(client, **kwargs)  # type: ignore[arg-type]

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> bytes | None:
        try:
            return cast(bytes | None, await self.client.get(self._key(key)))
        except (RedisError, OSError) as e:
            raise StoreReadFailure(key, e) from e

    async def set(self, key: str, value: bytes | str, ttl: int | None = None) -> None:
        try:
            await self.client.set(self._key(key), _to_bytes(value), ex=ttl or self.default_ttl)
        except (RedisError, OSError) as e:
            raise StoreWriteFailure(key, e) from e

    async def reset(self) -> int:
        """Delete every key under this store's prefix.

        Returns the number of keys deleted.
        """
        deleted = 0

        # Use SCAN to avoid blocking on large keyspaces
        async for key in self.client.scan_iter(match=f"{self.prefix}*"):
            await self.client.delete(key)
            deleted += 1

        return deleted

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        await self.client.aclose()


def create_store(settings: Settings) -> CacheStore:
    """Build the store selected by ``settings.store_backend``."""
    backend = settings.store_backend.lower()
    if backend == "memory":
        return MemoryCacheStore(
            max_entries=settings.memory_max_entries,
            default_ttl=settings.default_max_age,
        )
    if backend == "redis":
        return RedisCacheStore.from_url(
            settings.redis_url,
            prefix=f"{settings.app_name}:",
            default_ttl=settings.default_max_age,
        )
    raise ValueError("Unsupported store_backend. Supported values: memory, redis.")
