"""Cache gateway: the per-request HIT / MISS / HITPASS decision pipeline.

Flow for one request:

    derive key -> lookup gate -> [ETag check] -> cache read
        HIT  -> respond from cache (backend not invoked)
        MISS -> invoke backend -> store decision

Store writes are dispatched as background tasks. Their failures are
logged and counted, never raised into the request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from restcache.cache.etag import etag_matches, generate_etag, lookup_etag
from restcache.cache.keys import CacheKeys, derive_cache_key
from restcache.cache.lookup import is_lookup_eligible
from restcache.cache.models import CacheEntry, CacheStatus, StrategyConfig
from restcache.cache.store import CacheStore
from restcache.context import RequestContext
from restcache.observability.logging import CacheKeyContext
from restcache.observability.metrics import CacheMetrics

logger = logging.getLogger(__name__)

# Downstream handler chain; fills in the context's response fields
Backend = Callable[[RequestContext], Awaitable[None]]

NOT_MODIFIED = "NOT_MODIFIED"

# Cache-Control directives on a response that forbid storing it
_UNCACHEABLE_DIRECTIVES = {"no-store", "private"}


def is_storable(ctx: RequestContext) -> bool:
    """Return True if the backend response may be written to the cache."""
    if not ctx.body or not 200 <= ctx.status_code <= 300:
        return False

    cache_control = ctx.headers.get("cache-control", "").lower()
    directives = {part.split("=")[0].strip() for part in cache_control.split(",")}
    return not directives & _UNCACHEABLE_DIRECTIVES


class CacheGateway:
    """Serves cached responses and populates the cache on misses.

    Args:
        store: Response store adapter
        strategy: Process-wide toggles (ETag validation, X-Cache headers)
        etag_store: ETag store adapter, defaults to ``store``
        metrics: Counters for outcomes and store failures
    """

    def __init__(
        self,
        store: CacheStore,
        strategy: StrategyConfig | None = None,
        etag_store: CacheStore | None = None,
        metrics: CacheMetrics | None = None,
    ):
        self.store = store
        self.etag_store = etag_store if etag_store is not None else store
        self.strategy = strategy or StrategyConfig()
        self.metrics = metrics or CacheMetrics()
        self._pending: set[asyncio.Task[None]] = set()

    async def process(self, ctx: RequestContext, call_next: Backend) -> None:
        """Handle one request for a cacheable route.

        Raises:
            KeyDerivationError: If the cache key cannot be computed.
        """
        route = ctx.route
        cache_key = derive_cache_key(ctx, route.keys, self.strategy.keys_prefix)

        with CacheKeyContext(cache_key):
            lookup = is_lookup_eligible(ctx.request, route.hitpass)
            etag_cached: str | None = None

            if lookup:
                if self.strategy.enable_etag:
                    etag_cached = await self._read_etag(cache_key)

                    if etag_cached and etag_matches(ctx, etag_cached):
                        logger.debug(f"[RECV] {ctx.method} {cache_key} HIT (304)")
                        self._mark(ctx, CacheStatus.HIT)
                        ctx.set_header("ETag", f'"{etag_cached}"')
                        ctx.status_code = 304
                        ctx.body = b""
                        ctx.media_type = None
                        self.metrics.record_status(NOT_MODIFIED)
                        return

                entry = await self._read_entry(cache_key)
                if entry is not None:
                    logger.debug(f"[RECV] {ctx.method} {cache_key} HIT")
                    self._mark(ctx, CacheStatus.HIT)
                    if etag_cached:
                        ctx.set_header("ETag", f'"{etag_cached}"')
                    ctx.status_code = 200
                    ctx.body = entry.body
                    ctx.media_type = entry.media_type
                    self.metrics.record_status(CacheStatus.HIT.value)
                    return

            # Cancellation or a backend error propagates and skips the store phase
            await call_next(ctx)

            if not lookup:
                logger.debug(f"[RECV] {ctx.method} {cache_key} HITPASS")
                self._mark(ctx, CacheStatus.HITPASS)
                self.metrics.record_status(CacheStatus.HITPASS.value)
                return

            logger.debug(f"[RECV] {ctx.method} {cache_key} MISS")
            self._mark(ctx, CacheStatus.MISS)
            self.metrics.record_status(CacheStatus.MISS.value)

            if not is_storable(ctx):
                return

            if self.strategy.enable_etag:
                etag = generate_etag(ctx, cache_key)
                ctx.set_header("ETag", f'"{etag}"')
                self._dispatch_write(
                    self.etag_store, CacheKeys.etag(cache_key), etag, route.max_age, "ETag"
                )

            entry = CacheEntry(body=ctx.body, media_type=ctx.media_type)
            self._dispatch_write(self.store, cache_key, entry.to_bytes(), route.max_age, "Content")

    def _mark(self, ctx: RequestContext, status: CacheStatus) -> None:
        if self.strategy.enable_x_cache_headers:
            ctx.set_header("X-Cache", status.value)

    # -------------------------------------------------------------------------
    # Reads: any failure degrades to "absent"
    # -------------------------------------------------------------------------

    async def _read_etag(self, cache_key: str) -> str | None:
        try:
            return await lookup_etag(self.etag_store, cache_key)
        except Exception as e:
            logger.warning(f"[RECV] Unable to read ETag for {cache_key}: {e}")
            self.metrics.record_store_failure("read")
            return None

    async def _read_entry(self, cache_key: str) -> CacheEntry | None:
        try:
            raw = await self.store.get(cache_key)
        except Exception as e:
            logger.warning(f"[RECV] Unable to read {cache_key} from cache: {e}")
            self.metrics.record_store_failure("read")
            return None

        if raw is None:
            return None

        try:
            return CacheEntry.from_bytes(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[RECV] Ignoring corrupt cache entry {cache_key}: {e}")
            return None

    # -------------------------------------------------------------------------
    # Writes: best-effort background tasks
    # -------------------------------------------------------------------------

    def _dispatch_write(
        self, store: CacheStore, key: str, value: bytes | str, ttl: int, what: str
    ) -> None:
        task = asyncio.create_task(self._write(store, key, value, ttl, what))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(
        self, store: CacheStore, key: str, value: bytes | str, ttl: int, what: str
    ) -> None:
        try:
            await store.set(key, value, ttl)
        except Exception as e:
            logger.warning(f"[RECV] Unable to store {what} in cache for {key}: {e}")
            self.metrics.record_store_failure("write")

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every dispatched store write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
