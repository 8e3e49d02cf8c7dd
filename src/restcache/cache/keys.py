"""Cache key schema for restcache.

Key format: {prefix}{path}?{query}&{headers}

Where:
- prefix: optional namespace (StrategyConfig.keys_prefix)
- path: request path, without the query string, percent-encoded
- query: URL-encoded declared query params, sorted by name
- headers: comma-joined "name=value" pairs of declared headers, sorted by name,
  with names and values percent-encoded

The ETag for a response lives next to it under "{key}_etag".
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode

from restcache.cache.models import CacheKeysConfig
from restcache.errors import KeyDerivationError

if TYPE_CHECKING:
    from restcache.context import RequestContext


class CacheKeys:
    """Cache key helpers following a consistent naming convention."""

    ETAG_SUFFIX = "_etag"

    @classmethod
    def etag(cls, cache_key: str) -> str:
        """Key for the ETag stored alongside a response."""
        return f"{cache_key}{cls.ETAG_SUFFIX}"


def _query_suffix(ctx: RequestContext, use_query_params: bool | Sequence[str]) -> str:
    if use_query_params is False:
        return ""

    params = ctx.request.query_params
    if use_query_params is True:
        names = sorted(set(params.keys()))
    elif isinstance(use_query_params, (str, bytes)) or not isinstance(
        use_query_params, Sequence
    ):
        raise KeyDerivationError(
            f"use_query_params must be a bool or a sequence of names, "
            f"got {type(use_query_params).__name__}",
            ctx.path,
        )
    else:
        names = sorted(set(use_query_params))

    pairs: list[tuple[str, str]] = []
    for name in names:
        if not isinstance(name, str):
            raise KeyDerivationError(f"query param name {name!r} is not a string", ctx.path)
        for value in params.getlist(name):
            pairs.append((name, value))
    return urlencode(pairs)


def _headers_suffix(ctx: RequestContext, use_headers: Sequence[str]) -> str:
    if isinstance(use_headers, (str, bytes)):
        raise KeyDerivationError("use_headers must be a sequence of header names", ctx.path)

    parts = []
    for name in sorted(use_headers):
        if not isinstance(name, str) or not name:
            raise KeyDerivationError(f"invalid header name {name!r}", ctx.path)
        value = ctx.request.headers.get(name.lower(), "")
        parts.append(f"{quote(name.lower(), safe='')}={quote(value, safe='')}")
    return ",".join(parts)


def derive_cache_key(ctx: RequestContext, keys: CacheKeysConfig, prefix: str = "") -> str:
    """Build the cache key for a request from the route's declared attributes.

    Pure and deterministic: two requests with the same path and the same
    values for every declared query param and header get the same key.

    Raises:
        KeyDerivationError: If the key attributes are malformed.
    """
    path = ctx.path
    if not path:
        raise KeyDerivationError("request has no path")

    try:
        query = _query_suffix(ctx, keys.use_query_params)
        headers = _headers_suffix(ctx, keys.use_headers)
    except TypeError as e:
        raise KeyDerivationError(str(e), path) from e

    return f"{prefix}{quote(path, safe='/')}?{query}&{headers}"
