"""ETag generation, lookup and conditional-request matching."""

from __future__ import annotations

import hashlib
import logging
import re
from typing import TYPE_CHECKING

from restcache.cache.keys import CacheKeys
from restcache.errors import ConditionalMatchError

if TYPE_CHECKING:
    from restcache.cache.store import CacheStore
    from restcache.context import RequestContext

logger = logging.getLogger(__name__)

# One entity tag: optional weak prefix, then a quoted or bare opaque value
_ETAG_RE = re.compile(r'^(?:W/)?(?:"([^"]*)"|([^",\s]+))$')


def generate_etag(ctx: RequestContext, cache_key: str) -> str:
    """Generate an ETag from the cache key and the response body."""
    digest = hashlib.sha256()
    digest.update(cache_key.encode("utf-8"))
    digest.update(b"\x00")
    digest.update(ctx.body)
    return digest.hexdigest()


async def lookup_etag(store: CacheStore, cache_key: str) -> str | None:
    """Fetch the ETag stored for a cache key.

    Propagates store errors; the gateway decides how to degrade.
    """
    value = await store.get(CacheKeys.etag(cache_key))
    if value is None:
        return None
    return value.decode() if isinstance(value, bytes) else str(value)


def parse_if_none_match(header: str) -> list[str]:
    """Split an If-None-Match header into opaque tag values.

    "*" is returned as-is.

    Raises:
        ConditionalMatchError: If any member is not a valid entity tag.
    """
    header = header.strip()
    if not header:
        raise ConditionalMatchError("empty If-None-Match header")
    if header == "*":
        return ["*"]

    tags = []
    for part in header.split(","):
        part = part.strip()
        if not part:
            continue
        match = _ETAG_RE.match(part)
        if match is None:
            raise ConditionalMatchError(f"malformed entity tag: {part!r}")
        tags.append(match.group(1) if match.group(1) is not None else match.group(2))

    if not tags:
        raise ConditionalMatchError("If-None-Match header has no entity tags")
    return tags


def etag_matches(ctx: RequestContext, stored_etag: str) -> bool:
    """Check the request's If-None-Match against a stored ETag.

    Comparison is exact on the opaque value; quoted and unquoted forms
    are equivalent. A malformed header never matches.
    """
    header = ctx.request.headers.get("if-none-match")
    if not header:
        return False

    try:
        tags = parse_if_none_match(header)
    except ConditionalMatchError as e:
        logger.debug(f"Ignoring conditional request: {e}")
        return False

    stored = stored_etag.strip('"')
    return any(tag == "*" or tag == stored for tag in tags)
