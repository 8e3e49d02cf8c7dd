"""Lookup eligibility for cached routes."""

from __future__ import annotations

from starlette.requests import Request

from restcache.cache.models import HitpassPolicy
from restcache.errors import HitpassConfigError


def is_lookup_eligible(request: Request, hitpass: HitpassPolicy) -> bool:
    """Return True if the cache may be consulted for this request.

    ``hitpass`` is either a flag or a predicate; True means the request
    must bypass the cache (HITPASS).

    Raises:
        HitpassConfigError: If hitpass is neither a bool nor callable.
    """
    if isinstance(hitpass, bool):
        return not hitpass

    if callable(hitpass):
        return not bool(hitpass(request))

    raise HitpassConfigError(
        f"hitpass must be a bool or a callable, got {type(hitpass).__name__}"
    )
