"""Error taxonomy for restcache.

Only KeyDerivationError and HitpassConfigError ever reach the caller.
Store failures and malformed conditional headers are absorbed by the
gateway and only show up in logs and metrics.
"""

from __future__ import annotations


class RestCacheError(Exception):
    """Base class for restcache errors."""


class KeyDerivationError(RestCacheError):
    """A cache key could not be computed for the request."""

    def __init__(self, reason: str, path: str | None = None):
        self.reason = reason
        self.path = path
        where = f" for {path}" if path else ""
        super().__init__(f"Unable to derive cache key{where}: {reason}")


class HitpassConfigError(RestCacheError):
    """A route's hitpass policy is neither a bool nor a callable."""


class StoreError(RestCacheError):
    """Base class for cache store failures."""

    operation = "store operation"

    def __init__(self, key: str, cause: BaseException | None = None):
        self.key = key
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{self.operation} failed for {key}{detail}")


class StoreReadFailure(StoreError):
    """A lookup against the store failed."""

    operation = "read"


class StoreWriteFailure(StoreError):
    """A write to the store failed."""

    operation = "write"


class ConditionalMatchError(RestCacheError):
    """The If-None-Match header could not be parsed."""
