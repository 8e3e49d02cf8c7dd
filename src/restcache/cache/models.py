"""Configuration values and stored entries for the response cache.

Route and strategy configs are frozen dataclasses so they can be shared
safely between concurrent requests.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

import orjson
from starlette.requests import Request

from restcache.errors import HitpassConfigError

# True (or a callable returning True) means: bypass the cache for this request
HitpassPolicy = Union[bool, Callable[[Request], bool]]

DEFAULT_MAX_AGE = 3600


class CacheStatus(str, Enum):
    """Value of the X-Cache diagnostic header."""

    HIT = "HIT"
    MISS = "MISS"
    HITPASS = "HITPASS"


def default_hitpass(request: Request) -> bool:
    """Bypass the cache for authenticated or explicitly uncached requests."""
    if request.headers.get("authorization"):
        return True

    cache_control = request.headers.get("cache-control", "").lower()
    directives = {part.strip() for part in cache_control.split(",")}
    return "no-cache" in directives or "no-store" in directives


@dataclass(frozen=True)
class CacheKeysConfig:
    """Request attributes that participate in the cache key.

    use_query_params: True for every query param, a sequence for a subset,
    False to ignore the query string entirely.
    use_headers: header names whose values vary the key.
    """

    use_query_params: bool | Sequence[str] = False
    use_headers: Sequence[str] = ()


@dataclass(frozen=True)
class CacheRouteConfig:
    """Per-route cache policy."""

    path: str
    method: str = "GET"
    hitpass: HitpassPolicy = default_hitpass
    max_age: int = DEFAULT_MAX_AGE
    keys: CacheKeysConfig = field(default_factory=CacheKeysConfig)

    def __post_init__(self) -> None:
        if not isinstance(self.hitpass, bool) and not callable(self.hitpass):
            raise HitpassConfigError(
                f"hitpass for {self.method} {self.path} must be a bool or a callable, "
                f"got {type(self.hitpass).__name__}"
            )
        if self.max_age <= 0:
            raise ValueError(f"max_age for {self.method} {self.path} must be positive")
        object.__setattr__(self, "method", self.method.upper())


@dataclass(frozen=True)
class StrategyConfig:
    """Process-wide cache toggles."""

    enable_etag: bool = False
    enable_x_cache_headers: bool = False
    keys_prefix: str = ""


@dataclass
class CacheEntry:
    """A stored response body and the media type it was served with."""

    body: bytes
    media_type: str | None = None

    def to_bytes(self) -> bytes:
        """Serialize to JSON bytes."""
        return orjson.dumps(
            {
                "body": base64.b64encode(self.body).decode("ascii"),
                "media_type": self.media_type,
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "CacheEntry":
        """Deserialize from JSON bytes."""
        parsed = orjson.loads(data)
        return cls(
            body=base64.b64decode(parsed["body"]),
            media_type=parsed.get("media_type"),
        )
