"""Per-request state shared by the gateway and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field

from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from restcache.cache.models import CacheRouteConfig


@dataclass
class RequestContext:
    """Read-only request view plus the response slot the backend fills in.

    The gateway reads from ``request`` and ``route`` and writes only the
    response fields.
    """

    request: Request
    route: CacheRouteConfig
    status_code: int = 200
    body: bytes = b""
    headers: MutableHeaders = field(default_factory=MutableHeaders)
    media_type: str | None = None

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.scope["path"]

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value
