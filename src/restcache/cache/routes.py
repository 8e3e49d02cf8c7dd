"""Resolve which cache route config, if any, applies to a request."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from starlette.routing import compile_path

from restcache.cache.models import CacheRouteConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CompiledRoute:
    config: CacheRouteConfig
    regex: re.Pattern[str]


class RouteTable:
    """Ordered set of cacheable routes.

    Paths use Starlette syntax (``/articles/{id}``, ``/files/{rest:path}``).
    The first registered route matching method and path wins.
    """

    def __init__(self, routes: Iterable[CacheRouteConfig] = ()):
        self._routes: list[_CompiledRoute] = []
        for route in routes:
            self.add(route)

    def add(self, route: CacheRouteConfig) -> None:
        regex, _, _ = compile_path(route.path)
        self._routes.append(_CompiledRoute(config=route, regex=regex))
        logger.debug(f"Registered cache route {route.method} {route.path} (max_age={route.max_age})")

    def match(self, method: str, path: str) -> CacheRouteConfig | None:
        method = method.upper()
        for compiled in self._routes:
            if compiled.config.method == method and compiled.regex.match(path):
                return compiled.config
        return None

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[CacheRouteConfig]:
        return (compiled.config for compiled in self._routes)
