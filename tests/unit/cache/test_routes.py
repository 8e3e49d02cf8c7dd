"""Tests for cache route resolution."""

from restcache.cache.models import CacheRouteConfig
from restcache.cache.routes import RouteTable


class TestRouteTable:
    """Tests for RouteTable."""

    def test_exact_path(self) -> None:
        table = RouteTable([CacheRouteConfig(path="/articles")])
        assert table.match("GET", "/articles") is not None
        assert table.match("GET", "/articles/1") is None

    def test_path_parameters(self) -> None:
        route = CacheRouteConfig(path="/articles/{article_id}")
        table = RouteTable([route])
        assert table.match("GET", "/articles/42") is route

    def test_method_must_match(self) -> None:
        table = RouteTable([CacheRouteConfig(path="/articles")])
        assert table.match("POST", "/articles") is None
        assert table.match("get", "/articles") is not None

    def test_first_match_wins(self) -> None:
        specific = CacheRouteConfig(path="/articles/featured", max_age=10)
        generic = CacheRouteConfig(path="/articles/{article_id}", max_age=600)
        table = RouteTable([specific, generic])
        assert table.match("GET", "/articles/featured") is specific
        assert table.match("GET", "/articles/7") is generic

    def test_add_and_iterate(self) -> None:
        table = RouteTable()
        table.add(CacheRouteConfig(path="/a"))
        table.add(CacheRouteConfig(path="/b"))
        assert len(table) == 2
        assert [route.path for route in table] == ["/a", "/b"]
