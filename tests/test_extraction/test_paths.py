"""Tests for apicensus.extraction.paths -- route joining and normalisation."""

from __future__ import annotations

import pytest

from apicensus.extraction.paths import join_route, normalize_route, to_posix


class TestJoinRoute:
    @pytest.mark.parametrize(
        ("base", "sub", "expected"),
        [
            ("//a//b/", "/c", "/a/b/c"),
            ("/api", "", "/api"),
            ("api", "items", "/api/items"),
            ("/api/", "/items/", "/api/items/"),
            ("", "/x", "/x"),
            ("", "", "/"),
            ("  /api  ", "  x ", "/api/x"),
            ("/api", "{id}", "/api/{id}"),
        ],
    )
    def test_join(self, base: str, sub: str, expected: str) -> None:
        assert join_route(base, sub) == expected

    def test_always_rooted_without_repeated_slashes(self) -> None:
        for base, sub in [("a", "b"), ("///", "///"), ("a/", "/b")]:
            result = join_route(base, sub)
            assert result.startswith("/")
            assert "//" not in result


class TestNormalizeRoute:
    @pytest.mark.parametrize("path", ["/a/b", "a//b", "//", "", "/api/{id}/"])
    def test_idempotent(self, path: str) -> None:
        once = normalize_route(path)
        assert normalize_route(once) == once


def test_to_posix() -> None:
    assert to_posix(r"src\main\java\FooController.java") == "src/main/java/FooController.java"
    assert to_posix("already/posix.java") == "already/posix.java"
