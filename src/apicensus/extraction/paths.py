"""Route path normalisation shared by both extraction strategies."""

from __future__ import annotations

import re

_SLASH_RUN = re.compile(r"/+")

MAPPING_ANNOTATIONS = (
    "RequestMapping",
    "GetMapping",
    "PostMapping",
    "PutMapping",
    "DeleteMapping",
    "PatchMapping",
)
"""Spring annotations that declare a route."""

CLASS_MAPPING_ANNOTATION = "RequestMapping"
DEPRECATION_ANNOTATION = "Deprecated"


def _rooted(fragment: str) -> str:
    fragment = fragment.strip()
    if not fragment or fragment.startswith("/"):
        return fragment
    return "/" + fragment


def join_route(base: str, sub: str) -> str:
    """Combine a class-level base path and a method-level sub-path.

    Both parts are trimmed and given a leading ``/`` unless empty, then
    concatenated; runs of slashes collapse to one and an empty result
    becomes ``/``.

    Example::

        >>> join_route("//a//b/", "/c")
        '/a/b/c'
        >>> join_route("api", "")
        '/api'
        >>> join_route("", "")
        '/'
    """
    joined = _SLASH_RUN.sub("/", _rooted(base) + _rooted(sub))
    return joined or "/"


def normalize_route(path: str) -> str:
    """Normalise a single path; idempotent on already-normalised paths."""
    return join_route(path, "")


def to_posix(relative_path: str) -> str:
    """Replace Windows separators with ``/``."""
    return relative_path.replace("\\", "/")
