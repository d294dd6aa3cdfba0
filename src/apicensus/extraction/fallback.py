"""Best-effort, pattern-based route extraction.

Used when a controller does not parse (see
:mod:`~apicensus.extraction.structured`). The file is read as plain text:

1. Comments are blanked out with spaces of the same length, so offsets in
   the cleaned text match the raw text.
2. The base path is the first quoted argument of the ``@RequestMapping``
   that precedes the type declaration.
3. Every mapping annotation after the type declaration is matched in the
   raw text (arguments may span lines). The next method signature within
   :data:`SIGNATURE_LOOKAHEAD` characters names the handler; without one the
   annotation is skipped.
4. Candidate sub-paths are the quoted strings of the arguments, minus
   ``RequestMethod`` tokens and the values of non-path attributes such as
   ``produces``. No candidate means ``""``.
5. ``@Deprecated`` within :data:`DEPRECATION_LOOKBEHIND` characters before
   the annotation marks the handler deprecated.

:func:`extract_fallback` never raises for malformed input; a file it cannot
make sense of yields no endpoints.
"""

from __future__ import annotations

import re

from apicensus.extraction.paths import MAPPING_ANNOTATIONS, join_route
from apicensus.models import EndpointRecord

SIGNATURE_LOOKAHEAD = 1000
DEPRECATION_LOOKBEHIND = 300

_COMMENT_RE = re.compile(r"/\*.*?\*/|//[^\n]*", re.DOTALL)
_TYPE_DECL_RE = re.compile(r"\b(?:class|interface)\s+\w+")
_CLASS_MAPPING_RE = re.compile(
    r'@RequestMapping\s*\(\s*(?:(?:value|path)\s*=\s*)?\{?\s*"([^"]*)"'
)
_METHOD_MAPPING_RE = re.compile(
    r"@(" + "|".join(MAPPING_ANNOTATIONS) + r")\b(?:\s*\((.*?)\))?",
    re.DOTALL,
)
_SIGNATURE_RE = re.compile(
    r"(?:public|private|protected)\s+[\w<>\[\],.?\s]+?\s+(\w+)\s*\("
)
_QUOTED_RE = re.compile(r'"([^"]*)"')
_FOREIGN_ATTRIBUTE_RE = re.compile(
    r"\b(?!(?:value|path)\b)\w+\s*=\s*(?:\{[^}]*\}|\"[^\"]*\")"
)


def strip_comments(source: str) -> str:
    """Blank out block and line comments, preserving length and newlines."""

    def _blank(match: re.Match[str]) -> str:
        return re.sub(r"[^\n]", " ", match.group(0))

    return _COMMENT_RE.sub(_blank, source)


def extract_fallback(
    source: str,
    relative_path: str,
    controller_name: str,
) -> list[EndpointRecord]:
    """Extract routes from *source* by pattern matching."""
    clean = strip_comments(source)

    type_decl = _TYPE_DECL_RE.search(clean)
    body_start = type_decl.start() if type_decl else 0

    base_path = ""
    class_match = _CLASS_MAPPING_RE.search(clean, 0, body_start) if type_decl else None
    if class_match is None and type_decl is None:
        class_match = _CLASS_MAPPING_RE.search(clean)
    if class_match is not None:
        base_path = class_match.group(1).strip()

    records: list[EndpointRecord] = []
    for match in _METHOD_MAPPING_RE.finditer(source, body_start):
        # Annotations inside comments are blanked in ``clean``.
        if clean[match.start()] != "@":
            continue

        window = clean[match.end() : match.end() + SIGNATURE_LOOKAHEAD]
        signature = _SIGNATURE_RE.search(window)
        if signature is None:
            continue

        lookbehind = clean[max(0, match.start() - DEPRECATION_LOOKBEHIND) : match.start()]
        deprecated = "@Deprecated" in lookbehind

        for sub_path in _candidate_paths(match.group(2)):
            records.append(
                EndpointRecord(
                    path=join_route(base_path, sub_path),
                    handler_name=signature.group(1),
                    deprecated=deprecated,
                    source_file=relative_path,
                    controller_name=controller_name,
                )
            )
    return records


def _candidate_paths(arguments: str | None) -> list[str]:
    if not arguments:
        return [""]
    path_arguments = _FOREIGN_ATTRIBUTE_RE.sub(" ", arguments)
    candidates = [
        value.strip()
        for value in _QUOTED_RE.findall(path_arguments)
        if "RequestMethod" not in value
    ]
    return candidates or [""]
