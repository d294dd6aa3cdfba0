"""Structured route extraction over a tree-sitter Java syntax tree.

The controller is parsed with the ``tree-sitter-java`` grammar. tree-sitter
recovers from syntax errors instead of failing, so a tree that contains
error nodes is rejected with :class:`~apicensus.exceptions.ExtractionError`;
the caller then switches to the pattern-based strategy for the whole file.

Annotation shapes understood for every mapping annotation::

    @GetMapping                              -> [""]
    @GetMapping("/x")                        -> ["/x"]
    @GetMapping({"", "/x"})                  -> ["", "/x"]
    @RequestMapping(value = "/x", method = RequestMethod.GET)
    @RequestMapping(path = {"/a", "/b"})

Only string literals count; constants and concatenations are ignored, as
they cannot be resolved without compiling the project.
"""

from __future__ import annotations

from collections.abc import Iterator

import tree_sitter_java
from tree_sitter import Language, Node, Parser

from apicensus.exceptions import ExtractionError
from apicensus.extraction.paths import (
    CLASS_MAPPING_ANNOTATION,
    DEPRECATION_ANNOTATION,
    MAPPING_ANNOTATIONS,
    join_route,
)
from apicensus.models import EndpointRecord

JAVA_LANGUAGE = Language(tree_sitter_java.language())

_TYPE_DECLARATIONS = frozenset({"class_declaration", "interface_declaration"})
_ANNOTATION_NODES = frozenset({"annotation", "marker_annotation"})
_COMMENT_NODES = frozenset({"comment", "line_comment", "block_comment"})
_PATH_ATTRIBUTES = frozenset({"value", "path"})


def parse_java(source: str) -> Node:
    """Parse *source* and return the root node.

    Raises:
        ExtractionError: If the tree contains syntax errors.
    """
    parser = Parser(JAVA_LANGUAGE)
    tree = parser.parse(source.encode("utf-8"))
    root = tree.root_node
    if root.has_error:
        line = _first_error_line(root)
        where = f" near line {line}" if line is not None else ""
        raise ExtractionError(f"Java syntax error{where}")
    return root


def extract_structured(
    source: str,
    relative_path: str,
    controller_name: str,
) -> list[EndpointRecord]:
    """Extract every mapped handler of *source*.

    Raises:
        ExtractionError: If the source does not parse cleanly.
    """
    root = parse_java(source)

    base_path = ""
    type_decl = next((n for n in _walk(root) if n.type in _TYPE_DECLARATIONS), None)
    if type_decl is not None:
        for annotation in _annotations(type_decl):
            if _annotation_name(annotation) == CLASS_MAPPING_ANNOTATION:
                values = _annotation_paths(annotation)
                if values:
                    base_path = values[0].strip()
                break

    records: list[EndpointRecord] = []
    for method in (n for n in _walk(root) if n.type == "method_declaration"):
        annotations = _annotations(method)
        names = [_annotation_name(a) for a in annotations]
        deprecated = DEPRECATION_ANNOTATION in names
        handler = _text(method.child_by_field_name("name"))

        for annotation, name in zip(annotations, names):
            if name not in MAPPING_ANNOTATIONS:
                continue
            for sub_path in _annotation_paths(annotation) or [""]:
                records.append(
                    EndpointRecord(
                        path=join_route(base_path, sub_path),
                        handler_name=handler,
                        deprecated=deprecated,
                        source_file=relative_path,
                        controller_name=controller_name,
                    )
                )
    return records


# ------------------------------------------------------------------ #
# Tree helpers
# ------------------------------------------------------------------ #


def _walk(node: Node) -> Iterator[Node]:
    """Yield *node* and its descendants in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _first_error_line(root: Node) -> int | None:
    for node in _walk(root):
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
    return None


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _annotations(declaration: Node) -> list[Node]:
    """Annotations in the declaration's modifier list, in source order."""
    for child in declaration.children:
        if child.type == "modifiers":
            return [c for c in child.children if c.type in _ANNOTATION_NODES]
    return []


def _annotation_name(annotation: Node) -> str:
    """Simple name of an annotation (``a.b.GetMapping`` -> ``GetMapping``)."""
    return _text(annotation.child_by_field_name("name")).rsplit(".", 1)[-1]


def _annotation_paths(annotation: Node) -> list[str]:
    """String values of the single member or the ``value``/``path`` attribute."""
    arguments = annotation.child_by_field_name("arguments")
    if arguments is None:
        return []

    members = [c for c in arguments.named_children if c.type not in _COMMENT_NODES]
    value: Node | None = None
    if len(members) == 1 and members[0].type != "element_value_pair":
        value = members[0]
    else:
        for member in members:
            if member.type != "element_value_pair":
                continue
            if _text(member.child_by_field_name("key")) in _PATH_ATTRIBUTES:
                value = member.child_by_field_name("value")
                break

    if value is None:
        return []
    if value.type == "string_literal":
        return [_string_value(value)]
    if value.type == "element_value_array_initializer":
        return [_string_value(v) for v in value.named_children if v.type == "string_literal"]
    return []


def _string_value(literal: Node) -> str:
    raw = _text(literal)
    if raw.startswith('"""') and raw.endswith('"""') and len(raw) >= 6:
        return raw[3:-3].strip()
    if len(raw) >= 2 and raw[0] == '"' and raw[-1] == '"':
        return raw[1:-1]
    return raw
