"""Helpers over ESTree-shaped nodes produced by the JavaScript front end.

The engine never depends on the concrete node classes of the parser.  Any
object exposing a string ``type`` attribute together with the ESTree field
names is accepted, which keeps the passes usable with hand-built nodes in
tests and with alternative front ends.
"""

from __future__ import annotations

from typing import Any, Iterator, List, Optional, Sequence

__all__ = [
    "node_type",
    "is_node",
    "iter_child_nodes",
    "walk",
    "is_numeric_literal",
    "is_string_literal",
    "is_identifier",
    "is_computed_member",
    "is_static_member",
    "is_member",
    "member_property_name",
    "function_statements",
    "source_of",
]

_SKIP_FIELDS = frozenset(
    {"type", "range", "loc", "leadingComments", "trailingComments", "innerComments"}
)


def node_type(node: Any) -> Optional[str]:
    value = getattr(node, "type", None)
    return value if isinstance(value, str) else None


def is_node(value: Any) -> bool:
    return node_type(value) is not None


def _fields(node: Any) -> Sequence[tuple[str, Any]]:
    try:
        return list(vars(node).items())
    except TypeError:
        return []


def iter_child_nodes(node: Any) -> Iterator[Any]:
    """Yield the direct child nodes of ``node`` in field order."""

    for name, value in _fields(node):
        if name in _SKIP_FIELDS:
            continue
        if isinstance(value, list):
            for item in value:
                if is_node(item):
                    yield item
        elif is_node(value):
            yield value


def walk(node: Any) -> Iterator[Any]:
    """Pre-order traversal that does not recurse on the Python stack."""

    stack: List[Any] = [node]
    while stack:
        current = stack.pop()
        if not is_node(current):
            continue
        yield current
        stack.extend(reversed(list(iter_child_nodes(current))))


def is_numeric_literal(node: Any) -> bool:
    if node_type(node) != "Literal":
        return False
    value = getattr(node, "value", None)
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_string_literal(node: Any) -> bool:
    return node_type(node) == "Literal" and isinstance(getattr(node, "value", None), str)


def is_identifier(node: Any) -> bool:
    return node_type(node) == "Identifier"


def is_member(node: Any) -> bool:
    return node_type(node) in {"MemberExpression", "ComputedMemberExpression", "StaticMemberExpression"}


def is_computed_member(node: Any) -> bool:
    return is_member(node) and bool(getattr(node, "computed", False))


def is_static_member(node: Any) -> bool:
    return is_member(node) and not getattr(node, "computed", False)


def member_property_name(node: Any) -> Optional[str]:
    """Return the property name for ``x["name"]`` and ``x.name`` accesses."""

    if not is_member(node):
        return None
    prop = getattr(node, "property", None)
    if is_computed_member(node):
        return prop.value if is_string_literal(prop) else None
    if is_identifier(prop):
        return prop.name
    return None


def function_statements(node: Any) -> List[Any]:
    """Return the top-level statements of a function body (empty for arrows)."""

    body = getattr(node, "body", None)
    if node_type(body) != "BlockStatement":
        return []
    return [stmt for stmt in getattr(body, "body", None) or [] if is_node(stmt)]


def source_of(node: Any, source: str) -> Optional[str]:
    span = getattr(node, "range", None)
    if not source or not span or len(span) != 2:
        return None
    start, end = span
    return source[int(start):int(end)]
