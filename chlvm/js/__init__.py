"""JavaScript front-end adapter used by the VM recovery passes."""

from __future__ import annotations

from .nodes import (
    function_statements,
    is_computed_member,
    is_identifier,
    is_member,
    is_node,
    is_numeric_literal,
    is_static_member,
    is_string_literal,
    iter_child_nodes,
    member_property_name,
    node_type,
    source_of,
    walk,
)
from .visitor import NodeVisitor, bound_name

__all__ = [
    "NodeVisitor",
    "ParsedScript",
    "bound_name",
    "function_statements",
    "is_computed_member",
    "is_identifier",
    "is_member",
    "is_node",
    "is_numeric_literal",
    "is_static_member",
    "is_string_literal",
    "iter_child_nodes",
    "member_property_name",
    "node_type",
    "parse_script",
    "source_of",
    "walk",
]


def __getattr__(name: str):
    if name in {"parse_script", "ParsedScript"}:
        from . import parser as _parser

        return getattr(_parser, name)
    raise AttributeError(name)
