"""Recover the payload decoder parameters from the interpreter source.

The decoder masks every byte with ``& 255`` inside a ``for`` loop; that
expression is kept verbatim so the executor can reuse it.  The offset is a
small literal combined with a call result (``17 + f()`` or ``f() ^ 17``).
Neither is evaluated here.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from ..js.nodes import is_numeric_literal, node_type, source_of
from ..js.visitor import NodeVisitor
from .constant_folder import to_i16
from .diagnostics import Diagnostics
from .heuristics import DEFAULT_PROFILE, HeuristicProfile

LOGGER = logging.getLogger(__name__)

__all__ = ["KeyOffsetBundle", "KeyOffsetExtractor"]

_OFFSET_OPERATORS = frozenset({"+", "^"})


def _as_u32(value: float) -> int:
    if math.isnan(value):
        return 0
    if math.isinf(value):
        return 0xFFFFFFFF if value > 0 else 0
    return max(0, min(0xFFFFFFFF, int(value)))


@dataclass
class KeyOffsetBundle:
    key_expr: Any = None
    key_expr_source: Optional[str] = None
    offset: int = 0
    key_byte: Optional[int] = None


class KeyOffsetExtractor(NodeVisitor):
    """Capture the byte-masking key expression and the call-paired offset."""

    def __init__(
        self,
        source: str = "",
        profile: HeuristicProfile = DEFAULT_PROFILE,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        super().__init__()
        self.source = source
        self.profile = profile
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.result = KeyOffsetBundle()
        self._loop_depth = 0
        self._offset_found = False

    def run(self, program: Any) -> KeyOffsetBundle:
        self.visit(program)
        return self.result

    def visit_ForStatement(self, node: Any) -> None:
        self._loop_depth += 1
        self.generic_visit(node, on_exit=self._leave_loop)

    def _leave_loop(self) -> None:
        self._loop_depth -= 1

    def visit_AssignmentExpression(self, node: Any) -> None:
        if self._loop_depth and self.result.key_expr is None and self._is_key_mask(node.right):
            self.result.key_expr = node.right
            self.result.key_expr_source = source_of(node.right, self.source)
            self.diagnostics.emit(
                "key-expression",
                f"byte mask captured: {self.result.key_expr_source or '<no source>'}",
                source=self.result.key_expr_source,
            )
        self.generic_visit(node)

    def visit_BinaryExpression(self, node: Any) -> None:
        if not self._offset_found and node.operator in _OFFSET_OPERATORS:
            literal = _call_paired_literal(node.left, node.right)
            if literal is not None and int(literal) != 0:
                self.result.offset = to_i16(literal)
                self._offset_found = True
                self.diagnostics.emit(
                    "offset", f"offset {self.result.offset} from '{node.operator}' with a call", offset=self.result.offset
                )
                return
        self.generic_visit(node)

    def _is_key_mask(self, expr: Any) -> bool:
        return (
            node_type(expr) == "BinaryExpression"
            and expr.operator == "&"
            and is_numeric_literal(expr.right)
            and _as_u32(float(expr.right.value)) == self.profile.key_mask
        )


def _call_paired_literal(left: Any, right: Any) -> Optional[float]:
    for literal, other in ((left, right), (right, left)):
        if is_numeric_literal(literal) and node_type(other) == "CallExpression":
            value = float(literal.value)
            return value if math.isfinite(value) else None
    return None
