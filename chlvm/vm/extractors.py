"""Operand and test extractors run over a single handler body.

* :class:`BitExtractor` - register slots read or written by the handler,
  taken from the numeric parts of computed member indices (``r[x ^ 12]``).
* :class:`TestExtractor` - the values a handler compares its sub-opcode
  against in a ``t === 3 ? ... : t === 4 ? ...`` chain or ``if`` ladder.
* :class:`AssignmentExtractor` - identifiers assigned in the body, in order.
* :class:`BinaryBitExtractor` - per-branch slots of a test chain plus a swap
  flag telling whether the branch uses its operands in reverse order.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, List, Optional, Sequence

from ..js.nodes import (
    is_computed_member,
    is_identifier,
    is_numeric_literal,
    node_type,
    walk,
)
from ..js.visitor import NodeVisitor
from .constant_folder import ConstantFolder

__all__ = [
    "BitExtractor",
    "TestExtractor",
    "AssignmentExtractor",
    "BinaryBitExtractor",
    "equality_tests",
]

_EQUALITY = frozenset({"==", "==="})


def _literal_int(node: Any) -> Optional[int]:
    if not is_numeric_literal(node):
        return None
    value = float(node.value)
    return int(value) if math.isfinite(value) else None


def equality_tests(expr: Any) -> List[int]:
    """Return the literals ``expr`` compares against with ``==``/``===``."""

    kind = node_type(expr)
    if kind == "BinaryExpression" and expr.operator in _EQUALITY:
        for side in (expr.right, expr.left):
            value = _literal_int(side)
            if value is not None:
                return [value]
        return []
    if kind == "LogicalExpression":
        return equality_tests(expr.left) + equality_tests(expr.right)
    if kind == "ParenthesizedExpression":
        return equality_tests(getattr(expr, "expression", None))
    return []


class BitExtractor(NodeVisitor):
    """Collect slot numbers from computed member indices, in reading order.

    References to the constants table are skipped since every handler reads
    through it.  A bare identifier index counts when the folder knows its value.
    """

    def __init__(self, constants_index: Optional[int] = None, folder: Optional[ConstantFolder] = None) -> None:
        super().__init__()
        self.constants_index = constants_index
        self.folder = folder
        self.bits: List[int] = []

    def collect(self, nodes: Iterable[Any]) -> List[int]:
        for node in nodes:
            self.visit(node)
        return self.bits

    def visit_MemberExpression(self, node: Any) -> None:
        if is_computed_member(node):
            for value in self._index_values(node.property):
                if value != self.constants_index:
                    self.bits.append(value)
        self.generic_visit(node)

    def _index_values(self, prop: Any) -> List[int]:
        literal = _literal_int(prop)
        if literal is not None:
            return [literal]
        kind = node_type(prop)
        if kind == "Identifier" and self.folder is not None:
            value = self.folder.fold(prop)
            if value is not None and math.isfinite(value):
                return [int(value)]
            return []
        if kind == "BinaryExpression":
            return self._operand_literals(prop)
        return []

    def _operand_literals(self, expr: Any) -> List[int]:
        values: List[int] = []
        pending = [expr.right, expr.left]
        while pending:
            side = pending.pop()
            literal = _literal_int(side)
            if literal is not None:
                values.append(literal)
            elif node_type(side) == "BinaryExpression":
                pending.extend((side.right, side.left))
        return values


class _TestChainVisitor(NodeVisitor):
    """Walk ``?:`` chains, ``if`` ladders and ``t === n && (...)`` forms.

    :meth:`on_branch` receives the tested values and the branch taken when
    they match.  Test expressions themselves are not descended into.
    """

    def on_branch(self, tests: List[int], branch: Any) -> None:  # pragma: no cover - hook
        raise NotImplementedError

    def _branch(self, test: Any, consequent: Any, alternate: Any) -> None:
        tests = equality_tests(test)
        if tests:
            self.on_branch(tests, consequent)
        self.visit(consequent)
        self.visit(alternate)

    def visit_ConditionalExpression(self, node: Any) -> None:
        self._branch(node.test, node.consequent, node.alternate)

    def visit_IfStatement(self, node: Any) -> None:
        self._branch(node.test, node.consequent, getattr(node, "alternate", None))

    def visit_LogicalExpression(self, node: Any) -> None:
        if node.operator == "&&":
            self._branch(node.left, node.right, None)
        else:
            self.generic_visit(node)

    def visit_FunctionExpression(self, node: Any) -> None:
        return None

    visit_FunctionDeclaration = visit_FunctionExpression
    visit_ArrowFunctionExpression = visit_FunctionExpression


class TestExtractor(_TestChainVisitor):
    """Ordered list of sub-opcode values tested by a handler."""

    __test__ = False

    def __init__(self) -> None:
        super().__init__()
        self.tests: List[int] = []

    def collect(self, node: Any) -> List[int]:
        self.visit(node)
        return self.tests

    def on_branch(self, tests: List[int], branch: Any) -> None:
        self.tests.extend(tests)


class AssignmentExtractor(NodeVisitor):
    """Identifiers assigned (or declared with an initialiser) in a body."""

    def __init__(self) -> None:
        super().__init__()
        self.identifiers: List[str] = []

    def collect(self, nodes: Iterable[Any]) -> List[str]:
        for node in nodes:
            self.visit(node)
        return self.identifiers

    def _add(self, target: Any) -> None:
        if is_identifier(target) and target.name not in self.identifiers:
            self.identifiers.append(target.name)

    def visit_AssignmentExpression(self, node: Any) -> None:
        self._add(node.left)
        self.generic_visit(node)

    def visit_VariableDeclarator(self, node: Any) -> None:
        if getattr(node, "init", None) is not None:
            self._add(node.id)
        self.generic_visit(node)

    def visit_FunctionExpression(self, node: Any) -> None:
        return None

    visit_FunctionDeclaration = visit_FunctionExpression
    visit_ArrowFunctionExpression = visit_FunctionExpression


class BinaryBitExtractor(_TestChainVisitor):
    """Per-branch slots and operand-order flags for binary operator handlers.

    A branch is swapped when it combines two assigned identifiers in the
    reverse of their assignment order (``b - a`` after ``a = ..., b = ...``).
    One swap flag is recorded per tested value so flags line up with
    :class:`TestExtractor` output.
    """

    def __init__(
        self,
        constants_index: Optional[int],
        identifiers: Sequence[str],
        folder: Optional[ConstantFolder] = None,
    ) -> None:
        super().__init__()
        self.constants_index = constants_index
        self.folder = folder
        self.identifiers = list(identifiers)
        self.bits: List[int] = []
        self.swaps: List[bool] = []

    def collect(self, node: Any) -> List[int]:
        self.visit(node)
        return self.bits

    def on_branch(self, tests: List[int], branch: Any) -> None:
        self.bits.extend(BitExtractor(self.constants_index, self.folder).collect([branch]))
        swap = self._is_swapped(branch)
        self.swaps.extend([swap] * len(tests))

    def _is_swapped(self, branch: Any) -> bool:
        for node in walk(branch):
            if node_type(node) != "BinaryExpression":
                continue
            left, right = node.left, node.right
            if is_identifier(left) and is_identifier(right):
                if left.name in self.identifiers and right.name in self.identifiers and left.name != right.name:
                    return self.identifiers.index(left.name) > self.identifiers.index(right.name)
        return False

