"""Constant folding over the subset of JavaScript the interpreter uses for indices.

The folder is not an evaluator: it only knows literals, previously recorded
variables and the arithmetic, bitwise and logical operators needed to turn
``g[3 ^ 4]`` or ``g[x + 1]`` into a register index.  Anything else folds to
``None`` so callers can keep walking the tree.
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..js.nodes import is_numeric_literal, is_string_literal, node_type

__all__ = ["ConstantFolder", "to_u16", "to_i16", "parse_js_number"]

_NUMBER_TEXT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_SPECIAL_TEXT = re.compile(r"[+-]?(?:inf|infinity|nan)", re.IGNORECASE)

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def parse_js_number(text: str) -> Optional[float]:
    """Parse a numeric string using float literal rules.

    Decimal and exponent forms plus ``inf``, ``infinity`` and ``nan`` (any
    case, optional sign) are accepted; surrounding whitespace is not.
    """

    if _NUMBER_TEXT.fullmatch(text) or _SPECIAL_TEXT.fullmatch(text):
        return float(text)
    return None


def _to_int64(value: float) -> int:
    if math.isnan(value):
        return 0
    if math.isinf(value):
        return _INT64_MAX if value > 0 else _INT64_MIN
    return max(_INT64_MIN, min(_INT64_MAX, int(value)))


def _wrap64(value: int) -> int:
    value &= (1 << 64) - 1
    return value - (1 << 64) if value > _INT64_MAX else value


def _to_int32(value: float) -> int:
    if math.isnan(value) or math.isinf(value):
        return 0
    value = int(value) & 0xFFFFFFFF
    return value - (1 << 32) if value > 0x7FFFFFFF else value


def to_u16(value: float) -> int:
    """Saturating float -> unsigned 16-bit conversion (NaN becomes 0)."""

    if math.isnan(value):
        return 0
    if math.isinf(value):
        return 0xFFFF if value > 0 else 0
    return max(0, min(0xFFFF, int(value)))


def to_i16(value: float) -> int:
    """Truncate to an integer and wrap into the signed 16-bit range."""

    wrapped = _to_int64(value) & 0xFFFF
    return wrapped - 0x10000 if wrapped > 0x7FFF else wrapped


def truthy(value: float) -> bool:
    return value != 0 and not math.isnan(value)


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _modulo(left: float, right: float) -> float:
    if right == 0 or math.isinf(left) or math.isnan(left) or math.isnan(right):
        return math.nan
    return math.fmod(left, right)


def _shift_left(left: float, right: float) -> Optional[float]:
    count = _to_int64(right)
    if not 0 <= count < 64:
        return None
    return float(_wrap64(_to_int64(left) << count))


def _shift_right(left: float, right: float) -> Optional[float]:
    count = _to_int64(right)
    if not 0 <= count < 64:
        return None
    return float(_to_int64(left) >> count)


_BINARY: Dict[str, Callable[[float, float], Optional[float]]] = {
    "+": lambda l, r: l + r,
    "-": lambda l, r: l - r,
    "*": lambda l, r: l * r,
    "/": _divide,
    "%": _modulo,
    "&": lambda l, r: float(_to_int64(l) & _to_int64(r)),
    "|": lambda l, r: float(_to_int64(l) | _to_int64(r)),
    "^": lambda l, r: float(_to_int64(l) ^ _to_int64(r)),
    "<<": _shift_left,
    ">>": _shift_right,
}


class ConstantFolder:
    """Fold expression subtrees to numbers using a tracked variable table."""

    def __init__(self, variables: Optional[Dict[str, float]] = None) -> None:
        self.variables: Dict[str, float] = dict(variables or {})

    def record(self, name: str, node: Any) -> Optional[float]:
        """Remember ``name`` if ``node`` folds to a value; return that value."""

        value = self.fold(node)
        if value is not None:
            self.variables[name] = value
        return value

    def fold(self, node: Any) -> Optional[float]:
        """Fold ``node`` bottom-up with an explicit stack.

        Operands are folded before the expression combining them, so left
        nested chains such as ``"a" + "b" + ... + "z"`` of any length fold
        without recursion.
        """

        values: Dict[int, Optional[float]] = {}
        stack: List[Tuple[Any, bool]] = [(node, False)]
        while stack:
            current, ready = stack.pop()
            if ready:
                values[id(current)] = self._combine(current, values)
                continue
            stack.append((current, True))
            stack.extend((operand, False) for operand in reversed(_operands(current)))
        return values[id(node)]

    def _combine(self, node: Any, values: Dict[int, Optional[float]]) -> Optional[float]:
        kind = node_type(node)
        operands = [values[id(operand)] for operand in _operands(node)]
        if kind == "Literal":
            if is_numeric_literal(node):
                return float(node.value)
            if is_string_literal(node):
                return parse_js_number(node.value)
            return None
        if kind == "Identifier":
            return self.variables.get(node.name)
        if kind in {"ParenthesizedExpression", "SequenceExpression"}:
            return operands[0] if operands else None
        if kind == "UnaryExpression":
            return _fold_unary(node.operator, operands[0])
        if kind == "BinaryExpression":
            left, right = operands
            handler = _BINARY.get(node.operator)
            if handler is None or left is None or right is None:
                return None
            return handler(left, right)
        if kind == "LogicalExpression":
            return _fold_logical(node.operator, *operands)
        if kind == "ConditionalExpression":
            test, consequent, alternate = operands
            if test is None:
                return None
            return consequent if truthy(test) else alternate
        return None

    # -- Index helpers ----------------------------------------------
    def resolve_index(self, node: Any) -> Optional[int]:
        """Fold ``node`` to an index, accepting one unresolved binary operand.

        ``g[r ^ 12]`` resolves to 12: the unresolved side is assumed to be a
        register reference.
        """

        value = self.fold(node)
        if value is not None:
            return to_u16(value)
        if node_type(node) == "BinaryExpression":
            left = self.fold(node.left)
            right = self.fold(node.right)
            if (left is None) != (right is None):
                return to_u16(left if left is not None else right)
        return None

    def raw_literal(self, node: Any) -> Optional[float]:
        """Last-resort search for any literal through call arguments and member objects."""

        pending = [node]
        while pending:
            current = pending.pop()
            kind = node_type(current)
            if kind == "Literal":
                if is_numeric_literal(current):
                    return float(current.value)
                if is_string_literal(current):
                    value = parse_js_number(current.value)
                    if value is not None:
                        return value
            elif kind in {"CallExpression", "NewExpression"}:
                pending.extend(reversed(getattr(current, "arguments", None) or []))
            elif kind in {"MemberExpression", "ComputedMemberExpression", "StaticMemberExpression"}:
                pending.append(getattr(current, "object", None))
        return None


def _operands(node: Any) -> List[Any]:
    """Sub-expressions whose values :meth:`ConstantFolder.fold` combines."""

    kind = node_type(node)
    if kind == "ParenthesizedExpression":
        children = [getattr(node, "expression", None)]
    elif kind == "SequenceExpression":
        expressions = getattr(node, "expressions", None) or []
        children = expressions[-1:]
    elif kind == "UnaryExpression":
        children = [node.argument]
    elif kind in {"BinaryExpression", "LogicalExpression"}:
        children = [node.left, node.right]
    elif kind == "ConditionalExpression":
        children = [node.test, node.consequent, node.alternate]
    else:
        children = []
    return children


def _fold_unary(operator: str, value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    if operator == "-":
        return -value
    if operator == "+":
        return value
    if operator == "~":
        return float(~_to_int32(value))
    if operator == "!":
        return 0.0 if truthy(value) else 1.0
    return None


def _fold_logical(operator: str, left: Optional[float], right: Optional[float]) -> Optional[float]:
    if operator == "||":
        if left is not None and truthy(left):
            return left
        return right
    if operator == "&&":
        if left is None:
            return None
        return left if not truthy(left) else right
    if operator == "??":
        return left if left is not None else right
    return None
