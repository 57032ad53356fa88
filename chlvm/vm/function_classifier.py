"""Locate the VM dispatcher and recover the handler name -> opcode index table.

The dispatcher is renamed or anonymised by every obfuscator build, but it is
always by far the largest function, so it is recognised by its statement
count and given a fixed sentinel name.  Inside it, the interpreter registers
each handler with an assignment such as ``this.h[43 ^ r] = fnName``; the
classifier folds the index, records ``functions[fnName] = 43`` and picks up
the constants table and key byte from the array literal stored the same way.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..js.nodes import (
    function_statements,
    is_computed_member,
    is_identifier,
    is_member,
    is_numeric_literal,
    is_static_member,
    is_string_literal,
    node_type,
)
from ..js.visitor import NodeVisitor, bound_name
from .constant_folder import ConstantFolder, parse_js_number, to_u16
from .diagnostics import Diagnostics
from .heuristics import DEFAULT_PROFILE, HeuristicProfile

LOGGER = logging.getLogger(__name__)

__all__ = [
    "FunctionSite",
    "FunctionRegistry",
    "FunctionClassifier",
    "function_site",
]

_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class FunctionSite:
    """A function node together with the name the passes know it by."""

    node: Any
    name: Optional[str]
    statements: List[Any]
    is_dispatcher: bool


def function_site(node: Any, parent: Any, profile: HeuristicProfile) -> FunctionSite:
    statements = function_statements(node)
    if profile.is_dispatcher(len(statements)):
        return FunctionSite(node, profile.dispatcher_name, statements, True)
    return FunctionSite(node, bound_name(node, parent), statements, False)


@dataclass
class FunctionRegistry:
    """Result of the function classification pass."""

    functions: Dict[str, int] = field(default_factory=dict)
    raw_bits: Dict[int, List[int]] = field(default_factory=dict)
    constants_index: Optional[int] = None
    key_byte: Optional[int] = None
    dispatcher_name: str = ""
    variables: Dict[str, float] = field(default_factory=dict)

    def bits_for_index(self, index: int) -> Optional[List[int]]:
        bits = self.raw_bits.get(index)
        return list(bits) if bits is not None else None


class FunctionClassifier(NodeVisitor):
    """Walk every function, tag the dispatcher and harvest its index assignments."""

    def __init__(
        self,
        profile: HeuristicProfile = DEFAULT_PROFILE,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        super().__init__()
        self.profile = profile
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.folder = ConstantFolder()
        self.registry = FunctionRegistry()
        self._dispatcher_stack: List[bool] = []

    def run(self, program: Any) -> FunctionRegistry:
        self.visit(program)
        self.registry.variables = dict(self.folder.variables)
        return self.registry

    @property
    def in_dispatcher(self) -> bool:
        return bool(self._dispatcher_stack) and self._dispatcher_stack[-1]

    # -- Functions --------------------------------------------------
    def _visit_function(self, node: Any) -> None:
        site = function_site(node, self.parent, self.profile)
        if site.is_dispatcher:
            self.registry.dispatcher_name = site.name or ""
            declared = bound_name(node, self.parent) or "<anonymous>"
            self.diagnostics.emit(
                "dispatcher-detected",
                f"{declared} has {len(site.statements)} statements; treating it as {site.name}",
                declared=declared,
                statements=len(site.statements),
            )
        self._dispatcher_stack.append(site.is_dispatcher)
        self.generic_visit(node, on_exit=self._dispatcher_stack.pop)

    visit_FunctionDeclaration = _visit_function
    visit_FunctionExpression = _visit_function
    visit_ArrowFunctionExpression = _visit_function

    # -- Variables --------------------------------------------------
    def visit_VariableDeclarator(self, node: Any) -> None:
        target = getattr(node, "id", None)
        init = getattr(node, "init", None)
        if is_identifier(target) and init is not None:
            self.folder.record(target.name, init)
        self.generic_visit(node)

    def visit_AssignmentExpression(self, node: Any) -> None:
        left = node.left
        if is_identifier(left) and node.operator == "=":
            self.folder.record(left.name, node.right)
        if self.in_dispatcher and is_member(left):
            self._discover_mapping(left, node.right)
        self.generic_visit(node)

    # -- Mapping discovery ------------------------------------------
    def target_index(self, target: Any) -> Optional[int]:
        """Resolve the slot index written by ``target``."""

        if is_computed_member(target):
            prop = target.property
            index = self.folder.resolve_index(prop)
            if index is None:
                value = self.folder.raw_literal(prop)
                index = to_u16(value) if value is not None else None
            return index
        if is_static_member(target) and is_identifier(target.property):
            match = _DIGITS.search(target.property.name)
            if match:
                return to_u16(float(match.group(0)))
        return None

    def _discover_mapping(self, target: Any, value: Any) -> None:
        index = self.target_index(target)
        if index is None:
            return
        if node_type(value) == "ArrayExpression":
            self.registry.raw_bits[index] = _capture_raw_bits(value)
        if self.profile.is_noise_index(index):
            self.diagnostics.emit("noise-index", f"dropping assignment to noise index {index}", index=index)
            return

        name = extract_function_name(value)
        if name is not None:
            self.registry.functions[name] = index
            self.diagnostics.emit("mapping", f"{name} -> {index}", name=name, index=index)
        elif node_type(value) == "ArrayExpression":
            self.registry.constants_index = index
            elements = getattr(value, "elements", None) or []
            if len(elements) > 3 and is_numeric_literal(elements[3]):
                self.registry.key_byte = to_u16(float(elements[3].value))
            self.diagnostics.emit(
                "constants-table",
                f"constants table at {index} (key byte {self.registry.key_byte})",
                index=index,
                key_byte=self.registry.key_byte,
            )
        else:
            owner = self.registry.dispatcher_name
            self.registry.functions[owner] = index
            self.diagnostics.emit(
                "orphan-mapping", f"inline handler at {index} attributed to {owner}", name=owner, index=index
            )


def extract_function_name(expr: Any) -> Optional[str]:
    """Return the handler name referenced by the right side of a mapping."""

    kind = node_type(expr)
    if kind == "Identifier":
        return expr.name
    if kind == "CallExpression":
        arguments = getattr(expr, "arguments", None) or []
        if arguments and is_identifier(arguments[0]):
            return arguments[0].name
        callee = getattr(expr, "callee", None)
        if is_member(callee) and is_identifier(callee.object):
            return callee.object.name
        return None
    if kind == "SequenceExpression":
        expressions = getattr(expr, "expressions", None) or []
        return extract_function_name(expressions[-1]) if expressions else None
    if kind == "ParenthesizedExpression":
        return extract_function_name(getattr(expr, "expression", None))
    return None


def _capture_raw_bits(array: Any) -> List[int]:
    bits: List[int] = []
    for element in getattr(array, "elements", None) or []:
        value: Optional[float] = None
        if is_numeric_literal(element):
            value = float(element.value)
        elif is_string_literal(element):
            value = parse_js_number(element.value)
        elif (
            node_type(element) == "UnaryExpression"
            and element.operator == "-"
            and is_numeric_literal(element.argument)
        ):
            value = -float(element.argument.value)
        if value is not None and math.isfinite(value):
            bits.append(int(value))
    return bits
