"""Classify handler function bodies into :mod:`chlvm.vm.opcodes` variants.

Only the last one or two statements of a handler are inspected.  A test chain
in the second-to-last statement marks a family handler (unary, literal,
binary or heap) which is recognised by how many values it tests against.
The final statement's shape then decides the simple instructions: ``r[a] =
r[b].push(r[c])`` is an array push, ``r[a] = {}`` a new object and so on.
Handlers matching nothing are left out of the table and reported.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

from ..js.nodes import (
    is_computed_member,
    is_identifier,
    is_member,
    is_numeric_literal,
    is_static_member,
    member_property_name,
    node_type,
)
from ..js.visitor import NodeVisitor
from .constant_folder import ConstantFolder
from .diagnostics import Diagnostics
from .extractors import AssignmentExtractor, BinaryBitExtractor, BitExtractor, TestExtractor
from .function_classifier import FunctionRegistry, FunctionSite, function_site
from .heuristics import DEFAULT_PROFILE, HeuristicProfile
from .opcodes import (
    ArrayPush,
    Binary,
    BinaryOperator,
    Bind,
    Call,
    CallFuncNoContext,
    ClosureTest,
    GetProperty,
    Heap,
    HeapType,
    Jump,
    JumpIf,
    LiteralType,
    Move,
    NewArray,
    NewLiteral,
    NewLiteralTest,
    NewObject,
    Opcode,
    OpcodeTable,
    Pop,
    RegisterVMFunction,
    SetProperty,
    SplicePop,
    SwapRegister,
    Throw,
    Unary,
    UnaryOperator,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["InstructionClassifier"]

_ONE_BIT_LITERALS = frozenset({LiteralType.INTEGER, LiteralType.STRING, LiteralType.COPY_STATE, LiteralType.ARRAY})


class InstructionClassifier(NodeVisitor):
    """Build the opcode table from the handlers named in ``registry``."""

    def __init__(
        self,
        registry: FunctionRegistry,
        profile: HeuristicProfile = DEFAULT_PROFILE,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        super().__init__()
        self.profile = profile
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.constants_index = registry.constants_index
        self.folder = ConstantFolder(registry.variables)
        self.pending: Dict[str, int] = dict(registry.functions)
        self.opcodes = OpcodeTable()
        self.create_function_ident: str = ""

    def run(self, program: Any) -> OpcodeTable:
        self.visit(program)
        return self.opcodes

    # -- Traversal --------------------------------------------------
    def _visit_function(self, node: Any) -> None:
        site = function_site(node, self.parent, self.profile)
        if site.name and site.statements:
            self._check_create_function(site)
            register = self.pending.pop(site.name, None)
            if register is not None:
                self._classify(site, register)
        self.generic_visit(node)

    visit_FunctionDeclaration = _visit_function
    visit_FunctionExpression = _visit_function
    visit_ArrowFunctionExpression = _visit_function

    def _check_create_function(self, site: FunctionSite) -> None:
        statements = site.statements
        if len(statements) < 2 or node_type(statements[-1]) != "ReturnStatement":
            return
        returned = getattr(statements[-1], "argument", None)
        previous = statements[-2]
        if (
            is_computed_member(returned)
            and is_static_member(returned.object)
            and node_type(returned.property) == "BinaryExpression"
            and node_type(previous) == "ExpressionStatement"
            and node_type(previous.expression) == "AssignmentExpression"
        ):
            self.create_function_ident = site.name or ""
            self.diagnostics.emit("create-function", f"{site.name} builds VM functions", name=site.name)

    # -- Classification ---------------------------------------------
    def _claim(self, index: int, opcode: Opcode, name: str) -> None:
        if self.opcodes.claim(index, opcode):
            LOGGER.debug("%s -> %d: %s %s", name, index, opcode.kind, opcode.bits)
            return
        existing = self.opcodes[index]
        self.diagnostics.emit(
            "duplicate-claim",
            f"{name} would overwrite {existing.kind} at {index} with {opcode.kind}",
            name=name,
            index=index,
            existing=existing.kind,
            rejected=opcode.kind,
        )

    def _plain_bits(self, statements: List[Any]) -> List[int]:
        return BitExtractor(self.constants_index, self.folder).collect(statements)

    def _classify(self, site: FunctionSite, register: int) -> None:
        name = site.name or ""
        statements = site.statements
        if site.is_dispatcher:
            self._claim(register, SetProperty([]), name)
            return

        if len(statements) >= 2:
            previous = statements[-2]
            expression = getattr(previous, "expression", None)
            if node_type(previous) == "IfStatement" or (
                node_type(previous) == "ExpressionStatement" and node_type(expression) == "ConditionalExpression"
            ):
                self._classify_by_tests(name, register, statements, previous)
            elif (
                node_type(previous) == "ExpressionStatement"
                and node_type(expression) == "AssignmentExpression"
                and is_computed_member(expression.left)
                and is_computed_member(expression.right)
            ):
                self._claim(register, SwapRegister(self._plain_bits(statements)), name)

        kind = self._classify_tail(statements)
        if register in self.opcodes:
            if kind is not None:
                LOGGER.debug("%s: tail shape %s ignored, slot %d already classified", name, kind.__name__, register)
            return
        if kind is None:
            self.diagnostics.emit(
                "unclassified", f"{name} at {register} matches no known handler shape", name=name, index=register
            )
            return
        self._claim(register, kind(self._plain_bits(statements)), name)

    def _classify_tail(self, statements: List[Any]) -> Optional[Type[Opcode]]:
        last = statements[-1]
        kind = node_type(last)
        if kind == "ThrowStatement":
            return Throw
        if kind != "ExpressionStatement":
            return None
        expression = last.expression
        if node_type(expression) == "LogicalExpression":
            return JumpIf
        if node_type(expression) != "AssignmentExpression" or not is_computed_member(expression.left):
            return None
        return self._classify_assignment(expression.left, expression.right, statements)

    def _classify_assignment(self, target: Any, value: Any, statements: List[Any]) -> Optional[Type[Opcode]]:
        kind = node_type(value)
        if kind == "CallExpression":
            return self._classify_call(value)
        if kind == "ObjectExpression":
            return NewObject
        if kind == "MemberExpression" and is_computed_member(value):
            return GetProperty if is_identifier(value.object) else SetProperty
        if kind == "NewExpression":
            return CallFuncNoContext
        if kind == "ArrayExpression":
            return NewArray
        if kind == "Identifier":
            if is_numeric_literal(target.property):
                return Jump
            if len(statements) >= 2 and _assigns_identifier(statements[-2]):
                return Move
            return SetProperty
        if kind == "ConditionalExpression":
            return Call
        return SetProperty

    def _classify_call(self, call: Any) -> Optional[Type[Opcode]]:
        arguments = getattr(call, "arguments", None) or []
        result: Optional[Type[Opcode]] = None
        if arguments and not is_member(arguments[0]):
            result = SplicePop
        callee = call.callee
        prop = member_property_name(callee)
        if prop == "push":
            result = ArrayPush
        elif prop == "bind" and is_identifier(callee.object):
            width = len(callee.object.name)
            if width == 1:
                result = Bind
            elif width == 2:
                result = RegisterVMFunction
        elif prop == "pop":
            result = Pop
        return result

    # -- Test-count families ----------------------------------------
    def _classify_by_tests(self, name: str, register: int, statements: List[Any], chain: Any) -> None:
        tests = TestExtractor().collect(chain)
        bits = self._plain_bits(statements)
        identifiers = AssignmentExtractor().collect(statements)
        binary = BinaryBitExtractor(self.constants_index, identifiers, self.folder)
        binary.collect(chain)

        count = len(tests)
        binary_count = len(BinaryOperator)
        if count == len(UnaryOperator):
            self._unary(name, tests, bits)
        elif count == len(LiteralType):
            self._literal(name, register, tests, bits)
        elif count in (binary_count, binary_count - 1):
            self._binary(name, tests, binary.bits, binary.swaps)
        elif count == len(HeapType):
            self._heap(name, register, tests, bits)
        else:
            self.diagnostics.emit(
                "unmatched-test-count",
                f"{name} tests {count} values; no instruction family has that many members",
                name=name,
                index=register,
                tests=count,
            )

    def _unary(self, name: str, tests: List[int], bits: List[int]) -> None:
        for operator in UnaryOperator:
            if not tests:
                break
            test = tests.pop(0)
            operands, bits[:2] = bits[:2], []
            self._claim(test, Unary(operands, operator), name)

    def _literal(self, name: str, register: int, tests: List[int], bits: List[int]) -> None:
        shared, bits[:2] = bits[:2], []
        entries: Dict[int, NewLiteralTest] = {}
        for literal_type in LiteralType:
            if not tests:
                break
            test = tests.pop(0)
            if literal_type in _ONE_BIT_LITERALS:
                operands = [bits.pop(0)] if bits else []
            elif literal_type is LiteralType.REGEXP:
                operands = list(bits)
            else:
                operands = []
            entries[test] = NewLiteralTest(operands, literal_type)
        self._claim(register, NewLiteral(shared, entries), name)

    def _binary(self, name: str, tests: List[int], bits: List[int], swaps: List[bool]) -> None:
        for operator in BinaryOperator:
            if not tests:
                break
            test = tests.pop(0)
            operands, bits[:3] = bits[:3], []
            swap = swaps.pop(0) if swaps else False
            self._claim(test, Binary(operands, operator, swap), name)

    def _heap(self, name: str, register: int, tests: List[int], bits: List[int]) -> None:
        shared = [bits.pop(0)] if bits else [0]
        closures: Dict[int, ClosureTest] = {}
        for heap_type in HeapType:
            if not tests:
                break
            test = tests.pop(0)
            if heap_type is HeapType.INIT or not bits:
                operands: List[int] = []
            else:
                operands = [bits.pop(0)]
            closures[test] = ClosureTest(operands, heap_type)
        self._claim(register, Heap(shared, closures), name)


def _assigns_identifier(statement: Any) -> bool:
    expression = getattr(statement, "expression", None)
    return (
        node_type(statement) == "ExpressionStatement"
        and node_type(expression) == "AssignmentExpression"
        and is_identifier(expression.left)
    )
