"""Instruction kinds recovered from the interpreter's handler functions.

Each opcode slot of the VM maps to exactly one :class:`Opcode` variant.  The
variants only differ by tag for most instructions; ``Binary``/``Unary`` also
carry the operator they implement while ``NewLiteral`` and ``Heap`` carry the
sub-dispatch tables keyed by the value the handler tests against.

The four enumerations double as classification signatures: a handler whose
test chain has as many branches as an enumeration has members is classified
as that family, so member order and count must match the interpreter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Optional, Tuple, Type

__all__ = [
    "UnaryOperator",
    "BinaryOperator",
    "LiteralType",
    "HeapType",
    "Opcode",
    "ArrayPush",
    "Throw",
    "Bind",
    "RegisterVMFunction",
    "Binary",
    "Unary",
    "NewLiteralTest",
    "NewLiteral",
    "NewObject",
    "Pop",
    "SetProperty",
    "GetProperty",
    "SplicePop",
    "CallFuncNoContext",
    "SwapRegister",
    "NewArray",
    "Jump",
    "JumpIf",
    "Move",
    "Call",
    "ClosureTest",
    "Heap",
    "OPCODE_KINDS",
    "OpcodeTable",
    "opcode_from_dict",
]


class UnaryOperator(Enum):
    TYPE_OF = "typeof"
    MINUS = "-"
    PLUS = "+"
    LOGICAL_NOT = "!"
    BITWISE_NOT = "~"

    @property
    def symbol(self) -> str:
        return self.value


class BinaryOperator(Enum):
    ADDITION = "+"
    SUBTRACTION = "-"
    MULTIPLICATION = "*"
    DIVISION = "/"
    MODULO = "%"
    LOGICAL_AND = "&&"
    LOGICAL_OR = "||"
    BITWISE_AND = "&"
    BITWISE_OR = "|"
    BITWISE_XOR = "^"
    LEFT_SHIFT = "<<"
    RIGHT_SHIFT = ">>"
    UNSIGNED_RIGHT_SHIFT = ">>>"
    EQUALS = "=="
    EQUALS_STRICT = "==="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    INSTANCE_OF = "instanceof"
    IN = "in"

    @property
    def symbol(self) -> str:
        return self.value


class LiteralType(Enum):
    NULL = "null"
    NAN = "nan"
    INFINITY = "infinity"
    TRUE = "true"
    FALSE = "false"
    FLOAT = "float"
    INTEGER = "integer"
    STRING = "string"
    NEXT_VALUE = "next_value"
    COPY_STATE = "copy_state"
    ARRAY = "array"
    REGEXP = "regexp"


class HeapType(Enum):
    SET = "set"
    GET = "get"
    INIT = "init"


@dataclass
class Opcode:
    """Base variant; ``bits`` are the operand slots in reading order."""

    bits: List[int] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def as_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "bits": list(self.bits)}


@dataclass
class ArrayPush(Opcode):
    pass


@dataclass
class Throw(Opcode):
    pass


@dataclass
class Bind(Opcode):
    pass


@dataclass
class RegisterVMFunction(Opcode):
    pass


@dataclass
class NewObject(Opcode):
    pass


@dataclass
class Pop(Opcode):
    pass


@dataclass
class SetProperty(Opcode):
    pass


@dataclass
class GetProperty(Opcode):
    pass


@dataclass
class SplicePop(Opcode):
    pass


@dataclass
class CallFuncNoContext(Opcode):
    pass


@dataclass
class SwapRegister(Opcode):
    pass


@dataclass
class NewArray(Opcode):
    pass


@dataclass
class Jump(Opcode):
    pass


@dataclass
class JumpIf(Opcode):
    pass


@dataclass
class Move(Opcode):
    pass


@dataclass
class Call(Opcode):
    pass


@dataclass
class Binary(Opcode):
    operator: BinaryOperator = BinaryOperator.ADDITION
    swap: bool = False

    def as_dict(self) -> Dict[str, Any]:
        data = super().as_dict()
        data["operator"] = self.operator.name
        data["swap"] = self.swap
        return data


@dataclass
class Unary(Opcode):
    operator: UnaryOperator = UnaryOperator.TYPE_OF

    def as_dict(self) -> Dict[str, Any]:
        data = super().as_dict()
        data["operator"] = self.operator.name
        return data


@dataclass
class NewLiteralTest:
    bits: List[int]
    literal_type: LiteralType

    def as_dict(self) -> Dict[str, Any]:
        return {"bits": list(self.bits), "type": self.literal_type.name}


@dataclass
class NewLiteral(Opcode):
    tests: Dict[int, NewLiteralTest] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        data = super().as_dict()
        data["tests"] = {str(test): entry.as_dict() for test, entry in self.tests.items()}
        return data


@dataclass
class ClosureTest:
    bits: List[int]
    heap_type: HeapType

    def as_dict(self) -> Dict[str, Any]:
        return {"bits": list(self.bits), "type": self.heap_type.name}


@dataclass
class Heap(Opcode):
    closures: Dict[int, ClosureTest] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        data = super().as_dict()
        data["closures"] = {str(test): entry.as_dict() for test, entry in self.closures.items()}
        return data


OPCODE_KINDS: Dict[str, Type[Opcode]] = {
    cls.__name__: cls
    for cls in (
        ArrayPush,
        Throw,
        Bind,
        RegisterVMFunction,
        Binary,
        Unary,
        NewLiteral,
        NewObject,
        Pop,
        SetProperty,
        GetProperty,
        SplicePop,
        CallFuncNoContext,
        SwapRegister,
        NewArray,
        Jump,
        JumpIf,
        Move,
        Call,
        Heap,
    )
}


def opcode_from_dict(payload: Mapping[str, Any]) -> Opcode:
    """Rebuild an opcode from :meth:`Opcode.as_dict` output."""

    kind = str(payload.get("kind", ""))
    try:
        cls = OPCODE_KINDS[kind]
    except KeyError:
        raise ValueError(f"unknown opcode kind: {kind!r}") from None
    bits = [int(bit) for bit in payload.get("bits", [])]
    if cls is Binary:
        return Binary(bits, BinaryOperator[payload["operator"]], bool(payload.get("swap", False)))
    if cls is Unary:
        return Unary(bits, UnaryOperator[payload["operator"]])
    if cls is NewLiteral:
        tests = {
            int(test): NewLiteralTest([int(bit) for bit in entry["bits"]], LiteralType[entry["type"]])
            for test, entry in payload.get("tests", {}).items()
        }
        return NewLiteral(bits, tests)
    if cls is Heap:
        closures = {
            int(test): ClosureTest([int(bit) for bit in entry["bits"]], HeapType[entry["type"]])
            for test, entry in payload.get("closures", {}).items()
        }
        return Heap(bits, closures)
    return cls(bits)


class OpcodeTable:
    """Opcode index -> :class:`Opcode`, holding at most one opcode per index."""

    def __init__(self, entries: Optional[Mapping[int, Opcode]] = None) -> None:
        self._entries: MutableMapping[int, Opcode] = {}
        for index, opcode in (entries or {}).items():
            self.claim(index, opcode)

    def claim(self, index: int, opcode: Opcode) -> bool:
        """Store ``opcode`` under ``index`` unless the slot is already taken."""

        if index in self._entries:
            return False
        self._entries[index] = opcode
        return True

    def get(self, index: int, default: Optional[Opcode] = None) -> Optional[Opcode]:
        return self._entries.get(index, default)

    def __getitem__(self, index: int) -> Opcode:
        return self._entries[index]

    def __contains__(self, index: object) -> bool:
        return index in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def items(self) -> Iterator[Tuple[int, Opcode]]:
        return iter(list(self._entries.items()))

    def indices(self) -> List[int]:
        return sorted(self._entries)

    def kinds(self) -> Dict[int, str]:
        return {index: opcode.kind for index, opcode in sorted(self._entries.items())}

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {str(index): opcode.as_dict() for index, opcode in sorted(self._entries.items())}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Mapping[str, Any]]) -> "OpcodeTable":
        return cls({int(index): opcode_from_dict(entry) for index, entry in payload.items()})
