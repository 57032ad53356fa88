"""VM instruction-set recovery passes."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - used only for type checkers
    from chlvm.vm.bits import normalize_bits
    from chlvm.vm.constant_folder import ConstantFolder
    from chlvm.vm.diagnostics import DiagnosticEvent, Diagnostics
    from chlvm.vm.disassemble import (
        DisassemblyBundle,
        disassemble,
        disassemble_source,
        reconcile_functions,
        unresolved_functions,
    )
    from chlvm.vm.function_classifier import FunctionClassifier, FunctionRegistry
    from chlvm.vm.heuristics import DEFAULT_PROFILE, HeuristicProfile, load_profile, save_profile
    from chlvm.vm.instruction_classifier import InstructionClassifier
    from chlvm.vm.key_offset import KeyOffsetBundle, KeyOffsetExtractor
    from chlvm.vm.opcodes import Opcode, OpcodeTable, opcode_from_dict
    from chlvm.vm.payload_locator import PayloadBundle, PayloadLocator

_EXPORTS = {
    "normalize_bits": "chlvm.vm.bits",
    "ConstantFolder": "chlvm.vm.constant_folder",
    "DiagnosticEvent": "chlvm.vm.diagnostics",
    "Diagnostics": "chlvm.vm.diagnostics",
    "DisassemblyBundle": "chlvm.vm.disassemble",
    "disassemble": "chlvm.vm.disassemble",
    "disassemble_source": "chlvm.vm.disassemble",
    "reconcile_functions": "chlvm.vm.disassemble",
    "unresolved_functions": "chlvm.vm.disassemble",
    "FunctionClassifier": "chlvm.vm.function_classifier",
    "FunctionRegistry": "chlvm.vm.function_classifier",
    "DEFAULT_PROFILE": "chlvm.vm.heuristics",
    "HeuristicProfile": "chlvm.vm.heuristics",
    "load_profile": "chlvm.vm.heuristics",
    "save_profile": "chlvm.vm.heuristics",
    "InstructionClassifier": "chlvm.vm.instruction_classifier",
    "KeyOffsetBundle": "chlvm.vm.key_offset",
    "KeyOffsetExtractor": "chlvm.vm.key_offset",
    "Opcode": "chlvm.vm.opcodes",
    "OpcodeTable": "chlvm.vm.opcodes",
    "opcode_from_dict": "chlvm.vm.opcodes",
    "PayloadBundle": "chlvm.vm.payload_locator",
    "PayloadLocator": "chlvm.vm.payload_locator",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(name)
    return getattr(import_module(module), name)
