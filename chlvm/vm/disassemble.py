"""Run every recovery pass over one interpreter script and package the result.

The passes share a single :class:`~chlvm.vm.diagnostics.Diagnostics`
collector and never touch the AST, so the same program node can be handed to
all of them in turn::

    bundle = disassemble_source(Path("interpreter.js").read_text())
    bundle.opcode_table[43].kind        # "ArrayPush"
    bundle.function_to_opcode_index     # {"fnName": "43", ...}

Partial coverage is normal; unresolved handlers show up in the diagnostic
trace.  Only a missing initial payload, key expression or key byte is fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import InitialPayloadNotFound, KeyByteNotFound, KeyExpressionNotFound
from .bits import normalize_bits
from .diagnostics import Diagnostics
from .function_classifier import FunctionClassifier, FunctionRegistry
from .heuristics import DEFAULT_PROFILE, HeuristicProfile
from .instruction_classifier import InstructionClassifier
from .key_offset import KeyOffsetExtractor
from .opcodes import OpcodeTable
from .payload_locator import PayloadBundle, PayloadLocator

LOGGER = logging.getLogger(__name__)

__all__ = [
    "DisassemblyBundle",
    "disassemble",
    "disassemble_source",
    "reconcile_functions",
    "unresolved_functions",
]


@dataclass
class DisassemblyBundle:
    """Everything the bytecode executor needs from one interpreter build."""

    opcode_table: OpcodeTable
    key_expr: Any
    key_expr_source: Optional[str]
    key_byte: int
    offset: int
    initial_vm_payload: str
    create_function_ident: str = ""
    dispatcher_name: str = ""
    function_to_opcode_index: Dict[str, str] = field(default_factory=dict)
    payloads: PayloadBundle = field(default_factory=PayloadBundle)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "opcode_table": self.opcode_table.as_dict(),
            "key_expr": self.key_expr_source,
            "key_byte": self.key_byte,
            "offset": self.offset,
            "initial_vm_payload": self.initial_vm_payload,
            "main_vm_payload": self.payloads.main_vm_payload,
            "compressor_charset": self.payloads.compressor_charset,
            "init_argument": self.payloads.init_argument,
            "create_function_ident": self.create_function_ident,
            "dispatcher_name": self.dispatcher_name,
            "function_to_opcode_index": dict(self.function_to_opcode_index),
            "diagnostics": self.diagnostics.to_list(),
        }


def _normalized_index(
    table: OpcodeTable, profile: HeuristicProfile
) -> Dict[Tuple[int, ...], int]:
    normalized: Dict[Tuple[int, ...], int] = {}
    for index, opcode in table.items():
        key = tuple(normalize_bits(opcode.bits, marker_pair=profile.marker_pair, separator=profile.separator))
        if key and key not in normalized:
            normalized[key] = index
    return normalized


def reconcile_functions(
    registry: FunctionRegistry,
    table: OpcodeTable,
    *,
    profile: HeuristicProfile = DEFAULT_PROFILE,
    diagnostics: Optional[Diagnostics] = None,
) -> Dict[str, str]:
    """Map each discovered function name to the opcode index implementing it.

    A name whose own index holds an opcode maps there directly.  Otherwise the
    raw bits captured for its index are normalised and compared with the
    normalised bits of every table entry; the first equal entry wins.
    """

    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    normalized = _normalized_index(table, profile)
    mapping: Dict[str, str] = {}

    for name, index in registry.functions.items():
        if profile.is_noise_index(index):
            diagnostics.emit("noise-index", f"skipping {name} at noise index {index}", name=name, index=index)
            continue
        if index in table:
            mapping[name] = str(index)
            diagnostics.emit("direct-resolved", f"{name} -> {index}", name=name, index=index)
            continue

        raw = registry.bits_for_index(index)
        if raw is not None:
            candidate = normalize_bits(raw, marker_pair=profile.marker_pair, separator=profile.separator)
            matched = normalized.get(tuple(candidate))
            if matched is not None:
                mapping[name] = str(matched)
                diagnostics.emit(
                    "fallback-resolved",
                    f"{name} -> {matched} via normalized bits {candidate}",
                    name=name,
                    index=index,
                    matched=matched,
                    bits=candidate,
                )
                continue
            diagnostics.emit(
                "fallback-miss",
                f"no opcode with normalized bits {candidate} for {name} (index {index})",
                name=name,
                index=index,
                bits=candidate,
            )
        diagnostics.emit("unmapped", f"{name} references unindexed opcode {index}", name=name, index=index)
    return mapping


def disassemble(
    program: Any,
    source: str = "",
    *,
    profile: HeuristicProfile = DEFAULT_PROFILE,
    diagnostics: Optional[Diagnostics] = None,
) -> DisassemblyBundle:
    """Recover the opcode table and decoder parameters from ``program``.

    ``source`` is only used to slice the key expression text back out of the
    script; pass the text the program was parsed from.
    """

    diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    registry = FunctionClassifier(profile, diagnostics).run(program)
    key_offset = KeyOffsetExtractor(source, profile, diagnostics).run(program)
    key_offset.key_byte = registry.key_byte
    classifier = InstructionClassifier(registry, profile, diagnostics)
    table = classifier.run(program)
    LOGGER.info(
        "recovered %d opcodes from %d mapped functions", len(table), len(registry.functions)
    )

    mapping = reconcile_functions(registry, table, profile=profile, diagnostics=diagnostics)
    payloads = PayloadLocator(profile).run(program)

    if payloads.initial_vm_payload is None:
        raise InitialPayloadNotFound()
    if key_offset.key_expr is None:
        raise KeyExpressionNotFound()
    if registry.key_byte is None:
        raise KeyByteNotFound()

    return DisassemblyBundle(
        opcode_table=table,
        key_expr=key_offset.key_expr,
        key_expr_source=key_offset.key_expr_source,
        key_byte=registry.key_byte,
        offset=key_offset.offset,
        initial_vm_payload=payloads.initial_vm_payload,
        create_function_ident=classifier.create_function_ident,
        dispatcher_name=registry.dispatcher_name,
        function_to_opcode_index=mapping,
        payloads=payloads,
        diagnostics=diagnostics,
    )


def disassemble_source(
    source: str,
    *,
    profile: HeuristicProfile = DEFAULT_PROFILE,
    diagnostics: Optional[Diagnostics] = None,
) -> DisassemblyBundle:
    """Parse ``source`` with the JavaScript front end and disassemble it."""

    from ..js.parser import parse_script

    script = parse_script(source)
    return disassemble(script.program, script.source, profile=profile, diagnostics=diagnostics)


def unresolved_functions(bundle: DisassemblyBundle) -> List[str]:
    """Names reported as permanently unmapped in ``bundle``'s trace."""

    return [str(event.data.get("name")) for event in bundle.diagnostics.of_kind("unmapped")]
