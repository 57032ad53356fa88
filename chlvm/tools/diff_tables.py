"""Compare opcode tables recovered from two interpreter builds.

The obfuscator reshuffles opcode indices between builds, so a plain index
comparison reports almost everything as changed.  Entries are therefore
matched in two rounds: first by identical index and kind, then by kind plus
identical normalised operand bits (an index move).  Whatever is left is
reported as added or removed.

The module doubles as a small CLI writing the comparison as JSON::

    python -m chlvm.tools.diff_tables old_bundle.json new_bundle.json
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from chlvm.vm.bits import normalize_bits
from chlvm.vm.opcodes import OpcodeTable

LOGGER = logging.getLogger(__name__)

__all__ = [
    "TableMatch",
    "TableMove",
    "TableDiff",
    "diff_opcode_tables",
    "load_table",
    "write_report",
    "build_arg_parser",
    "main",
]


@dataclass(frozen=True)
class TableMatch:
    """An index holding the same instruction kind in both tables."""

    index: int
    kind: str
    bits_changed: bool

    def to_dict(self) -> Dict[str, object]:
        return {"index": self.index, "kind": self.kind, "bits_changed": self.bits_changed}


@dataclass(frozen=True)
class TableMove:
    """An instruction that kept its kind and operands but changed index."""

    old_index: int
    new_index: int
    kind: str
    bits: Tuple[int, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "old_index": self.old_index,
            "new_index": self.new_index,
            "kind": self.kind,
            "bits": list(self.bits),
        }


@dataclass(frozen=True)
class TableDiff:
    matched: Tuple[TableMatch, ...]
    moved: Tuple[TableMove, ...]
    added: Tuple[Tuple[int, str], ...]
    removed: Tuple[Tuple[int, str], ...]

    @property
    def unchanged(self) -> bool:
        return not (self.moved or self.added or self.removed) and not any(
            match.bits_changed for match in self.matched
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "matched": [entry.to_dict() for entry in self.matched],
            "moved": [entry.to_dict() for entry in self.moved],
            "added": [list(pair) for pair in self.added],
            "removed": [list(pair) for pair in self.removed],
        }


def diff_opcode_tables(old: OpcodeTable, new: OpcodeTable) -> TableDiff:
    """Describe how ``new`` differs from ``old``."""

    matched: List[TableMatch] = []
    moved: List[TableMove] = []
    old_left = old.indices()
    new_left = new.indices()

    for index in list(old_left):
        if index in new and new[index].kind == old[index].kind:
            matched.append(TableMatch(index, old[index].kind, list(old[index].bits) != list(new[index].bits)))
            old_left.remove(index)
            new_left.remove(index)

    for index in list(old_left):
        opcode = old[index]
        signature = tuple(normalize_bits(opcode.bits))
        if not signature:
            continue
        for candidate in new_left:
            other = new[candidate]
            if other.kind == opcode.kind and tuple(normalize_bits(other.bits)) == signature:
                moved.append(TableMove(index, candidate, opcode.kind, signature))
                old_left.remove(index)
                new_left.remove(candidate)
                break

    LOGGER.debug(
        "table diff: %d matched, %d moved, %d removed, %d added",
        len(matched),
        len(moved),
        len(old_left),
        len(new_left),
    )
    return TableDiff(
        matched=tuple(matched),
        moved=tuple(moved),
        added=tuple((index, new[index].kind) for index in new_left),
        removed=tuple((index, old[index].kind) for index in old_left),
    )


def _payload_to_table(payload: Mapping[str, object]) -> OpcodeTable:
    table = payload.get("opcode_table", payload)
    if not isinstance(table, Mapping):
        raise ValueError("opcode table must be a JSON object")
    return OpcodeTable.from_dict(table)


def load_table(path: Path) -> OpcodeTable:
    """Load an opcode table from a bundle JSON file or a bare table dump."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, Mapping):
        raise ValueError(f"{path} does not contain a JSON object")
    return _payload_to_table(payload)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compare opcode tables from two interpreter builds")
    parser.add_argument("old", type=Path, help="Bundle or opcode table JSON from the older build")
    parser.add_argument("new", type=Path, help="Bundle or opcode table JSON from the newer build")
    parser.add_argument("--out", type=Path, default=None, help="Optional JSON destination for the diff report")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def write_report(diff: TableDiff, destination: Optional[Path]) -> None:
    text = json.dumps(diff.to_dict(), indent=2)
    if destination is None:
        print(text)
        return
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(text + "\n", encoding="utf-8")
    LOGGER.info("Table diff written to %s", destination)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        old = load_table(args.old)
        new = load_table(args.new)
    except (OSError, ValueError, KeyError) as exc:
        LOGGER.error("Failed to load opcode table: %s", exc)
        return 2

    write_report(diff_opcode_tables(old, new), args.out)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
