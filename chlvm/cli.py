"""Command line entry point for the VM recovery engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .exceptions import ArtifactNotFoundError, ProfileError, ScriptParseError
from .logging_config import close_trace_logger, configure_trace_logger
from .tools import diff_tables
from .vm.diagnostics import Diagnostics
from .vm.disassemble import disassemble_source, unresolved_functions
from .vm.heuristics import DEFAULT_PROFILE, load_profile

LOGGER = logging.getLogger(__name__)

_RECURSION_LIMIT = 10000


def _write_json(payload: object, destination: Path | None) -> None:
    text = json.dumps(payload, indent=2)
    if destination is None:
        print(text)
        return
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(text + "\n", encoding="utf-8")
    LOGGER.info("wrote %s", destination)


def _run_disassemble(args: argparse.Namespace) -> int:
    try:
        profile = load_profile(args.profile) if args.profile else DEFAULT_PROFILE
    except (OSError, ProfileError) as exc:
        LOGGER.error("failed to load heuristic profile: %s", exc)
        return 2

    try:
        source = args.script.read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.error("failed to read %s: %s", args.script, exc)
        return 2

    trace_logger = None
    if args.trace:
        trace_logger = configure_trace_logger("chlvm.trace", args.trace)
    diagnostics = Diagnostics(trace_logger)

    # esprima recurses once per level of nested blocks and functions
    sys.setrecursionlimit(max(sys.getrecursionlimit(), _RECURSION_LIMIT))
    try:
        bundle = disassemble_source(source, profile=profile, diagnostics=diagnostics)
    except ScriptParseError as exc:
        LOGGER.error("%s", exc)
        return 2
    except ArtifactNotFoundError as exc:
        LOGGER.error("disassembly of %s failed: %s", args.script, exc)
        return 1
    finally:
        if trace_logger is not None:
            close_trace_logger(trace_logger)

    unresolved = unresolved_functions(bundle)
    if unresolved:
        LOGGER.warning("%d handler(s) left unmapped: %s", len(unresolved), ", ".join(unresolved))
    LOGGER.info(
        "%s: %d opcodes, key byte %d, offset %d",
        args.script,
        len(bundle.opcode_table),
        bundle.key_byte,
        bundle.offset,
    )
    _write_json(bundle.as_dict(), args.out)
    return 0


def _run_diff(args: argparse.Namespace) -> int:
    try:
        old = diff_tables.load_table(args.old)
        new = diff_tables.load_table(args.new)
    except (OSError, ValueError, KeyError) as exc:
        LOGGER.error("failed to load opcode table: %s", exc)
        return 2
    diff_tables.write_report(diff_tables.diff_opcode_tables(old, new), args.out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="VM instruction-set recovery")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("disassemble", help="Recover the opcode table from an interpreter script")
    run.add_argument("script", type=Path, help="Interpreter JavaScript source")
    run.add_argument("--profile", type=Path, default=None, help="Heuristic profile JSON")
    run.add_argument("--out", type=Path, default=None, help="Bundle JSON destination (stdout when omitted)")
    run.add_argument("--trace", type=Path, default=None, help="Write the diagnostic trace to this file")
    run.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    profile = sub.add_parser("profile", help="Write the default heuristic profile")
    profile.add_argument("--out", type=Path, default=None, help="Profile JSON destination (stdout when omitted)")

    diff = sub.add_parser("diff", help="Compare opcode tables from two bundles")
    diff.add_argument("old", type=Path, help="Bundle or table JSON from the older build")
    diff.add_argument("new", type=Path, help="Bundle or table JSON from the newer build")
    diff.add_argument("--out", type=Path, default=None, help="Diff JSON destination (stdout when omitted)")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO)

    if args.command == "disassemble":
        return _run_disassemble(args)
    if args.command == "profile":
        _write_json(DEFAULT_PROFILE.to_dict(), args.out)
        return 0
    if args.command == "diff":
        return _run_diff(args)

    parser.error("Unhandled command")
    return 2


if __name__ == "__main__":  # pragma: no cover - CLI wrapper
    raise SystemExit(main())
