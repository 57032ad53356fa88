"""Test configuration ensuring the project source tree is importable."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
TESTS = ROOT / "tests"

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))

# Import the project package eagerly so subsequent imports reuse it
importlib.import_module("chlvm")

from chlvm.js.parser import ParsedScript, parse_script  # noqa: E402
from tests.fixtures.interpreter_scripts import build_interpreter  # noqa: E402


@pytest.fixture(scope="session")
def interpreter_source() -> str:
    return build_interpreter()


@pytest.fixture(scope="session")
def interpreter(interpreter_source: str) -> ParsedScript:
    """The synthetic interpreter parsed once for the whole session."""

    return parse_script(interpreter_source)
