"""Bridge between interpreter source text and the esprima front end."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import esprima

from ..exceptions import ScriptParseError

LOGGER = logging.getLogger(__name__)

__all__ = ["ParsedScript", "parse_script"]


@dataclass(frozen=True)
class ParsedScript:
    """Program node plus the text it was parsed from."""

    program: Any
    source: str

    @property
    def body(self) -> list:
        return list(getattr(self.program, "body", None) or [])


def parse_script(source: str, *, tolerant: bool = True) -> ParsedScript:
    """Parse ``source`` as a classic (non-module) script.

    Node ranges are requested so fragments such as the key expression can be
    sliced back out of ``source`` for the bytecode executor.
    """

    try:
        program = esprima.parseScript(source, {"range": True, "tolerant": tolerant})
    except Exception as exc:
        raise ScriptParseError(f"failed to parse interpreter script: {exc}") from exc
    LOGGER.debug("parsed script: %d chars, %d top-level statements", len(source), len(program.body))
    return ParsedScript(program=program, source=source)
