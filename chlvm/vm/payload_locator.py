"""Find the VM bytecode payloads and auxiliary strings embedded in the script."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..js.nodes import is_string_literal
from ..js.visitor import NodeVisitor
from .heuristics import DEFAULT_PROFILE, HeuristicProfile

LOGGER = logging.getLogger(__name__)

__all__ = ["PayloadBundle", "PayloadLocator"]


@dataclass
class PayloadBundle:
    initial_vm_payload: Optional[str] = None
    main_vm_payload: Optional[str] = None
    compressor_charset: Optional[str] = None
    init_argument: Optional[str] = None


class PayloadLocator(NodeVisitor):
    """Classify string arguments and literals by length and shape.

    Calls whose first argument is a string literal are sorted into the main
    payload (long, last one wins) and the initial payload (medium, first one
    wins).  The callee is not inspected since its name changes between builds.
    """

    def __init__(self, profile: HeuristicProfile = DEFAULT_PROFILE) -> None:
        super().__init__()
        self.profile = profile
        self.result = PayloadBundle()

    def run(self, program: Any) -> PayloadBundle:
        self.visit(program)
        return self.result

    def visit_CallExpression(self, node: Any) -> None:
        arguments = getattr(node, "arguments", None) or []
        if arguments and is_string_literal(arguments[0]):
            self._classify_payload(arguments[0].value)
        self.generic_visit(node)

    def visit_Literal(self, node: Any) -> None:
        if not is_string_literal(node):
            return
        value = node.value
        if self.is_compressor_charset(value):
            self.result.compressor_charset = value
        if self.is_init_argument(value):
            self.result.init_argument = value

    def _classify_payload(self, value: str) -> None:
        profile = self.profile
        length = len(value)
        if length >= profile.main_payload_min:
            self.result.main_vm_payload = value
            LOGGER.debug("main payload candidate (%d chars)", length)
        elif profile.initial_payload_min <= length <= profile.initial_payload_max:
            if self.result.initial_vm_payload is None:
                self.result.initial_vm_payload = value
                LOGGER.debug("initial payload (%d chars)", length)

    def is_compressor_charset(self, value: str) -> bool:
        return len(value) == self.profile.charset_length and all(
            marker in value for marker in self.profile.charset_markers
        )

    def is_init_argument(self, value: str) -> bool:
        profile = self.profile
        return (
            len(value) > profile.init_argument_min_length
            and value.startswith("/")
            and value.endswith("/")
            and len(value.split(":")) == profile.init_argument_segments
            and profile.init_argument_excluded not in value
        )
