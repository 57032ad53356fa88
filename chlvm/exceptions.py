"""Custom exception hierarchy for the VM recovery engine."""

from __future__ import annotations


class DisassemblyError(Exception):
    """Base class for all disassembly related errors."""


class ScriptParseError(DisassemblyError):
    """Raised when the interpreter script cannot be turned into an AST."""


class ProfileError(DisassemblyError, ValueError):
    """Raised when a heuristic profile is malformed."""


class ArtifactNotFoundError(DisassemblyError):
    """Raised when an artifact required by the bytecode executor is missing."""

    artifact = "artifact"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or f"could not find {self.artifact}")


class InitialPayloadNotFound(ArtifactNotFoundError):
    artifact = "initial vm payload"


class KeyExpressionNotFound(ArtifactNotFoundError):
    artifact = "key expression"


class KeyByteNotFound(ArtifactNotFoundError):
    artifact = "key byte"


__all__ = [
    "DisassemblyError",
    "ScriptParseError",
    "ProfileError",
    "ArtifactNotFoundError",
    "InitialPayloadNotFound",
    "KeyExpressionNotFound",
    "KeyByteNotFound",
]
