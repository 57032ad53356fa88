"""Ordered diagnostic trace collected during a disassembly run."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping

LOGGER = logging.getLogger(__name__)

__all__ = ["DiagnosticEvent", "Diagnostics"]


@dataclass(frozen=True)
class DiagnosticEvent:
    """A single non-fatal observation made by one of the passes."""

    kind: str
    message: str
    data: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "data": dict(self.data)}


class Diagnostics:
    """Collector owned by a single run and handed to every pass by reference.

    Events keep their emission order so identical input always yields an
    identical trace.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._events: List[DiagnosticEvent] = []
        self._logger = logger or LOGGER

    def emit(self, kind: str, message: str, **data: Any) -> DiagnosticEvent:
        event = DiagnosticEvent(kind=kind, message=message, data=data)
        self._events.append(event)
        self._logger.debug("[%s] %s", kind, message)
        return event

    @property
    def events(self) -> List[DiagnosticEvent]:
        return list(self._events)

    def of_kind(self, kind: str) -> List[DiagnosticEvent]:
        return [event for event in self._events if event.kind == kind]

    def to_list(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self._events]

    def __iter__(self) -> Iterator[DiagnosticEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)
