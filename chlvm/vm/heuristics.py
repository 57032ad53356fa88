"""Versioned heuristic profile for the VM recovery passes.

Every threshold used to recognise the dispatcher, the payload strings and the
noise indices was tuned empirically against one interpreter build.  They are
kept together in a :class:`HeuristicProfile` so a new obfuscator revision can
be handled by shipping a new profile instead of editing the passes.  Profiles
are stored as plain JSON.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from ..exceptions import ProfileError

LOGGER = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_PROFILE",
    "HeuristicProfile",
    "load_profile",
    "save_profile",
]

_DEFAULT_VERSION = "2025.1"


@dataclass(frozen=True)
class HeuristicProfile:
    """Tunable constants shared by the recovery passes."""

    version: str = _DEFAULT_VERSION
    dispatcher_min_statements: int = 50
    dispatcher_name: str = "VM_ENTRY"
    initial_payload_min: int = 300
    initial_payload_max: int = 999
    main_payload_min: int = 1000
    noise_indices: Tuple[int, ...] = (195, 127)
    max_index: int = 1000
    key_mask: int = 255
    marker_pair: Tuple[int, int] = (195, 188)
    separator: int = 127
    charset_length: int = 65
    charset_markers: str = "$-+"
    init_argument_min_length: int = 20
    init_argument_segments: int = 3
    init_argument_excluded: str = "/b/"

    def is_dispatcher(self, statement_count: int) -> bool:
        return statement_count > self.dispatcher_min_statements

    def is_noise_index(self, index: int) -> bool:
        return index in self.noise_indices or index > self.max_index

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["noise_indices"] = list(self.noise_indices)
        data["marker_pair"] = list(self.marker_pair)
        return data

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "HeuristicProfile":
        known = {item.name: item for item in fields(cls)}
        unknown = sorted(set(raw) - set(known))
        if unknown:
            raise ProfileError(f"unknown profile fields: {', '.join(unknown)}")

        values: Dict[str, Any] = {}
        for name, value in raw.items():
            default = getattr(DEFAULT_PROFILE, name)
            try:
                if isinstance(default, tuple):
                    values[name] = tuple(int(item) for item in value)
                else:
                    values[name] = type(default)(value)
            except (TypeError, ValueError) as exc:
                raise ProfileError(f"invalid value for {name}: {value!r}") from exc

        profile = replace(DEFAULT_PROFILE, **values)
        if len(profile.marker_pair) != 2:
            raise ProfileError("marker_pair must hold exactly two integers")
        if profile.initial_payload_min > profile.initial_payload_max:
            raise ProfileError("initial payload band is empty")
        return profile


DEFAULT_PROFILE = HeuristicProfile()


def load_profile(path: Path) -> HeuristicProfile:
    """Load a profile from ``path``; missing fields keep their defaults."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ProfileError(f"profile {path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ProfileError(f"profile {path} must contain a JSON object")
    profile = HeuristicProfile.from_dict(raw)
    LOGGER.info("loaded heuristic profile %s from %s", profile.version, path)
    return profile


def save_profile(profile: HeuristicProfile, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(profile.to_dict(), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return path
