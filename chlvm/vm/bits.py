"""Operand "bits" normalisation used for fuzzy opcode matching."""

from __future__ import annotations

from typing import List, Sequence, Tuple

__all__ = ["normalize_bits"]


def _strip_once(raw: Sequence[int], marker_pair: Tuple[int, int], separator: int) -> List[int]:
    first, second = marker_pair
    out: List[int] = []
    i = 0
    while i < len(raw):
        if i + 1 < len(raw) and raw[i] == first and raw[i + 1] == second:
            while i + 1 < len(raw) and raw[i] == first and raw[i + 1] == second:
                i += 2
            continue
        if raw[i] == separator:
            i += 1
            continue
        out.append(raw[i])
        i += 1
    return out


def normalize_bits(
    raw: Sequence[int],
    *,
    marker_pair: Tuple[int, int] = (195, 188),
    separator: int = 127,
) -> List[int]:
    """Strip marker pairs and separators from ``raw``.

    Runs of the ``marker_pair`` and every ``separator`` are removed while the
    other values keep their relative order; a lone first marker value is kept.
    Passes repeat until nothing changes; a removal can join a new pair
    (``[195, 127, 188]``).
    """

    current = list(raw)
    while True:
        stripped = _strip_once(current, marker_pair, separator)
        if stripped == current:
            return stripped
        current = stripped
