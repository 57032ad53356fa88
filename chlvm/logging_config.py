"""Logging helpers for configuring per-run diagnostic traces."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = [
    "configure_trace_logger",
    "close_trace_logger",
]


def configure_trace_logger(
    name: str,
    path: Path,
    *,
    level: int = logging.DEBUG,
    formatter: logging.Formatter | None = None,
) -> logging.Logger:
    """Return a logger writing disassembly traces to ``path``.

    Trace handlers installed by a previous call are removed first so repeated
    runs replace the earlier trace instead of appending to it.  The file is
    opened in text mode with UTF-8 encoding.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    _remove_trace_handlers(logger)

    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler._chlvm_trace = True  # type: ignore[attr-defined]
    if formatter is None:
        formatter = logging.Formatter("%(name)s: %(message)s")
    handler.setFormatter(formatter)
    handler.setLevel(level)
    logger.addHandler(handler)
    return logger


def close_trace_logger(logger: logging.Logger) -> None:
    """Tear down handlers installed by :func:`configure_trace_logger`."""

    _remove_trace_handlers(logger)


def _remove_trace_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, "_chlvm_trace", False):
            logger.removeHandler(handler)
            handler.close()
