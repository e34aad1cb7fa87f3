"""Loguru helpers for consistent logging in CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_SINK_IDS: dict[str, int] = {}


def configure_console_logging(verbose: bool = False) -> None:
    """Route library logs to stderr: WARNING by default, DEBUG when verbose."""
    existing = _SINK_IDS.pop("console", None)
    if existing is None:
        logger.remove()
    else:
        logger.remove(existing)
    _SINK_IDS["console"] = logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<level>{level: <8}</level> {message}",
        backtrace=False,
        diagnose=False,
    )


def ensure_rotating_log_file(log_path: Path, level: str = "DEBUG") -> Path:
    """Ensure a rotating log sink at the given path."""
    log_path = log_path.expanduser()
    key = str(log_path.resolve())
    if key in _SINK_IDS:
        return log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        str(log_path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[key] = sink_id
    return log_path
