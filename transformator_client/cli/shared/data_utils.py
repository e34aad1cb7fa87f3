"""Helpers turning CLI input into request data."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from transformator_client.utils.exceptions import ConfigError


def parse_value(raw: str) -> Any:
    """Parse CLI input value as JSON if possible; fallback to string."""
    text = raw.strip()
    if text == "":
        return ""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        lowered = text.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        return text


def load_data_file(path: Path) -> dict[str, Any]:
    """Read a JSON object used as auxiliary request data."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read data file {path}: {exc}", value=str(path)) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Data file {path} is not valid JSON: {exc}", value=str(path)) from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Data file {path} must contain a JSON object", value=str(path))
    return data


def decode_input(raw: bytes) -> str | bytes:
    """Text when the input is valid UTF-8, otherwise the raw bytes."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw


def build_data(data_file: Path | None, assignments: list[str]) -> dict[str, Any]:
    """Merge a data file with ``key=value`` assignments; assignments win."""
    data: dict[str, Any] = load_data_file(data_file) if data_file else {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigError(f"Expected key=value, got {item!r}", value=item)
        data[key.strip()] = parse_value(value)
    return data
