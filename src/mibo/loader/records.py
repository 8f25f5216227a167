"""Load input records from JSON, JSON Lines, or YAML files.

A file may hold a list of objects, a single object (treated as a
one-record batch), or one object per line for .jsonl/.ndjson files.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from mibo.errors import ConfigurationError

JSONL_SUFFIXES = frozenset({".jsonl", ".ndjson"})
YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def _as_records(data: Any, source: str) -> list[dict[str, Any]]:
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    if not isinstance(data, list):
        raise ConfigurationError(
            f"{source}: expected a JSON object or a list of objects, got {type(data).__name__}"
        )
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ConfigurationError(
                f"{source}: record {index} must be an object, got {type(item).__name__}"
            )
    return data


def parse_jsonl(text: str, source: str = "<string>") -> list[dict[str, Any]]:
    """Parse one JSON object per non-blank line."""
    records: list[dict[str, Any]] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{source}:{lineno}: invalid JSON: {exc.msg}") from exc
        if not isinstance(item, dict):
            raise ConfigurationError(f"{source}:{lineno}: each line must be a JSON object")
        records.append(item)
    return records


def parse_records(text: str, fmt: str = "json", source: str = "<string>") -> list[dict[str, Any]]:
    """Parse records from text in the given format ("json", "jsonl" or "yaml")."""
    if fmt == "jsonl":
        return parse_jsonl(text, source)
    if fmt == "yaml":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"{source}: invalid YAML: {exc}") from exc
        return _as_records(data, source)
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"{source}:{exc.lineno}:{exc.colno}: invalid JSON: {exc.msg}"
        ) from exc
    return _as_records(data, source)


def load_records(path: Path) -> list[dict[str, Any]]:
    """Load records from a file, picking the format from its suffix.

    Raises:
        ConfigurationError: If the file is missing or cannot be parsed.
    """
    if not path.exists():
        raise ConfigurationError(f"Records file not found: {path}")
    suffix = path.suffix.lower()
    if suffix in JSONL_SUFFIXES:
        fmt = "jsonl"
    elif suffix in YAML_SUFFIXES:
        fmt = "yaml"
    else:
        fmt = "json"
    return parse_records(path.read_text(encoding="utf-8"), fmt, str(path))
