"""JSON/YAML helpers for intent files and observed-state output."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

import yaml


def ensure_dir(path: Union[str, Path]) -> Path:
    """Create directory and parents if needed, return Path."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def read_json(path: Union[str, Path]) -> Any:
    """Read a JSON file and return parsed contents."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Union[str, Path], data: Any, indent: int = 2) -> Path:
    """Write data to a JSON file."""
    p = Path(path)
    ensure_dir(p.parent)
    with open(p, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
        f.write("\n")
    return p


def read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML file and return parsed contents."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def read_document(path: Union[str, Path]) -> Any:
    """Read a ``.json`` file as JSON and anything else as YAML."""
    if str(path).endswith(".json"):
        return read_json(path)
    return read_yaml(path)


def read_bytes(path: Union[str, Path]) -> bytes:
    with open(path, "rb") as f:
        return f.read()
