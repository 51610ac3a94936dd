"""Entity and composite identifiers.

Entities are keyed by a 32-bit integer carried as its decimal string.
Bindings use ``<parent-id>/<child-id-or-name>``.
"""

from __future__ import annotations

import re
from typing import Tuple, Union

from taikun_reconciler.errors import MalformedIdError

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
DELIMITER = "/"
DECIMAL_RE = re.compile(r"-?[0-9]+")


def parse_id(raw: Union[str, int], path: str = "id") -> int:
    """Parse a decimal entity id into a 32-bit int."""
    if isinstance(raw, bool):
        raise MalformedIdError(f"not an integer id: {raw!r}", path)
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        if not DECIMAL_RE.fullmatch(text):
            raise MalformedIdError(f"not an integer id: {raw!r}", path)
        value = int(text)
    if value < INT32_MIN or value > INT32_MAX:
        raise MalformedIdError(f"id out of 32-bit range: {raw!r}", path)
    return value


def parse_composite_id(raw: str, *, child_is_name: bool = False) -> Tuple[int, Union[int, str]]:
    """Split ``parent/child`` into its two parts.

    The parent is always an integer. The child is an integer unless
    ``child_is_name`` is set, in which case any non-empty string without
    the delimiter is accepted.
    """
    if not isinstance(raw, str):
        raise MalformedIdError(f"composite id must be a string: {raw!r}", "id")
    parts = raw.split(DELIMITER)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedIdError(f"expected <parent>/<child>, got {raw!r}", "id")
    parent = parse_id(parts[0])
    if child_is_name:
        return parent, parts[1]
    return parent, parse_id(parts[1])


def format_composite_id(parent: Union[int, str], child: Union[int, str]) -> str:
    return f"{parent}{DELIMITER}{child}"
