"""Helpers for the bracketed descriptor grammar shared by files and plugins."""
from __future__ import annotations

from typing import Any, List

_OPENERS = {"(": ")", "[": "]"}
_CLOSERS = {")", "]"}


def split_top_level(text: str, sep: str) -> List[str]:
    """Split ``text`` on ``sep`` while ignoring separators nested in brackets.

    ``split_top_level("A(x:y):B", ":")`` returns ``["A(x:y)", "B"]``. An empty
    string yields an empty list.
    """
    if text == "":
        return []

    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
            if depth < 0:
                raise ValueError(f"Unbalanced brackets in '{text}'")
        if char == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    if depth != 0:
        raise ValueError(f"Unbalanced brackets in '{text}'")
    parts.append("".join(current).strip())
    return parts


def parse_value(text: str) -> Any:
    """Coerce a textual option value into bool, int, float, list or str."""
    value = text.strip()
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if value.startswith("(") and value.endswith(")"):
        return [parse_value(item) for item in split_top_level(value[1:-1], ",") if item != ""]
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def format_value(value: Any) -> str:
    """Inverse of :func:`parse_value` for descriptor round-trips."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "(" + ",".join(format_value(item) for item in value) + ")"
    return str(value)
