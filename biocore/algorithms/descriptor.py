"""Grammar for algorithm and plugin descriptors.

An algorithm descriptor is ``featureSpec[:distanceSpec]``. A plugin spec is
``Name``, ``Name(arg, key=value, ...)`` or a ``+``-separated pipe of specs.
Arguments may themselves be plugin specs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import FatalError
from ..storage.template import File
from ..utils.parsing import parse_value, split_top_level


@dataclass
class PluginSpec:
    """Parsed ``Name(args, key=value)`` plugin reference."""

    name: str
    args: List[str] = field(default_factory=list)
    kwargs: Dict[str, Any] = field(default_factory=dict)


def _split(text: str, sep: str) -> List[str]:
    try:
        return split_top_level(text, sep)
    except ValueError as exc:
        raise FatalError(str(exc)) from exc


def split_pipe(text: str) -> List[str]:
    """Split a transform spec on top-level ``+``."""
    return _split(text.strip(), "+")


def parse_plugin_spec(text: str) -> PluginSpec:
    text = text.strip()
    if not text:
        raise FatalError("Empty plugin description")

    if "(" not in text:
        return PluginSpec(name=text)
    if not text.endswith(")"):
        raise FatalError(f"Malformed plugin description '{text}'")

    open_index = text.index("(")
    name = text[:open_index].strip()
    if not name:
        raise FatalError(f"Malformed plugin description '{text}'")

    spec = PluginSpec(name=name)
    for item in _split(text[open_index + 1:-1], ","):
        if not item:
            continue
        key, sep, value = item.partition("=")
        # '=' nested inside a positional spec belongs to that spec
        if sep and "(" not in key and "[" not in key:
            spec.kwargs[key.strip()] = parse_value(value)
        else:
            spec.args.append(item)
    return spec


def parse_algorithm(description: File) -> Tuple[str, Optional[str]]:
    """Split an algorithm descriptor into its transform and distance specs.

    The transform spec is wrapped in ``DistributeTemplate`` unless the
    descriptor carries ``distribute=false``.
    """
    words = _split(description.name, ":")
    if len(words) < 1 or len(words) > 2 or any(not word for word in words):
        raise FatalError(f"Invalid algorithm format '{description.flat()}'.")

    feature = words[0]
    if description.get_bool("distribute", True):
        feature = f"DistributeTemplate({feature})"
    distance = words[1] if len(words) > 1 else None
    return feature, distance
