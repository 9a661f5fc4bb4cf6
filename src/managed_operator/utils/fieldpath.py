"""Dotted field path access into nested object dictionaries."""

from __future__ import annotations

from typing import Any

_MISSING = object()


def split_path(path: str) -> list[str]:
    """Split ``spec.forProvider.vpcId`` into its segments."""
    segments = [s for s in path.split(".") if s]
    if not segments:
        raise ValueError(f"invalid field path {path!r}")
    return segments


def get_field(obj: dict[str, Any], path: str, default: Any = None) -> Any:
    """Read the value at ``path``, or ``default`` if any segment is missing."""
    current: Any = obj
    for segment in split_path(path):
        if not isinstance(current, dict):
            return default
        current = current.get(segment, _MISSING)
        if current is _MISSING:
            return default
    return current


def set_field(obj: dict[str, Any], path: str, value: Any) -> None:
    """Write ``value`` at ``path``, creating intermediate dictionaries.

    Raises:
        ValueError: If an intermediate segment exists but is not a dictionary
    """
    segments = split_path(path)
    current = obj
    for segment in segments[:-1]:
        nxt = current.get(segment)
        if nxt is None:
            nxt = current[segment] = {}
        elif not isinstance(nxt, dict):
            raise ValueError(f"cannot set {path!r}: {segment!r} is not an object")
        current = nxt
    current[segments[-1]] = value
