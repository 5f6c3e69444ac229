"""Total (never-raising) path lookup over decoded response bodies.

Supported path forms::

    access_token
    $.data.user.id          leading "$" or "$." is ignored
    users[0].name           list index
    items.0                 numeric member on a list
    meta['x.y']             quoted member (may contain dots)

A missing segment yields the ``UNDEFINED`` marker, which is distinct from
a JSON ``null`` (``None``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any


class _Undefined:
    """Marker for "no value at this path"; falsy, like JavaScript's undefined."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "undefined"

    def __str__(self) -> str:
        return "undefined"

    def __copy__(self) -> _Undefined:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Undefined:
        return self

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()

_SEGMENT = re.compile(
    r"""
    \[\s*(?P<index>-?\d+)\s*\]             # [0]
    | \[\s*'(?P<single>[^']*)'\s*\]        # ['key']
    | \[\s*"(?P<double>[^"]*)"\s*\]        # ["key"]
    | \.?(?P<member>[^.\[\]]+)             # .key or leading key
    | (?P<bad>.)                           # anything else makes the path invalid
    """,
    re.VERBOSE,
)


def split_path(path: str) -> list[str | int] | None:
    """Split ``path`` into member names and list indices; None if malformed."""
    path = path.strip()
    if path.startswith("$"):
        path = path[1:]
    segments: list[str | int] = []
    for match in _SEGMENT.finditer(path):
        if match.group("bad") is not None:
            if match.group("bad") == "." and match.end() == len(path):
                continue
            return None
        if match.group("index") is not None:
            segments.append(int(match.group("index")))
        elif match.group("single") is not None:
            segments.append(match.group("single"))
        elif match.group("double") is not None:
            segments.append(match.group("double"))
        else:
            segments.append(match.group("member").strip())
    return segments


def _step(current: Any, segment: str | int) -> Any:
    if isinstance(current, Mapping):
        key = str(segment) if isinstance(segment, int) else segment
        return current[key] if key in current else UNDEFINED
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes, bytearray)):
        if isinstance(segment, str):
            if not segment.lstrip("-").isdigit():
                return UNDEFINED
            segment = int(segment)
        if segment < 0 or segment >= len(current):
            return UNDEFINED
        return current[segment]
    return UNDEFINED


def get_value_by_path(data: Any, path: str | None) -> Any:
    """Nested value at ``path`` or UNDEFINED. An empty path returns ``data``."""
    if path is None:
        return data
    if not isinstance(path, str):
        return UNDEFINED
    segments = split_path(path)
    if segments is None:
        return UNDEFINED
    current = data
    for segment in segments:
        current = _step(current, segment)
        if current is UNDEFINED:
            return UNDEFINED
    return current


def unwrap_body(data: Any) -> Any:
    """Strip the ``{"type": ..., "data": ...}`` envelope used for typed bodies."""
    if isinstance(data, Mapping) and "type" in data and "data" in data:
        return data["data"]
    return data
