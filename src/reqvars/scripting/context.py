"""Read-only view of one completed exchange, as seen by a post-script."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from reqvars.models import ResponseData
from reqvars.paths import get_value_by_path, unwrap_body


@dataclass(frozen=True)
class ScriptContext:
    """Status, headers, body and duration of one response.

    Built once per response. The body is deep-copied on the way in and on
    every read, so nothing a script does to a returned value leaks back.
    """

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    data: Any = None
    duration: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "data", copy.deepcopy(self.data))

    @classmethod
    def from_response(cls, response: ResponseData) -> ScriptContext:
        return cls(
            status=response.status,
            headers=response.headers,
            data=unwrap_body(response.data),
            duration=response.duration,
        )

    def get_data(self, path: str | None = None) -> Any:
        """The whole body, or the value at ``path`` (UNDEFINED if missing)."""
        if path is None or path == "":
            return copy.deepcopy(self.data)
        return copy.deepcopy(get_value_by_path(self.data, path))

    def get_headers(self) -> dict[str, str]:
        return dict(self.headers)
