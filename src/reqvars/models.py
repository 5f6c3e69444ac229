"""Request, response and variable dataclasses.

Variable records are frozen: stores replace a record wholesale instead of
mutating it, so a reader holding a record never observes a half-applied
update.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

JSONValue = Union[None, bool, int, float, str, list["JSONValue"], dict[str, "JSONValue"]]


class VariableSource(Enum):
    """Where a variable's current value came from."""

    MANUAL = "manual"
    RESPONSE = "response"
    SCRIPT = "script"


@dataclass(frozen=True)
class Variable:
    """A single entry in a variable scope."""

    key: str
    value: str
    enabled: bool = True
    description: str | None = None
    source: VariableSource = VariableSource.MANUAL
    extract_path: str | None = None

    def with_changes(self, **changes: Any) -> Variable:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Variable:
        """Create a Variable from a plain mapping (YAML/JSON shape)."""
        source = data.get("source", VariableSource.MANUAL.value)
        return cls(
            key=str(data.get("key", "")),
            value="" if data.get("value") is None else str(data.get("value")),
            enabled=bool(data.get("enabled", True)),
            description=data.get("description"),
            source=VariableSource(source) if isinstance(source, str) else source,
            extract_path=data.get("extract_path"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "key": self.key,
            "value": self.value,
            "enabled": self.enabled,
        }
        if self.description is not None:
            result["description"] = self.description
        if self.source is not VariableSource.MANUAL:
            result["source"] = self.source.value
        if self.extract_path is not None:
            result["extract_path"] = self.extract_path
        return result


@dataclass(frozen=True)
class KeyValuePair:
    """A header, query parameter or form field row."""

    key: str
    value: str
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyValuePair:
        return cls(
            key=str(data.get("key", "")),
            value="" if data.get("value") is None else str(data.get("value")),
            enabled=bool(data.get("enabled", True)),
        )


class AuthType(Enum):
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    API_KEY = "api-key"


@dataclass(frozen=True)
class BasicAuth:
    username: str = ""
    password: str = ""


@dataclass(frozen=True)
class BearerAuth:
    token: str = ""


@dataclass(frozen=True)
class ApiKeyAuth:
    key: str = ""
    value: str = ""
    location: str = "header"  # "header" or "query"


@dataclass(frozen=True)
class AuthConfig:
    """Authentication settings.

    All three sub-forms may be present at once; ``type`` selects the one the
    transport applies. Every sub-form is resolved regardless of ``type``.
    """

    type: AuthType = AuthType.NONE
    basic: BasicAuth | None = None
    bearer: BearerAuth | None = None
    api_key: ApiKeyAuth | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthConfig:
        basic = data.get("basic")
        bearer = data.get("bearer")
        api_key = data.get("api_key") or data.get("apiKey")
        return cls(
            type=AuthType(data.get("type", "none")),
            basic=BasicAuth(**basic) if basic else None,
            bearer=BearerAuth(**bearer) if bearer else None,
            api_key=ApiKeyAuth(**api_key) if api_key else None,
        )


class BodyType(Enum):
    JSON = "json"
    FORM_DATA = "form-data"
    URLENCODED = "x-www-form-urlencoded"
    RAW = "raw"
    GRAPHQL = "graphql"


class ApiType(Enum):
    REST = "rest"
    GRAPHQL = "graphql"


@dataclass(frozen=True)
class RequestDefinition:
    """A request as authored, possibly containing ``{{placeholders}}``."""

    url: str
    method: str = "GET"
    name: str = ""
    headers: tuple[KeyValuePair, ...] = ()
    params: tuple[KeyValuePair, ...] = ()
    body: str = ""
    body_type: BodyType = BodyType.JSON
    body_pairs: tuple[KeyValuePair, ...] = ()
    auth: AuthConfig = field(default_factory=AuthConfig)
    api_type: ApiType = ApiType.REST
    graphql_variables: str = ""
    post_script: str = ""

    def __str__(self) -> str:
        return f"{self.method} {self.url}"

    @property
    def has_post_script(self) -> bool:
        return bool(self.post_script and self.post_script.strip())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RequestDefinition:
        """Create a RequestDefinition from a plain mapping (YAML/JSON shape)."""

        def pairs(items: list[dict[str, Any]] | None) -> tuple[KeyValuePair, ...]:
            return tuple(KeyValuePair.from_dict(item) for item in items or [])

        return cls(
            url=str(data.get("url", "")),
            method=str(data.get("method", "GET")).upper(),
            name=str(data.get("name", "")),
            headers=pairs(data.get("headers")),
            params=pairs(data.get("params")),
            body=data.get("body") or "",
            body_type=BodyType(data.get("body_type", "json")),
            body_pairs=pairs(data.get("body_pairs")),
            auth=AuthConfig.from_dict(data["auth"]) if data.get("auth") else AuthConfig(),
            api_type=ApiType(data.get("type", "rest")),
            graphql_variables=data.get("graphql_variables") or "",
            post_script=data.get("post_script") or "",
        )


@dataclass
class ResponseData:
    """A completed exchange as handed back by the transport."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    data: JSONValue | Any = None
    duration: float = 0.0  # milliseconds
    status_text: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400

    def summary(self) -> dict[str, Any]:
        return {"status": self.status, "duration_ms": round(self.duration, 1)}
