"""``{{placeholder}}`` substitution over strings, structures and requests.

Grammar:
    token    := "{{" content "}}"      content never contains "{{" or "}}"
    content  := ws* ( "$" name [ "(" arg ("," arg)* ")" ] | key ) ws*

Rules:
- ``$name`` tokens are delegated to the DynamicVariableProvider.
- Other tokens are looked up in the ScopeSnapshot by their trimmed content.
- Anything that cannot be resolved is left exactly as written.
- Substitution is single-pass: inserted values are never re-scanned.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any

from reqvars.errors import ErrorCode
from reqvars.models import AuthConfig, KeyValuePair, RequestDefinition
from reqvars.variables.dynamic import DynamicVariableProvider
from reqvars.variables.scope import ScopeSnapshot

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{((?:(?!\{\{|\}\}).)*)\}\}", re.DOTALL)
DYNAMIC_PATTERN = re.compile(r"^\$([A-Za-z_]\w*)\s*(?:\((.*)\))?$", re.DOTALL)


@dataclass(frozen=True)
class Placeholder:
    """A token found in a template."""

    raw: str
    content: str
    dynamic: bool
    name: str
    args: tuple[str, ...] = ()


def parse_placeholder(raw: str, content: str) -> Placeholder:
    content = content.strip()
    if content.startswith("$"):
        match = DYNAMIC_PATTERN.match(content)
        if match is None:
            return Placeholder(raw=raw, content=content, dynamic=True, name="")
        name, arg_text = match.group(1), match.group(2)
        args: tuple[str, ...] = ()
        if arg_text is not None and arg_text.strip():
            args = tuple(part.strip() for part in arg_text.split(","))
        return Placeholder(raw=raw, content=content, dynamic=True, name=name, args=args)
    return Placeholder(raw=raw, content=content, dynamic=False, name=content)


def find_placeholders(text: str) -> list[Placeholder]:
    """All tokens in ``text``, in order of appearance."""
    return [parse_placeholder(m.group(0), m.group(1)) for m in TOKEN_PATTERN.finditer(text)]


class TemplateResolver:
    """Resolves templates against a snapshot.

    Example:
        >>> resolver = TemplateResolver()
        >>> snap = ScopeSnapshot({"host": "api.example.com"})
        >>> resolver.resolve("https://{{host}}/{{missing}}", snap)
        'https://api.example.com/{{missing}}'
    """

    def __init__(self, provider: DynamicVariableProvider | None = None) -> None:
        self.provider = provider or DynamicVariableProvider()

    def _substitute(self, placeholder: Placeholder, snapshot: ScopeSnapshot) -> str:
        if placeholder.dynamic:
            value = self.provider.generate(placeholder.name, placeholder.args) if placeholder.name else None
        else:
            value = snapshot.get(placeholder.name) if placeholder.name else None
        if value is None:
            logger.debug(
                "[%s] left unresolved: %s",
                ErrorCode.UNRESOLVED_VARIABLE.value,
                placeholder.raw,
            )
            return placeholder.raw
        return value

    def resolve(self, text: str, snapshot: ScopeSnapshot) -> str:
        """Substitute every token in ``text``; never raises."""
        if not text or "{{" not in text:
            return text
        return TOKEN_PATTERN.sub(
            lambda m: self._substitute(parse_placeholder(m.group(0), m.group(1)), snapshot),
            text,
        )

    def resolve_value(self, value: Any, snapshot: ScopeSnapshot) -> Any:
        """Resolve strings nested anywhere inside dicts, lists and tuples."""
        if isinstance(value, str):
            return self.resolve(value, snapshot)
        if isinstance(value, dict):
            return {
                self.resolve_value(k, snapshot): self.resolve_value(v, snapshot)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [self.resolve_value(item, snapshot) for item in value]
        if isinstance(value, tuple):
            return tuple(self.resolve_value(item, snapshot) for item in value)
        return value

    def unresolved(self, text: str, snapshot: ScopeSnapshot) -> list[str]:
        """Tokens in ``text`` that would stay verbatim (for diagnostics)."""
        missing = []
        for placeholder in find_placeholders(text):
            if placeholder.dynamic:
                known = bool(placeholder.name) and placeholder.name in self.provider
            else:
                known = placeholder.name in snapshot
            if not known:
                missing.append(placeholder.raw)
        return missing

    def _resolve_pairs(
        self, pairs: tuple[KeyValuePair, ...], snapshot: ScopeSnapshot
    ) -> tuple[KeyValuePair, ...]:
        return tuple(
            replace(
                pair,
                key=self.resolve(pair.key, snapshot),
                value=self.resolve(pair.value, snapshot),
            )
            if pair.enabled
            else pair
            for pair in pairs
        )

    def _resolve_auth(self, auth: AuthConfig, snapshot: ScopeSnapshot) -> AuthConfig:
        basic = auth.basic
        if basic is not None:
            basic = replace(
                basic,
                username=self.resolve(basic.username, snapshot),
                password=self.resolve(basic.password, snapshot),
            )
        bearer = auth.bearer
        if bearer is not None:
            bearer = replace(bearer, token=self.resolve(bearer.token, snapshot))
        api_key = auth.api_key
        if api_key is not None:
            api_key = replace(
                api_key,
                key=self.resolve(api_key.key, snapshot),
                value=self.resolve(api_key.value, snapshot),
            )
        return replace(auth, basic=basic, bearer=bearer, api_key=api_key)

    def resolve_request(
        self, request: RequestDefinition, snapshot: ScopeSnapshot
    ) -> RequestDefinition:
        """Return a fully-resolved copy of ``request``.

        Each surface is resolved independently with the same snapshot.
        Disabled headers/params/form rows pass through untouched, as does the
        post-script (scripts read variables through the bridge instead).
        """
        return replace(
            request,
            url=self.resolve(request.url, snapshot),
            headers=self._resolve_pairs(request.headers, snapshot),
            params=self._resolve_pairs(request.params, snapshot),
            body=self.resolve(request.body, snapshot),
            body_pairs=self._resolve_pairs(request.body_pairs, snapshot),
            auth=self._resolve_auth(request.auth, snapshot),
            graphql_variables=self.resolve(request.graphql_variables, snapshot),
        )
