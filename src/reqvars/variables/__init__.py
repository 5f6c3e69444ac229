"""Placeholder resolution: scopes, dynamic generators and the template resolver."""

from reqvars.variables.dynamic import DEFAULT_GENERATORS, DynamicVariableProvider
from reqvars.variables.resolver import (
    Placeholder,
    TemplateResolver,
    find_placeholders,
    parse_placeholder,
)
from reqvars.variables.scope import ScopeSnapshot, VariableScopeStack, build_snapshot

__all__ = [
    "DEFAULT_GENERATORS",
    "DynamicVariableProvider",
    "Placeholder",
    "ScopeSnapshot",
    "TemplateResolver",
    "VariableScopeStack",
    "build_snapshot",
    "find_placeholders",
    "parse_placeholder",
]
