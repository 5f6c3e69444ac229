"""Merging of Global, Environment and Session variables into one snapshot.

Precedence, lowest to highest: Global, Environment, Session. Disabled
entries are left out entirely, and so are entries with an empty key. Within
one collection a later duplicate key shadows an earlier one.

A snapshot is built fresh for every send and never cached: scripts and
other tabs mutate the underlying stores between sends.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from reqvars.models import Variable

if TYPE_CHECKING:
    from reqvars.stores import EnvironmentStore, GlobalVariableStore, SessionStore


class ScopeSnapshot(Mapping[str, str]):
    """Immutable, point-in-time ``key -> value`` view of the merged scopes."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = MappingProxyType(dict(values or {}))

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ScopeSnapshot({dict(self._values)!r})"


def _merge_into(target: dict[str, str], variables: Iterable[Variable] | None) -> None:
    for variable in variables or ():
        if variable.enabled and variable.key:
            target[variable.key] = variable.value


def build_snapshot(
    global_variables: Iterable[Variable],
    environment: Iterable[Variable] | None = None,
    session: Iterable[Variable] | None = None,
) -> ScopeSnapshot:
    """Flatten the three scopes; the highest-precedence scope wins on collisions."""
    merged: dict[str, str] = {}
    _merge_into(merged, global_variables)
    _merge_into(merged, environment)
    _merge_into(merged, session)
    return ScopeSnapshot(merged)


class VariableScopeStack:
    """Builds snapshots from the live stores.

    Example:
        >>> stack = VariableScopeStack(globals_store, environments, sessions)
        >>> snapshot = stack.snapshot(session_id="tab-session")
        >>> snapshot.get("baseUrl")
    """

    def __init__(
        self,
        global_store: GlobalVariableStore,
        environment_store: EnvironmentStore | None = None,
        session_store: SessionStore | None = None,
    ) -> None:
        self.global_store = global_store
        self.environment_store = environment_store
        self.session_store = session_store

    def snapshot(self, session_id: str | None = None) -> ScopeSnapshot:
        """Snapshot of the active environment and the given (or active) session."""
        environment = (
            self.environment_store.active_variables() if self.environment_store else None
        )
        session = (
            self.session_store.effective_variables(session_id) if self.session_store else None
        )
        return build_snapshot(self.global_store.list_enabled(), environment, session)
