"""In-memory variable collections."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Any

from reqvars.models import Variable
from reqvars.stores.base import VariableStorePort

logger = logging.getLogger(__name__)


class VariableCollection(VariableStorePort):
    """Thread-safe list of Variable records.

    A single lock guards the list structure. Updates build a new record and
    swap it in under that lock, so readers copy out fully-applied records
    only.
    """

    def __init__(self, variables: Iterable[Variable] | None = None, name: str = "") -> None:
        self.name = name
        self._variables: list[Variable] = list(variables or [])
        self._lock = threading.RLock()

    def _last_index(self, key: str) -> int | None:
        for index in range(len(self._variables) - 1, -1, -1):
            if self._variables[index].key == key:
                return index
        return None

    def variables(self) -> list[Variable]:
        with self._lock:
            return list(self._variables)

    def list_enabled(self) -> list[Variable]:
        with self._lock:
            return [v for v in self._variables if v.enabled]

    def find(self, key: str) -> Variable | None:
        with self._lock:
            index = self._last_index(key)
            return self._variables[index] if index is not None else None

    def add(self, variable: Variable) -> None:
        """Append ``variable`` even if its key already exists (it then shadows)."""
        with self._lock:
            self._variables.append(variable)

    def put(self, variable: Variable) -> bool:
        with self._lock:
            index = self._last_index(variable.key)
            if index is None:
                self._variables.append(variable)
                return True
            self._variables[index] = variable
            return False

    def update_variable(self, key: str, **changes: Any) -> Variable | None:
        with self._lock:
            index = self._last_index(key)
            if index is None:
                return None
            updated = self._variables[index].with_changes(**changes)
            self._variables[index] = updated
            return updated

    def remove(self, key: str) -> bool:
        with self._lock:
            before = len(self._variables)
            self._variables = [v for v in self._variables if v.key != key]
            return len(self._variables) != before

    def clear(self) -> None:
        with self._lock:
            self._variables.clear()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, size={len(self)})"


class GlobalVariableStore(VariableCollection):
    """The one collection shared by every tab.

    Scripts never touch this directly; they go through GlobalVariableBridge.
    """

    def __init__(self, variables: Iterable[Variable] | None = None) -> None:
        super().__init__(variables, name="global")
