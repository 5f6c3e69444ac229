"""Port for a long-lived, externally-owned variable collection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from reqvars.models import Variable


class VariableStorePort(ABC):
    """One scope's collection of variables.

    Implementations must be safe to call from several threads. Records are
    immutable, so an implementation only has to make the swap of a record
    atomic for readers to never see a half-applied update.
    """

    @abstractmethod
    def variables(self) -> list[Variable]:
        """All entries, in insertion order."""
        ...

    @abstractmethod
    def list_enabled(self) -> list[Variable]:
        """Enabled entries, in insertion order."""
        ...

    @abstractmethod
    def find(self, key: str) -> Variable | None:
        """The effective (last) entry for ``key``, enabled or not."""
        ...

    @abstractmethod
    def put(self, variable: Variable) -> bool:
        """Replace the effective entry for ``variable.key`` or append it.

        Returns:
            True when a new entry was appended.
        """
        ...

    @abstractmethod
    def update_variable(self, key: str, **changes: Any) -> Variable | None:
        """Apply ``changes`` to the effective entry for ``key``."""
        ...

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Remove every entry for ``key``."""
        ...

    def find_enabled(self, key: str) -> Variable | None:
        """The last enabled entry for ``key``, as a snapshot would see it."""
        for variable in reversed(self.list_enabled()):
            if variable.key == key:
                return variable
        return None

    def __len__(self) -> int:
        return len(self.variables())
