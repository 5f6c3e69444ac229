"""The only path from scripts to the Global variable collection.

Writes are serialized per key: two scripts writing different keys proceed
independently, two scripts writing the same key take turns, and the last
write to finish wins. Each script run gets its own ScriptBridgeHandle, which
is revoked when the run ends or times out so a runaway script can no longer
reach shared state.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from reqvars.errors import BridgeRevokedError, ErrorCode
from reqvars.models import Variable, VariableSource
from reqvars.stores.base import VariableStorePort

logger = logging.getLogger(__name__)


class KeyedLock:
    """One lock per key, created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        if not lock.acquire(blocking=False):
            logger.debug(f"[{ErrorCode.BRIDGE_WRITE_CONFLICT.value}] waiting on key '{key}'")
            lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


@dataclass(frozen=True)
class WriteResult:
    variable: Variable
    created: bool


class GlobalVariableBridge:
    """Serialized get/set access to the Global variable store.

    Example:
        >>> bridge = GlobalVariableBridge(GlobalVariableStore())
        >>> bridge.set_global_variable("AUTH_TOKEN", "tok_1", "login token")
        >>> bridge.get_global_variable("AUTH_TOKEN")
        'tok_1'
    """

    def __init__(self, store: VariableStorePort) -> None:
        self.store = store
        self._locks = KeyedLock()

    def set_global_variable(
        self,
        key: str,
        value: str,
        description: str | None = None,
        source: VariableSource = VariableSource.SCRIPT,
    ) -> WriteResult:
        """Update the entry for ``key`` (forcing it enabled) or create one.

        An omitted description keeps the existing one. Matching is exact and
        case-sensitive.
        """
        with self._locks.hold(key):
            existing = self.store.find(key)
            if existing is not None:
                variable = existing.with_changes(
                    value=value,
                    enabled=True,
                    description=existing.description if description is None else description,
                    source=source,
                )
            else:
                variable = Variable(
                    key=key,
                    value=value,
                    enabled=True,
                    description=description,
                    source=source,
                )
            created = self.store.put(variable)
        logger.debug(f"Global variable {'created' if created else 'updated'}: {key}")
        return WriteResult(variable=variable, created=created)

    def get_global_variable(self, key: str) -> str | None:
        """Value of ``key`` if it exists and is enabled, else None."""
        with self._locks.hold(key):
            variable = self.store.find_enabled(key)
        return variable.value if variable is not None else None

    def open_handle(self, owner: str = "") -> ScriptBridgeHandle:
        """A revocable view of this bridge for one script run."""
        return ScriptBridgeHandle(self, owner)


class ScriptBridgeHandle:
    """Per-run gate in front of the bridge.

    Once revoked, every call raises BridgeRevokedError inside the calling
    (script) thread and nothing reaches the store.

    Successful writes are listed in ``written``; an entry is added before
    the gate is released, so a write that lands is never missing from it.
    """

    def __init__(self, bridge: GlobalVariableBridge, owner: str = "") -> None:
        self._bridge = bridge
        self.owner = owner
        self._revoked = threading.Event()
        self._gate = threading.Lock()
        self._written: list[Variable] = []

    @property
    def written(self) -> list[Variable]:
        with self._gate:
            return list(self._written)

    @property
    def revoked(self) -> bool:
        return self._revoked.is_set()

    def revoke(self) -> None:
        # Taking the gate waits for a call already inside the bridge to finish.
        with self._gate:
            self._revoked.set()

    def _check(self) -> None:
        if self._revoked.is_set():
            raise BridgeRevokedError(f"script run '{self.owner}' is no longer active")

    def set_global_variable(
        self, key: str, value: str, description: str | None = None
    ) -> WriteResult:
        with self._gate:
            self._check()
            result = self._bridge.set_global_variable(key, value, description)
            self._written.append(result.variable)
            return result

    def get_global_variable(self, key: str) -> str | None:
        with self._gate:
            self._check()
            return self._bridge.get_global_variable(key)
