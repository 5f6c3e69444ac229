"""Named environments with one active at a time."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from reqvars.errors import UnknownEnvironmentError
from reqvars.models import Variable
from reqvars.stores.memory import VariableCollection

logger = logging.getLogger(__name__)


@dataclass
class Environment:
    """A named variable collection such as "local" or "staging"."""

    name: str
    variables: VariableCollection = field(default_factory=VariableCollection)

    def __post_init__(self) -> None:
        if not self.variables.name:
            self.variables.name = f"environment:{self.name}"


class EnvironmentStore:
    """Holds environments and tracks which one is active.

    Example:
        >>> store = EnvironmentStore()
        >>> store.add_environment("staging", [Variable("baseUrl", "https://staging")])
        >>> store.activate("staging")
        >>> [v.key for v in store.active_variables()]
        ['baseUrl']
    """

    def __init__(self) -> None:
        self._environments: dict[str, Environment] = {}
        self._active: str | None = None
        self._lock = threading.Lock()

    def add_environment(
        self, name: str, variables: Iterable[Variable] | None = None
    ) -> Environment:
        env = Environment(name=name, variables=VariableCollection(variables))
        with self._lock:
            self._environments[name] = env
        return env

    def remove_environment(self, name: str) -> bool:
        with self._lock:
            if name not in self._environments:
                return False
            del self._environments[name]
            if self._active == name:
                self._active = None
            return True

    def get_environment(self, name: str) -> Environment:
        with self._lock:
            env = self._environments.get(name)
            if env is None:
                raise UnknownEnvironmentError(name, list(self._environments))
            return env

    def list_environments(self) -> list[str]:
        with self._lock:
            return list(self._environments)

    def activate(self, name: str) -> Environment:
        env = self.get_environment(name)
        with self._lock:
            self._active = name
        logger.info(f"Activated environment: {name}")
        return env

    def deactivate(self) -> None:
        with self._lock:
            self._active = None

    @property
    def active_environment(self) -> Environment | None:
        with self._lock:
            return self._environments.get(self._active) if self._active else None

    def active_variables(self) -> list[Variable] | None:
        """Enabled variables of the active environment, or None if none is active."""
        env = self.active_environment
        return env.variables.list_enabled() if env is not None else None
