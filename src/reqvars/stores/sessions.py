"""Sessions: per-tab variable sets on top of a shared pool.

The session layer of a snapshot is two-tier: the shared pool first, then
the session's own variables, which win on collisions.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from reqvars.errors import UnknownSessionError
from reqvars.models import ResponseData, Variable, VariableSource
from reqvars.paths import UNDEFINED, get_value_by_path, unwrap_body
from reqvars.stores.memory import VariableCollection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractRule:
    """Copy the value at ``path`` in a response body into session variable ``key``."""

    key: str
    path: str


@dataclass
class Session:
    id: str
    name: str = ""
    variables: VariableCollection = field(default_factory=VariableCollection)


def stringify(value: Any) -> str:
    """Strings pass through; everything else is rendered as JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class SessionStore:
    """Sessions plus the shared pool and the active session id."""

    def __init__(self, shared: Iterable[Variable] | None = None) -> None:
        self.shared = VariableCollection(shared, name="session:shared")
        self._sessions: dict[str, Session] = {}
        self._active: str | None = None
        self._lock = threading.Lock()

    def create_session(
        self,
        name: str = "",
        variables: Iterable[Variable] | None = None,
        session_id: str | None = None,
    ) -> Session:
        session_id = session_id or str(uuid.uuid4())
        session = Session(
            id=session_id,
            name=name or session_id,
            variables=VariableCollection(variables, name=f"session:{session_id}"),
        )
        with self._lock:
            self._sessions[session_id] = session
        return session

    def remove_session(self, session_id: str) -> bool:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                return False
            if self._active == session_id:
                self._active = None
            return True

    def get_session(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise UnknownSessionError(session_id)
        return session

    def list_sessions(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def activate(self, session_id: str) -> Session:
        session = self.get_session(session_id)
        with self._lock:
            self._active = session_id
        return session

    @property
    def active_session_id(self) -> str | None:
        with self._lock:
            return self._active

    def effective_variables(self, session_id: str | None = None) -> list[Variable]:
        """Shared enabled variables followed by the session's own enabled ones.

        ``session_id`` defaults to the active session. An unknown id
        contributes nothing beyond the shared pool.
        """
        variables = self.shared.list_enabled()
        session_id = session_id or self.active_session_id
        if session_id is None:
            return variables
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            logger.warning(f"Unknown session '{session_id}', using shared variables only")
            return variables
        return variables + session.variables.list_enabled()

    def extract_from_response(
        self, session_id: str, response: ResponseData, rules: Iterable[ExtractRule]
    ) -> list[Variable]:
        """Write values found in ``response.data`` into the session.

        Rules whose path is missing from the body are skipped.

        Returns:
            The variables that were written.
        """
        session = self.get_session(session_id)
        written: list[Variable] = []
        for rule in rules:
            value = get_value_by_path(unwrap_body(response.data), rule.path)
            if value is UNDEFINED:
                logger.debug(f"Extract rule {rule.key} <- {rule.path}: path not found")
                continue
            existing = session.variables.find(rule.key)
            if existing is not None:
                variable = existing.with_changes(
                    value=stringify(value),
                    source=VariableSource.RESPONSE,
                    extract_path=rule.path,
                )
            else:
                variable = Variable(
                    key=rule.key,
                    value=stringify(value),
                    enabled=True,
                    description=f"Extracted from response: {rule.path}",
                    source=VariableSource.RESPONSE,
                    extract_path=rule.path,
                )
            session.variables.put(variable)
            written.append(variable)
        return written
