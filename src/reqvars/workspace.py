"""YAML workspace files for the command line.

A workspace holds the three scopes::

    globals:
      - {key: version, value: v1}
      - {key: apiKey, value: abc123, description: Staging key}
    environments:
      staging:
        baseUrl: https://staging.example.com     # shorthand: key -> value
      local:
        - {key: baseUrl, value: http://localhost:8000}
    active_environment: staging
    shared:
      - {key: tenant, value: acme}
    sessions:
      alice: {userId: "1"}
    active_session: alice

Request and saved-response files used by ``reqvars send`` and
``reqvars run-script`` are loaded here as well.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from reqvars.errors import ReqVarsError, WorkspaceError
from reqvars.models import RequestDefinition, ResponseData, Variable
from reqvars.stores import EnvironmentStore, GlobalVariableStore, SessionStore, VariableStorePort

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """Stores populated from one workspace file."""

    globals: GlobalVariableStore = field(default_factory=GlobalVariableStore)
    environments: EnvironmentStore = field(default_factory=EnvironmentStore)
    sessions: SessionStore = field(default_factory=SessionStore)
    path: Path | None = None


def _read_yaml(path: Path) -> Any:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise WorkspaceError(f"Cannot read {path}: {e}", cause=e) from e
    except yaml.YAMLError as e:
        raise WorkspaceError(f"Cannot parse {path}: {e}", cause=e) from e


def parse_variables(data: Any, where: str) -> list[Variable]:
    """Accept a list of variable mappings or a plain ``key: value`` mapping."""
    if data is None:
        return []
    if isinstance(data, dict):
        return [Variable(key=str(k), value="" if v is None else str(v)) for k, v in data.items()]
    if isinstance(data, list):
        variables = []
        for item in data:
            if not isinstance(item, dict):
                raise WorkspaceError(f"'{where}' entries must be mappings, got {item!r}")
            try:
                variables.append(Variable.from_dict(item))
            except (TypeError, ValueError) as e:
                raise WorkspaceError(f"Invalid variable in '{where}': {e}", cause=e) from e
        return variables
    raise WorkspaceError(f"'{where}' must be a list or a mapping")


def load_workspace(path: str | Path | None) -> Workspace:
    """Build a Workspace from a YAML file; ``None`` gives an empty one.

    Raises:
        WorkspaceError: If the file is unreadable or has the wrong shape.
    """
    if path is None:
        return Workspace()
    path = Path(path)
    data = _read_yaml(path) or {}
    if not isinstance(data, dict):
        raise WorkspaceError(f"{path} must contain a mapping")

    workspace = Workspace(
        globals=GlobalVariableStore(parse_variables(data.get("globals"), "globals")),
        sessions=SessionStore(parse_variables(data.get("shared"), "shared")),
        path=path,
    )

    environments = data.get("environments") or {}
    if not isinstance(environments, dict):
        raise WorkspaceError("'environments' must map names to variables")
    for name, variables in environments.items():
        workspace.environments.add_environment(str(name), parse_variables(variables, f"environments.{name}"))

    sessions = data.get("sessions") or {}
    if not isinstance(sessions, dict):
        raise WorkspaceError("'sessions' must map names to variables")
    for name, variables in sessions.items():
        workspace.sessions.create_session(
            name=str(name),
            variables=parse_variables(variables, f"sessions.{name}"),
            session_id=str(name),
        )

    try:
        if data.get("active_environment"):
            workspace.environments.activate(str(data["active_environment"]))
        if data.get("active_session"):
            workspace.sessions.activate(str(data["active_session"]))
    except ReqVarsError as e:
        raise WorkspaceError(f"{path}: {e.message}", cause=e) from e

    logger.debug(
        f"Loaded workspace {path}: {len(workspace.globals)} globals, "
        f"{len(workspace.environments.list_environments())} environments, "
        f"{len(workspace.sessions.list_sessions())} sessions"
    )
    return workspace


def save_globals(path: str | Path, store: VariableStorePort) -> None:
    """Write ``store`` back as the ``globals`` list, keeping the rest of the file."""
    path = Path(path)
    data: dict[str, Any] = {}
    if path.exists():
        existing = _read_yaml(path) or {}
        if not isinstance(existing, dict):
            raise WorkspaceError(f"{path} must contain a mapping")
        data = existing
    data["globals"] = [variable.to_dict() for variable in store.variables()]
    with open(path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    logger.info(f"Saved {len(data['globals'])} global variable(s) to {path}")


def load_request(path: str | Path) -> RequestDefinition:
    """Read a request definition from YAML (or JSON, which YAML accepts)."""
    path = Path(path)
    data = _read_yaml(path)
    if not isinstance(data, dict) or not data.get("url"):
        raise WorkspaceError(f"{path} must be a mapping with at least a 'url'")
    try:
        return RequestDefinition.from_dict(data)
    except (TypeError, ValueError) as e:
        raise WorkspaceError(f"Invalid request in {path}: {e}", cause=e) from e


def load_response(path: str | Path) -> ResponseData:
    """Read a saved response.

    The file is JSON with ``status``, ``headers``, ``data`` and ``duration``
    members. A file without ``status`` is treated as a bare 200 body.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text())
    except OSError as e:
        raise WorkspaceError(f"Cannot read {path}: {e}", cause=e) from e
    except json.JSONDecodeError as e:
        raise WorkspaceError(f"{path} is not valid JSON: {e}", cause=e) from e

    if isinstance(raw, dict) and "status" in raw:
        return ResponseData(
            status=int(raw["status"]),
            headers={str(k): str(v) for k, v in (raw.get("headers") or {}).items()},
            data=raw.get("data"),
            duration=float(raw.get("duration", 0.0)),
            status_text=str(raw.get("status_text", "")),
        )
    return ResponseData(status=200, data=raw)
