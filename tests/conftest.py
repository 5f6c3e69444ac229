"""Pytest fixtures for reqvars tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from reqvars.adapters.http import HttpxTransport
from reqvars.bridge import GlobalVariableBridge
from reqvars.config import EngineConfig
from reqvars.engine import RequestEngine
from reqvars.models import RequestDefinition, ResponseData, Variable
from reqvars.scripting import ScriptSandbox
from reqvars.stores import EnvironmentStore, GlobalVariableStore, SessionStore


class FakeTransport:
    """Transport double that records requests and replays canned responses."""

    def __init__(self, response: ResponseData | None = None, error: Exception | None = None) -> None:
        self.response = response or ResponseData(status=200, data={"ok": True}, duration=12.0)
        self.error = error
        self.sent: list[RequestDefinition] = []

    def send(self, request: RequestDefinition) -> ResponseData:
        self.sent.append(request)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def global_store() -> GlobalVariableStore:
    return GlobalVariableStore(
        [
            Variable("version", "v1"),
            Variable("apiKey", "abc123"),
            Variable("disabledKey", "hidden", enabled=False),
        ]
    )


@pytest.fixture
def environment_store() -> EnvironmentStore:
    store = EnvironmentStore()
    store.add_environment("staging", [Variable("baseUrl", "https://api.example.com")])
    store.add_environment("local", [Variable("baseUrl", "http://localhost:8000")])
    store.activate("staging")
    return store


@pytest.fixture
def session_store() -> SessionStore:
    store = SessionStore(shared=[Variable("tenant", "acme")])
    store.create_session("alice", [Variable("userId", "1")], session_id="alice")
    return store


@pytest.fixture
def bridge(global_store: GlobalVariableStore) -> GlobalVariableBridge:
    return GlobalVariableBridge(global_store)


@pytest.fixture
def sandbox() -> ScriptSandbox:
    return ScriptSandbox(timeout=2.0)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def engine(
    global_store: GlobalVariableStore,
    environment_store: EnvironmentStore,
    session_store: SessionStore,
    fake_transport: FakeTransport,
) -> Iterator[RequestEngine]:
    engine = RequestEngine(
        global_store,
        environment_store,
        session_store,
        transport=fake_transport,
        config=EngineConfig(script_timeout=2.0, max_concurrent_sends=4),
    )
    yield engine
    engine.shutdown()


@pytest.fixture
def mock_http() -> Iterator[Callable[[Callable[[httpx.Request], httpx.Response]], HttpxTransport]]:
    """Build an HttpxTransport whose client answers with ``handler``."""
    transports: list[HttpxTransport] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> HttpxTransport:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        transport = HttpxTransport(client=client)
        transports.append(transport)
        return transport

    yield factory

    for transport in transports:
        transport._client.close()


def json_response(status: int = 200, data: Any = None, **kwargs: Any) -> httpx.Response:
    return httpx.Response(status, json=data, **kwargs)
