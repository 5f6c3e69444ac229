"""Tests for the command line interface."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest
import yaml
from click.testing import CliRunner

from reqvars.adapters.http import HttpxTransport
from reqvars.cli import cli

WORKSPACE = """\
globals:
  - {key: version, value: v1}
environments:
  staging: {baseUrl: https://api.example.com}
  local: {baseUrl: "http://localhost:8000"}
active_environment: staging
sessions:
  alice: {userId: "1"}
"""


@pytest.fixture(autouse=True)
def reset_reqvars_logger(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in ("SCRIPT_TIMEOUT", "LOG_LEVEL", "JSON_LOGS"):
        monkeypatch.delenv(f"REQVARS_{name}", raising=False)
    yield
    root = logging.getLogger("reqvars")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def workspace_file(tmp_path: Path) -> Path:
    path = tmp_path / "workspace.yaml"
    path.write_text(WORKSPACE)
    return path


@pytest.fixture
def response_file(tmp_path: Path) -> Path:
    path = tmp_path / "response.json"
    path.write_text(json.dumps({"status": 200, "data": {"access_token": "tok-1", "user": {"id": 7}}}))
    return path


def write_script(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "script.py"
    path.write_text(text)
    return path


class TestResolve:
    def test_resolves_against_workspace(self, runner: CliRunner, workspace_file: Path) -> None:
        result = runner.invoke(
            cli, ["resolve", "{{baseUrl}}/users/{{userId}}?v={{version}}", "-w", str(workspace_file), "--session", "alice"]
        )
        assert result.exit_code == 0, result.output
        assert "https://api.example.com/users/1?v=v1" in result.output

    def test_env_switch(self, runner: CliRunner, workspace_file: Path) -> None:
        result = runner.invoke(cli, ["resolve", "{{baseUrl}}", "-w", str(workspace_file), "--env", "local"])
        assert "http://localhost:8000" in result.output

    def test_unresolved_is_reported(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["resolve", "{{host}}/x"])
        assert result.exit_code == 0
        assert "{{host}}/x" in result.output
        assert "unresolved: {{host}}" in result.output

    def test_strict_exits_nonzero(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["resolve", "{{host}}/x", "--strict"])
        assert result.exit_code == 1

    def test_unknown_environment(self, runner: CliRunner, workspace_file: Path) -> None:
        result = runner.invoke(cli, ["resolve", "x", "-w", str(workspace_file), "--env", "prod"])
        assert result.exit_code == 1
        assert "Environment 'prod' not found" in result.output


class TestRunScript:
    def test_success_prints_logs_and_variables(
        self, runner: CliRunner, tmp_path: Path, response_file: Path
    ) -> None:
        script = write_script(
            tmp_path,
            "console.log('status', getStatus())\nsetGlobalVariable('token', getData('access_token'))\n",
        )
        result = runner.invoke(cli, ["run-script", str(script), "-r", str(response_file)])
        assert result.exit_code == 0, result.output
        assert "[LOG] status 200" in result.output
        assert "[VARIABLE] Set token = tok-1" in result.output
        assert "Script completed" in result.output

    def test_failure_exits_nonzero(self, runner: CliRunner, tmp_path: Path, response_file: Path) -> None:
        script = write_script(tmp_path, "x = getData('user')['missing']\n")
        result = runner.invoke(cli, ["run-script", str(script), "-r", str(response_file)])
        assert result.exit_code == 1
        assert "Script failed: RuntimeError" in result.output

    def test_syntax_error(self, runner: CliRunner, tmp_path: Path, response_file: Path) -> None:
        script = write_script(tmp_path, "if (getStatus() === 200) {\n}\n")
        result = runner.invoke(cli, ["run-script", str(script), "-r", str(response_file)])
        assert result.exit_code == 1
        assert "SyntaxError" in result.output

    def test_save_writes_workspace(
        self, runner: CliRunner, tmp_path: Path, response_file: Path, workspace_file: Path
    ) -> None:
        script = write_script(tmp_path, "setGlobalVariable('userId', getData('user.id'))\n")
        result = runner.invoke(
            cli, ["run-script", str(script), "-r", str(response_file), "-w", str(workspace_file), "--save"]
        )
        assert result.exit_code == 0, result.output
        saved = yaml.safe_load(workspace_file.read_text())
        assert {"key": "userId", "value": "7", "enabled": True, "source": "script"} in saved["globals"]
        assert saved["active_environment"] == "staging"

    def test_without_save_workspace_is_untouched(
        self, runner: CliRunner, tmp_path: Path, response_file: Path, workspace_file: Path
    ) -> None:
        script = write_script(tmp_path, "setGlobalVariable('userId', '9')\n")
        runner.invoke(cli, ["run-script", str(script), "-r", str(response_file), "-w", str(workspace_file)])
        assert workspace_file.read_text() == WORKSPACE


class TestSend:
    @pytest.fixture
    def requests(self, monkeypatch: pytest.MonkeyPatch) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "unreachable.invalid":
                raise httpx.ConnectError("name resolution failed", request=request)
            return httpx.Response(200, json={"token": "fresh", "items": [1, 2]})

        def make_transport(**kwargs: Any) -> HttpxTransport:
            return HttpxTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))

        monkeypatch.setattr("reqvars.engine.HttpxTransport", make_transport)
        return seen

    def test_send_resolves_and_runs_script(
        self, runner: CliRunner, tmp_path: Path, workspace_file: Path, requests: list[httpx.Request]
    ) -> None:
        request_file = tmp_path / "request.yaml"
        request_file.write_text(
            "url: '{{baseUrl}}/login'\n"
            "method: POST\n"
            "body: '{\"v\": \"{{version}}\"}'\n"
            "post_script: |\n"
            "  setGlobalVariable('token', getData('token'))\n"
        )
        result = runner.invoke(cli, ["send", str(request_file), "-w", str(workspace_file), "--save"])

        assert result.exit_code == 0, result.output
        assert str(requests[0].url) == "https://api.example.com/login"
        assert json.loads(requests[0].content) == {"v": "v1"}
        assert "HTTP 200" in result.output
        assert '"token"' in result.output
        saved = yaml.safe_load(workspace_file.read_text())
        assert {"key": "token", "value": "fresh", "enabled": True, "source": "script"} in saved["globals"]

    def test_no_body(self, runner: CliRunner, tmp_path: Path, requests: list[httpx.Request]) -> None:
        request_file = tmp_path / "request.yaml"
        request_file.write_text("url: https://api.example.com/items\n")
        result = runner.invoke(cli, ["send", str(request_file), "--no-body"])
        assert result.exit_code == 0, result.output
        assert '"items"' not in result.output

    def test_transport_failure_exits_nonzero(
        self, runner: CliRunner, tmp_path: Path, requests: list[httpx.Request]
    ) -> None:
        request_file = tmp_path / "request.yaml"
        request_file.write_text("url: https://unreachable.invalid/\n")
        result = runner.invoke(cli, ["send", str(request_file)])
        assert result.exit_code == 1
        assert "Transport failed" in result.output

    def test_invalid_request_file(self, runner: CliRunner, tmp_path: Path) -> None:
        request_file = tmp_path / "request.yaml"
        request_file.write_text("method: GET\n")
        result = runner.invoke(cli, ["send", str(request_file)])
        assert result.exit_code == 1
        assert "url" in result.output


class TestVariablesAndTemplates:
    def test_variables_table(self, runner: CliRunner, workspace_file: Path) -> None:
        result = runner.invoke(cli, ["variables", "-w", str(workspace_file), "--session", "alice"])
        assert result.exit_code == 0, result.output
        assert "baseUrl" in result.output
        assert "userId" in result.output

    def test_list_templates(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["templates"])
        assert result.exit_code == 0
        assert "basic_json_extraction" in result.output

    def test_show_template(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["templates", "header_extraction"])
        assert result.exit_code == 0
        assert "getHeaders()" in result.output

    def test_unknown_template(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["templates", "nope"])
        assert result.exit_code == 1
        assert "Unknown template: nope" in result.output


def test_bad_config_file(runner: CliRunner, tmp_path: Path) -> None:
    config = tmp_path / "reqvars.yaml"
    config.write_text("script_timeout: -1\n")
    result = runner.invoke(cli, ["-c", str(config), "templates"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
