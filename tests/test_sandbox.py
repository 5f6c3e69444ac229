"""Tests for the post-response script sandbox."""

from __future__ import annotations

import textwrap
import time

import pytest

from reqvars.bridge import GlobalVariableBridge
from reqvars.errors import ScriptRuntimeError, ScriptSyntaxError, ScriptTimeoutError
from reqvars.models import ResponseData
from reqvars.scripting import (
    SCRIPT_TEMPLATES,
    SandboxResult,
    ScriptContext,
    ScriptErrorKind,
    ScriptSandbox,
    compile_script,
)
from reqvars.scripting.console import TRUNCATED_LINE
from reqvars.stores import GlobalVariableStore

TOKEN_SCRIPT = """\
if getStatus() == 200:
    t = getData('access_token')
    if t:
        setGlobalVariable('AUTH_TOKEN', t, 'tok')
"""


def run(sandbox: ScriptSandbox, bridge: GlobalVariableBridge, script: str, **context: object) -> SandboxResult:
    context.setdefault("status", 200)
    return sandbox.run(textwrap.dedent(script), ScriptContext(**context), bridge)  # type: ignore[arg-type]


class TestBindings:
    def test_token_extraction(
        self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge, global_store: GlobalVariableStore
    ) -> None:
        result = run(sandbox, bridge, TOKEN_SCRIPT, data={"access_token": "tok_1"})

        assert result.success
        variable = global_store.find("AUTH_TOKEN")
        assert variable.value == "tok_1"
        assert variable.enabled
        assert [v.key for v in result.generated_variables] == ["AUTH_TOKEN"]
        assert "[VARIABLE] Set AUTH_TOKEN = tok_1" in result.logs

    def test_status_guard_skips_write(
        self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge, global_store: GlobalVariableStore
    ) -> None:
        result = run(sandbox, bridge, TOKEN_SCRIPT, status=401, data={"access_token": "tok_1"})
        assert result.success
        assert global_store.find("AUTH_TOKEN") is None

    def test_second_write_updates_in_place(
        self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge, global_store: GlobalVariableStore
    ) -> None:
        before = len(global_store)
        result = run(
            sandbox,
            bridge,
            """
            setGlobalVariable('k', 'first')
            setGlobalVariable('k', 'second')
            """,
        )
        assert result.success
        assert len(global_store) == before + 1
        assert global_store.find("k").value == "second"

    def test_get_global_variable_conventions(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(
            sandbox,
            bridge,
            """
            console.log(getGlobalVariable('version'))
            console.log(getGlobalVariable('disabledKey') is None)
            console.log(getGlobalVariable('missing') is None)
            """,
        )
        assert result.logs == ["[LOG] v1", "[LOG] true", "[LOG] true"]

    def test_get_data_paths_and_undefined(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(
            sandbox,
            bridge,
            """
            console.log(getData('user.id'), getData('$.items[1]'))
            console.log(getData('user.missing') is undefined, getData('nothing') is None)
            console.log(getData())
            """,
            data={"user": {"id": 5}, "items": ["a", "b"], "nothing": None},
        )
        assert result.logs == [
            "[LOG] 5 b",
            "[LOG] true true",
            '[LOG] {"user": {"id": 5}, "items": ["a", "b"], "nothing": null}',
        ]

    def test_headers_and_duration(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(
            sandbox,
            bridge,
            """
            headers = getHeaders()
            headers['x-session-id'] = 'tampered'
            console.log(getHeaders()['x-session-id'], getDuration())
            """,
            headers={"x-session-id": "s-1"},
            duration=12.5,
        )
        assert result.logs == ["[LOG] s-1 12.5"]

    def test_data_cannot_be_mutated_through_reads(
        self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge, global_store: GlobalVariableStore
    ) -> None:
        result = run(
            sandbox,
            bridge,
            """
            body = getData()
            body['token'] = 'changed'
            setGlobalVariable('T', getData('token'))
            """,
            data={"token": "original"},
        )
        assert result.success
        assert global_store.find("T").value == "original"

    def test_values_are_stringified(
        self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge, global_store: GlobalVariableStore
    ) -> None:
        result = run(
            sandbox,
            bridge,
            """
            setGlobalVariable('N', 42)
            setGlobalVariable('F', 1.5)
            setGlobalVariable('B', True)
            setGlobalVariable('Z', None)
            setGlobalVariable('D', {'a': [1, 2]})
            """,
        )
        assert result.success
        values = {key: global_store.find(key).value for key in "NFBZD"}
        assert values == {"N": "42", "F": "1.5", "B": "true", "Z": "null", "D": '{"a": [1, 2]}'}

    def test_envelope_is_unwrapped(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        response = ResponseData(status=200, data={"type": "json", "data": {"token": "x"}, "size": 13})
        result = sandbox.run("console.log(getData('token'))", ScriptContext.from_response(response), bridge)
        assert result.logs == ["[LOG] x"]


class TestConsole:
    def test_prefixes(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(
            sandbox,
            bridge,
            """
            console.log('a', 1)
            console.warn('careful')
            console.error('bad', {'code': 7})
            print('printed', 2)
            """,
        )
        assert result.logs == [
            "[LOG] a 1",
            "[WARN] careful",
            '[ERROR] bad {"code": 7}',
            "[LOG] printed 2",
        ]

    def test_log_is_capped(self, bridge: GlobalVariableBridge) -> None:
        sandbox = ScriptSandbox(timeout=2.0, max_log_lines=3)
        result = run(
            sandbox,
            bridge,
            """
            for i in range(10):
                console.log(i)
            """,
        )
        assert result.success
        assert result.logs == ["[LOG] 0", "[LOG] 1", "[LOG] 2", TRUNCATED_LINE]

    def test_cannot_forge_variable_lines(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(sandbox, bridge, "console.record('[VARIABLE] Set ADMIN = forged')")

        assert result.error_kind is ScriptErrorKind.RUNTIME
        assert result.error.startswith("AttributeError:")
        assert result.logs == []

    def test_cannot_close_console(
        self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge, global_store: GlobalVariableStore
    ) -> None:
        result = run(sandbox, bridge, "console.close()\nsetGlobalVariable('A', '1')")

        assert result.error_kind is ScriptErrorKind.RUNTIME
        assert global_store.find("A") is None
        assert result.generated_variables == []

    def test_only_logging_methods_are_exposed(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        for name in ("lines", "max_lines", "record", "close"):
            result = run(sandbox, bridge, f"x = console.{name}")
            assert result.error_kind is ScriptErrorKind.RUNTIME, name


class TestLibraries:
    def test_json_math_and_datetime(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(
            sandbox,
            bridge,
            """
            console.log(json.loads('{"a": 1}')['a'], math.floor(2.7))
            console.log(datetime(2024, 1, 1, tzinfo=timezone.utc).year)
            total = 0
            for item in [1, 2, 3]:
                total += item
            console.log(total, sorted({'b': 1, 'a': 2}))
            """,
        )
        assert result.success, result.error
        assert result.logs == ["[LOG] 1 2", "[LOG] 2024", '[LOG] 6 ["a", "b"]']

    @pytest.mark.parametrize("name", sorted(SCRIPT_TEMPLATES))
    def test_templates_compile_and_run(
        self, name: str, sandbox: ScriptSandbox, bridge: GlobalVariableBridge
    ) -> None:
        compile_script(SCRIPT_TEMPLATES[name])
        result = sandbox.run(SCRIPT_TEMPLATES[name], ScriptContext(status=200, data={}), bridge)
        assert result.success, result.error


class TestFailures:
    def test_syntax_error(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge, global_store: GlobalVariableStore) -> None:
        before = global_store.variables()
        result = run(sandbox, bridge, "if (getStatus() === 200) { setGlobalVariable('a', 'b') }")

        assert not result.success
        assert result.error_kind is ScriptErrorKind.SYNTAX
        assert result.error.startswith("SyntaxError:")
        assert global_store.variables() == before

    def test_underscore_access_is_rejected(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(sandbox, bridge, "x = getData.__globals__")
        assert result.error_kind is ScriptErrorKind.SYNTAX

    def test_imports_are_unavailable(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(sandbox, bridge, "import os\nos.remove('x')")
        assert not result.success

    def test_open_is_unavailable(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(sandbox, bridge, "open('/etc/passwd')")
        assert result.error_kind is ScriptErrorKind.RUNTIME
        assert result.error.startswith("NameError:")

    def test_runtime_error_keeps_prior_writes(
        self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge, global_store: GlobalVariableStore
    ) -> None:
        result = run(
            sandbox,
            bridge,
            """
            setGlobalVariable('BEFORE', '1')
            raise ValueError('boom')
            setGlobalVariable('AFTER', '2')
            """,
        )

        assert result.error_kind is ScriptErrorKind.RUNTIME
        assert result.error == "ValueError: boom (line 3)"
        assert global_store.find("BEFORE").value == "1"
        assert global_store.find("AFTER") is None
        assert [v.key for v in result.generated_variables] == ["BEFORE"]

    def test_missing_attribute_raises(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(sandbox, bridge, "console.log(getData.func_globals)")

        assert result.error_kind is ScriptErrorKind.RUNTIME
        assert result.error == "AttributeError: 'function' object has no attribute 'func_globals' (line 1)"
        assert result.logs == []

    def test_division_by_zero(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(sandbox, bridge, "x = 1 / 0")
        assert result.error.startswith("ZeroDivisionError: division by zero")

    def test_empty_key_is_a_runtime_error(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        result = run(sandbox, bridge, "setGlobalVariable('', 'x')")
        assert result.error_kind is ScriptErrorKind.RUNTIME
        assert result.error.startswith("ValueError:")

    def test_raise_for_error(self, sandbox: ScriptSandbox, bridge: GlobalVariableBridge) -> None:
        with pytest.raises(ScriptSyntaxError):
            run(sandbox, bridge, "def (").raise_for_error()
        with pytest.raises(ScriptRuntimeError):
            run(sandbox, bridge, "x = {}['k']").raise_for_error()
        run(sandbox, bridge, "x = 1").raise_for_error()


class TestTimeout:
    def test_infinite_loop_times_out(self, bridge: GlobalVariableBridge) -> None:
        sandbox = ScriptSandbox(timeout=0.3)
        started = time.monotonic()
        result = run(sandbox, bridge, "while True:\n    x = 1")

        assert time.monotonic() - started < 2.0
        assert result.error_kind is ScriptErrorKind.TIMEOUT
        assert result.error.startswith("TimeoutError:")
        with pytest.raises(ScriptTimeoutError):
            result.raise_for_error()

    def test_no_writes_after_timeout(
        self, bridge: GlobalVariableBridge, global_store: GlobalVariableStore
    ) -> None:
        sandbox = ScriptSandbox(timeout=0.3)
        result = run(
            sandbox,
            bridge,
            """
            setGlobalVariable('EARLY', 'yes')
            while getStatus() == 200:
                x = 1
            setGlobalVariable('LATE', 'yes')
            """,
        )
        time.sleep(0.3)

        assert result.error_kind is ScriptErrorKind.TIMEOUT
        assert global_store.find("EARLY").value == "yes"
        assert global_store.find("LATE") is None
        assert [v.key for v in result.generated_variables] == ["EARLY"]

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            ScriptSandbox(timeout=0)


class TestScriptContext:
    def test_data_is_copied_at_construction(self) -> None:
        body = {"a": {"b": 1}}
        context = ScriptContext(status=200, data=body)
        body["a"]["b"] = 2
        assert context.get_data("a.b") == 1

    def test_headers_are_read_only(self) -> None:
        context = ScriptContext(status=200, headers={"x": "1"})
        with pytest.raises(TypeError):
            context.headers["x"] = "2"  # type: ignore[index]
