"""Restricted, time-bounded execution of post-response scripts.

Scripts are Python compiled with RestrictedPython: no imports, no access to
underscore attributes, no file or network builtins. The only way out of the
sandbox is the fixed set of bindings below.

Bindings available to a script::

    getData(path=None)     decoded body, or the value at a path (deep copy)
    getStatus()            HTTP status code
    getHeaders()           copy of the response headers
    getDuration()          elapsed milliseconds
    setGlobalVariable(key, value, description=None)
    getGlobalVariable(key) value, or None if missing or disabled
    console.log / console.warn / console.error / print
    json, math, datetime, timedelta, timezone, undefined

Each run executes on its own worker thread. A line tracer installed in that
thread stops the script once the deadline passes; the calling thread stops
waiting at the same deadline and revokes the run's bridge handle, so a
script stuck in a long native call cannot write anything afterwards.
"""

from __future__ import annotations

import json
import logging
import math
import operator
import sys
import threading
import time
import traceback
import uuid
from datetime import datetime, timedelta, timezone
from types import CodeType, FrameType, SimpleNamespace
from typing import Any, Callable

from RestrictedPython import compile_restricted_exec, safe_builtins
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)

from reqvars.bridge import GlobalVariableBridge, ScriptBridgeHandle
from reqvars.errors import ErrorCode, ScriptInterrupt
from reqvars.paths import UNDEFINED
from reqvars.scripting.console import ConsolePrinter, ScriptConsole, to_text
from reqvars.scripting.context import ScriptContext
from reqvars.scripting.result import SandboxResult, ScriptErrorKind

logger = logging.getLogger(__name__)

SCRIPT_FILENAME = "<post-script>"
DEFAULT_SCRIPT_TIMEOUT = 5.0
DEFAULT_MAX_LOG_LINES = 500

_EXTRA_BUILTINS: dict[str, Any] = {
    "dict": dict,
    "list": list,
    "set": set,
    "frozenset": frozenset,
    "min": min,
    "max": max,
    "sum": sum,
    "any": any,
    "all": all,
    "enumerate": enumerate,
    "map": map,
    "filter": filter,
    "reversed": reversed,
}

_INPLACE_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
    "&=": operator.iand,
    "|=": operator.ior,
    "^=": operator.ixor,
}


def _inplacevar(op: str, target: Any, value: Any) -> Any:
    try:
        return _INPLACE_OPERATORS[op](target, value)
    except KeyError:
        raise TypeError(f"unsupported augmented assignment: {op}") from None


_MISSING = object()


def guarded_getattr(obj: Any, name: str, *default: Any) -> Any:
    """``safer_getattr`` that raises AttributeError for missing names instead of returning None."""
    if default:
        return safer_getattr(obj, name, default[0])
    value = safer_getattr(obj, name, _MISSING)
    if value is _MISSING:
        raise AttributeError(f"{type(obj).__name__!r} object has no attribute {name!r}")
    return value


def _script_builtins() -> dict[str, Any]:
    builtins = dict(safe_builtins)
    builtins.update(_EXTRA_BUILTINS)
    # Scripts must not catch the deadline interrupt or exit the worker thread.
    for name in ("BaseException", "SystemExit", "KeyboardInterrupt", "GeneratorExit"):
        builtins.pop(name, None)
    return builtins


def compile_script(script: str) -> CodeType:
    """Compile ``script`` under the restricted policy.

    Raises:
        SyntaxError: On invalid Python or on constructs the policy forbids
            (imports, underscore names, exec/eval).
    """
    result = compile_restricted_exec(script, filename=SCRIPT_FILENAME)
    if result.errors:
        raise SyntaxError("; ".join(result.errors))
    return result.code


class _ScriptRun:
    """Mutable state of one run, shared by the bindings and the worker thread."""

    def __init__(
        self,
        context: ScriptContext,
        handle: ScriptBridgeHandle,
        console: ScriptConsole,
        deadline: float,
    ) -> None:
        self.context = context
        self.handle = handle
        self.console = console
        self.deadline = deadline
        self.stopped = threading.Event()
        self.printers: list[ConsolePrinter] = []
        self.error: BaseException | None = None
        self.interrupted = False

    def check(self) -> None:
        if self.stopped.is_set() or time.monotonic() > self.deadline:
            raise ScriptInterrupt("script deadline reached")

    def stop(self) -> None:
        self.stopped.set()
        self.handle.revoke()
        self.console.close()

    def tracer(self, frame: FrameType, event: str, arg: Any) -> Any:
        # Only script frames are traced; library code runs uninterrupted.
        if frame.f_code.co_filename != SCRIPT_FILENAME:
            return None
        self.check()
        return self.tracer

    def printer(self, _getattr_: Any = None) -> ConsolePrinter:
        printer = ConsolePrinter(self.console, _getattr_)
        self.printers.append(printer)
        return printer


def build_restricted_globals(run: _ScriptRun) -> dict[str, Any]:
    """Globals for one script run: guards, safe builtins and the bindings."""
    context = run.context

    def getData(path: str | None = None) -> Any:
        run.check()
        return context.get_data(path)

    def getStatus() -> int:
        run.check()
        return context.status

    def getHeaders() -> dict[str, str]:
        run.check()
        return context.get_headers()

    def getDuration() -> float:
        run.check()
        return context.duration

    def setGlobalVariable(key: Any, value: Any, description: Any = None) -> None:
        run.check()
        if not isinstance(key, str) or not key:
            raise ValueError("setGlobalVariable requires a non-empty string key")
        text = to_text(value)
        desc = None if description is None or description is UNDEFINED else to_text(description)
        run.handle.set_global_variable(key, text, desc)
        run.console.record(f"[VARIABLE] Set {key} = {text}")

    def getGlobalVariable(key: Any) -> str | None:
        run.check()
        if not isinstance(key, str) or not key:
            return None
        return run.handle.get_global_variable(key)

    return {
        "__builtins__": _script_builtins(),
        "__name__": "post_script",
        "__metaclass__": type,
        "_getattr_": guarded_getattr,
        "_getitem_": default_guarded_getitem,
        "_getiter_": default_guarded_getiter,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_write_": full_write_guard,
        "_inplacevar_": _inplacevar,
        "_print_": run.printer,
        "getData": getData,
        "getStatus": getStatus,
        "getHeaders": getHeaders,
        "getDuration": getDuration,
        "setGlobalVariable": setGlobalVariable,
        "getGlobalVariable": getGlobalVariable,
        "console": SimpleNamespace(
            log=run.console.log,
            info=run.console.info,
            warn=run.console.warn,
            error=run.console.error,
        ),
        "json": SimpleNamespace(loads=json.loads, dumps=json.dumps),
        "math": math,
        "datetime": datetime,
        "timedelta": timedelta,
        "timezone": timezone,
        "undefined": UNDEFINED,
        "null": None,
    }


def _describe(exc: BaseException) -> str:
    """``Type: message``, plus the script line number when one is known."""
    message = f"{type(exc).__name__}: {exc}"
    lineno = None
    for frame, line in traceback.walk_tb(exc.__traceback__):
        if frame.f_code.co_filename == SCRIPT_FILENAME:
            lineno = line
    if lineno is not None:
        message += f" (line {lineno})"
    return message


class ScriptSandbox:
    """Runs post-scripts against a response with a wall-clock limit.

    Script failures are returned, never raised: a SyntaxError is reported
    before anything runs, a RuntimeError keeps whatever the script had
    already written, and a TimeoutError is returned at the deadline even if
    the script is still running.

    Example:
        >>> sandbox = ScriptSandbox(timeout=2.0)
        >>> result = sandbox.run(
        ...     "if getStatus() == 200:\\n"
        ...     "    setGlobalVariable('TOKEN', getData('access_token'))",
        ...     ScriptContext(status=200, data={"access_token": "abc"}),
        ...     bridge,
        ... )
        >>> result.success
        True
    """

    def __init__(
        self,
        timeout: float = DEFAULT_SCRIPT_TIMEOUT,
        max_log_lines: int = DEFAULT_MAX_LOG_LINES,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self.max_log_lines = max_log_lines

    @classmethod
    def from_config(cls, config: Any) -> ScriptSandbox:
        return cls(timeout=config.script_timeout, max_log_lines=config.max_log_lines)

    def _execute(self, code: CodeType, globals_: dict[str, Any], run: _ScriptRun) -> None:
        sys.settrace(run.tracer)
        try:
            exec(code, globals_)
        except ScriptInterrupt:
            run.interrupted = True
        except Exception as exc:
            run.error = exc
        finally:
            sys.settrace(None)
            for printer in run.printers:
                try:
                    printer.flush()
                except ScriptInterrupt:
                    break

    def run(
        self,
        script: str,
        context: ScriptContext,
        bridge: GlobalVariableBridge,
        *,
        owner: str = "",
    ) -> SandboxResult:
        """Execute ``script`` once. Always returns; the bridge handle is revoked on return."""
        start = time.perf_counter()
        owner = owner or uuid.uuid4().hex[:8]

        try:
            code = compile_script(script)
        except SyntaxError as exc:
            message = f"SyntaxError: {exc}"
            logger.info(f"[{ErrorCode.SCRIPT_SYNTAX.value}] post-script rejected: {message}")
            return SandboxResult.failure(
                ScriptErrorKind.SYNTAX,
                message,
                duration_ms=(time.perf_counter() - start) * 1000,
            )

        console = ScriptConsole(max_lines=self.max_log_lines)
        handle = bridge.open_handle(owner)
        run = _ScriptRun(context, handle, console, deadline=time.monotonic() + self.timeout)
        globals_ = build_restricted_globals(run)

        worker = threading.Thread(
            target=self._execute,
            args=(code, globals_, run),
            name=f"post-script-{owner}",
            daemon=True,
        )
        try:
            worker.start()
            worker.join(self.timeout)
            timed_out = worker.is_alive() or run.interrupted
        finally:
            run.stop()

        duration_ms = (time.perf_counter() - start) * 1000
        logs = console.lines
        generated = handle.written

        if timed_out:
            message = f"TimeoutError: script exceeded {self.timeout:g}s"
            logger.warning(f"[{ErrorCode.SCRIPT_TIMEOUT.value}] post-script {owner}: {message}")
            return SandboxResult.failure(ScriptErrorKind.TIMEOUT, message, logs, generated, duration_ms)

        if run.error is not None:
            message = _describe(run.error)
            logger.info(f"[{ErrorCode.SCRIPT_RUNTIME.value}] post-script {owner}: {message}")
            return SandboxResult.failure(ScriptErrorKind.RUNTIME, message, logs, generated, duration_ms)

        logger.debug(
            f"post-script {owner} finished in {duration_ms:.1f}ms, "
            f"{len(generated)} variable(s) written"
        )
        return SandboxResult.ok(logs, generated, duration_ms)
