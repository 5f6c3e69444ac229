"""``console.log / warn / error`` for scripts, captured into the result."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from reqvars.errors import ScriptInterrupt
from reqvars.paths import UNDEFINED

logger = logging.getLogger(__name__)

TRUNCATED_LINE = "[WARN] log truncated"


def to_text(value: Any) -> str:
    """Render a script value as text: strings as is, the rest as JSON."""
    if isinstance(value, str):
        return value
    if value is UNDEFINED:
        return "undefined"
    return json.dumps(value, ensure_ascii=False, default=str)


class ScriptConsole:
    """Collects prefixed log lines, up to ``max_lines``.

    Once closed (the run ended or timed out) any further call stops the
    calling script instead of recording anything.
    """

    def __init__(self, max_lines: int = 500) -> None:
        self.max_lines = max_lines
        self._lines: list[str] = []
        self._truncated = False
        self._closed = False
        self._lock = threading.Lock()

    def _emit(self, prefix: str, args: tuple[Any, ...]) -> None:
        self.record(f"{prefix} " + " ".join(to_text(arg) for arg in args))

    def record(self, line: str) -> None:
        with self._lock:
            if self._closed:
                raise ScriptInterrupt("console is closed")
            if len(self._lines) >= self.max_lines:
                self._truncated = True
                return
            self._lines.append(line)
        logger.debug(line)

    def log(self, *args: Any) -> None:
        self._emit("[LOG]", args)

    def info(self, *args: Any) -> None:
        self._emit("[LOG]", args)

    def warn(self, *args: Any) -> None:
        self._emit("[WARN]", args)

    def error(self, *args: Any) -> None:
        self._emit("[ERROR]", args)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def lines(self) -> list[str]:
        with self._lock:
            lines = list(self._lines)
            if self._truncated:
                lines.append(TRUNCATED_LINE)
            return lines


class ConsolePrinter:
    """Target for ``print(...)`` inside scripts; each printed line becomes console.log."""

    def __init__(self, console: ScriptConsole, _getattr_: Any = None) -> None:
        self._console = console
        self._getattr_ = _getattr_
        self._pending = ""

    def write(self, text: str) -> None:
        self._pending += text
        while "\n" in self._pending:
            line, self._pending = self._pending.split("\n", 1)
            self._console.record(f"[LOG] {line}")

    def flush(self) -> None:
        if self._pending:
            pending, self._pending = self._pending, ""
            self._console.record(f"[LOG] {pending}")

    def _call_print(self, *objects: Any, **kwargs: Any) -> None:
        kwargs.pop("file", None)
        print(*objects, file=self, **kwargs)

    def __call__(self) -> str:
        return ""
