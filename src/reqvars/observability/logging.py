"""Log formatting and per-send logging context.

Modules log through ``logging.getLogger(__name__)`` as usual. This module
only decides how records leave the process:

- ``StructuredFormatter``: one JSON object per line, for log shippers
- ``HumanReadableFormatter``: coloured single lines for a terminal

Both append the fields bound with ``log_context`` (``tab_id``, ``send_id``,
...), which follow the current thread or task via contextvars.

Example::

    configure_logging(level="DEBUG", json_format=True)

    with log_context(tab_id="tab-1", send_id="3f2a"):
        logger.info("sending")  # carries tab_id and send_id
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import IO, Any

ROOT_LOGGER = "reqvars"

_context_fields: ContextVar[dict[str, Any] | None] = ContextVar("reqvars_log_context", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter.

    Example:
        >>> handler.setFormatter(StructuredFormatter(include_location=True))
    """

    def __init__(
        self,
        include_location: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.include_location = include_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_location:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        context = _context_fields.get()
        if context:
            log_data["context"] = dict(context)

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in self.extra_fields.items():
            log_data.setdefault(key, value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """Single-line coloured output for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, stream: IO[str] | None = None) -> None:
        super().__init__()
        self.use_colors = use_colors and self._supports_color(stream or sys.stderr)

    @staticmethod
    def _supports_color(stream: IO[str]) -> bool:
        if os.environ.get("NO_COLOR"):
            return False
        return hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            level = f"{color}{record.levelname:8}{self.RESET}"
        else:
            level = f"{record.levelname:8}"

        line = f"{timestamp} {level} [{record.name}] {record.getMessage()}"

        context = _context_fields.get()
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: IO[str] | None = None,
    include_location: bool = False,
) -> logging.Logger:
    """Attach a single handler to the ``reqvars`` logger.

    Calling it again replaces the previous handler, so the CLI can
    reconfigure after reading ``-v`` or a config file.

    Example:
        >>> configure_logging(level="DEBUG", json_format=True)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    output = stream or sys.stderr
    handler = logging.StreamHandler(output)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(StructuredFormatter(include_location=include_location))
    else:
        handler.setFormatter(HumanReadableFormatter(stream=output))

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    return root


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind fields to every record logged inside the block.

    Example:
        >>> with log_context(tab_id="tab-1"):
        ...     logger.info("resolving")
    """
    current = dict(_context_fields.get() or {})
    current.update(kwargs)
    token = _context_fields.set(current)
    try:
        yield
    finally:
        _context_fields.reset(token)


def get_context() -> dict[str, Any]:
    """Copy of the fields currently bound by ``log_context``."""
    return dict(_context_fields.get() or {})
