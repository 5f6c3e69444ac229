"""Outcome of one post-script run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from reqvars.errors import SCRIPT_ERRORS_BY_KIND, ErrorContext
from reqvars.models import Variable


class ScriptErrorKind(Enum):
    SYNTAX = "SyntaxError"
    RUNTIME = "RuntimeError"
    TIMEOUT = "TimeoutError"


@dataclass
class SandboxResult:
    """Success, or a failure of one kind, plus whatever the script logged.

    Writes made before a failure are not rolled back; they are listed in
    ``generated_variables`` either way.
    """

    success: bool
    error_kind: ScriptErrorKind | None = None
    error: str | None = None
    logs: list[str] = field(default_factory=list)
    generated_variables: list[Variable] = field(default_factory=list)
    duration_ms: float = 0.0

    @classmethod
    def ok(
        cls,
        logs: list[str],
        generated_variables: list[Variable],
        duration_ms: float = 0.0,
    ) -> SandboxResult:
        return cls(
            success=True,
            logs=logs,
            generated_variables=generated_variables,
            duration_ms=duration_ms,
        )

    @classmethod
    def failure(
        cls,
        kind: ScriptErrorKind,
        message: str,
        logs: list[str] | None = None,
        generated_variables: list[Variable] | None = None,
        duration_ms: float = 0.0,
    ) -> SandboxResult:
        return cls(
            success=False,
            error_kind=kind,
            error=message,
            logs=logs or [],
            generated_variables=generated_variables or [],
            duration_ms=duration_ms,
        )

    def raise_for_error(self, context: ErrorContext | None = None) -> None:
        """Raise the matching ScriptError subclass if the run failed."""
        if self.success or self.error_kind is None:
            return
        error_cls = SCRIPT_ERRORS_BY_KIND[self.error_kind.value]
        raise error_cls(self.error, context=context)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
            "logs": list(self.logs),
            "generated_variables": [v.to_dict() for v in self.generated_variables],
            "duration_ms": round(self.duration_ms, 2),
        }
