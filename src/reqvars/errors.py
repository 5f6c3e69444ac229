"""Exception hierarchy for reqvars.

Every reqvars error carries:
- error_code: an ErrorCode enum member for programmatic handling
- context: ErrorContext with request/script details
- suggestions: actionable steps to resolve the issue

Resolution never raises (unresolved placeholders stay verbatim). Script
failures are captured into a SandboxResult; these exceptions are what
``SandboxResult.raise_for_error()`` produces for callers who prefer them.

Example:
    result = sandbox.run(script, context, bridge)
    try:
        result.raise_for_error()
    except ScriptError as e:
        print(e.format_verbose())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for reqvars.

    Error codes are organized by category:
    - E1xx: Resolution (informational, never raised by the resolver)
    - E2xx: Post-response script errors
    - E3xx: Bridge and scope-store errors
    - E4xx: Transport errors
    - E5xx: Configuration / workspace errors
    - E9xx: Unknown/internal errors
    """

    # Resolution (E1xx)
    UNRESOLVED_VARIABLE = "E101"
    MALFORMED_GENERATOR_ARGS = "E102"

    # Script (E2xx)
    SCRIPT_SYNTAX = "E201"
    SCRIPT_RUNTIME = "E202"
    SCRIPT_TIMEOUT = "E203"

    # Bridge / stores (E3xx)
    BRIDGE_REVOKED = "E301"
    BRIDGE_WRITE_CONFLICT = "E302"
    UNKNOWN_ENVIRONMENT = "E303"
    UNKNOWN_SESSION = "E304"

    # Transport (E4xx)
    TRANSPORT_FAILED = "E401"

    # Configuration (E5xx)
    INVALID_CONFIG = "E501"
    INVALID_WORKSPACE = "E502"

    UNKNOWN = "E999"

    @property
    def category(self) -> str:
        """Get the error category name."""
        code_num = int(self.value[1:])
        if code_num < 200:
            return "resolution"
        elif code_num < 300:
            return "script"
        elif code_num < 400:
            return "state"
        elif code_num < 500:
            return "transport"
        elif code_num < 600:
            return "configuration"
        else:
            return "unknown"


@dataclass
class ErrorContext:
    """Structured context for error logging and debugging.

    Attributes:
        tab_id: Tab that issued the send (if any)
        request: Request summary (method, url)
        response: Response summary (status, duration)
        script: First line of the post-script, for orientation
        extra: Additional context-specific information
        timestamp: When the error occurred
    """

    tab_id: str | None = None
    request: dict[str, Any] | None = None
    response: dict[str, Any] | None = None
    script: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for serialization."""
        result = {
            "tab_id": self.tab_id,
            "request": self.request,
            "response": self.response,
            "script": self.script,
            "extra": self.extra,
            "timestamp": self.timestamp.isoformat(),
        }
        return {k: v for k, v in result.items() if v is not None}

    def format_location(self) -> str:
        """Format the error location as a readable string."""
        parts = []
        if self.tab_id:
            parts.append(f"tab={self.tab_id}")
        if self.request:
            parts.append(f"{self.request.get('method', '?')} {self.request.get('url', '?')}")
        return " > ".join(parts) if parts else "unknown location"


class ReqVarsError(Exception):
    """Base exception for all reqvars errors.

    Attributes:
        error_code: Unique ErrorCode for this error type
        message: Human-readable error description
        context: ErrorContext with execution details
        suggestions: List of actionable steps to resolve the issue
        cause: The underlying exception (if any)
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN
    default_message: str = "An unexpected error occurred"
    default_suggestions: list[str] = []

    def __init__(
        self,
        message: str | None = None,
        error_code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        suggestions: list[str] | None = None,
        **extra_context: Any,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.error_code
        self.context = context or ErrorContext()
        self.cause = cause
        self._suggestions = suggestions

        if extra_context:
            self.context.extra.update(extra_context)

        super().__init__(self.message)

    @property
    def suggestions(self) -> list[str]:
        """Get actionable suggestions for resolving this error."""
        if self._suggestions is not None:
            return self._suggestions
        return self.default_suggestions.copy()

    def __str__(self) -> str:
        parts = [f"[{self.error_code.value}] {self.message}"]
        location = self.context.format_location()
        if location != "unknown location":
            parts.append(f"at {location}")
        return " | ".join(parts)

    def format_verbose(self) -> str:
        """Format error with full details including suggestions."""
        lines = [f"Error [{self.error_code.value}]: {self.message}", ""]

        location = self.context.format_location()
        if location != "unknown location":
            lines.append(f"Location: {location}")

        if self.context.response:
            status = self.context.response.get("status", "?")
            lines.append(f"Response: HTTP {status}")

        if self.context.script:
            lines.append(f"Script: {self.context.script}")

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for suggestion in self.suggestions:
                lines.append(f"  - {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_code": self.error_code.value,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "suggestions": self.suggestions,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


class ScriptError(ReqVarsError):
    """A post-response script did not complete.

    Script errors terminate only the script phase. The HTTP exchange that
    preceded the script stays successful and its response stays usable.
    """

    error_code = ErrorCode.SCRIPT_RUNTIME
    default_message = "Post-response script failed"
    kind: str = "RuntimeError"


class ScriptSyntaxError(ScriptError):
    """The script could not be compiled."""

    error_code = ErrorCode.SCRIPT_SYNTAX
    default_message = "Post-response script has a syntax error"
    kind = "SyntaxError"
    default_suggestions = [
        "Scripts are Python: use 'if getStatus() == 200:' rather than JavaScript braces",
        "Names starting with an underscore and 'import' statements are not allowed",
    ]


class ScriptRuntimeError(ScriptError):
    """The script raised while executing."""

    error_code = ErrorCode.SCRIPT_RUNTIME
    default_message = "Post-response script raised an exception"
    kind = "RuntimeError"
    default_suggestions = [
        "getData(path) returns 'undefined' for missing paths; check it before use",
        "Use console.log(...) to inspect values while developing the script",
    ]


class ScriptTimeoutError(ScriptError):
    """The script exceeded the configured execution ceiling."""

    error_code = ErrorCode.SCRIPT_TIMEOUT
    default_message = "Post-response script timed out"
    kind = "TimeoutError"
    default_suggestions = [
        "Look for unbounded loops in the script",
        "Raise REQVARS_SCRIPT_TIMEOUT if the script legitimately needs more time",
    ]


class ScriptInterrupt(BaseException):
    """Raised inside a script thread to stop it at the deadline.

    Derives from BaseException so ``except Exception`` blocks inside user
    scripts do not swallow it.
    """


class BridgeRevokedError(ScriptInterrupt):
    """A script called the bridge after its run was finished or timed out."""


class UnknownEnvironmentError(ReqVarsError):
    """Referenced environment does not exist."""

    error_code = ErrorCode.UNKNOWN_ENVIRONMENT
    default_message = "Environment not found"

    def __init__(self, name: str, available: list[str] | None = None, **kwargs: Any) -> None:
        self.name = name
        self.available = available or []
        kwargs.setdefault(
            "suggestions",
            [f"Available environments: {', '.join(self.available) or '(none)'}"],
        )
        super().__init__(message=f"Environment '{name}' not found", **kwargs)


class UnknownSessionError(ReqVarsError):
    """Referenced session does not exist."""

    error_code = ErrorCode.UNKNOWN_SESSION
    default_message = "Session not found"

    def __init__(self, session_id: str, **kwargs: Any) -> None:
        self.session_id = session_id
        super().__init__(message=f"Session '{session_id}' not found", **kwargs)


class TransportError(ReqVarsError):
    """The external transport could not produce a response."""

    error_code = ErrorCode.TRANSPORT_FAILED
    default_message = "Request could not be sent"
    default_suggestions = [
        "Check the resolved URL; unresolved {{placeholders}} stay in the URL verbatim",
        "Verify the target host is reachable",
    ]


class ConfigurationError(ReqVarsError):
    """Invalid engine configuration."""

    error_code = ErrorCode.INVALID_CONFIG
    default_message = "Invalid configuration"


class WorkspaceError(ReqVarsError):
    """A workspace file could not be read or has the wrong shape."""

    error_code = ErrorCode.INVALID_WORKSPACE
    default_message = "Invalid workspace file"
    default_suggestions = [
        "A workspace is YAML with 'globals', 'environments' and 'sessions' keys",
    ]


SCRIPT_ERRORS_BY_KIND: dict[str, type[ScriptError]] = {
    ScriptSyntaxError.kind: ScriptSyntaxError,
    ScriptRuntimeError.kind: ScriptRuntimeError,
    ScriptTimeoutError.kind: ScriptTimeoutError,
}
