"""Post-response scripting: context, sandbox and results."""

from reqvars.scripting.console import ScriptConsole, to_text
from reqvars.scripting.context import ScriptContext, unwrap_body
from reqvars.scripting.result import SandboxResult, ScriptErrorKind
from reqvars.scripting.sandbox import (
    DEFAULT_MAX_LOG_LINES,
    DEFAULT_SCRIPT_TIMEOUT,
    ScriptSandbox,
    build_restricted_globals,
    compile_script,
)
from reqvars.scripting.templates import SCRIPT_TEMPLATES

__all__ = [
    "DEFAULT_MAX_LOG_LINES",
    "DEFAULT_SCRIPT_TIMEOUT",
    "SCRIPT_TEMPLATES",
    "SandboxResult",
    "ScriptConsole",
    "ScriptContext",
    "ScriptErrorKind",
    "ScriptSandbox",
    "build_restricted_globals",
    "compile_script",
    "to_text",
    "unwrap_body",
]
