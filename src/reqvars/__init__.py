"""reqvars: placeholder resolution and sandboxed post-response scripts.

Example:
    >>> from reqvars import GlobalVariableStore, RequestEngine, RequestDefinition
    >>> engine = RequestEngine(GlobalVariableStore())
    >>> outcome = engine.send(RequestDefinition(url="https://example.com"), tab_id="tab-1")
"""

from reqvars.bridge import GlobalVariableBridge
from reqvars.config import EngineConfig, load_config
from reqvars.engine import RequestEngine, SendOutcome, SendPhase
from reqvars.errors import ErrorCode, ReqVarsError, ScriptError
from reqvars.models import (
    AuthConfig,
    KeyValuePair,
    RequestDefinition,
    ResponseData,
    Variable,
    VariableSource,
)
from reqvars.paths import UNDEFINED, get_value_by_path
from reqvars.scripting import SandboxResult, ScriptContext, ScriptSandbox
from reqvars.stores import EnvironmentStore, GlobalVariableStore, SessionStore
from reqvars.variables import (
    DynamicVariableProvider,
    ScopeSnapshot,
    TemplateResolver,
    VariableScopeStack,
)

__version__ = "0.1.0"

__all__ = [
    "UNDEFINED",
    "AuthConfig",
    "DynamicVariableProvider",
    "EngineConfig",
    "EnvironmentStore",
    "ErrorCode",
    "GlobalVariableBridge",
    "GlobalVariableStore",
    "KeyValuePair",
    "ReqVarsError",
    "RequestDefinition",
    "RequestEngine",
    "ResponseData",
    "SandboxResult",
    "ScopeSnapshot",
    "ScriptContext",
    "ScriptError",
    "ScriptSandbox",
    "SendOutcome",
    "SendPhase",
    "SessionStore",
    "TemplateResolver",
    "Variable",
    "VariableScopeStack",
    "VariableSource",
    "get_value_by_path",
    "load_config",
]
