"""The send cycle: resolve, send, then run the post-script.

Phases of one send::

    IDLE -> RESOLVING -> SENDING -> COMPLETED | TRANSPORT_FAILED
         -> SCRIPT_RUNNING -> SCRIPT_COMPLETED | SCRIPT_FAILED -> IDLE

SCRIPT_RUNNING is entered only when a script is configured and a response
exists. A script failure never changes the outcome of the exchange itself.

Sends from different tabs may run concurrently on the engine's thread pool.
The Global collection is the only state they share, and scripts reach it
only through the engine's GlobalVariableBridge.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from reqvars.adapters.http import HttpxTransport, Transport
from reqvars.bridge import GlobalVariableBridge
from reqvars.config import EngineConfig
from reqvars.errors import ErrorCode, TransportError
from reqvars.models import RequestDefinition, ResponseData
from reqvars.observability.logging import log_context
from reqvars.scripting import SandboxResult, ScriptContext, ScriptSandbox
from reqvars.stores import EnvironmentStore, GlobalVariableStore, SessionStore
from reqvars.variables import ScopeSnapshot, TemplateResolver, VariableScopeStack

logger = logging.getLogger(__name__)


class SendPhase(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    SENDING = "sending"
    COMPLETED = "completed"
    TRANSPORT_FAILED = "transport_failed"
    SCRIPT_RUNNING = "script_running"
    SCRIPT_COMPLETED = "script_completed"
    SCRIPT_FAILED = "script_failed"


@dataclass
class SendOutcome:
    """Everything that happened during one send."""

    send_id: str
    tab_id: str
    request: RequestDefinition
    resolved_request: RequestDefinition | None = None
    response: ResponseData | None = None
    error: str | None = None
    script_result: SandboxResult | None = None
    unresolved: list[str] = field(default_factory=list)
    phases: list[SendPhase] = field(default_factory=list)

    @property
    def transport_failed(self) -> bool:
        return SendPhase.TRANSPORT_FAILED in self.phases

    @property
    def script_failed(self) -> bool:
        return self.script_result is not None and not self.script_result.success

    @property
    def completed(self) -> bool:
        return SendPhase.COMPLETED in self.phases

    def to_dict(self) -> dict[str, Any]:
        return {
            "send_id": self.send_id,
            "tab_id": self.tab_id,
            "request": str(self.resolved_request or self.request),
            "response": self.response.summary() if self.response else None,
            "error": self.error,
            "script": self.script_result.to_dict() if self.script_result else None,
            "unresolved": list(self.unresolved),
            "phases": [phase.value for phase in self.phases],
        }


class RequestEngine:
    """Runs the send cycle for any number of tabs.

    Example:
        >>> engine = RequestEngine(GlobalVariableStore(), transport=HttpxTransport())
        >>> outcome = engine.send(request, tab_id="tab-1")
        >>> outcome.response.status
        200
        >>> future = engine.submit(request, tab_id="tab-2", on_complete=render)
    """

    def __init__(
        self,
        global_store: GlobalVariableStore,
        environment_store: EnvironmentStore | None = None,
        session_store: SessionStore | None = None,
        transport: Transport | None = None,
        sandbox: ScriptSandbox | None = None,
        config: EngineConfig | None = None,
        resolver: TemplateResolver | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.global_store = global_store
        self.environment_store = environment_store
        self.session_store = session_store
        self.scopes = VariableScopeStack(global_store, environment_store, session_store)
        self.bridge = GlobalVariableBridge(global_store)
        self.resolver = resolver or TemplateResolver()
        self.sandbox = sandbox or ScriptSandbox.from_config(self.config)
        self.transport = transport or HttpxTransport(
            timeout=self.config.transport_timeout,
            verify=self.config.verify_tls,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_sends,
            thread_name_prefix="reqvars-send-",
        )
        self._closed_tabs: set[str] = set()
        # Bumped on close; a callback fires only for the generation it was submitted under.
        self._tab_generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def snapshot(self, session_id: str | None = None) -> ScopeSnapshot:
        return self.scopes.snapshot(session_id)

    def resolve(self, request: RequestDefinition, session_id: str | None = None) -> RequestDefinition:
        """Resolve every templated surface of ``request`` against a fresh snapshot."""
        return self.resolver.resolve_request(request, self.snapshot(session_id))

    def run_post_script(
        self, script: str, response: ResponseData, *, owner: str = ""
    ) -> SandboxResult:
        return self.sandbox.run(script, ScriptContext.from_response(response), self.bridge, owner=owner)

    def send(
        self,
        request: RequestDefinition,
        *,
        tab_id: str,
        session_id: str | None = None,
        post_script: str | None = None,
    ) -> SendOutcome:
        """Run one full send cycle synchronously.

        Args:
            request: The request as authored (may contain placeholders).
            tab_id: Tab issuing the send.
            session_id: Session whose variables take part in resolution;
                defaults to the active session.
            post_script: Script to run after the response. None means the
                request's own ``post_script``.

        Returns:
            The SendOutcome. Transport and script failures are recorded on
            it, never raised.
        """
        send_id = uuid.uuid4().hex[:12]
        outcome = SendOutcome(send_id=send_id, tab_id=tab_id, request=request)
        outcome.phases.append(SendPhase.IDLE)
        script = request.post_script if post_script is None else post_script

        with log_context(tab_id=tab_id, send_id=send_id):
            outcome.phases.append(SendPhase.RESOLVING)
            snapshot = self.snapshot(session_id)
            resolved = self.resolver.resolve_request(request, snapshot)
            outcome.resolved_request = resolved
            outcome.unresolved = self.resolver.unresolved(resolved.url, snapshot)
            if outcome.unresolved:
                logger.info(
                    f"[{ErrorCode.UNRESOLVED_VARIABLE.value}] unresolved in URL: "
                    f"{', '.join(outcome.unresolved)}"
                )

            outcome.phases.append(SendPhase.SENDING)
            logger.info(f"Sending {resolved.method} {resolved.url}")
            try:
                response = self.transport.send(resolved)
            except Exception as e:
                outcome.error = e.message if isinstance(e, TransportError) else f"{type(e).__name__}: {e}"
                outcome.phases.append(SendPhase.TRANSPORT_FAILED)
                outcome.phases.append(SendPhase.IDLE)
                logger.warning(f"[{ErrorCode.TRANSPORT_FAILED.value}] {outcome.error}")
                return outcome

            outcome.response = response
            outcome.phases.append(SendPhase.COMPLETED)
            logger.info(f"Completed with HTTP {response.status} in {response.duration:.0f}ms")

            if script and script.strip():
                outcome.phases.append(SendPhase.SCRIPT_RUNNING)
                result = self.run_post_script(script, response, owner=send_id)
                outcome.script_result = result
                if result.success:
                    outcome.phases.append(SendPhase.SCRIPT_COMPLETED)
                else:
                    outcome.phases.append(SendPhase.SCRIPT_FAILED)
                    outcome.error = result.error

            outcome.phases.append(SendPhase.IDLE)
        return outcome

    def submit(
        self,
        request: RequestDefinition,
        *,
        tab_id: str,
        session_id: str | None = None,
        post_script: str | None = None,
        on_complete: Callable[[SendOutcome], None] | None = None,
    ) -> Future[SendOutcome]:
        """Run ``send`` on the thread pool.

        ``on_complete`` is called with the outcome only if the tab has not
        been closed since this send was submitted, even if it was reopened.
        """
        generation = self.open_tab(tab_id)

        def task() -> SendOutcome:
            outcome = self.send(request, tab_id=tab_id, session_id=session_id, post_script=post_script)
            if on_complete is not None:
                if self._is_current(tab_id, generation):
                    try:
                        on_complete(outcome)
                    except Exception:
                        logger.exception(f"on_complete callback for tab {tab_id} failed")
                else:
                    logger.debug(f"Tab {tab_id} closed, dropping callback for send {outcome.send_id}")
            return outcome

        return self._executor.submit(task)

    def open_tab(self, tab_id: str) -> int:
        """Mark ``tab_id`` open and return its current generation."""
        with self._lock:
            self._closed_tabs.discard(tab_id)
            return self._tab_generations.get(tab_id, 0)

    def close_tab(self, tab_id: str) -> None:
        """Stop delivering callbacks for ``tab_id``.

        Sends already running keep going; their Global writes still apply.
        """
        with self._lock:
            self._closed_tabs.add(tab_id)
            self._tab_generations[tab_id] = self._tab_generations.get(tab_id, 0) + 1
        logger.debug(f"Tab {tab_id} closed")

    def is_tab_open(self, tab_id: str) -> bool:
        with self._lock:
            return tab_id not in self._closed_tabs

    def _is_current(self, tab_id: str, generation: int) -> bool:
        with self._lock:
            return tab_id not in self._closed_tabs and self._tab_generations.get(tab_id, 0) == generation

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        close = getattr(self.transport, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> RequestEngine:
        return self

    def __exit__(self, *args: Any) -> None:
        self.shutdown()
