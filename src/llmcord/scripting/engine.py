from __future__ import annotations

import enum
import inspect
import logging
from typing import Any, AsyncIterator, Mapping

from ..core.exceptions import RuntimeFault
from ..core.logging_utils import log_event
from ..streams import Data, Error, Token
from .capabilities import SAFE_BUILTINS
from .loader import ENTRYPOINT, CompiledScript, compile_script

logger = logging.getLogger(__name__)


class ScriptState(str, enum.Enum):
    LOADED = "loaded"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"


class ScriptEngine:
    """Drive a compiled script as a resumable coroutine.

    Each resumption yields one primary item: ``Data`` carrying the value the
    script yielded or returned (``None`` for a bare ``yield``), or a final
    ``Error`` wrapping the fault that stopped it. Capability calls never touch
    the host directly; side output travels over the channel the capabilities
    were built with.
    """

    def __init__(self, compiled: CompiledScript, *, capabilities: Mapping[str, Any]) -> None:
        self._compiled = compiled
        self._capabilities = dict(capabilities)
        self._state = ScriptState.LOADED

    @classmethod
    def load(cls, source: str, *, capabilities: Mapping[str, Any]) -> "ScriptEngine":
        return cls(compile_script(source), capabilities=capabilities)

    @property
    def state(self) -> ScriptState:
        return self._state

    @property
    def mode(self) -> str:
        return self._compiled.mode

    def _entrypoint(self) -> Any:
        namespace: dict[str, Any] = {"__builtins__": SAFE_BUILTINS}
        namespace.update(self._capabilities)
        exec(self._compiled.code, namespace)
        return namespace[ENTRYPOINT]

    def _fail(self, exc: Exception) -> Error:
        self._state = ScriptState.FAILED
        log_event(logger, logging.INFO, "script.failed", mode=self.mode, exc=exc)
        return Error(RuntimeFault(exc))

    async def run(self) -> AsyncIterator[Token]:
        if self._state is not ScriptState.LOADED:
            raise RuntimeError(f"script already started (state={self._state.value})")
        entry = self._entrypoint()
        self._state = ScriptState.RUNNING

        if not inspect.isasyncgenfunction(entry):
            try:
                await entry()
            except Exception as exc:
                yield self._fail(exc)
                return
            self._state = ScriptState.COMPLETED
            return

        coroutine = entry()
        try:
            while True:
                self._state = ScriptState.RUNNING
                try:
                    value = await coroutine.asend(None)
                except StopAsyncIteration:
                    self._state = ScriptState.COMPLETED
                    return
                except Exception as exc:
                    yield self._fail(exc)
                    return
                self._state = ScriptState.SUSPENDED
                yield Data(None if value is None else str(value))
        finally:
            await coroutine.aclose()
