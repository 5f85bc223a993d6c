from __future__ import annotations

from typing import Optional


class LlmcordError(Exception):
    """Base error for the bot."""

    recoverable = True
    severity = "error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class TransientError(LlmcordError):
    """Failure that may succeed when retried."""

    recoverable = True
    severity = "warning"


class PermanentError(LlmcordError):
    """Failure that will not go away on retry."""

    recoverable = False
    severity = "error"


class ConfigError(PermanentError):
    """Invalid or unreadable configuration."""


class TransportError(LlmcordError):
    """A remote message create/edit/delete call failed."""


class UpstreamModelError(TransientError):
    """The language model API failed before or during a stream."""


class CompileError(LlmcordError):
    """Script source could not be compiled by either parse path."""

    def __init__(
        self,
        message: str,
        *,
        expression_error: Optional[BaseException] = None,
        statement_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.expression_error = expression_error
        self.statement_error = statement_error


class ScriptRejected(CompileError):
    """Script parsed but uses a construct outside the capability surface."""


class RuntimeFault(LlmcordError):
    """A script raised while it was running."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.cause = cause
