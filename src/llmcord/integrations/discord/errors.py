from __future__ import annotations

from typing import Optional

from ...core.exceptions import (
    ConfigError,
    LlmcordError,
    PermanentError,
    TransientError,
    TransportError,
)


class DiscordError(LlmcordError):
    """Base Discord integration error."""


class DiscordConfigError(DiscordError, ConfigError):
    """Discord integration configuration error."""


class DiscordAPIError(DiscordError, TransportError):
    """Discord API request error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.status_code = status_code
        self.retry_after = retry_after


class DiscordTransientError(DiscordAPIError, TransientError):
    """Retryable Discord API error (rate limits, network issues)."""

    recoverable = TransientError.recoverable
    severity = TransientError.severity


class DiscordPermanentError(DiscordAPIError, PermanentError):
    """Non-retryable Discord API error (bad token, missing permissions)."""

    recoverable = PermanentError.recoverable
    severity = PermanentError.severity
