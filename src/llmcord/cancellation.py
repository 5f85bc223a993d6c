from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional

from .core.logging_utils import log_event

CANCEL_ID_BASE = "cancel"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CancelToken:
    session_id: int
    requester_id: int

    def encode(self) -> str:
        return f"{CANCEL_ID_BASE}#{self.session_id}#{self.requester_id}"

    @classmethod
    def parse(cls, custom_id: str) -> Optional["CancelToken"]:
        parts = custom_id.split("#")
        if len(parts) != 3 or parts[0] != CANCEL_ID_BASE:
            return None
        session_raw, requester_raw = parts[1], parts[2]
        if not (session_raw.isdigit() and requester_raw.isdigit()):
            return None
        return cls(session_id=int(session_raw), requester_id=int(requester_raw))

    def allows(self, user_id: object) -> bool:
        return str(user_id).strip() == str(self.requester_id)


class CancellationListener:
    """One subscriber's view of the cancellation channel."""

    def __init__(self, registry: "CancellationRegistry") -> None:
        self._registry = registry
        self._pending: deque[int] = deque()

    def _deliver(self, session_id: int) -> None:
        self._pending.append(session_id)

    def try_take(self, session_id: int) -> bool:
        """Drain every queued signal; report whether any was for ``session_id``."""
        matched = False
        while self._pending:
            if self._pending.popleft() == session_id:
                matched = True
        return matched

    def close(self) -> None:
        self._registry.unsubscribe(self)
        self._pending.clear()

    def __enter__(self) -> "CancellationListener":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()


class CancellationRegistry:
    """Process-wide broadcast of cancellation signals keyed by session id.

    Every listener sees every signal sent after it subscribed. Listeners are
    polled, never awaited, so a session observes cancellation at its next
    stream step.
    """

    def __init__(self) -> None:
        self._listeners: list[CancellationListener] = []

    def subscribe(self) -> CancellationListener:
        listener = CancellationListener(self)
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: CancellationListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def signal(self, session_id: int) -> None:
        log_event(
            logger,
            logging.INFO,
            "cancel.signal",
            session_id=session_id,
            listener_count=len(self._listeners),
        )
        for listener in list(self._listeners):
            listener._deliver(session_id)
