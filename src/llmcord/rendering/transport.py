from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class RemoteMessage:
    message_id: str
    content: str


class MessageTransport(Protocol):
    """Remote message operations a render session needs from a chat platform."""

    async def create_message(
        self,
        content: str,
        *,
        components: Optional[list[dict[str, Any]]] = None,
        reply_to: Optional[str] = None,
    ) -> RemoteMessage: ...

    async def edit_message(
        self,
        message_id: str,
        *,
        content: Optional[str] = None,
        components: Optional[list[dict[str, Any]]] = None,
    ) -> None: ...

    async def delete_message(self, message_id: str) -> None: ...
