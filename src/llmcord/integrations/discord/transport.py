from __future__ import annotations

from typing import Any, Optional

from ...rendering.transport import RemoteMessage
from .errors import DiscordAPIError
from .interactions import RespondableInteraction

# Generated text must never ping anyone.
NO_MENTIONS: dict[str, Any] = {"parse": []}


class InteractionMessageTransport:
    """Message operations for one render session started by an interaction.

    The first message answers the interaction itself; every later message is
    a regular channel message replying to the previous one.
    """

    def __init__(self, interaction: RespondableInteraction) -> None:
        channel_id = interaction.channel_id
        if channel_id is None:
            raise DiscordAPIError("interaction has no channel to render into")
        self._interaction = interaction
        self._rest = interaction.rest
        self._channel_id = channel_id
        self._original_id: Optional[str] = None

    @property
    def channel_id(self) -> str:
        return self._channel_id

    async def create_message(
        self,
        content: str,
        *,
        components: Optional[list[dict[str, Any]]] = None,
        reply_to: Optional[str] = None,
    ) -> RemoteMessage:
        if self._original_id is None and not self._interaction.responded:
            await self._interaction.create_response(content, components=components)
            original = await self._interaction.fetch_own_response()
            message_id = original.get("id")
            if not message_id:
                raise DiscordAPIError("Discord did not return the interaction response id")
            self._original_id = str(message_id)
            return RemoteMessage(message_id=self._original_id, content=content)

        payload: dict[str, Any] = {"content": content, "allowed_mentions": NO_MENTIONS}
        if components is not None:
            payload["components"] = components
        if reply_to is not None:
            payload["message_reference"] = {
                "message_id": reply_to,
                "fail_if_not_exists": False,
            }
        created = await self._rest.create_channel_message(
            channel_id=self._channel_id, payload=payload
        )
        message_id = created.get("id")
        if not message_id:
            raise DiscordAPIError("Discord did not return the created message id")
        return RemoteMessage(message_id=str(message_id), content=content)

    async def edit_message(
        self,
        message_id: str,
        *,
        content: Optional[str] = None,
        components: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        if message_id == self._original_id:
            await self._interaction.edit_own_response(
                content=content, components=components
            )
            return
        payload: dict[str, Any] = {}
        if content is not None:
            payload["content"] = content
        if components is not None:
            payload["components"] = components
        await self._rest.edit_channel_message(
            channel_id=self._channel_id, message_id=message_id, payload=payload
        )

    async def delete_message(self, message_id: str) -> None:
        await self._rest.delete_channel_message(
            channel_id=self._channel_id, message_id=message_id
        )
