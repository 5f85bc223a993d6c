from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Optional

from ...core.logging_utils import log_event
from .constants import (
    CALLBACK_CHANNEL_MESSAGE,
    CALLBACK_DEFERRED_UPDATE_MESSAGE,
    DISCORD_EPHEMERAL_FLAG,
    DISCORD_MAX_MESSAGE_LENGTH,
    INTERACTION_TYPE_APPLICATION_COMMAND,
    INTERACTION_TYPE_MESSAGE_COMPONENT,
    INTERACTION_TYPE_MODAL_SUBMIT,
)
from .rendering import truncate_for_discord

if TYPE_CHECKING:
    from .rest import DiscordRestClient

logger = logging.getLogger(__name__)

APPLICATION_COMMAND_CHAT_INPUT = 1
APPLICATION_COMMAND_MESSAGE = 3


def _as_id(value: object) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def extract_command_path_and_options(
    interaction_payload: dict[str, Any],
) -> tuple[tuple[str, ...], dict[str, Any]]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return (), {}

    root_name = data.get("name")
    if not isinstance(root_name, str) or not root_name:
        return (), {}

    path: list[str] = [root_name]
    options = data.get("options")
    current_options = options if isinstance(options, list) else []

    while current_options:
        first = current_options[0]
        if not isinstance(first, dict):
            break
        option_type = first.get("type")
        if option_type not in (1, 2):
            break
        name = first.get("name")
        if isinstance(name, str) and name:
            path.append(name)
        nested = first.get("options")
        current_options = nested if isinstance(nested, list) else []

    parsed_options: dict[str, Any] = {}
    for item in current_options:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        parsed_options[name] = item.get("value")

    return tuple(path), parsed_options


def extract_interaction_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("id"))


def extract_interaction_token(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("token"))


def extract_interaction_type(interaction_payload: dict[str, Any]) -> Optional[int]:
    value = interaction_payload.get("type")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def extract_command_type(interaction_payload: dict[str, Any]) -> Optional[int]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return None
    value = data.get("type", APPLICATION_COMMAND_CHAT_INPUT)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def extract_channel_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("channel_id"))


def extract_guild_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("guild_id"))


def extract_user_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    member = interaction_payload.get("member")
    if isinstance(member, dict):
        member_user = member.get("user")
        if isinstance(member_user, dict):
            user_id = _as_id(member_user.get("id"))
            if user_id:
                return user_id
    user = interaction_payload.get("user")
    if isinstance(user, dict):
        return _as_id(user.get("id"))
    return None


def is_component_interaction(interaction_payload: dict[str, Any]) -> bool:
    return extract_interaction_type(interaction_payload) == INTERACTION_TYPE_MESSAGE_COMPONENT


def is_command_interaction(interaction_payload: dict[str, Any]) -> bool:
    return (
        extract_interaction_type(interaction_payload)
        == INTERACTION_TYPE_APPLICATION_COMMAND
    )


def extract_component_custom_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return None
    return _as_id(data.get("custom_id"))


def extract_target_message(
    interaction_payload: dict[str, Any],
) -> Optional[dict[str, Any]]:
    """Return the message a context-menu command was invoked on, if resolved."""
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return None
    target_id = _as_id(data.get("target_id"))
    resolved = data.get("resolved")
    if target_id is None or not isinstance(resolved, dict):
        return None
    messages = resolved.get("messages")
    if not isinstance(messages, dict):
        return None
    message = messages.get(target_id)
    return message if isinstance(message, dict) else None


class RespondableInteraction:
    """Any interaction that can be answered: commands, components and modals.

    Discord allows exactly one initial callback per interaction; afterwards
    the answer lives on as the "original response" webhook message, which can
    be fetched and edited by token.
    """

    RESPONDABLE_TYPES = frozenset(
        {
            INTERACTION_TYPE_APPLICATION_COMMAND,
            INTERACTION_TYPE_MESSAGE_COMPONENT,
            INTERACTION_TYPE_MODAL_SUBMIT,
        }
    )

    def __init__(
        self,
        rest: "DiscordRestClient",
        *,
        application_id: str,
        payload: dict[str, Any],
    ) -> None:
        interaction_id = extract_interaction_id(payload)
        interaction_token = extract_interaction_token(payload)
        if interaction_id is None or interaction_token is None:
            raise ValueError("interaction payload is missing id or token")
        if extract_interaction_type(payload) not in self.RESPONDABLE_TYPES:
            raise ValueError("interaction type cannot be responded to")
        self._rest = rest
        self._application_id = application_id
        self.payload = payload
        self.interaction_id = interaction_id
        self.token = interaction_token
        self._responded = False

    @property
    def rest(self) -> "DiscordRestClient":
        return self._rest

    @property
    def interaction_type(self) -> Optional[int]:
        return extract_interaction_type(self.payload)

    @property
    def channel_id(self) -> Optional[str]:
        return extract_channel_id(self.payload)

    @property
    def guild_id(self) -> Optional[str]:
        return extract_guild_id(self.payload)

    @property
    def user_id(self) -> Optional[str]:
        return extract_user_id(self.payload)

    @property
    def responded(self) -> bool:
        return self._responded

    async def _callback(self, payload: dict[str, Any]) -> None:
        await self._rest.create_interaction_response(
            interaction_id=self.interaction_id,
            interaction_token=self.token,
            payload=payload,
        )
        self._responded = True

    async def acknowledge(self) -> None:
        """Accept the interaction without producing any visible output."""
        await self._callback({"type": CALLBACK_DEFERRED_UPDATE_MESSAGE})

    async def create_response(
        self,
        content: str,
        *,
        components: Optional[list[dict[str, Any]]] = None,
        ephemeral: bool = False,
    ) -> None:
        data: dict[str, Any] = {"content": content}
        if components is not None:
            data["components"] = components
        if ephemeral:
            data["flags"] = DISCORD_EPHEMERAL_FLAG
        await self._callback({"type": CALLBACK_CHANNEL_MESSAGE, "data": data})

    async def fetch_own_response(self) -> dict[str, Any]:
        return await self._rest.get_original_interaction_response(
            application_id=self._application_id,
            interaction_token=self.token,
        )

    async def edit_own_response(
        self,
        *,
        content: Optional[str] = None,
        components: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if content is not None:
            payload["content"] = content
        if components is not None:
            payload["components"] = components
        return await self._rest.edit_original_interaction_response(
            application_id=self._application_id,
            interaction_token=self.token,
            payload=payload,
        )

    async def create_or_edit(
        self,
        content: str,
        *,
        components: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        if self._responded:
            await self.edit_own_response(content=content, components=components)
        else:
            await self.create_response(content, components=components)

    async def respond_ephemeral(self, content: str) -> None:
        text = truncate_for_discord(content, max_len=DISCORD_MAX_MESSAGE_LENGTH)
        if not self._responded:
            await self.create_response(text, ephemeral=True)
            return
        await self._rest.create_followup_message(
            application_id=self._application_id,
            interaction_token=self.token,
            payload={"content": text, "flags": DISCORD_EPHEMERAL_FLAG},
        )


async def run_and_report_error(
    interaction: RespondableInteraction, handler: Awaitable[None]
) -> None:
    """Await ``handler`` and surface any uncaught failure on the interaction."""
    try:
        await handler
    except Exception as exc:
        log_event(
            logger,
            logging.ERROR,
            "discord.interaction.unhandled_error",
            interaction_id=interaction.interaction_id,
            interaction_type=interaction.interaction_type,
            exc=exc,
        )
        message = getattr(exc, "user_message", None) or str(exc) or type(exc).__name__
        try:
            await interaction.create_or_edit(
                truncate_for_discord(
                    f"Error: {message}", max_len=DISCORD_MAX_MESSAGE_LENGTH
                ),
                components=[],
            )
        except Exception as report_exc:
            log_event(
                logger,
                logging.WARNING,
                "discord.interaction.error_report_failed",
                interaction_id=interaction.interaction_id,
                exc=report_exc,
            )
