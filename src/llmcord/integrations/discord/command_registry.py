from __future__ import annotations

import logging
from typing import Any, Optional

from ...core.logging_utils import log_event
from .config import DiscordCommandRegistration
from .rest import DiscordRestClient

logger = logging.getLogger(__name__)


def registration_targets(registration: DiscordCommandRegistration) -> list[Optional[str]]:
    """Guilds to overwrite, or ``[None]`` for the global command list."""
    if registration.scope == "global":
        return [None]
    return sorted({guild_id for guild_id in registration.guild_ids if guild_id})


async def sync_commands(
    rest: DiscordRestClient,
    *,
    application_id: str,
    commands: list[dict[str, Any]],
    registration: DiscordCommandRegistration,
) -> int:
    """Replace the registered commands at every target; returns targets written."""
    targets = registration_targets(registration)
    for guild_id in targets:
        updated = await rest.bulk_overwrite_application_commands(
            application_id=application_id,
            commands=commands,
            guild_id=guild_id,
        )
        log_event(
            logger,
            logging.INFO,
            "discord.commands.synced",
            guild_id=guild_id or "global",
            commands=[command.get("name") for command in commands],
            registered=len(updated),
        )
    return len(targets)
