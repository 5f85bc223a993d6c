from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .interactions import extract_channel_id, extract_guild_id, extract_user_id


@dataclass(frozen=True)
class DiscordAllowlist:
    allowed_guild_ids: frozenset[str] = frozenset()
    allowed_channel_ids: frozenset[str] = frozenset()
    allowed_user_ids: frozenset[str] = frozenset()

    @property
    def unrestricted(self) -> bool:
        return (
            not self.allowed_guild_ids
            and not self.allowed_channel_ids
            and not self.allowed_user_ids
        )


def allowlist_allows(interaction_payload: dict[str, Any], allowlist: DiscordAllowlist) -> bool:
    """An empty allowlist lets everyone in; each non-empty set must match."""
    if allowlist.unrestricted:
        return True

    guild_id = extract_guild_id(interaction_payload)
    channel_id = extract_channel_id(interaction_payload)
    user_id = extract_user_id(interaction_payload)

    if allowlist.allowed_guild_ids and guild_id not in allowlist.allowed_guild_ids:
        return False
    if (
        allowlist.allowed_channel_ids
        and channel_id not in allowlist.allowed_channel_ids
    ):
        return False
    if allowlist.allowed_user_ids and user_id not in allowlist.allowed_user_ids:
        return False

    return True
