from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from ...rendering.chunking import DEFAULT_MAX_CHUNK_LENGTH
from ...rendering.renderer import chunk_length_for_message_limit
from .allowlist import DiscordAllowlist
from .constants import DISCORD_INTENT_GUILDS, DISCORD_MAX_MESSAGE_LENGTH
from .errors import DiscordConfigError

DEFAULT_BOT_TOKEN_ENV = "LLMCORD_DISCORD_TOKEN"
DEFAULT_APP_ID_ENV = "LLMCORD_DISCORD_APP_ID"
DEFAULT_COMMAND_SCOPE = "global"
DEFAULT_MESSAGE_UPDATE_INTERVAL_MS = 1000
DEFAULT_INTENTS = DISCORD_INTENT_GUILDS
MAX_CHUNK_LENGTH_LIMIT = chunk_length_for_message_limit(DISCORD_MAX_MESSAGE_LENGTH)


@dataclass(frozen=True)
class DiscordCommandRegistration:
    enabled: bool
    scope: str
    guild_ids: tuple[str, ...]


@dataclass(frozen=True)
class DiscordBotConfig:
    enabled: bool
    bot_token_env: str
    app_id_env: str
    bot_token: Optional[str]
    application_id: Optional[str]
    allowlist: DiscordAllowlist
    command_registration: DiscordCommandRegistration
    intents: int
    message_update_interval_ms: int
    replace_newlines: bool
    max_chunk_length: int

    @property
    def min_sync_interval(self) -> float:
        return self.message_update_interval_ms / 1000.0

    @classmethod
    def from_raw(
        cls,
        raw: dict[str, Any],
        *,
        authentication: Optional[dict[str, Any]] = None,
    ) -> "DiscordBotConfig":
        cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}
        auth: dict[str, Any] = authentication if isinstance(authentication, dict) else {}
        enabled = _parse_bool_or_default(
            cfg.get("enabled"), default=True, key="discord.enabled"
        )
        bot_token_env = str(
            auth.get("discord_token_env", DEFAULT_BOT_TOKEN_ENV)
        ).strip()
        app_id_env = str(
            auth.get("application_id_env", DEFAULT_APP_ID_ENV)
        ).strip()
        if not bot_token_env:
            raise DiscordConfigError("authentication.discord_token_env must be non-empty")
        if not app_id_env:
            raise DiscordConfigError("authentication.application_id_env must be non-empty")

        bot_token = os.environ.get(bot_token_env)
        application_id = os.environ.get(app_id_env)

        registration_raw = cfg.get("command_registration")
        registration_cfg = (
            registration_raw if isinstance(registration_raw, dict) else {}
        )
        scope_raw = (
            str(registration_cfg.get("scope", DEFAULT_COMMAND_SCOPE)).strip().lower()
        )
        if scope_raw not in {"global", "guild"}:
            raise DiscordConfigError(
                "discord.command_registration.scope must be 'global' or 'guild'"
            )
        command_registration = DiscordCommandRegistration(
            enabled=_parse_bool_or_default(
                registration_cfg.get("enabled"),
                default=True,
                key="discord.command_registration.enabled",
            ),
            scope=scope_raw,
            guild_ids=tuple(_parse_string_ids(registration_cfg.get("guild_ids"))),
        )
        if command_registration.scope == "guild" and not command_registration.guild_ids:
            raise DiscordConfigError(
                "discord.command_registration.guild_ids is required for guild scope"
            )

        intents_value = cfg.get("intents", DEFAULT_INTENTS)
        if isinstance(intents_value, bool) or not isinstance(intents_value, int):
            raise DiscordConfigError("discord.intents must be an integer")
        if intents_value < 0:
            raise DiscordConfigError("discord.intents must be >= 0")

        max_chunk_length = min(
            _parse_positive_int_or_default(
                cfg.get("max_chunk_length"),
                default=DEFAULT_MAX_CHUNK_LENGTH,
                key="discord.max_chunk_length",
            ),
            MAX_CHUNK_LENGTH_LIMIT,
        )

        if enabled:
            if not bot_token:
                raise DiscordConfigError(
                    f"Discord bot is enabled but env var {bot_token_env} is unset"
                )
            if not application_id:
                raise DiscordConfigError(
                    f"Discord bot is enabled but env var {app_id_env} is unset"
                )

        return cls(
            enabled=enabled,
            bot_token_env=bot_token_env,
            app_id_env=app_id_env,
            bot_token=bot_token,
            application_id=application_id,
            allowlist=DiscordAllowlist(
                allowed_guild_ids=frozenset(
                    _parse_string_ids(cfg.get("allowed_guild_ids"))
                ),
                allowed_channel_ids=frozenset(
                    _parse_string_ids(cfg.get("allowed_channel_ids"))
                ),
                allowed_user_ids=frozenset(
                    _parse_string_ids(cfg.get("allowed_user_ids"))
                ),
            ),
            command_registration=command_registration,
            intents=intents_value,
            message_update_interval_ms=_parse_positive_int_or_default(
                cfg.get("message_update_interval_ms"),
                default=DEFAULT_MESSAGE_UPDATE_INTERVAL_MS,
                key="discord.message_update_interval_ms",
            ),
            replace_newlines=_parse_bool_or_default(
                cfg.get("replace_newlines"),
                default=True,
                key="discord.replace_newlines",
            ),
            max_chunk_length=max_chunk_length,
        )


def _parse_string_ids(value: Any) -> list[str]:
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed: list[str] = []
    for item in items:
        token = str(item).strip()
        if token:
            parsed.append(token)
    return parsed


def _parse_positive_int_or_default(value: Any, *, default: int, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise DiscordConfigError(f"{key} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise DiscordConfigError(f"{key} must be an integer") from exc
    if parsed <= 0:
        raise DiscordConfigError(f"{key} must be > 0")
    return parsed


def _parse_bool_or_default(value: Any, *, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise DiscordConfigError(f"{key} must be a boolean")
