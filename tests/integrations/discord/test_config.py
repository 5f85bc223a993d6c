from __future__ import annotations

import pytest

from llmcord.integrations.discord.config import (
    DEFAULT_INTENTS,
    MAX_CHUNK_LENGTH_LIMIT,
    DiscordBotConfig,
)
from llmcord.integrations.discord.errors import DiscordConfigError

AUTH = {"discord_token_env": "TEST_DISCORD_TOKEN", "application_id_env": "TEST_DISCORD_APP_ID"}


@pytest.fixture
def discord_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_DISCORD_TOKEN", "token")
    monkeypatch.setenv("TEST_DISCORD_APP_ID", "1234567890")


def test_disabled_config_allows_missing_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TEST_DISCORD_TOKEN", raising=False)
    monkeypatch.delenv("TEST_DISCORD_APP_ID", raising=False)
    cfg = DiscordBotConfig.from_raw({"enabled": False}, authentication=AUTH)
    assert cfg.enabled is False
    assert cfg.bot_token is None
    assert cfg.application_id is None


def test_enabled_config_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TEST_DISCORD_TOKEN", raising=False)
    monkeypatch.setenv("TEST_DISCORD_APP_ID", "1")
    with pytest.raises(DiscordConfigError, match="TEST_DISCORD_TOKEN"):
        DiscordBotConfig.from_raw({}, authentication=AUTH)


def test_defaults(discord_env: None) -> None:
    cfg = DiscordBotConfig.from_raw({}, authentication=AUTH)

    assert cfg.bot_token == "token"
    assert cfg.application_id == "1234567890"
    assert cfg.intents == DEFAULT_INTENTS
    assert cfg.message_update_interval_ms == 1000
    assert cfg.min_sync_interval == 1.0
    assert cfg.replace_newlines is True
    assert cfg.max_chunk_length == 1500
    assert cfg.command_registration.scope == "global"
    assert cfg.allowlist.unrestricted


def test_allowlists_and_registration_are_normalized(discord_env: None) -> None:
    cfg = DiscordBotConfig.from_raw(
        {
            "allowed_guild_ids": [123, "456"],
            "allowed_channel_ids": "789",
            "allowed_user_ids": [111, " "],
            "command_registration": {"scope": "GUILD", "guild_ids": [123]},
            "message_update_interval_ms": 250,
            "max_chunk_length": 5000,
        },
        authentication=AUTH,
    )

    assert cfg.allowlist.allowed_guild_ids == frozenset({"123", "456"})
    assert cfg.allowlist.allowed_channel_ids == frozenset({"789"})
    assert cfg.allowlist.allowed_user_ids == frozenset({"111"})
    assert cfg.command_registration.scope == "guild"
    assert cfg.command_registration.guild_ids == ("123",)
    assert cfg.min_sync_interval == 0.25
    assert cfg.max_chunk_length == MAX_CHUNK_LENGTH_LIMIT == 1995


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"command_registration": {"scope": "everywhere"}}, "scope"),
        ({"command_registration": {"scope": "guild"}}, "guild_ids"),
        ({"intents": "all"}, "discord.intents"),
        ({"intents": -1}, "discord.intents"),
        ({"message_update_interval_ms": 0}, "message_update_interval_ms"),
        ({"replace_newlines": "yes"}, "replace_newlines"),
        ({"max_chunk_length": "long"}, "max_chunk_length"),
    ],
)
def test_invalid_values_name_the_key(discord_env: None, raw: dict, message: str) -> None:
    with pytest.raises(DiscordConfigError, match=message):
        DiscordBotConfig.from_raw(raw, authentication=AUTH)
