from __future__ import annotations

DISCORD_API_BASE_URL = "https://discord.com/api/v10"
DISCORD_GATEWAY_URL = "wss://gateway.discord.gg/?v=10&encoding=json"

# Discord hard limit for message content.
DISCORD_MAX_MESSAGE_LENGTH = 2000

# Interactions arrive over the gateway regardless of intents; GUILDS keeps the
# session useful for channel lookups.
DISCORD_INTENT_GUILDS = 1 << 0

# Interaction types (https://discord.com/developers/docs/interactions/receiving-and-responding).
INTERACTION_TYPE_APPLICATION_COMMAND = 2
INTERACTION_TYPE_MESSAGE_COMPONENT = 3
INTERACTION_TYPE_MODAL_SUBMIT = 5

# Interaction callback types.
CALLBACK_CHANNEL_MESSAGE = 4
CALLBACK_DEFERRED_UPDATE_MESSAGE = 6

DISCORD_EPHEMERAL_FLAG = 64
