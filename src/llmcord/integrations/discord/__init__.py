from .config import DiscordBotConfig
from .interactions import RespondableInteraction, run_and_report_error
from .rest import DiscordRestClient
from .service import DiscordBotService, create_discord_bot_service
from .transport import InteractionMessageTransport

__all__ = [
    "DiscordBotConfig",
    "DiscordBotService",
    "DiscordRestClient",
    "InteractionMessageTransport",
    "RespondableInteraction",
    "create_discord_bot_service",
    "run_and_report_error",
]
