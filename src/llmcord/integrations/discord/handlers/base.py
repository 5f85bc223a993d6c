from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from ....cancellation import CancellationRegistry
from ....core.context import AppContext
from ....core.exceptions import LlmcordError
from ....rendering.renderer import ChunkedRenderer
from ..components import build_cancel_components
from ..config import DiscordBotConfig
from ..interactions import RespondableInteraction
from ..transport import InteractionMessageTransport


@dataclass(frozen=True)
class HandlerContext:
    app: AppContext
    discord: DiscordBotConfig
    registry: CancellationRegistry
    clock: Optional[Callable[[], float]] = None


def requester_id(interaction: RespondableInteraction) -> int:
    user_id = interaction.user_id
    if user_id is None or not user_id.isdigit():
        raise LlmcordError(
            "interaction has no requesting user",
            user_message="Could not determine who ran this command.",
        )
    return int(user_id)


async def start_renderer(
    ctx: HandlerContext, interaction: RespondableInteraction, placeholder: str
) -> ChunkedRenderer:
    extra = {"clock": ctx.clock} if ctx.clock is not None else {}
    return await ChunkedRenderer.start(
        InteractionMessageTransport(interaction),
        owner_id=requester_id(interaction),
        placeholder=placeholder,
        cancel_components=build_cancel_components,
        min_sync_interval=ctx.discord.min_sync_interval,
        max_chunk_length=ctx.discord.max_chunk_length,
        **extra,
    )
