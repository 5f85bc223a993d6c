from __future__ import annotations

import logging
from typing import Any, Optional

from ....core.exceptions import CompileError, LlmcordError
from ....core.logging_utils import log_event
from ....scripting import ScriptEngine, build_capabilities, extract_code_block
from ....sessions import run_script_session
from ....streams import Channel, SideOutput
from ..interactions import RespondableInteraction, extract_target_message
from ..rendering import escape_discord_markdown
from .base import HandlerContext, start_renderer

logger = logging.getLogger(__name__)

EXECUTING_PLACEHOLDER = "Executing..."


def _code_from_message(message: Optional[dict[str, Any]]) -> str:
    content = message.get("content") if isinstance(message, dict) else None
    code = extract_code_block(content) if isinstance(content, str) else None
    if code is None:
        raise LlmcordError(
            "message has no code block",
            user_message="That message does not contain a Python code block.",
        )
    return code


async def execute_code(
    ctx: HandlerContext, interaction: RespondableInteraction, code: str
) -> None:
    with ctx.registry.subscribe() as listener:
        renderer = await start_renderer(ctx, interaction, EXECUTING_PLACEHOLDER)
        side_output: Channel[SideOutput] = Channel()
        capabilities = build_capabilities(
            side_output,
            backend=ctx.app.model_client,
            models=ctx.app.models,
        )
        try:
            engine = ScriptEngine.load(code, capabilities=capabilities)
        except CompileError as exc:
            log_event(
                logger,
                logging.INFO,
                "discord.execute.compile_failed",
                session_id=renderer.session_id,
                exc=exc,
            )
            side_output.close()
            await renderer.error(str(exc))
            return
        log_event(
            logger,
            logging.INFO,
            "discord.execute.started",
            session_id=renderer.session_id,
            mode=engine.mode,
        )
        await run_script_session(
            renderer,
            listener,
            engine,
            side_output,
            escape_print=escape_discord_markdown,
        )


async def handle_execute_command(
    ctx: HandlerContext,
    interaction: RespondableInteraction,
    options: dict[str, Any],
) -> None:
    message_id = options.get("message_id")
    message_id = str(message_id).strip() if message_id is not None else ""
    channel_id = interaction.channel_id
    if not message_id.isdigit() or channel_id is None:
        raise LlmcordError(
            f"invalid message id {message_id!r}",
            user_message="`message_id` must be the ID of a message in this channel.",
        )
    message = await interaction.rest.get_channel_message(
        channel_id=channel_id, message_id=message_id
    )
    await execute_code(ctx, interaction, _code_from_message(message))


async def handle_execute_message_command(
    ctx: HandlerContext, interaction: RespondableInteraction
) -> None:
    message = extract_target_message(interaction.payload)
    await execute_code(ctx, interaction, _code_from_message(message))
