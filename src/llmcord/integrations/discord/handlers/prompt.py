from __future__ import annotations

import logging
from typing import Any

from ....core.config import PromptCommand
from ....core.exceptions import LlmcordError
from ....core.logging_utils import log_event
from ....llm import CompletionRequest, SystemMessage, UserMessage
from ....sessions import run_model_session
from ..interactions import RespondableInteraction
from ..rendering import format_bold, format_italic
from .base import HandlerContext, start_renderer

logger = logging.getLogger(__name__)

GENERATING_PLACEHOLDER = "Generating..."


def _require_string(options: dict[str, Any], name: str) -> str:
    value = options.get(name)
    if not isinstance(value, str) or not value.strip():
        raise LlmcordError(
            f"missing option {name}", user_message=f"The `{name}` option is required."
        )
    return value


def _parse_seed(options: dict[str, Any]) -> int | None:
    seed = options.get("seed")
    if seed is None:
        return None
    if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
        raise LlmcordError(
            f"invalid seed {seed!r}", user_message="`seed` must be a non-negative integer."
        )
    return seed


def format_prompt_response(prompt: str, model: str, text: str) -> str:
    return f"{format_bold(prompt)} ({format_italic(model)})\n{text}"


async def handle_prompt_command(
    ctx: HandlerContext,
    interaction: RespondableInteraction,
    command: PromptCommand,
    options: dict[str, Any],
) -> None:
    model = _require_string(options, "model")
    prompt = _require_string(options, "prompt")
    seed = _parse_seed(options)
    if ctx.app.models and model not in ctx.app.models:
        raise LlmcordError(
            f"unknown model {model}", user_message=f"Unknown model `{model}`."
        )
    if ctx.discord.replace_newlines:
        prompt = prompt.replace("\\n", "\n")

    request = CompletionRequest(
        model=model,
        messages=(SystemMessage(command.system_prompt), UserMessage(prompt)),
        seed=seed,
    )
    with ctx.registry.subscribe() as listener:
        renderer = await start_renderer(ctx, interaction, GENERATING_PLACEHOLDER)
        log_event(
            logger,
            logging.INFO,
            "discord.prompt.started",
            command=command.name,
            model=model,
            session_id=renderer.session_id,
        )
        await run_model_session(
            renderer,
            listener,
            ctx.app.model_client.stream_completion(request),
            compose=lambda text: format_prompt_response(prompt, model, text),
        )
