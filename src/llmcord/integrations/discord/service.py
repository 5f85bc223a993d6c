from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional

from ...cancellation import CancellationRegistry, CancelToken
from ...core.context import AppContext
from ...core.logging_utils import log_event
from .allowlist import allowlist_allows
from .command_registry import sync_commands
from .commands import (
    EXECUTE_COMMAND_NAME,
    EXECUTE_MESSAGE_COMMAND_NAME,
    MESSAGE,
    build_application_commands,
)
from .config import DiscordBotConfig
from .errors import DiscordAPIError
from .gateway import DiscordGatewayClient
from .handlers import (
    HandlerContext,
    handle_execute_command,
    handle_execute_message_command,
    handle_prompt_command,
)
from .interactions import (
    RespondableInteraction,
    extract_command_path_and_options,
    extract_command_type,
    extract_component_custom_id,
    is_command_interaction,
    is_component_interaction,
    run_and_report_error,
)
from .rest import DiscordRestClient

logger = logging.getLogger(__name__)

NOT_AUTHORIZED_MESSAGE = "You are not allowed to use this bot here."
CANCEL_REFUSED_MESSAGE = "Only the person who started this can cancel it."
UNKNOWN_COMMAND_MESSAGE = "This command is not available."


class DiscordBotService:
    def __init__(
        self,
        config: DiscordBotConfig,
        app: AppContext,
        *,
        rest_client: Optional[DiscordRestClient] = None,
        gateway_client: Optional[DiscordGatewayClient] = None,
        registry: Optional[CancellationRegistry] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._config = config
        self._app = app
        self._rest = (
            rest_client
            if rest_client is not None
            else DiscordRestClient(bot_token=config.bot_token or "")
        )
        self._owns_rest = rest_client is None
        self._gateway = (
            gateway_client
            if gateway_client is not None
            else DiscordGatewayClient(
                bot_token=config.bot_token or "",
                intents=config.intents,
            )
        )
        self._owns_gateway = gateway_client is None
        self._registry = registry or CancellationRegistry()
        self._handler_context = HandlerContext(
            app=app, discord=config, registry=self._registry, clock=clock
        )
        self._tasks: set[asyncio.Task[None]] = set()
        self._commands_synced = False

    @property
    def registry(self) -> CancellationRegistry:
        return self._registry

    def application_commands(self) -> list[dict[str, Any]]:
        return build_application_commands(
            self._app.config.enabled_commands,
            self._app.models,
            scripting_enabled=self._app.config.scripting_enabled,
        )

    async def run_forever(self) -> None:
        try:
            log_event(
                logger,
                logging.INFO,
                "discord.bot.starting",
                model_count=len(self._app.models),
                command_count=len(self._app.config.enabled_commands),
            )
            await self._gateway.run(self._on_dispatch)
        finally:
            await self._shutdown()

    async def sync_application_commands(self) -> None:
        registration = self._config.command_registration
        if not registration.enabled:
            log_event(logger, logging.INFO, "discord.commands.sync.disabled")
            return
        application_id = (self._config.application_id or "").strip()
        if not application_id:
            raise ValueError("missing Discord application id for command sync")
        await sync_commands(
            self._rest,
            application_id=application_id,
            commands=self.application_commands(),
            registration=registration,
        )

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        with contextlib.suppress(Exception):
            await self.wait_idle()
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_gateway:
            with contextlib.suppress(Exception):
                await self._gateway.stop()
        if self._owns_rest:
            with contextlib.suppress(Exception):
                await self._rest.close()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _on_dispatch(self, event_type: str, payload: dict[str, Any]) -> None:
        if event_type == "READY":
            if not self._commands_synced:
                self._commands_synced = True
                self._spawn(self._sync_on_ready())
        elif event_type == "INTERACTION_CREATE":
            # Sessions run for as long as the model streams; never block the gateway.
            self._spawn(self._handle_interaction(payload))

    async def _sync_on_ready(self) -> None:
        try:
            await self.sync_application_commands()
        except (DiscordAPIError, ValueError) as exc:
            log_event(
                logger,
                logging.WARNING,
                "discord.commands.sync.startup_failed",
                scope=self._config.command_registration.scope,
                exc=exc,
            )

    async def _handle_interaction(self, interaction_payload: dict[str, Any]) -> None:
        try:
            interaction = RespondableInteraction(
                self._rest,
                application_id=self._config.application_id or "",
                payload=interaction_payload,
            )
        except ValueError as exc:
            log_event(
                logger,
                logging.WARNING,
                "discord.interaction.unsupported",
                interaction_type=interaction_payload.get("type"),
                exc=exc,
            )
            return

        if not allowlist_allows(interaction_payload, self._config.allowlist):
            log_event(
                logger,
                logging.INFO,
                "discord.interaction.denied",
                guild_id=interaction.guild_id,
                channel_id=interaction.channel_id,
                user_id=interaction.user_id,
            )
            await self._respond_ephemeral(interaction, NOT_AUTHORIZED_MESSAGE)
            return

        if is_component_interaction(interaction_payload):
            await self._handle_component_interaction(interaction)
        elif is_command_interaction(interaction_payload):
            await run_and_report_error(interaction, self._handle_command(interaction))
        else:
            logger.debug(
                "Ignoring interaction %s of type %s",
                interaction.interaction_id,
                interaction.interaction_type,
            )

    async def _handle_command(self, interaction: RespondableInteraction) -> None:
        command_path, options = extract_command_path_and_options(interaction.payload)
        name = command_path[0] if command_path else ""
        scripting_enabled = self._app.config.scripting_enabled

        if extract_command_type(interaction.payload) == MESSAGE:
            if scripting_enabled and name == EXECUTE_MESSAGE_COMMAND_NAME:
                await handle_execute_message_command(self._handler_context, interaction)
                return
        elif scripting_enabled and name == EXECUTE_COMMAND_NAME:
            await handle_execute_command(self._handler_context, interaction, options)
            return
        else:
            command = self._app.config.enabled_commands.get(name)
            if command is not None:
                await handle_prompt_command(
                    self._handler_context, interaction, command, options
                )
                return

        log_event(
            logger,
            logging.WARNING,
            "discord.interaction.unknown_command",
            command_path=list(command_path),
        )
        await self._respond_ephemeral(interaction, UNKNOWN_COMMAND_MESSAGE)

    async def _handle_component_interaction(
        self, interaction: RespondableInteraction
    ) -> None:
        custom_id = extract_component_custom_id(interaction.payload)
        token = CancelToken.parse(custom_id) if custom_id else None
        if token is None:
            logger.debug("Ignoring component with custom_id %r", custom_id)
            return
        if not token.allows(interaction.user_id):
            log_event(
                logger,
                logging.INFO,
                "cancel.refused",
                session_id=token.session_id,
                user_id=interaction.user_id,
            )
            await self._respond_ephemeral(interaction, CANCEL_REFUSED_MESSAGE)
            return
        self._registry.signal(token.session_id)
        try:
            await interaction.acknowledge()
        except DiscordAPIError as exc:
            log_event(
                logger,
                logging.WARNING,
                "cancel.acknowledge_failed",
                session_id=token.session_id,
                exc=exc,
            )

    async def _respond_ephemeral(
        self, interaction: RespondableInteraction, text: str
    ) -> None:
        try:
            await interaction.respond_ephemeral(text)
        except DiscordAPIError as exc:
            logger.error(
                "Failed to send ephemeral response: %s (interaction_id=%s)",
                exc,
                interaction.interaction_id,
            )


def create_discord_bot_service(app: AppContext) -> DiscordBotService:
    config = DiscordBotConfig.from_raw(
        app.config.section("discord"),
        authentication=app.config.section("authentication"),
    )
    return DiscordBotService(config, app)
