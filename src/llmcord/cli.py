from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator, NoReturn, Optional

import typer

from .core.config import AppConfig, load_app_config
from .core.context import AppContext
from .core.exceptions import CompileError, ConfigError, UpstreamModelError
from .core.logging_utils import setup_rotating_logger
from .integrations.discord.errors import DiscordAPIError, DiscordConfigError
from .integrations.discord.service import create_discord_bot_service
from .llm import ModelClient
from .scripting import ScriptEngine, build_capabilities
from .streams import Channel, Data, Error, SideOutput, StreamItem, StreamMerger

app = typer.Typer(add_completion=False, help="Discord bot for OpenAI-compatible models.")

CONFIG_OPTION_HELP = "Path to llmcord.yml (or the directory holding it)"


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def _load_config(path: Optional[Path]) -> AppConfig:
    try:
        config = load_app_config(path)
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)
    setup_rotating_logger("llmcord", config.log)
    return config


def _model_client(config: AppConfig) -> ModelClient:
    return ModelClient(api_base=config.openai.api_server, api_key=config.openai.api_key)


async def _build_context(config: AppConfig, *, require_models: bool) -> AppContext:
    client = _model_client(config)
    try:
        models = await client.list_models()
    except UpstreamModelError:
        if require_models:
            await client.close()
            raise
        models = ()
    return AppContext(config=config, models=models, model_client=client)


async def _start(config: AppConfig) -> None:
    context = await _build_context(config, require_models=True)
    try:
        service = create_discord_bot_service(context)
        await service.run_forever()
    finally:
        await context.model_client.close()


async def _register(config: AppConfig) -> None:
    context = await _build_context(config, require_models=True)
    try:
        service = create_discord_bot_service(context)
        try:
            await service.sync_application_commands()
        finally:
            await service.aclose()
    finally:
        await context.model_client.close()


async def _list_models(config: AppConfig) -> tuple[str, ...]:
    client = _model_client(config)
    try:
        return await client.list_models()
    finally:
        await client.close()


async def _echoed(events: Channel[SideOutput]) -> AsyncIterator[StreamItem]:
    async for event in events:
        typer.echo(event.text)
        yield event


async def _run_script(config: AppConfig, source: str) -> bool:
    context = await _build_context(config, require_models=False)
    side_output: Channel[SideOutput] = Channel()
    try:
        engine = ScriptEngine.load(
            source,
            capabilities=build_capabilities(
                side_output,
                backend=context.model_client,
                models=context.models,
            ),
        )
        merged: StreamMerger[StreamItem] = StreamMerger(engine.run(), _echoed(side_output))
        ok = True
        try:
            async for item in merged:
                if isinstance(item, Error):
                    typer.echo(f"Error: {item.error}", err=True)
                    ok = False
                elif isinstance(item, Data) and item.value is not None:
                    typer.echo(f"=> {item.value}")
        finally:
            await merged.aclose()
        for event in side_output.drain_nowait():
            typer.echo(event.text)
        return ok
    finally:
        side_output.close()
        await context.model_client.close()


@app.command("start")
def start(
    config_path: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
) -> None:
    """Run the Discord bot until interrupted."""
    config = _load_config(config_path)
    try:
        asyncio.run(_start(config))
    except (DiscordConfigError, UpstreamModelError) as exc:
        raise_exit(str(exc), cause=exc)
    except KeyboardInterrupt:
        typer.echo("llmcord stopped.")


@app.command("register-commands")
def register_commands(
    config_path: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
) -> None:
    """Replace the registered Discord commands with the configured ones."""
    config = _load_config(config_path)
    try:
        asyncio.run(_register(config))
    except (DiscordConfigError, DiscordAPIError, UpstreamModelError, ValueError) as exc:
        raise_exit(str(exc), cause=exc)
    typer.echo("Discord application commands synchronized.")


@app.command("models")
def models(
    config_path: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
) -> None:
    """Print the models the configured API server offers."""
    config = _load_config(config_path)
    try:
        catalog = asyncio.run(_list_models(config))
    except UpstreamModelError as exc:
        raise_exit(str(exc), cause=exc)
    for name in catalog:
        typer.echo(name)


@app.command("run-script")
def run_script(
    script: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    config_path: Optional[Path] = typer.Option(None, "--config", help=CONFIG_OPTION_HELP),
) -> None:
    """Execute a script locally, echoing its output and yielded values."""
    config = _load_config(config_path)
    source = script.read_text(encoding="utf-8")
    try:
        ok = asyncio.run(_run_script(config, source))
    except CompileError as exc:
        raise_exit(str(exc), cause=exc)
    if not ok:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
