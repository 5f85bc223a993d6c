from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from ...core.config import PromptCommand

# Discord application command types.
CHAT_INPUT = 1
MESSAGE = 3

# Discord application command option types.
STRING = 3
INTEGER = 4

# Discord rejects more than this many choices per option.
MAX_OPTION_CHOICES = 25

EXECUTE_COMMAND_NAME = "execute"
EXECUTE_MESSAGE_COMMAND_NAME = "Execute this code block"


def _model_choices(models: Sequence[str]) -> list[dict[str, str]]:
    return [{"name": model, "value": model} for model in models[:MAX_OPTION_CHOICES]]


def build_prompt_command(
    command: PromptCommand, models: Sequence[str]
) -> dict[str, Any]:
    model_option: dict[str, Any] = {
        "type": STRING,
        "name": "model",
        "description": "The model to use",
        "required": True,
    }
    choices = _model_choices(models)
    if choices:
        model_option["choices"] = choices
    return {
        "type": CHAT_INPUT,
        "name": command.name,
        "description": command.description,
        "options": [
            model_option,
            {
                "type": STRING,
                "name": "prompt",
                "description": "The prompt to send",
                "required": True,
            },
            {
                "type": INTEGER,
                "name": "seed",
                "description": "Seed for reproducible sampling",
                "required": False,
                "min_value": 0,
            },
        ],
    }


def build_execute_commands() -> list[dict[str, Any]]:
    return [
        {
            "type": CHAT_INPUT,
            "name": EXECUTE_COMMAND_NAME,
            "description": "Execute the code block in a message of this channel",
            "options": [
                {
                    "type": STRING,
                    "name": "message_id",
                    "description": "ID of the message holding the code block",
                    "required": True,
                }
            ],
        },
        {"type": MESSAGE, "name": EXECUTE_MESSAGE_COMMAND_NAME},
    ]


def build_application_commands(
    prompt_commands: Mapping[str, PromptCommand] | Iterable[PromptCommand],
    models: Sequence[str],
    *,
    scripting_enabled: bool = True,
) -> list[dict[str, Any]]:
    values = (
        prompt_commands.values()
        if isinstance(prompt_commands, Mapping)
        else prompt_commands
    )
    commands = [
        build_prompt_command(command, models) for command in values if command.enabled
    ]
    if scripting_enabled:
        commands.extend(build_execute_commands())
    return commands
