from __future__ import annotations

from llmcord.core.config import PromptCommand
from llmcord.integrations.discord.commands import (
    EXECUTE_COMMAND_NAME,
    EXECUTE_MESSAGE_COMMAND_NAME,
    MAX_OPTION_CHOICES,
    build_application_commands,
    build_prompt_command,
)


def _command(name: str = "ask", *, enabled: bool = True) -> PromptCommand:
    return PromptCommand(
        name=name,
        enabled=enabled,
        description="Ask a model",
        system_prompt="Be brief.",
    )


def test_prompt_command_options() -> None:
    payload = build_prompt_command(_command(), ["m1", "m2"])

    assert payload["type"] == 1
    assert payload["name"] == "ask"
    model, prompt, seed = payload["options"]
    assert model["required"] is True
    assert model["choices"] == [
        {"name": "m1", "value": "m1"},
        {"name": "m2", "value": "m2"},
    ]
    assert prompt["name"] == "prompt" and prompt["required"] is True
    assert seed["type"] == 4 and seed["required"] is False


def test_model_choices_are_capped() -> None:
    models = [f"model-{index}" for index in range(40)]
    payload = build_prompt_command(_command(), models)

    assert len(payload["options"][0]["choices"]) == MAX_OPTION_CHOICES


def test_no_models_means_free_text_model_option() -> None:
    payload = build_prompt_command(_command(), [])

    assert "choices" not in payload["options"][0]


def test_application_commands_skip_disabled_and_honor_scripting() -> None:
    commands = {
        "ask": _command("ask"),
        "hidden": _command("hidden", enabled=False),
    }

    with_scripts = build_application_commands(commands, ["m1"])
    without_scripts = build_application_commands(
        commands.values(), ["m1"], scripting_enabled=False
    )

    assert [item["name"] for item in with_scripts] == [
        "ask",
        EXECUTE_COMMAND_NAME,
        EXECUTE_MESSAGE_COMMAND_NAME,
    ]
    assert with_scripts[-1] == {"type": 3, "name": EXECUTE_MESSAGE_COMMAND_NAME}
    assert [item["name"] for item in without_scripts] == ["ask"]
