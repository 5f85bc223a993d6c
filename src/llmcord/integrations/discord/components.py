from __future__ import annotations

from typing import Any, Optional

from ...cancellation import CancelToken

DISCORD_BUTTON_STYLE_PRIMARY = 1
DISCORD_BUTTON_STYLE_SECONDARY = 2
DISCORD_BUTTON_STYLE_SUCCESS = 3
DISCORD_BUTTON_STYLE_DANGER = 4

COMPONENT_TYPE_ACTION_ROW = 1
COMPONENT_TYPE_BUTTON = 2


def build_action_row(components: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": COMPONENT_TYPE_ACTION_ROW,
        "components": components,
    }


def build_button(
    label: str,
    custom_id: str,
    *,
    style: int = DISCORD_BUTTON_STYLE_SECONDARY,
    emoji: Optional[str] = None,
    disabled: bool = False,
) -> dict[str, Any]:
    button: dict[str, Any] = {
        "type": COMPONENT_TYPE_BUTTON,
        "style": style,
        "label": label,
        "custom_id": custom_id,
        "disabled": disabled,
    }
    if emoji:
        button["emoji"] = {"name": emoji}
    return button


def build_cancel_components(token: CancelToken) -> list[dict[str, Any]]:
    return [
        build_action_row(
            [
                build_button(
                    "Cancel",
                    token.encode(),
                    style=DISCORD_BUTTON_STYLE_DANGER,
                )
            ]
        )
    ]
