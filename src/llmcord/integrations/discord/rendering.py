from __future__ import annotations

import re

from ...rendering.chunking import truncate_text
from .constants import DISCORD_MAX_MESSAGE_LENGTH

_DISCORD_ESCAPE_RE = re.compile(r"([*_~`>|{}\\])")


def escape_discord_markdown(text: str) -> str:
    if not text:
        return ""
    return _DISCORD_ESCAPE_RE.sub(r"\\\1", text)


def format_bold(text: str) -> str:
    return f"**{escape_discord_markdown(text)}**" if text else ""


def format_italic(text: str) -> str:
    return f"*{escape_discord_markdown(text)}*" if text else ""


def truncate_for_discord(text: str, max_len: int = DISCORD_MAX_MESSAGE_LENGTH) -> str:
    return truncate_text(text, max_len)
