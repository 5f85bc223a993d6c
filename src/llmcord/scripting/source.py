from __future__ import annotations

import re
from typing import Optional

SCRIPT_LANGUAGES = ("python", "py")

_FENCE_RE = re.compile(r"```([A-Za-z0-9_+-]*)[ \t]*\n(.*?)\n?```", re.DOTALL)


def extract_code_block(text: str) -> Optional[str]:
    """Return the first python-fenced (or unlabelled) block, else the raw text.

    Returns None when there is nothing to run.
    """
    for match in _FENCE_RE.finditer(text):
        language = match.group(1).lower()
        if language and language not in SCRIPT_LANGUAGES:
            continue
        code = match.group(2)
        return code if code.strip() else None
    if "```" in text:
        return None
    return text if text.strip() else None
