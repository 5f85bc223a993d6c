from __future__ import annotations

import re

DEFAULT_MAX_CHUNK_LENGTH = 1500
TRUNCATION_SUFFIX = "..."

_WORD_RE = re.compile(r"(\s*)(\S+)")


def split_into_chunks(text: str, max_len: int = DEFAULT_MAX_CHUNK_LENGTH) -> list[str]:
    """Greedily pack whitespace-delimited words into chunks.

    A word is appended to the current chunk unless that would push the chunk
    past ``max_len``. The first character of the separating whitespace is not
    counted, so a chunk is at most ``max_len + 1`` long; longer whitespace
    runs are counted in full. Whitespace between words inside a chunk is kept
    verbatim so newlines survive; whitespace at a chunk boundary is dropped.
    Words are never split, so a word longer than ``max_len`` becomes its own
    chunk.
    """
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    chunks: list[str] = []
    current = ""
    for match in _WORD_RE.finditer(text):
        separator, word = match.group(1), match.group(2)
        extra = max(len(separator) - 1, 0)
        if current and len(current) + extra + len(word) > max_len:
            chunks.append(current)
            current = ""
        if current:
            current += separator
        current += word
    if current:
        chunks.append(current)
    return chunks


def truncate_text(text: str, max_len: int, *, suffix: str = TRUNCATION_SUFFIX) -> str:
    """Cut ``text`` to ``max_len`` characters, marking the cut with ``suffix``."""
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    if len(text) <= max_len:
        return text
    if max_len <= len(suffix):
        return suffix[:max_len]
    return text[: max_len - len(suffix)] + suffix
