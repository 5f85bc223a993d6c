"""Test harness configuration.

This repo uses a `src/` layout; make sure tests import the in-repo code even
when an older `llmcord` is installed.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS = 60


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_path = str(repo_root / "src")
    if sys.path[:1] != [src_path] and src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Apply a default per-test timeout to non-integration tests."""
    _ = session, config
    for item in items:
        if item.get_closest_marker("integration") is not None:
            continue
        item.add_marker(pytest.mark.timeout(DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeTransport:
    """In-memory message store that records every remote operation."""

    def __init__(self) -> None:
        self.messages: dict[str, dict] = {}
        self.ops: list[tuple] = []
        self.fail_on: set[str] = set()
        self.fail_once: set[str] = set()
        self._next_id = 1000

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_once:
            self.fail_once.discard(op)
            from llmcord.core.exceptions import TransportError

            raise TransportError(f"{op} failed once")
        if op in self.fail_on:
            from llmcord.core.exceptions import TransportError

            raise TransportError(f"{op} failed")

    async def create_message(self, content, *, components=None, reply_to=None):
        from llmcord.rendering.transport import RemoteMessage

        self._maybe_fail("create")
        self._next_id += 1
        message_id = str(self._next_id)
        self.messages[message_id] = {
            "content": content,
            "components": components or [],
            "reply_to": reply_to,
        }
        self.ops.append(("create", message_id, content, bool(components)))
        return RemoteMessage(message_id=message_id, content=content)

    async def edit_message(self, message_id, *, content=None, components=None):
        self._maybe_fail("edit")
        message = self.messages[message_id]
        if content is not None:
            message["content"] = content
        if components is not None:
            message["components"] = components
        self.ops.append(("edit", message_id, content, components))

    async def delete_message(self, message_id):
        self._maybe_fail("delete")
        del self.messages[message_id]
        self.ops.append(("delete", message_id))

    def with_buttons(self) -> list[str]:
        return [mid for mid, msg in self.messages.items() if msg["components"]]


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
