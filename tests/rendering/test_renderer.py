from __future__ import annotations

import pytest

from llmcord.core.exceptions import TransportError
from llmcord.rendering.renderer import (
    ChunkedRenderer,
    TerminalState,
    chunk_length_for_message_limit,
)


def _cancel_row(token):
    return [{"type": 1, "components": [{"custom_id": token.encode()}]}]


async def _start(transport, clock, **kwargs) -> ChunkedRenderer:
    options = {"max_chunk_length": 10, "min_sync_interval": 1.0}
    options.update(kwargs)
    return await ChunkedRenderer.start(
        transport,
        owner_id=42,
        placeholder="Generating...",
        cancel_components=_cancel_row,
        clock=clock,
        **options,
    )


def _contents(transport, renderer) -> list[str]:
    return [transport.messages[m.message_id]["content"] for m in renderer.messages]


@pytest.mark.anyio
async def test_start_posts_placeholder_with_cancel_button(transport, clock) -> None:
    renderer = await _start(transport, clock)

    assert renderer.session_id == 1001
    assert renderer.terminal is TerminalState.ACTIVE
    assert _contents(transport, renderer) == ["Generating..."]
    assert transport.with_buttons() == ["1001"]
    components = transport.messages["1001"]["components"]
    assert components[0]["components"][0]["custom_id"] == "cancel#1001#42"


@pytest.mark.anyio
async def test_update_is_debounced_until_interval_elapses(transport, clock) -> None:
    renderer = await _start(transport, clock)
    ops_after_start = len(transport.ops)

    await renderer.update("Hello")
    assert len(transport.ops) == ops_after_start
    assert renderer.buffer == "Hello"

    clock.advance(1.5)
    await renderer.update("Hello there")
    assert transport.messages["1001"]["content"] == "Hello"


@pytest.mark.anyio
async def test_debounce_requires_strictly_more_than_interval(transport, clock) -> None:
    renderer = await _start(transport, clock)
    clock.advance(1.0)
    await renderer.update("Hello")
    assert transport.messages["1001"]["content"] == "Generating..."


@pytest.mark.anyio
async def test_growing_buffer_spreads_over_replies_with_one_button(transport, clock) -> None:
    renderer = await _start(transport, clock)
    clock.advance(2)
    await renderer.update("Hello world, this is a test.")

    assert _contents(transport, renderer) == ["Hello", "world, this", "is a test."]
    last = renderer.messages[-1].message_id
    assert transport.with_buttons() == [last]
    assert transport.messages[last]["reply_to"] == renderer.messages[1].message_id
    assert transport.messages[renderer.messages[1].message_id]["reply_to"] == "1001"


@pytest.mark.anyio
async def test_sync_is_idempotent(transport, clock) -> None:
    renderer = await _start(transport, clock)
    clock.advance(2)
    await renderer.update("Hello world, this is a test.")
    before = list(transport.ops)

    await renderer.sync_messages_with_chunks()

    assert transport.ops == before


@pytest.mark.anyio
async def test_shrinking_buffer_deletes_trailing_messages(transport, clock) -> None:
    renderer = await _start(transport, clock)
    clock.advance(2)
    await renderer.update("Hello world, this is a test.")
    clock.advance(2)
    await renderer.update("Hi")

    assert _contents(transport, renderer) == ["Hi"]
    assert len(transport.messages) == 1
    assert transport.with_buttons() == ["1001"]


@pytest.mark.anyio
async def test_empty_text_falls_back_to_placeholder(transport, clock) -> None:
    renderer = await _start(transport, clock)
    clock.advance(2)
    await renderer.update("words")
    clock.advance(2)
    await renderer.update("   ")
    assert _contents(transport, renderer) == ["Generating..."]


@pytest.mark.anyio
async def test_finish_flushes_pending_text_and_removes_buttons(transport, clock) -> None:
    renderer = await _start(transport, clock)
    await renderer.update("Hello world, this is a test.")

    await renderer.finish()

    assert renderer.terminal is TerminalState.FINISHED
    assert _contents(transport, renderer) == ["Hello", "world, this", "is a test."]
    assert transport.with_buttons() == []
    assert renderer.notice_id is None


@pytest.mark.anyio
async def test_cancelled_strikes_through_and_replies_with_notice(transport, clock) -> None:
    renderer = await _start(transport, clock)
    clock.advance(2)
    await renderer.update("Hello world")

    await renderer.cancelled()

    assert renderer.terminal is TerminalState.CANCELLED
    assert _contents(transport, renderer) == ["~~Hello~~", "~~world~~"]
    notice = transport.messages[renderer.notice_id]
    assert notice["content"] == "Cancelled."
    assert notice["reply_to"] == renderer.messages[-1].message_id
    assert transport.with_buttons() == []


@pytest.mark.anyio
async def test_error_notice_is_truncated_to_chunk_length(transport, clock) -> None:
    renderer = await _start(transport, clock, max_chunk_length=12)

    await renderer.error("something went badly wrong")

    assert renderer.terminal is TerminalState.ERRORED
    assert _contents(transport, renderer) == ["~~Generating...~~"]
    assert transport.messages[renderer.notice_id]["content"] == "Error: so..."


@pytest.mark.anyio
@pytest.mark.parametrize("terminal", ["error", "cancelled"])
async def test_terminal_messages_fit_the_message_limit(transport, clock, terminal) -> None:
    limit = 2000
    renderer = await _start(
        transport, clock, max_chunk_length=chunk_length_for_message_limit(limit)
    )
    clock.advance(2)
    await renderer.update(" ".join(["abcd"] * 400) + "\n\n    " + "efgh " * 500)

    if terminal == "error":
        await renderer.error("boom " * 1000)
    else:
        await renderer.cancelled()

    lengths = [len(content) for content in _contents(transport, renderer)]
    assert len(lengths) > 1
    assert max(lengths) <= limit
    assert len(transport.messages[renderer.notice_id]["content"]) <= limit


@pytest.mark.anyio
async def test_terminal_state_is_final(transport, clock) -> None:
    renderer = await _start(transport, clock)
    await renderer.finish()
    ops = list(transport.ops)

    await renderer.update("more")
    await renderer.error("late")
    await renderer.cancelled()
    await renderer.finish()

    assert transport.ops == ops
    assert renderer.terminal is TerminalState.FINISHED


@pytest.mark.anyio
async def test_transport_failures_propagate(transport, clock) -> None:
    renderer = await _start(transport, clock)
    transport.fail_on.add("edit")
    clock.advance(2)

    with pytest.raises(TransportError):
        await renderer.update("Hello")
