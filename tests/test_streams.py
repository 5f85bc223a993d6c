from __future__ import annotations

import asyncio

import pytest

from llmcord.streams import Channel, Data, SideOutput, StreamMerger


async def _items(*values, delay: float = 0.0):
    for value in values:
        if delay:
            await asyncio.sleep(delay)
        yield value


async def _collect(merger) -> list:
    return [item async for item in merger]


@pytest.mark.anyio
async def test_channel_delivers_items_until_closed() -> None:
    channel: Channel[int] = Channel()
    channel.send(1)
    channel.send(2)
    channel.close()

    assert [item async for item in channel] == [1, 2]
    assert channel.closed


@pytest.mark.anyio
async def test_merged_stream_ends_with_primary() -> None:
    side: Channel[SideOutput] = Channel()
    merger = StreamMerger(_items(Data("a"), Data("b")), side)

    assert await _collect(merger) == [Data("a"), Data("b")]


@pytest.mark.anyio
async def test_secondary_exhaustion_does_not_end_the_merge() -> None:
    merger = StreamMerger(
        _items(Data("a"), Data("b"), delay=0.01), _items(SideOutput("x"))
    )

    items = await _collect(merger)

    assert items == [SideOutput("x"), Data("a"), Data("b")]


@pytest.mark.anyio
async def test_primary_wins_when_both_are_ready() -> None:
    side: Channel[SideOutput] = Channel()
    side.send(SideOutput("x"))
    merger = StreamMerger(_items(Data("a"), Data("b")), side)

    assert await _collect(merger) == [Data("a"), Data("b")]


@pytest.mark.anyio
async def test_queued_side_output_never_follows_the_primary_end() -> None:
    side: Channel[SideOutput] = Channel()

    async def primary():
        side.send(SideOutput("early"))
        yield Data("a")
        side.send(SideOutput("late"))
        side.send(SideOutput("later"))

    items = await _collect(StreamMerger(primary(), side))

    assert items == [Data("a")]
    assert side.drain_nowait() == [
        SideOutput("early"),
        SideOutput("late"),
        SideOutput("later"),
    ]


@pytest.mark.anyio
async def test_interleaves_side_output_produced_while_primary_waits() -> None:
    side: Channel[SideOutput] = Channel()

    async def primary():
        side.send(SideOutput("working"))
        await asyncio.sleep(0.01)
        yield Data("done")

    items = await _collect(StreamMerger(primary(), side))

    assert items == [SideOutput("working"), Data("done")]


@pytest.mark.anyio
async def test_aclose_closes_both_sides() -> None:
    closed: list[str] = []

    async def tracked(name: str):
        try:
            while True:
                await asyncio.sleep(0.01)
                yield Data(name)
        finally:
            closed.append(name)

    merger = StreamMerger(tracked("primary"), tracked("secondary"))
    await merger.__anext__()
    await merger.aclose()

    assert sorted(closed) == ["primary", "secondary"]
    with pytest.raises(StopAsyncIteration):
        await merger.__anext__()
