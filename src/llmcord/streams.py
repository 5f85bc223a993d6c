from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import AsyncIterator, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Data:
    value: Optional[str]


@dataclass(frozen=True)
class Error:
    error: BaseException


@dataclass(frozen=True)
class SideOutput:
    text: str
    kind: str = "output"


Token = Union[Data, Error]
StreamItem = Union[Data, Error, SideOutput]

_CLOSED = object()


class Channel(Generic[T]):
    """Unbounded single-consumer channel that can be iterated asynchronously."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    def send(self, item: T) -> None:
        if self._closed:
            return
        self._queue.put_nowait(item)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def drain_nowait(self) -> list[T]:
        """Take every item already queued without waiting for more."""
        items: list[T] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                break
            items.append(item)  # type: ignore[arg-type]
        return items

    def __aiter__(self) -> "Channel[T]":
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


async def _next_item(iterator: AsyncIterator[T]) -> T:
    return await iterator.__anext__()


class StreamMerger(Generic[T]):
    """Merge a primary stream with a secondary one, primary first.

    Primary items always win when both sides are ready. The merged stream ends
    as soon as the primary does; secondary exhaustion alone never ends it and
    any secondary items still queued at that point are dropped.
    """

    def __init__(self, primary: AsyncIterator[T], secondary: AsyncIterator[T]) -> None:
        self._primary = primary
        self._secondary = secondary
        self._primary_task: Optional[asyncio.Task[T]] = None
        self._secondary_task: Optional[asyncio.Task[T]] = None
        self._secondary_done = False
        self._finished = False

    def __aiter__(self) -> "StreamMerger[T]":
        return self

    async def __anext__(self) -> T:
        while True:
            if self._finished:
                raise StopAsyncIteration

            if self._primary_task is None:
                self._primary_task = asyncio.ensure_future(_next_item(self._primary))
                # One loop turn lets an already available primary item (or the
                # primary's end) win over queued secondary items.
                await asyncio.sleep(0)
            if self._primary_task.done():
                task, self._primary_task = self._primary_task, None
                try:
                    return task.result()
                except StopAsyncIteration:
                    await self.aclose()
                    raise

            if not self._secondary_done:
                if self._secondary_task is None:
                    self._secondary_task = asyncio.ensure_future(
                        _next_item(self._secondary)
                    )
                if self._secondary_task.done():
                    task, self._secondary_task = self._secondary_task, None
                    try:
                        return task.result()
                    except StopAsyncIteration:
                        self._secondary_done = True
                        continue

            waiting = [self._primary_task]
            if self._secondary_task is not None:
                waiting.append(self._secondary_task)
            await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

    async def aclose(self) -> None:
        if self._finished:
            return
        self._finished = True
        pending = [
            task
            for task in (self._primary_task, self._secondary_task)
            if task is not None
        ]
        self._primary_task = None
        self._secondary_task = None
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for iterator in (self._primary, self._secondary):
            closer = getattr(iterator, "aclose", None)
            if closer is not None:
                with contextlib.suppress(RuntimeError, StopAsyncIteration):
                    await closer()
