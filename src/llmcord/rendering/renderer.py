from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..cancellation import CancelToken
from ..core.logging_utils import log_event
from .chunking import DEFAULT_MAX_CHUNK_LENGTH, split_into_chunks, truncate_text
from .transport import MessageTransport

logger = logging.getLogger(__name__)

DEFAULT_MIN_SYNC_INTERVAL_SECONDS = 1.0
CANCELLED_NOTICE = "Cancelled."
STRIKETHROUGH = "~~"

# A chunk may run one character past its limit, and terminal states wrap it
# in strikethrough markup.
TERMINAL_OVERHEAD = 1 + 2 * len(STRIKETHROUGH)

CancelComponentsFactory = Callable[[CancelToken], list[dict[str, Any]]]


class TerminalState(str, enum.Enum):
    ACTIVE = "active"
    FINISHED = "finished"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass
class RenderedMessage:
    message_id: str
    content: str
    has_cancel: bool = False


def strikethrough(text: str) -> str:
    return f"{STRIKETHROUGH}{text}{STRIKETHROUGH}" if text else text


def chunk_length_for_message_limit(message_limit: int) -> int:
    """Largest ``max_chunk_length`` whose messages stay within ``message_limit``."""
    return message_limit - TERMINAL_OVERHEAD


class ChunkedRenderer:
    """Mirror a growing text buffer onto an ordered list of remote messages.

    The buffer is re-chunked on every ``update``; remote messages are only
    synced once per ``min_sync_interval`` while the session is active, and
    always once more on the transition to a terminal state. The cancel
    affordance lives on the last message while active and on none after.
    Transport failures propagate to the caller untouched.
    """

    def __init__(
        self,
        transport: MessageTransport,
        first_message_id: str,
        *,
        owner_id: int,
        placeholder: str,
        cancel_components: CancelComponentsFactory,
        min_sync_interval: float = DEFAULT_MIN_SYNC_INTERVAL_SECONDS,
        max_chunk_length: int = DEFAULT_MAX_CHUNK_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._owner_id = owner_id
        self._placeholder = placeholder
        self._cancel_components = cancel_components
        self._min_sync_interval = min_sync_interval
        self._max_chunk_length = max_chunk_length
        self._clock = clock
        self._session_id = int(first_message_id)
        self._buffer = ""
        self._chunks: list[str] = [placeholder]
        self._messages: list[RenderedMessage] = [
            RenderedMessage(message_id=first_message_id, content=placeholder)
        ]
        self._terminal = TerminalState.ACTIVE
        self._last_sync = clock()
        self._notice_id: Optional[str] = None

    @classmethod
    async def start(
        cls,
        transport: MessageTransport,
        *,
        owner_id: int,
        placeholder: str,
        cancel_components: CancelComponentsFactory,
        min_sync_interval: float = DEFAULT_MIN_SYNC_INTERVAL_SECONDS,
        max_chunk_length: int = DEFAULT_MAX_CHUNK_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ) -> "ChunkedRenderer":
        first = await transport.create_message(placeholder)
        renderer = cls(
            transport,
            first.message_id,
            owner_id=owner_id,
            placeholder=placeholder,
            cancel_components=cancel_components,
            min_sync_interval=min_sync_interval,
            max_chunk_length=max_chunk_length,
            clock=clock,
        )
        await renderer.sync_messages_with_chunks()
        log_event(
            logger,
            logging.INFO,
            "render.session.started",
            session_id=renderer.session_id,
            owner_id=owner_id,
        )
        return renderer

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def cancel_token(self) -> CancelToken:
        return CancelToken(session_id=self._session_id, requester_id=self._owner_id)

    @property
    def terminal(self) -> TerminalState:
        return self._terminal

    @property
    def is_active(self) -> bool:
        return self._terminal is TerminalState.ACTIVE

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def chunks(self) -> tuple[str, ...]:
        return tuple(self._chunks)

    @property
    def messages(self) -> tuple[RenderedMessage, ...]:
        return tuple(self._messages)

    @property
    def notice_id(self) -> Optional[str]:
        return self._notice_id

    async def update(self, text: str) -> None:
        if not self.is_active:
            return
        self._buffer = text
        self._chunks = split_into_chunks(text, self._max_chunk_length) or [
            self._placeholder
        ]
        now = self._clock()
        if now - self._last_sync > self._min_sync_interval:
            self._last_sync = now
            await self.sync_messages_with_chunks()

    async def finish(self) -> None:
        if not self.is_active:
            return
        self._terminal = TerminalState.FINISHED
        await self._strip_cancel_buttons()
        await self.sync_messages_with_chunks()
        self._log_terminal()

    async def error(self, message: str) -> None:
        await self._finish_with_message(f"Error: {message}", TerminalState.ERRORED)

    async def cancelled(self) -> None:
        await self._finish_with_message(CANCELLED_NOTICE, TerminalState.CANCELLED)

    async def _finish_with_message(self, text: str, state: TerminalState) -> None:
        if not self.is_active:
            return
        self._terminal = state
        self._chunks = [strikethrough(chunk) for chunk in self._chunks]
        await self._strip_cancel_buttons()
        await self.sync_messages_with_chunks()
        notice = await self._transport.create_message(
            truncate_text(text, self._max_chunk_length),
            reply_to=self._messages[-1].message_id,
        )
        self._notice_id = notice.message_id
        self._log_terminal()

    async def sync_messages_with_chunks(self) -> None:
        chunks = self._chunks

        for message, chunk in zip(self._messages, chunks):
            if message.content != chunk:
                await self._transport.edit_message(message.message_id, content=chunk)
                message.content = chunk

        while len(self._messages) > len(chunks):
            await self._transport.delete_message(self._messages[-1].message_id)
            self._messages.pop()

        if len(chunks) > len(self._messages):
            await self._strip_cancel_buttons()
            for index in range(len(self._messages), len(chunks)):
                with_cancel = self.is_active and index == len(chunks) - 1
                created = await self._transport.create_message(
                    chunks[index],
                    components=(
                        self._cancel_components(self.cancel_token)
                        if with_cancel
                        else None
                    ),
                    reply_to=self._messages[-1].message_id,
                )
                self._messages.append(
                    RenderedMessage(
                        message_id=created.message_id,
                        content=chunks[index],
                        has_cancel=with_cancel,
                    )
                )

        if self.is_active and not self._messages[-1].has_cancel:
            last = self._messages[-1]
            await self._transport.edit_message(
                last.message_id,
                components=self._cancel_components(self.cancel_token),
            )
            last.has_cancel = True

    async def _strip_cancel_buttons(self) -> None:
        for message in self._messages:
            if message.has_cancel:
                await self._transport.edit_message(message.message_id, components=[])
                message.has_cancel = False

    def _log_terminal(self) -> None:
        log_event(
            logger,
            logging.INFO,
            "render.session.terminal",
            session_id=self._session_id,
            state=self._terminal.value,
            message_count=len(self._messages),
            buffer_length=len(self._buffer),
        )
