from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import platform
import random
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, AsyncContextManager, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ...core.logging_utils import log_event
from .constants import DISCORD_GATEWAY_URL
from .errors import DiscordAPIError, DiscordPermanentError

logger = logging.getLogger(__name__)

# The bot only reacts to these; everything else the gateway sends is dropped.
DISPATCH_EVENTS = frozenset({"READY", "INTERACTION_CREATE"})

# Bad token, bad shard, bad or disallowed intents.
FATAL_CLOSE_CODES = frozenset({4004, 4010, 4011, 4012, 4013, 4014})

# Close code used when Discord stops acknowledging heartbeats.
ZOMBIE_CLOSE_CODE = 4000

DispatchHandler = Callable[[str, dict[str, Any]], Awaitable[None]]
Connector = Callable[[str], AsyncContextManager[Any]]


class Op(IntEnum):
    DISPATCH = 0
    HEARTBEAT = 1
    IDENTIFY = 2
    RECONNECT = 7
    INVALID_SESSION = 9
    HELLO = 10
    HEARTBEAT_ACK = 11


@dataclass(frozen=True)
class Frame:
    op: int
    data: Any = None
    seq: Optional[int] = None
    event: Optional[str] = None


def decode_frame(raw: str | bytes) -> Frame:
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise DiscordAPIError(f"undecodable gateway frame: {exc}") from exc
    if not isinstance(payload, dict):
        raise DiscordAPIError("gateway frame is not a JSON object")
    op = payload.get("op")
    if type(op) is not int:
        raise DiscordAPIError(f"gateway frame without an opcode: {payload!r}")
    seq = payload.get("s")
    event = payload.get("t")
    return Frame(
        op=op,
        data=payload.get("d"),
        seq=seq if type(seq) is int else None,
        event=event if isinstance(event, str) else None,
    )


def identify_payload(*, bot_token: str, intents: int) -> dict[str, Any]:
    return {
        "op": Op.IDENTIFY,
        "d": {
            "token": bot_token,
            "intents": intents,
            "properties": {
                "os": platform.system().lower() or "unknown",
                "browser": "llmcord",
                "device": "llmcord",
            },
        },
    }


def reconnect_delay(
    attempt: int,
    *,
    base: float = 1.0,
    cap: float = 30.0,
    rand: Callable[[], float] = random.random,
) -> float:
    """Exponential delay with up to 50% jitter taken off, never above ``cap``."""
    ceiling = min(cap, base * (2 ** min(max(attempt, 0), 16)))
    return max(ceiling * (1.0 - 0.5 * rand()), 0.0)


def _close_code(exc: ConnectionClosed) -> Optional[int]:
    received = getattr(exc, "rcvd", None)
    return received.code if received is not None else None


class _Session:
    """One websocket connection: identify, heartbeat, and dispatch until it ends."""

    def __init__(
        self,
        websocket: Any,
        *,
        bot_token: str,
        intents: int,
        rand: Callable[[], float],
    ) -> None:
        self._websocket = websocket
        self._bot_token = bot_token
        self._intents = intents
        self._rand = rand
        self._seq: Optional[int] = None
        self._awaiting_ack = False
        self.ready = False

    async def _send(self, payload: dict[str, Any]) -> None:
        await self._websocket.send(json.dumps(payload))

    async def _heartbeat(self) -> None:
        await self._send({"op": Op.HEARTBEAT, "d": self._seq})

    async def _keep_alive(self, interval: float) -> None:
        await asyncio.sleep(interval * self._rand())
        while True:
            if self._awaiting_ack:
                log_event(logger, logging.WARNING, "discord.gateway.zombie")
                await self._websocket.close(code=ZOMBIE_CLOSE_CODE)
                return
            self._awaiting_ack = True
            await self._heartbeat()
            await asyncio.sleep(interval)

    async def run(self, on_dispatch: DispatchHandler) -> None:
        hello = decode_frame(await self._websocket.recv())
        interval_ms = hello.data.get("heartbeat_interval") if isinstance(hello.data, dict) else None
        if hello.op != Op.HELLO or not isinstance(interval_ms, (int, float)) or interval_ms <= 0:
            raise DiscordAPIError("gateway did not open with a usable HELLO")

        keep_alive = asyncio.create_task(self._keep_alive(interval_ms / 1000.0))
        try:
            await self._send(identify_payload(bot_token=self._bot_token, intents=self._intents))
            async for raw in self._websocket:
                if not await self._handle(decode_frame(raw), on_dispatch):
                    return
        finally:
            keep_alive.cancel()
            with contextlib.suppress(asyncio.CancelledError, ConnectionClosed):
                await keep_alive

    async def _handle(self, frame: Frame, on_dispatch: DispatchHandler) -> bool:
        if frame.seq is not None:
            self._seq = frame.seq
        if frame.op == Op.DISPATCH:
            if frame.event == "READY":
                self.ready = True
            if frame.event in DISPATCH_EVENTS and isinstance(frame.data, dict):
                await on_dispatch(frame.event, frame.data)
        elif frame.op == Op.HEARTBEAT:
            await self._heartbeat()
        elif frame.op == Op.HEARTBEAT_ACK:
            self._awaiting_ack = False
        elif frame.op in (Op.RECONNECT, Op.INVALID_SESSION):
            log_event(logger, logging.INFO, "discord.gateway.reconnect_requested", op=frame.op)
            return False
        return True


class DiscordGatewayClient:
    """Keeps a gateway connection open and hands READY and INTERACTION_CREATE on.

    Every reconnect identifies afresh; there is no session resume. Fatal close
    codes and rejected credentials end ``run`` with ``DiscordPermanentError``.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        intents: int,
        gateway_url: Optional[str] = None,
        connect: Optional[Connector] = None,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self._bot_token = bot_token
        self._intents = intents
        self._gateway_url = gateway_url or DISCORD_GATEWAY_URL
        self._connect: Connector = connect or websockets.connect
        self._rand = rand
        self._stopping = asyncio.Event()
        self._websocket: Any = None

    async def stop(self) -> None:
        self._stopping.set()
        if self._websocket is not None:
            with contextlib.suppress(ConnectionClosed, OSError):
                await self._websocket.close()

    async def run(self, on_dispatch: DispatchHandler) -> None:
        attempt = 0
        while not self._stopping.is_set():
            ready = await self._connect_once(on_dispatch)
            if self._stopping.is_set():
                return
            attempt = 0 if ready else attempt + 1
            delay = reconnect_delay(attempt, rand=self._rand)
            log_event(logger, logging.INFO, "discord.gateway.reconnecting", delay=delay)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)

    async def _connect_once(self, on_dispatch: DispatchHandler) -> bool:
        session: Optional[_Session] = None
        try:
            async with self._connect(self._gateway_url) as websocket:
                self._websocket = websocket
                session = _Session(
                    websocket,
                    bot_token=self._bot_token,
                    intents=self._intents,
                    rand=self._rand,
                )
                await session.run(on_dispatch)
        except ConnectionClosed as exc:
            code = _close_code(exc)
            if code in FATAL_CLOSE_CODES:
                log_event(logger, logging.ERROR, "discord.gateway.halted", close_code=code)
                raise DiscordPermanentError(
                    f"Discord gateway closed with fatal code {code}"
                ) from exc
            log_event(logger, logging.INFO, "discord.gateway.closed", close_code=code)
        except DiscordPermanentError:
            raise
        except (DiscordAPIError, WebSocketException, OSError, asyncio.TimeoutError) as exc:
            log_event(logger, logging.WARNING, "discord.gateway.error", exc=exc)
        finally:
            self._websocket = None
        return session is not None and session.ready
