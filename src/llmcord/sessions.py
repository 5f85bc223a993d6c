from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, Optional

from .cancellation import CancellationListener
from .core.exceptions import TransportError, UpstreamModelError
from .core.logging_utils import log_event
from .rendering.renderer import ChunkedRenderer, TerminalState
from .scripting.engine import ScriptEngine
from .streams import Channel, Data, Error, SideOutput, StreamItem, StreamMerger

logger = logging.getLogger(__name__)

EMPTY_SCRIPT_OUTPUT = "*The script finished without output.*"


async def _recover_from_transport_error(
    renderer: ChunkedRenderer, exc: TransportError
) -> None:
    log_event(
        logger,
        logging.WARNING,
        "render.session.transport_failed",
        session_id=renderer.session_id,
        state=renderer.terminal.value,
        exc=exc,
    )
    if not renderer.is_active:
        raise exc
    await renderer.error(f"Failed to update messages: {exc}")


async def _cancel_if_requested(
    renderer: ChunkedRenderer, listener: CancellationListener
) -> bool:
    if not listener.try_take(renderer.session_id):
        return False
    log_event(
        logger,
        logging.INFO,
        "render.session.cancel_observed",
        session_id=renderer.session_id,
    )
    await renderer.cancelled()
    return True


async def run_model_session(
    renderer: ChunkedRenderer,
    listener: CancellationListener,
    deltas: AsyncIterator[str],
    *,
    compose: Callable[[str], str] = lambda text: text,
) -> TerminalState:
    """Append streamed deltas to the buffer until the stream ends or is cancelled."""
    text = ""
    try:
        try:
            async for delta in deltas:
                if await _cancel_if_requested(renderer, listener):
                    return renderer.terminal
                text += delta
                await renderer.update(compose(text))
        except UpstreamModelError as exc:
            await renderer.error(str(exc))
            return renderer.terminal
        finally:
            closer = getattr(deltas, "aclose", None)
            if closer is not None:
                await closer()
        await renderer.finish()
    except TransportError as exc:
        await _recover_from_transport_error(renderer, exc)
    return renderer.terminal


class ScriptTranscript:
    """What a running script has shown so far: side output plus its latest value."""

    def __init__(self, *, escape_print: Callable[[str], str] = str) -> None:
        self._escape_print = escape_print
        self._lines: list[str] = []
        self.result: Optional[str] = None

    def add(self, event: SideOutput) -> None:
        text = event.text if event.kind == "output" else self._escape_print(event.text)
        self._lines.append(text)

    @property
    def empty(self) -> bool:
        return not self._lines and not self.result

    def render(self) -> str:
        parts = list(self._lines)
        if self.result:
            parts.append(self.result)
        return "\n".join(parts)


async def _recorded(
    events: Channel[SideOutput], transcript: ScriptTranscript
) -> AsyncIterator[StreamItem]:
    async for event in events:
        transcript.add(event)
        yield event


async def run_script_session(
    renderer: ChunkedRenderer,
    listener: CancellationListener,
    engine: ScriptEngine,
    side_output: Channel[SideOutput],
    *,
    escape_print: Callable[[str], str] = str,
) -> TerminalState:
    """Render a script's merged primary and side-output streams."""
    transcript = ScriptTranscript(escape_print=escape_print)
    merged: StreamMerger[StreamItem] = StreamMerger(
        engine.run(), _recorded(side_output, transcript)
    )
    try:
        try:
            async for item in merged:
                if await _cancel_if_requested(renderer, listener):
                    return renderer.terminal
                if isinstance(item, Error):
                    await renderer.error(str(item.error))
                    return renderer.terminal
                if isinstance(item, Data):
                    if item.value is None:
                        continue
                    transcript.result = item.value
                await renderer.update(transcript.render())
        finally:
            await merged.aclose()
            side_output.close()
        # The merge ends with the script; output from its last step may still be queued.
        for event in side_output.drain_nowait():
            transcript.add(event)
        await renderer.update(
            EMPTY_SCRIPT_OUTPUT if transcript.empty else transcript.render()
        )
        await renderer.finish()
    except TransportError as exc:
        await _recover_from_transport_error(renderer, exc)
    return renderer.terminal
