from __future__ import annotations

import asyncio
import builtins
import inspect
import math
from typing import Any, Callable, Mapping, Optional

from ..llm import CompletionBackend, CompletionRequest, chat_message_from_mapping
from ..streams import Channel, SideOutput

OUTPUT_SEPARATOR = "\t"
DEFAULT_SEED = 0

SAFE_BUILTINS: dict[str, Any] = {
    name: getattr(builtins, name)
    for name in (
        "abs",
        "all",
        "any",
        "ascii",
        "bin",
        "bool",
        "chr",
        "dict",
        "divmod",
        "enumerate",
        "filter",
        "float",
        "frozenset",
        "hex",
        "int",
        "isinstance",
        "len",
        "list",
        "map",
        "max",
        "min",
        "oct",
        "ord",
        "pow",
        "range",
        "repr",
        "reversed",
        "round",
        "set",
        "slice",
        "sorted",
        "str",
        "sum",
        "tuple",
        "zip",
        "ArithmeticError",
        "Exception",
        "IndexError",
        "KeyError",
        "LookupError",
        "RuntimeError",
        "StopAsyncIteration",
        "TypeError",
        "ValueError",
        "ZeroDivisionError",
    )
}


def join_values(values: tuple[Any, ...]) -> str:
    return OUTPUT_SEPARATOR.join(str(value) for value in values)


async def sleep(milliseconds: float) -> None:
    if isinstance(milliseconds, bool) or not isinstance(milliseconds, (int, float)):
        raise TypeError("sleep expects a number of milliseconds")
    if milliseconds < 0:
        raise ValueError("sleep duration must be >= 0")
    await asyncio.sleep(milliseconds / 1000)


def _message_builder(role: str) -> Callable[[Any], dict[str, Any]]:
    def build(value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            return {"role": role, "content": value}
        if isinstance(value, Mapping):
            message: dict[str, Any] = {"role": role, "content": value.get("content")}
            if value.get("name") is not None:
                message["name"] = value["name"]
            chat_message_from_mapping(message)
            return message
        raise TypeError(f"model.{role} expects a string or a mapping")

    build.__name__ = role
    return build


class ModelCapability:
    """The ``model`` table scripts see: catalog plus completion helpers."""

    __slots__ = ("_backend", "_models", "system", "user", "assistant")

    def __init__(self, backend: CompletionBackend, models: tuple[str, ...]) -> None:
        self._backend = backend
        self._models = tuple(models)
        self.system = _message_builder("system")
        self.user = _message_builder("user")
        self.assistant = _message_builder("assistant")

    @property
    def models(self) -> tuple[str, ...]:
        return self._models

    async def response(self, args: Mapping[str, Any]) -> str:
        return await self._backend.complete(_build_request(args))

    async def stream(
        self, args: Mapping[str, Any], callback: Optional[Callable[..., Any]] = None
    ) -> str:
        return await self._drive(args, callback, cumulative=True)

    async def by_token(
        self, args: Mapping[str, Any], callback: Optional[Callable[..., Any]] = None
    ) -> str:
        return await self._drive(args, callback, cumulative=False)

    async def _drive(
        self,
        args: Mapping[str, Any],
        callback: Optional[Callable[..., Any]],
        *,
        cumulative: bool,
    ) -> str:
        callback = callback if callback is not None else args.get("callback")
        if not callable(callback):
            raise TypeError("a callback function is required")
        request = _build_request(args)
        text = ""
        deltas = self._backend.stream_completion(request)
        try:
            async for delta in deltas:
                text += delta
                result = callback(text if cumulative else delta)
                if inspect.isawaitable(result):
                    result = await result
                if result is False:
                    break
        finally:
            closer = getattr(deltas, "aclose", None)
            if closer is not None:
                await closer()
        return text


def _build_request(args: Mapping[str, Any]) -> CompletionRequest:
    if not isinstance(args, Mapping):
        raise TypeError("model requests take a mapping of arguments")
    model = args.get("model")
    if not isinstance(model, str) or not model:
        raise ValueError("`model` must be a model name")
    raw_messages = args.get("messages")
    if not isinstance(raw_messages, (list, tuple)):
        raise ValueError("`messages` must be a list")
    messages = []
    for raw in raw_messages:
        if not isinstance(raw, Mapping):
            raise ValueError("each message must be a mapping with role and content")
        messages.append(chat_message_from_mapping(raw))
    seed = args.get("seed", DEFAULT_SEED)
    if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
        raise ValueError("`seed` must be a non-negative integer")
    return CompletionRequest(model=model, messages=tuple(messages), seed=seed)


def build_capabilities(
    side_output: Channel[SideOutput],
    *,
    backend: CompletionBackend,
    models: tuple[str, ...],
) -> dict[str, Any]:
    """Globals for one script run; ``output`` and ``print`` only send events."""

    def output(*values: Any) -> str:
        text = join_values(values)
        side_output.send(SideOutput(text=text, kind="output"))
        return text

    def print_(*values: Any) -> None:
        side_output.send(SideOutput(text=join_values(values), kind="print"))

    return {
        "sleep": sleep,
        "output": output,
        "print": print_,
        "model": ModelCapability(backend, models),
        "math": math,
    }
