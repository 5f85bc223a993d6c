from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping, Optional, Protocol, Union

import openai
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .core.exceptions import UpstreamModelError

logger = logging.getLogger(__name__)

UNSET_API_KEY = "unset"


@dataclass(frozen=True)
class SystemMessage:
    content: str
    name: Optional[str] = None
    role: str = field(default="system", init=False)


@dataclass(frozen=True)
class UserMessage:
    content: str
    name: Optional[str] = None
    role: str = field(default="user", init=False)


@dataclass(frozen=True)
class AssistantMessage:
    content: str
    name: Optional[str] = None
    role: str = field(default="assistant", init=False)


ChatMessage = Union[SystemMessage, UserMessage, AssistantMessage]

MESSAGE_TYPES: dict[str, type] = {
    "system": SystemMessage,
    "user": UserMessage,
    "assistant": AssistantMessage,
}


def chat_message_from_mapping(raw: Mapping[str, Any]) -> ChatMessage:
    """Validate a role/content/name mapping; unknown roles are rejected."""
    role = raw.get("role")
    message_type = MESSAGE_TYPES.get(role) if isinstance(role, str) else None
    if message_type is None:
        raise ValueError(f"unknown role `{role}`")
    content = raw.get("content")
    if not isinstance(content, str):
        raise ValueError(f"{role} message content must be a string")
    name = raw.get("name")
    if name is not None and not isinstance(name, str):
        raise ValueError(f"{role} message name must be a string")
    return message_type(content=content, name=name)


def message_to_payload(message: ChatMessage) -> dict[str, Any]:
    payload: dict[str, Any] = {"role": message.role, "content": message.content}
    if message.name:
        payload["name"] = message.name
    return payload


@dataclass(frozen=True)
class CompletionRequest:
    model: str
    messages: tuple[ChatMessage, ...]
    seed: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [message_to_payload(message) for message in self.messages],
        }
        if self.seed is not None:
            payload["seed"] = self.seed
        return payload


class CompletionBackend(Protocol):
    async def complete(self, request: CompletionRequest) -> str: ...

    def stream_completion(self, request: CompletionRequest) -> AsyncIterator[str]: ...


class ModelClient:
    """Thin wrapper around the OpenAI-compatible chat completions API."""

    def __init__(
        self,
        *,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[openai.AsyncOpenAI] = None,
    ) -> None:
        self._client = client or openai.AsyncOpenAI(
            base_url=api_base or None,
            api_key=api_key or UNSET_API_KEY,
        )

    async def close(self) -> None:
        await self._client.close()

    async def list_models(self, *, max_attempts: int = 3) -> tuple[str, ...]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1.0, max=10.0),
            retry=retry_if_exception_type(UpstreamModelError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                try:
                    models = [model.id async for model in self._client.models.list()]
                except openai.OpenAIError as exc:
                    raise UpstreamModelError(f"failed to list models: {exc}") from exc
        return tuple(sorted(models))

    async def complete(self, request: CompletionRequest) -> str:
        try:
            response = await self._client.chat.completions.create(
                **request.to_payload()
            )
        except openai.OpenAIError as exc:
            raise UpstreamModelError(str(exc)) from exc
        if not response.choices:
            raise UpstreamModelError("model returned no choices")
        return response.choices[0].message.content or ""

    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                **request.to_payload(), stream=True
            )
        except openai.OpenAIError as exc:
            raise UpstreamModelError(str(exc)) from exc
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except openai.OpenAIError as exc:
            raise UpstreamModelError(str(exc)) from exc
        finally:
            await stream.close()
