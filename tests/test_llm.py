from __future__ import annotations

import json

import httpx
import openai
import pytest

from llmcord.core.exceptions import UpstreamModelError
from llmcord.llm import (
    AssistantMessage,
    CompletionRequest,
    ModelClient,
    SystemMessage,
    UserMessage,
    chat_message_from_mapping,
)


def _model_client(handler) -> ModelClient:
    client = openai.AsyncOpenAI(
        base_url="https://llm.test/v1",
        api_key="test-key",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return ModelClient(client=client)


def _sse(*chunks: dict) -> bytes:
    lines = [f"data: {json.dumps(chunk)}\n\n" for chunk in chunks]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def _delta(content) -> dict:
    return {
        "id": "chunk",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "m1",
        "choices": [
            {"index": 0, "delta": {"content": content}, "finish_reason": None}
        ],
    }


def test_messages_are_validated_at_the_boundary() -> None:
    assert chat_message_from_mapping({"role": "user", "content": "hi"}) == UserMessage(
        "hi"
    )
    assert chat_message_from_mapping(
        {"role": "assistant", "content": "ok", "name": "bot"}
    ) == AssistantMessage("ok", name="bot")
    with pytest.raises(ValueError, match="unknown role"):
        chat_message_from_mapping({"role": "tool", "content": "x"})
    with pytest.raises(ValueError):
        chat_message_from_mapping({"role": "user", "content": 3})
    with pytest.raises(ValueError):
        chat_message_from_mapping({"role": "user", "content": "x", "name": 1})


def test_request_payload() -> None:
    request = CompletionRequest(
        model="m1",
        messages=(SystemMessage("be nice"), UserMessage("hi", name="sam")),
        seed=3,
    )
    assert request.to_payload() == {
        "model": "m1",
        "messages": [
            {"role": "system", "content": "be nice"},
            {"role": "user", "content": "hi", "name": "sam"},
        ],
        "seed": 3,
    }
    assert "seed" not in CompletionRequest(model="m1", messages=()).to_payload()


@pytest.mark.anyio
async def test_list_models_is_sorted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/models"
        return httpx.Response(
            200,
            json={
                "object": "list",
                "data": [
                    {"id": "zeta", "object": "model", "created": 0, "owned_by": "x"},
                    {"id": "alpha", "object": "model", "created": 0, "owned_by": "x"},
                ],
            },
        )

    client = _model_client(handler)
    try:
        assert await client.list_models() == ("alpha", "zeta")
    finally:
        await client.close()


@pytest.mark.anyio
async def test_list_models_retries_upstream_failures() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(500, json={"error": {"message": "busy"}})
        return httpx.Response(
            200,
            json={
                "object": "list",
                "data": [{"id": "m1", "object": "model", "created": 0, "owned_by": "x"}],
            },
        )

    client = _model_client(handler)
    try:
        assert await client.list_models(max_attempts=2) == ("m1",)
    finally:
        await client.close()
    assert calls["count"] == 2


@pytest.mark.anyio
async def test_list_models_gives_up_after_max_attempts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "bad key"}})

    client = _model_client(handler)
    try:
        with pytest.raises(UpstreamModelError):
            await client.list_models(max_attempts=1)
    finally:
        await client.close()


@pytest.mark.anyio
async def test_stream_completion_yields_non_empty_deltas() -> None:
    observed = {}

    def handler(request: httpx.Request) -> httpx.Response:
        observed["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=_sse(_delta("Hel"), _delta(""), _delta(None), _delta("lo")),
        )

    client = _model_client(handler)
    request = CompletionRequest(model="m1", messages=(UserMessage("hi"),), seed=1)
    try:
        deltas = [delta async for delta in client.stream_completion(request)]
    finally:
        await client.close()

    assert deltas == ["Hel", "lo"]
    assert observed["body"]["stream"] is True
    assert observed["body"]["seed"] == 1
    assert observed["body"]["messages"] == [{"role": "user", "content": "hi"}]


@pytest.mark.anyio
async def test_stream_completion_wraps_api_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "no such model"}})

    client = _model_client(handler)
    request = CompletionRequest(model="nope", messages=(UserMessage("hi"),))
    try:
        with pytest.raises(UpstreamModelError):
            async for _ in client.stream_completion(request):
                pass
    finally:
        await client.close()


@pytest.mark.anyio
async def test_complete_returns_message_content() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": "c",
                "object": "chat.completion",
                "created": 0,
                "model": "m1",
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": "Hello!"},
                        "finish_reason": "stop",
                    }
                ],
            },
        )

    client = _model_client(handler)
    try:
        text = await client.complete(
            CompletionRequest(model="m1", messages=(UserMessage("hi"),))
        )
    finally:
        await client.close()
    assert text == "Hello!"
