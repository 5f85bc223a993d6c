from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .constants import DISCORD_API_BASE_URL
from .errors import DiscordAPIError, DiscordPermanentError, DiscordTransientError

logger = logging.getLogger(__name__)

JsonPayload = Optional[dict[str, Any] | list[dict[str, Any]]]


def _retry_after(response: httpx.Response) -> Optional[float]:
    """Seconds Discord asked us to wait, from the header or the JSON body."""
    raw: Any = response.headers.get("Retry-After")
    if raw is None:
        try:
            body = response.json()
        except ValueError:
            return None
        raw = body.get("retry_after") if isinstance(body, dict) else None
    try:
        return max(float(raw), 0.0) if raw is not None else None
    except (TypeError, ValueError):
        return None


def _error_for(method: str, path: str, response: httpx.Response) -> DiscordAPIError:
    status = response.status_code
    preview = (response.text or "").strip().replace("\n", " ")[:200]
    detail = f"{method} {path} failed: status={status} body={preview!r}"
    if status == 429:
        return DiscordTransientError(
            f"Discord rate limit hit: {detail}",
            status_code=status,
            retry_after=_retry_after(response),
        )
    if status >= 500:
        return DiscordTransientError(f"Discord server error: {detail}", status_code=status)
    if status in (401, 403):
        return DiscordPermanentError(f"Discord rejected credentials: {detail}", status_code=status)
    return DiscordAPIError(f"Discord API error: {detail}", status_code=status)


class DiscordRestClient:
    """The handful of Discord HTTP routes the bot needs.

    Rate limits, server errors and network failures are retried with tenacity;
    a rate limit waits exactly as long as Discord asks. Every other failure
    surfaces as a ``DiscordAPIError`` subclass on the first attempt.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        timeout_seconds: float = 10.0,
        base_url: str = DISCORD_API_BASE_URL,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Authorization": f"Bot {bot_token}"},
        )
        self._max_retries = max_retries
        self._backoff = wait_random_exponential(
            multiplier=retry_base_delay, max=retry_max_delay
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordRestClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def _wait(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None else None
        if isinstance(exc, DiscordTransientError) and exc.retry_after is not None:
            return exc.retry_after
        return self._backoff(retry_state)

    async def _send(
        self, method: str, path: str, payload: JsonPayload
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.TransportError as exc:
            raise DiscordTransientError(
                f"Discord network error on {method} {path}: {exc}"
            ) from exc
        if response.is_error:
            raise _error_for(method, path, response)
        return response

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: JsonPayload = None,
        expect_json: bool = True,
    ) -> Any:
        response: Optional[httpx.Response] = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception_type(DiscordTransientError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await self._send(method, path, payload)
        assert response is not None
        if not expect_json or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise DiscordAPIError(
                f"Discord returned a non-JSON body for {method} {path}"
            ) from exc

    async def _request_object(
        self, method: str, path: str, *, payload: JsonPayload = None
    ) -> dict[str, Any]:
        result = await self._request(method, path, payload=payload)
        return result if isinstance(result, dict) else {}

    async def bulk_overwrite_application_commands(
        self,
        *,
        application_id: str,
        commands: list[dict[str, Any]],
        guild_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        path = f"/applications/{application_id}"
        if guild_id is not None:
            path += f"/guilds/{guild_id}"
        result = await self._request("PUT", f"{path}/commands", payload=commands)
        if not isinstance(result, list):
            return []
        return [item for item in result if isinstance(item, dict)]

    async def create_interaction_response(
        self,
        *,
        interaction_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> None:
        await self._request(
            "POST",
            f"/interactions/{interaction_id}/{interaction_token}/callback",
            payload=payload,
            expect_json=False,
        )

    def _webhook_path(self, application_id: str, interaction_token: str) -> str:
        return f"/webhooks/{application_id}/{interaction_token}"

    async def get_original_interaction_response(
        self, *, application_id: str, interaction_token: str
    ) -> dict[str, Any]:
        path = self._webhook_path(application_id, interaction_token)
        return await self._request_object("GET", f"{path}/messages/@original")

    async def edit_original_interaction_response(
        self,
        *,
        application_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        path = self._webhook_path(application_id, interaction_token)
        return await self._request_object(
            "PATCH", f"{path}/messages/@original", payload=payload
        )

    async def create_followup_message(
        self,
        *,
        application_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        path = self._webhook_path(application_id, interaction_token)
        return await self._request_object("POST", path, payload=payload)

    async def get_channel_message(
        self, *, channel_id: str, message_id: str
    ) -> dict[str, Any]:
        return await self._request_object(
            "GET", f"/channels/{channel_id}/messages/{message_id}"
        )

    async def create_channel_message(
        self, *, channel_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request_object(
            "POST", f"/channels/{channel_id}/messages", payload=payload
        )

    async def edit_channel_message(
        self, *, channel_id: str, message_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request_object(
            "PATCH", f"/channels/{channel_id}/messages/{message_id}", payload=payload
        )

    async def delete_channel_message(self, *, channel_id: str, message_id: str) -> None:
        await self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}",
            expect_json=False,
        )
