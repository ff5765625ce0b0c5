from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional

import httpx

from .constants import DISCORD_API_BASE_URL
from .errors import DiscordAPIError, DiscordPermanentError, DiscordTransientError

logger = logging.getLogger(__name__)

_RETRYABLE_NETWORK_ERRORS = (
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
)


def _body_preview(response: httpx.Response) -> str:
    return (response.text or "").strip().replace("\n", " ")[:200]


def _error_code(response: httpx.Response) -> Optional[int]:
    # Discord error bodies look like {"code": 10062, "message": "Unknown interaction"}.
    try:
        body = response.json()
    except ValueError:
        return None
    code = body.get("code") if isinstance(body, dict) else None
    return code if isinstance(code, int) else None


class DiscordRestClient:
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
            base_url=base_url, timeout=timeout_seconds, transport=transport
        )
        self._authorization_header = f"Bot {bot_token}"
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordRestClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        delay = self._retry_base_delay * (2**attempt) + random.uniform(0, 1)
        return float(min(delay, self._retry_max_delay))

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | list[dict[str, Any]] | None = None,
        params: Optional[dict[str, Any]] = None,
        expect_json: bool = True,
    ) -> Any:
        rate_limit_retries = 0
        retry_attempt = 0

        while True:
            try:
                response = await self._client.request(
                    method,
                    path,
                    json=payload,
                    params=params,
                    headers={"Authorization": self._authorization_header},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code == 429:
                    retry_after_raw = exc.response.headers.get("Retry-After")
                    try:
                        retry_after = max(float(retry_after_raw or 0.0), 0.0)
                    except ValueError:
                        retry_after = 0.0
                    if (
                        retry_after_raw is not None
                        and rate_limit_retries < self._max_retries
                    ):
                        rate_limit_retries += 1
                        logger.info(
                            "Discord rate limited on %s %s, retrying after %.1fs (attempt %d)",
                            method,
                            path,
                            retry_after,
                            rate_limit_retries,
                        )
                        await asyncio.sleep(retry_after)
                        continue
                    raise DiscordTransientError(
                        f"Discord API rate limit exceeded for {method} {path}",
                        status_code=status_code,
                        retry_after=retry_after,
                    ) from exc

                body_preview = _body_preview(exc.response)
                if 500 <= status_code < 600:
                    if retry_attempt < self._max_retries:
                        retry_attempt += 1
                        delay = self._calculate_retry_delay(retry_attempt)
                        logger.warning(
                            "Discord server error %d on %s %s, retrying in %.1fs (attempt %d/%d)",
                            status_code,
                            method,
                            path,
                            delay,
                            retry_attempt,
                            self._max_retries,
                        )
                        await asyncio.sleep(delay)
                        continue
                    raise DiscordTransientError(
                        f"Discord API server error for {method} {path}: "
                        f"status={status_code} body={body_preview!r}",
                        status_code=status_code,
                    ) from exc
                if status_code in {401, 403}:
                    raise DiscordPermanentError(
                        f"Discord API authentication failure for {method} {path}: "
                        f"status={status_code} body={body_preview!r}",
                        status_code=status_code,
                        error_code=_error_code(exc.response),
                    ) from exc
                raise DiscordAPIError(
                    f"Discord API request failed for {method} {path}: "
                    f"status={status_code} body={body_preview!r}",
                    status_code=status_code,
                    error_code=_error_code(exc.response),
                ) from exc
            except httpx.HTTPError as exc:
                if (
                    isinstance(exc, _RETRYABLE_NETWORK_ERRORS)
                    and retry_attempt < self._max_retries
                ):
                    retry_attempt += 1
                    delay = self._calculate_retry_delay(retry_attempt)
                    logger.warning(
                        "Discord network error on %s %s: %s, retrying in %.1fs (attempt %d/%d)",
                        method,
                        path,
                        type(exc).__name__,
                        delay,
                        retry_attempt,
                        self._max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise DiscordTransientError(
                    f"Discord API network error for {method} {path}: {exc}"
                ) from exc

            if not expect_json:
                return None
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise DiscordAPIError(
                    f"Discord API returned non-JSON success response for {method} {path}",
                    status_code=response.status_code,
                ) from exc

    async def _request_dict(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        return response if isinstance(response, dict) else {}

    async def _request_list(self, method: str, path: str, **kwargs: Any) -> list[dict[str, Any]]:
        response = await self._request(method, path, **kwargs)
        if not isinstance(response, list):
            return []
        return [item for item in response if isinstance(item, dict)]

    async def get_gateway_bot(self) -> dict[str, Any]:
        return await self._request_dict("GET", "/gateway/bot")

    @staticmethod
    def _commands_path(application_id: str, guild_id: Optional[str]) -> str:
        if guild_id is None:
            return f"/applications/{application_id}/commands"
        return f"/applications/{application_id}/guilds/{guild_id}/commands"

    async def list_application_commands(
        self, *, application_id: str, guild_id: str | None = None
    ) -> list[dict[str, Any]]:
        return await self._request_list(
            "GET", self._commands_path(application_id, guild_id)
        )

    async def bulk_overwrite_application_commands(
        self,
        *,
        application_id: str,
        commands: list[dict[str, Any]],
        guild_id: str | None = None,
    ) -> list[dict[str, Any]]:
        return await self._request_list(
            "PUT", self._commands_path(application_id, guild_id), payload=commands
        )

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

    async def create_followup_message(
        self,
        *,
        application_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request_dict(
            "POST",
            f"/webhooks/{application_id}/{interaction_token}",
            payload=payload,
        )

    async def get_original_interaction_response(
        self, *, application_id: str, interaction_token: str
    ) -> dict[str, Any]:
        return await self._request_dict(
            "GET",
            f"/webhooks/{application_id}/{interaction_token}/messages/@original",
        )

    async def edit_original_interaction_response(
        self,
        *,
        application_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request_dict(
            "PATCH",
            f"/webhooks/{application_id}/{interaction_token}/messages/@original",
            payload=payload,
        )

    async def edit_webhook_message(
        self,
        *,
        application_id: str,
        interaction_token: str,
        message_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request_dict(
            "PATCH",
            f"/webhooks/{application_id}/{interaction_token}/messages/{message_id}",
            payload=payload,
        )

    async def create_channel_message(
        self,
        *,
        channel_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request_dict(
            "POST", f"/channels/{channel_id}/messages", payload=payload
        )

    async def get_guild(self, *, guild_id: str, with_counts: bool = True) -> dict[str, Any]:
        return await self._request_dict(
            "GET",
            f"/guilds/{guild_id}",
            params={"with_counts": "true"} if with_counts else None,
        )

    async def get_guild_roles(self, *, guild_id: str) -> list[dict[str, Any]]:
        return await self._request_list("GET", f"/guilds/{guild_id}/roles")

    async def get_guild_member(self, *, guild_id: str, user_id: str) -> dict[str, Any]:
        return await self._request_dict("GET", f"/guilds/{guild_id}/members/{user_id}")

    async def get_channel(self, *, channel_id: str) -> dict[str, Any]:
        return await self._request_dict("GET", f"/channels/{channel_id}")

    async def get_guild_channels(self, *, guild_id: str) -> list[dict[str, Any]]:
        return await self._request_list("GET", f"/guilds/{guild_id}/channels")

    async def list_guild_members(
        self, *, guild_id: str, limit: int = 100
    ) -> list[dict[str, Any]]:
        return await self._request_list(
            "GET",
            f"/guilds/{guild_id}/members",
            params={"limit": max(1, min(limit, 1000))},
        )
