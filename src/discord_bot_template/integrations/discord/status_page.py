"""Read-only client for the public Discord status page (discordstatus.com)."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .errors import StatusPageError

logger = logging.getLogger(__name__)

DISCORD_STATUS_API_URL = "https://discordstatus.com/api/v2"
DISCORD_STATUS_PAGE_URL = "https://discordstatus.com"
DEFAULT_INCIDENT_LIMIT = 5
DEFAULT_TIMEOUT_SECONDS = 8.0

_RETRYABLE_NETWORK_ERRORS = (
    httpx.ConnectError,
    httpx.ReadError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.PoolTimeout,
)


@dataclass(frozen=True)
class ComponentStatus:
    name: str
    status: str
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class StatusSummary:
    indicator: str
    description: str
    page_name: str
    page_url: str
    updated_at: Optional[str]
    components: tuple[ComponentStatus, ...] = ()


@dataclass(frozen=True)
class IncidentUpdate:
    status: str
    body: str
    created_at: Optional[str] = None


@dataclass(frozen=True)
class Incident:
    id: str
    name: str
    status: str
    impact: str
    created_at: Optional[str]
    url: str
    updates: tuple[IncidentUpdate, ...] = ()


def _fallback_summary(description: str) -> StatusSummary:
    return StatusSummary(
        indicator="unknown",
        description=description,
        page_name="Discord Status",
        page_url=DISCORD_STATUS_PAGE_URL,
        updated_at=datetime.now(timezone.utc).isoformat(),
    )


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) and value else default


def parse_summary(body: Any) -> StatusSummary:
    if not isinstance(body, dict) or not isinstance(body.get("status"), dict):
        return _fallback_summary("Status information unavailable")
    status = body["status"]
    page = body.get("page") if isinstance(body.get("page"), dict) else {}
    components = []
    for item in body.get("components") or []:
        if not isinstance(item, dict) or not _text(item.get("name")):
            continue
        components.append(
            ComponentStatus(
                name=item["name"],
                status=_text(item.get("status"), "unknown"),
                updated_at=item.get("updated_at"),
            )
        )
    return StatusSummary(
        indicator=_text(status.get("indicator"), "unknown"),
        description=_text(status.get("description"), "Current status of Discord services"),
        page_name=_text(page.get("name"), "Discord Status"),
        page_url=_text(page.get("url"), DISCORD_STATUS_PAGE_URL),
        updated_at=page.get("updated_at"),
        components=tuple(components),
    )


def parse_incidents(body: Any, limit: int) -> list[Incident]:
    if not isinstance(body, dict) or not isinstance(body.get("incidents"), list):
        return []
    incidents = []
    for item in body["incidents"][: max(limit, 0)]:
        if not isinstance(item, dict):
            continue
        updates = tuple(
            IncidentUpdate(
                status=_text(update.get("status"), "update"),
                body=_text(update.get("body"), "No details provided"),
                created_at=update.get("created_at"),
            )
            for update in item.get("incident_updates") or []
            if isinstance(update, dict)
        )
        incidents.append(
            Incident(
                id=str(item.get("id") or ""),
                name=_text(item.get("name"), "Unknown incident"),
                status=_text(item.get("status"), "unknown"),
                impact=_text(item.get("impact"), "unknown"),
                created_at=item.get("created_at"),
                url=_text(item.get("shortlink"), DISCORD_STATUS_PAGE_URL),
                updates=updates,
            )
        )
    return incidents


class DiscordStatusClient:
    """Fetches the status summary and recent incidents.

    When ``enabled`` is false no request is made: the summary is a fixed
    "disabled" notice and the incident list is empty.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        base_url: str = DISCORD_STATUS_API_URL,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.enabled = enabled
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordStatusClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        delay = self._retry_base_delay * (2 ** (attempt - 1)) + random.uniform(0, 0.5)
        return float(min(delay, self._retry_max_delay))

    async def _get_json(self, path: str) -> Any:
        attempt = 0
        while True:
            try:
                response = await self._client.get(path)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                retryable = status_code == 429 or 500 <= status_code < 600
                if retryable and attempt < self._max_retries:
                    attempt += 1
                    delay = self._calculate_retry_delay(attempt)
                    logger.warning(
                        "Status page error %d on %s, retrying in %.1fs (attempt %d/%d)",
                        status_code,
                        path,
                        delay,
                        attempt,
                        self._max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise StatusPageError(
                    f"Status page request failed for {path}: status={status_code}",
                    status_code=status_code,
                ) from exc
            except httpx.HTTPError as exc:
                if (
                    isinstance(exc, _RETRYABLE_NETWORK_ERRORS)
                    and attempt < self._max_retries
                ):
                    attempt += 1
                    delay = self._calculate_retry_delay(attempt)
                    logger.warning(
                        "Status page network error on %s: %s, retrying in %.1fs (attempt %d/%d)",
                        path,
                        type(exc).__name__,
                        delay,
                        attempt,
                        self._max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise StatusPageError(
                    f"Status page network error for {path}: {exc}"
                ) from exc
            try:
                return response.json()
            except ValueError as exc:
                raise StatusPageError(
                    f"Status page returned non-JSON body for {path}",
                    status_code=response.status_code,
                ) from exc

    async def get_summary(self) -> StatusSummary:
        if not self.enabled:
            logger.warning("Discord status lookup skipped: api.enabled is false")
            return _fallback_summary("API service is disabled in configuration")
        return parse_summary(await self._get_json("/summary.json"))

    async def get_incidents(self, limit: int = DEFAULT_INCIDENT_LIMIT) -> list[Incident]:
        if not self.enabled:
            logger.warning("Discord incident lookup skipped: api.enabled is false")
            return []
        return parse_incidents(await self._get_json("/incidents.json"), limit)
