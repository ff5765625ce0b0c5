from __future__ import annotations

from typing import Any

import httpx
import pytest

from discord_bot_template.integrations.discord.errors import StatusPageError
from discord_bot_template.integrations.discord.status_page import (
    DiscordStatusClient,
    parse_incidents,
    parse_summary,
)

SUMMARY_BODY: dict[str, Any] = {
    "page": {
        "name": "Discord",
        "url": "https://discordstatus.com",
        "updated_at": "2024-05-01T12:00:00.000Z",
    },
    "status": {"indicator": "minor", "description": "Minor Service Outage"},
    "components": [
        {"name": "API", "status": "operational"},
        {"name": "Voice", "status": "partial_outage"},
        {"status": "operational"},
    ],
}

INCIDENTS_BODY: dict[str, Any] = {
    "incidents": [
        {
            "id": f"inc-{index}",
            "name": f"Incident {index}",
            "status": "resolved",
            "impact": "minor",
            "created_at": "2024-05-01T10:00:00.000Z",
            "shortlink": f"https://stspg.io/{index}",
            "incident_updates": [
                {"status": "resolved", "body": "Fixed.", "created_at": "2024-05-01T11:00:00.000Z"},
                {"status": "investigating"},
            ],
        }
        for index in range(7)
    ]
}


def _client(handler, **kwargs: Any) -> DiscordStatusClient:
    return DiscordStatusClient(
        transport=httpx.MockTransport(handler), retry_base_delay=0.0, **kwargs
    )


def test_parse_summary_skips_unnamed_components() -> None:
    summary = parse_summary(SUMMARY_BODY)

    assert summary.indicator == "minor"
    assert summary.description == "Minor Service Outage"
    assert [component.name for component in summary.components] == ["API", "Voice"]


def test_parse_summary_falls_back_on_unexpected_body() -> None:
    summary = parse_summary({"page": {}})

    assert summary.indicator == "unknown"
    assert summary.description == "Status information unavailable"
    assert summary.components == ()


def test_parse_incidents_applies_limit_and_defaults() -> None:
    incidents = parse_incidents(INCIDENTS_BODY, 3)

    assert [incident.id for incident in incidents] == ["inc-0", "inc-1", "inc-2"]
    assert incidents[0].url == "https://stspg.io/0"
    update = incidents[0].updates[1]
    assert (update.status, update.body) == ("investigating", "No details provided")
    assert parse_incidents({"incidents": "nope"}, 5) == []


@pytest.mark.anyio
async def test_client_reads_summary_and_incidents() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path.endswith("/summary.json"):
            return httpx.Response(200, json=SUMMARY_BODY)
        return httpx.Response(200, json=INCIDENTS_BODY)

    async with _client(handler) as client:
        summary = await client.get_summary()
        incidents = await client.get_incidents(2)

    assert summary.page_name == "Discord"
    assert len(incidents) == 2
    assert paths == ["/api/v2/summary.json", "/api/v2/incidents.json"]


@pytest.mark.anyio
async def test_client_retries_server_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr(
        "discord_bot_template.integrations.discord.status_page.asyncio.sleep", fake_sleep
    )
    responses = iter([httpx.Response(503), httpx.Response(502), httpx.Response(200, json=SUMMARY_BODY)])

    async with _client(lambda request: next(responses)) as client:
        summary = await client.get_summary()

    assert summary.indicator == "minor"
    assert len(delays) == 2


@pytest.mark.anyio
async def test_client_gives_up_after_max_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"count": 0}

    async def fake_sleep(delay: float) -> None:
        return None

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(500)

    monkeypatch.setattr(
        "discord_bot_template.integrations.discord.status_page.asyncio.sleep", fake_sleep
    )
    async with _client(handler, max_retries=2) as client:
        with pytest.raises(StatusPageError) as excinfo:
            await client.get_incidents()

    assert calls["count"] == 3
    assert excinfo.value.status_code == 500


@pytest.mark.anyio
async def test_client_does_not_retry_client_errors() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(404)

    async with _client(handler) as client:
        with pytest.raises(StatusPageError) as excinfo:
            await client.get_summary()

    assert calls["count"] == 1
    assert excinfo.value.status_code == 404
    assert excinfo.value.user_message.startswith("Failed to fetch Discord service information")


@pytest.mark.anyio
async def test_non_json_body_is_an_error() -> None:
    async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(StatusPageError):
            await client.get_summary()


@pytest.mark.anyio
async def test_disabled_client_makes_no_requests() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _client(handler, enabled=False) as client:
        summary = await client.get_summary()
        incidents = await client.get_incidents()

    assert summary.indicator == "unknown"
    assert summary.description == "API service is disabled in configuration"
    assert incidents == []
