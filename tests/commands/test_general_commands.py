from __future__ import annotations

import logging
from typing import Any, Optional

import pytest

from discord_bot_template.commands.private.admin.purge_cooldowns import (
    COMMAND_NAME,
    on_confirmation_accepted,
    purge_cooldowns,
)
from discord_bot_template.commands.public.general.ping import ping
from discord_bot_template.commands.public.general.server_info import (
    build_member_list,
    build_server_info_embed,
    guild_icon_url,
    server_info,
)
from discord_bot_template.integrations.discord.context import InteractionContext
from discord_bot_template.integrations.discord.errors import DiscordAPIError
from discord_bot_template.integrations.discord.state import BotState


class _FakeRest:
    def __init__(self, *, members: Optional[list[dict[str, Any]]] = None) -> None:
        self.responses: list[dict[str, Any]] = []
        self.original_edits: list[dict[str, Any]] = []
        self.followups: list[dict[str, Any]] = []
        self.members = members

    async def create_interaction_response(self, **kwargs: Any) -> None:
        self.responses.append(kwargs["payload"])

    async def create_followup_message(self, **kwargs: Any) -> dict[str, Any]:
        self.followups.append(kwargs["payload"])
        return {"id": "msg-members"}

    async def get_original_interaction_response(self, **kwargs: Any) -> dict[str, Any]:
        # 250ms after the interaction id below.
        return {"id": str((1_000_250) << 22)}

    async def edit_original_interaction_response(self, **kwargs: Any) -> dict[str, Any]:
        self.original_edits.append(kwargs["payload"])
        return {}

    async def get_guild(self, *, guild_id: str, with_counts: bool = True) -> dict[str, Any]:
        return {
            "id": guild_id,
            "name": "Test Guild",
            "owner_id": "owner",
            "icon": "a_abc",
            "approximate_member_count": 12,
            "premium_tier": 2,
        }

    async def get_guild_channels(self, *, guild_id: str) -> list[dict[str, Any]]:
        return [{"type": 0}, {"type": 0}, {"type": 2}, {"type": 4}]

    async def list_guild_members(self, *, guild_id: str, limit: int = 100) -> list[dict[str, Any]]:
        if self.members is None:
            raise DiscordAPIError("missing access", status_code=403)
        return self.members


def _context(
    rest: _FakeRest, state: BotState, *, guild_id: Optional[str] = "1", message_id: Optional[str] = None
) -> InteractionContext:
    payload: dict[str, Any] = {
        "id": str(1_000_000 << 22),
        "token": "tok",
        "type": 2,
        "member": {"user": {"id": "user-1"}},
        "data": {"name": "x"},
    }
    if guild_id:
        payload["guild_id"] = guild_id
    if message_id:
        payload["message"] = {"id": message_id}
    return InteractionContext(
        payload,
        rest=rest,  # type: ignore[arg-type]
        application_id="app-1",
        state=state,
        logger=logging.getLogger("test"),
    )


@pytest.mark.anyio
async def test_ping_reports_bot_and_api_latency() -> None:
    rest = _FakeRest()
    state = BotState(environment="development", latency_provider=lambda: 0.0424)

    await ping(_context(rest, state))

    assert rest.responses[0]["data"]["content"] == "Pinging..."
    edit = rest.original_edits[0]
    assert edit["content"] == ""
    description = edit["embeds"][0]["description"]
    assert "**Bot Latency:** 250ms" in description
    assert "**API Latency:** 42ms" in description
    assert "**Environment:** development" in description


def test_server_info_embed_counts_channels() -> None:
    guild = {"id": str(1_000 << 22), "name": "G", "owner_id": "7", "member_count": 3}
    embed = build_server_info_embed(guild, [{"type": 0}, {"type": 2}, {"type": 2}])

    fields = {field["name"]: field["value"] for field in embed["fields"]}
    assert fields["Owner"] == "<@7>"
    assert fields["Member Count"] == "3"
    assert fields["Channels"] == "🔊 Voice: 2\n💬 Text: 1"
    assert fields["Created At"].startswith("<t:")
    assert "thumbnail" not in embed


def test_guild_icon_url_handles_animated_icons() -> None:
    assert guild_icon_url({"id": "1", "icon": "a_x"}).endswith("/icons/1/a_x.gif")
    assert guild_icon_url({"id": "1", "icon": "x"}).endswith("/icons/1/x.png")
    assert guild_icon_url({"id": "1"}) is None


def test_member_list_pages_by_configured_size() -> None:
    members = [{"user": {"id": str(i), "username": f"user{i}"}, "roles": ["r"]} for i in range(12)]
    paginator = build_member_list(members, guild_name="G", items_per_page=5)
    embed = paginator.get_page(0).embeds[0]

    assert paginator.page_count == 3
    assert embed["title"] == "Members of G"
    assert embed["fields"][0] == {"name": "user0", "value": "Joined: unknown\nRoles: 1", "inline": False}


@pytest.mark.anyio
async def test_server_info_outside_guild() -> None:
    rest = _FakeRest()

    await server_info(_context(rest, BotState(), guild_id=None))

    assert rest.responses[0]["data"]["content"] == "This command can only be used in a server."


@pytest.mark.anyio
async def test_server_info_sends_member_pages_when_allowed() -> None:
    rest = _FakeRest(members=[{"user": {"id": "1", "username": "a"}}])
    state = BotState(component_timeout_seconds=0)

    await server_info(_context(rest, state))

    embed = rest.responses[0]["data"]["embeds"][0]
    assert embed["title"] == "Test Guild"
    assert embed["thumbnail"]["url"].endswith(".gif")
    assert rest.followups[0]["embeds"][0]["title"] == "Members of Test Guild"
    assert "msg-members" in state.paginators


@pytest.mark.anyio
async def test_server_info_skips_members_without_access() -> None:
    rest = _FakeRest(members=None)
    state = BotState(component_timeout_seconds=0)

    await server_info(_context(rest, state))

    assert len(rest.responses) == 1
    assert rest.followups == []
    assert len(state.paginators) == 0


@pytest.mark.anyio
async def test_purge_cooldowns_flow() -> None:
    rest = _FakeRest()
    state = BotState(component_timeout_seconds=0)
    state.cooldowns.check_and_arm("ping", "user-1", 60)
    state.cooldowns.check_and_arm("help", "user-2", 60)

    await purge_cooldowns(_context(rest, state))
    (message_id,) = state.confirmations
    assert state.confirmations[message_id] == COMMAND_NAME

    # Accepting a dialog opened by another command does nothing.
    state.confirmations["other"] = "something-else"
    await on_confirmation_accepted(_context(rest, state, message_id="other"))
    assert len(state.cooldowns) == 2

    await on_confirmation_accepted(_context(rest, state, message_id=message_id))
    assert len(state.cooldowns) == 0
