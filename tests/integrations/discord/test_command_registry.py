from __future__ import annotations

import logging

import pytest

from discord_bot_template.integrations.discord.command_registry import sync_commands


class _FakeRest:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    async def bulk_overwrite_application_commands(
        self,
        *,
        application_id: str,
        commands: list[dict],
        guild_id: str | None = None,
    ) -> list[dict]:
        self.calls.append(
            {
                "application_id": application_id,
                "guild_id": guild_id,
                "commands": commands,
            }
        )
        return commands


@pytest.mark.anyio
async def test_global_scope_overwrites_once() -> None:
    rest = _FakeRest()

    await sync_commands(
        rest,
        application_id="app-1",
        commands=[{"name": "ping"}],
        scope="global",
        guild_ids=(),
        logger=logging.getLogger("test"),
    )

    assert len(rest.calls) == 1
    assert rest.calls[0]["guild_id"] is None


@pytest.mark.anyio
async def test_guild_scope_overwrites_each_guild_once() -> None:
    rest = _FakeRest()

    await sync_commands(
        rest,
        application_id="app-1",
        commands=[{"name": "ping"}],
        scope="guild",
        guild_ids=("guild-b", "guild-a", "guild-b", "  "),
        logger=logging.getLogger("test"),
    )

    assert [call["guild_id"] for call in rest.calls] == ["guild-a", "guild-b"]


@pytest.mark.anyio
async def test_guild_scope_requires_guild_ids() -> None:
    with pytest.raises(ValueError):
        await sync_commands(
            _FakeRest(),
            application_id="app-1",
            commands=[{"name": "ping"}],
            scope="guild",
            guild_ids=(),
            logger=logging.getLogger("test"),
        )


@pytest.mark.anyio
async def test_unknown_scope_is_rejected() -> None:
    with pytest.raises(ValueError):
        await sync_commands(
            _FakeRest(),
            application_id="app-1",
            commands=[],
            scope="everywhere",
            guild_ids=(),
            logger=logging.getLogger("test"),
        )


@pytest.mark.anyio
async def test_private_commands_only_reach_admin_guild() -> None:
    rest = _FakeRest()

    await sync_commands(
        rest,
        application_id="app-1",
        commands=[{"name": "ping"}],
        scope="global",
        guild_ids=(),
        logger=logging.getLogger("test"),
        private_commands=[{"name": "status"}],
        admin_guild_id="admin-guild",
    )

    assert rest.calls == [
        {"application_id": "app-1", "guild_id": None, "commands": [{"name": "ping"}]},
        {
            "application_id": "app-1",
            "guild_id": "admin-guild",
            "commands": [{"name": "status"}],
        },
    ]


@pytest.mark.anyio
async def test_guild_scope_merges_private_commands_into_admin_guild() -> None:
    rest = _FakeRest()

    await sync_commands(
        rest,
        application_id="app-1",
        commands=[{"name": "ping"}],
        scope="guild",
        guild_ids=("guild-a", "admin-guild"),
        logger=logging.getLogger("test"),
        private_commands=[{"name": "status"}],
        admin_guild_id="admin-guild",
    )

    by_guild = {call["guild_id"]: call["commands"] for call in rest.calls}
    assert by_guild == {
        "admin-guild": [{"name": "ping"}, {"name": "status"}],
        "guild-a": [{"name": "ping"}],
    }


@pytest.mark.anyio
async def test_private_commands_without_admin_guild_are_skipped() -> None:
    rest = _FakeRest()

    await sync_commands(
        rest,
        application_id="app-1",
        commands=[{"name": "ping"}],
        scope="global",
        guild_ids=(),
        logger=logging.getLogger("test"),
        private_commands=[{"name": "status"}],
    )

    assert [call["guild_id"] for call in rest.calls] == [None]
