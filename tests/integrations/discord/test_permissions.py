from __future__ import annotations

from typing import Any, Optional

import pytest

from discord_bot_template.integrations.discord.permissions import (
    ALL_PERMISSIONS,
    PERMISSION_FLAGS,
    GuildPermissionResolver,
    InteractionPermissionResolver,
    PermissionEvaluator,
    PermissionScope,
    apply_channel_overwrites,
    compute_base_permissions,
    format_permission_list,
    normalize_permissions,
    permission_bits,
    permission_names,
)

SEND = PERMISSION_FLAGS["SendMessages"]
VIEW = PERMISSION_FLAGS["ViewChannel"]
EMBED = PERMISSION_FLAGS["EmbedLinks"]
ADMIN = PERMISSION_FLAGS["Administrator"]


class _StaticResolver:
    def __init__(self, grants: dict[str, int]) -> None:
        self.grants = grants
        self.calls: list[tuple[str, Optional[PermissionScope]]] = []

    async def resolve(self, subject_id: str, *, scope: Optional[PermissionScope] = None) -> int:
        self.calls.append((subject_id, scope))
        return self.grants[subject_id]


class _FailingResolver:
    async def resolve(self, subject_id: str, *, scope: Optional[PermissionScope] = None) -> int:
        raise RuntimeError("guild fetch failed")


def test_permission_names_and_bits_round_trip() -> None:
    assert permission_names(SEND | VIEW) == frozenset({"SendMessages", "ViewChannel"})
    assert permission_bits(["SendMessages", "ViewChannel", "NotAFlag"]) == SEND | VIEW
    assert permission_names(0) == frozenset()


def test_normalize_permissions_accepts_bits_and_spellings() -> None:
    assert normalize_permissions([ADMIN]) == frozenset({"Administrator"})
    assert normalize_permissions(SEND | EMBED) == frozenset({"SendMessages", "EmbedLinks"})
    assert normalize_permissions(["SEND_MESSAGES", "viewchannel"]) == frozenset(
        {"SendMessages", "ViewChannel"}
    )
    # Unknown tokens are kept as their string form.
    assert normalize_permissions(["CustomThing"]) == frozenset({"CustomThing"})
    assert normalize_permissions(None) == frozenset()


def test_format_permission_list() -> None:
    assert format_permission_list([]) == "None"
    assert format_permission_list(["Administrator"]) == "Administrator"
    assert format_permission_list(["SendMessages", "EmbedLinks"]) == "Send Messages\n• Embed Links"


@pytest.mark.anyio
async def test_empty_requirement_allows_without_resolving() -> None:
    resolver = _StaticResolver({})
    check = await PermissionEvaluator("owner", resolver).evaluate("user-1", frozenset())
    assert check.allowed is True
    assert check.missing == frozenset()
    assert resolver.calls == []


@pytest.mark.anyio
async def test_owner_bypasses_every_requirement() -> None:
    resolver = _StaticResolver({"owner": 0})
    check = await PermissionEvaluator("owner", resolver).evaluate(
        "owner", {"Administrator", "BanMembers"}
    )
    assert check.allowed is True
    assert resolver.calls == []


@pytest.mark.anyio
async def test_missing_administrator_is_reported_alone() -> None:
    resolver = _StaticResolver({"user-1": SEND | VIEW})
    check = await PermissionEvaluator("owner", resolver).evaluate(
        "user-1", {"Administrator"}
    )
    assert check.allowed is False
    assert sorted(check.missing) == ["Administrator"]


@pytest.mark.anyio
async def test_partial_grant_lists_only_missing_names() -> None:
    resolver = _StaticResolver({"user-1": SEND})
    check = await PermissionEvaluator(None, resolver).evaluate(
        "user-1", [SEND, VIEW, EMBED]
    )
    assert check.allowed is False
    assert check.missing == frozenset({"ViewChannel", "EmbedLinks"})


@pytest.mark.anyio
async def test_administrator_grant_implies_everything() -> None:
    resolver = _StaticResolver({"user-1": ADMIN})
    check = await PermissionEvaluator(None, resolver).evaluate(
        "user-1", {"BanMembers", "ManageGuild"}
    )
    assert check.allowed is True


@pytest.mark.anyio
async def test_resolver_failure_fails_closed_without_detail() -> None:
    check = await PermissionEvaluator(None, _FailingResolver()).evaluate(
        "user-1", {"SendMessages"}
    )
    assert check.allowed is False
    assert check.missing == frozenset()


@pytest.mark.anyio
async def test_scope_is_forwarded_to_resolver() -> None:
    resolver = _StaticResolver({"user-1": SEND})
    scope = PermissionScope(guild_id="g-1", channel_id="c-1")
    await PermissionEvaluator(None, resolver).evaluate("user-1", {"SendMessages"}, scope=scope)
    assert resolver.calls == [("user-1", scope)]


def test_compute_base_permissions_unions_roles() -> None:
    roles = [
        {"id": "g-1", "permissions": str(VIEW)},
        {"id": "r-mod", "permissions": str(SEND)},
        {"id": "r-other", "permissions": str(EMBED)},
    ]
    bits = compute_base_permissions(
        guild_id="g-1",
        guild_owner_id="owner",
        member_id="user-1",
        member_role_ids=["r-mod"],
        roles=roles,
    )
    assert bits == VIEW | SEND


def test_compute_base_permissions_owner_and_admin_get_everything() -> None:
    roles = [{"id": "g-1", "permissions": "0"}, {"id": "r-admin", "permissions": str(ADMIN)}]
    assert (
        compute_base_permissions(
            guild_id="g-1",
            guild_owner_id="user-1",
            member_id="user-1",
            member_role_ids=[],
            roles=roles,
        )
        == ALL_PERMISSIONS
    )
    assert (
        compute_base_permissions(
            guild_id="g-1",
            guild_owner_id="owner",
            member_id="user-1",
            member_role_ids=["r-admin"],
            roles=roles,
        )
        == ALL_PERMISSIONS
    )


def test_channel_overwrites_apply_everyone_then_roles_then_member() -> None:
    overwrites = [
        {"id": "g-1", "type": 0, "allow": "0", "deny": str(SEND)},
        {"id": "r-mod", "type": 0, "allow": str(SEND), "deny": "0"},
        {"id": "user-1", "type": 1, "allow": "0", "deny": str(VIEW)},
    ]
    bits = apply_channel_overwrites(
        VIEW | SEND,
        guild_id="g-1",
        member_id="user-1",
        member_role_ids=["r-mod"],
        overwrites=overwrites,
    )
    assert bits == SEND

    narrowed = apply_channel_overwrites(
        VIEW | SEND,
        guild_id="g-1",
        member_id="user-2",
        member_role_ids=[],
        overwrites=overwrites,
    )
    assert narrowed == VIEW


@pytest.mark.anyio
async def test_interaction_resolver_reads_member_and_app_permissions() -> None:
    payload = {
        "member": {"user": {"id": "user-1"}, "permissions": str(SEND)},
        "app_permissions": str(SEND | EMBED),
    }
    resolver = InteractionPermissionResolver(payload, bot_id="bot-1")
    assert await resolver.resolve("user-1") == SEND
    assert await resolver.resolve("bot-1") == SEND | EMBED
    with pytest.raises(LookupError):
        await resolver.resolve("someone-else")


class _GuildRest:
    async def get_guild(self, *, guild_id: str, with_counts: bool = True) -> dict[str, Any]:
        return {"id": guild_id, "owner_id": "owner"}

    async def get_guild_roles(self, *, guild_id: str) -> list[dict[str, Any]]:
        return [
            {"id": guild_id, "permissions": str(VIEW | SEND)},
            {"id": "r-mod", "permissions": str(EMBED)},
        ]

    async def get_guild_member(self, *, guild_id: str, user_id: str) -> dict[str, Any]:
        return {"user": {"id": user_id}, "roles": ["r-mod"]}

    async def get_channel(self, *, channel_id: str) -> dict[str, Any]:
        return {
            "id": channel_id,
            "permission_overwrites": [
                {"id": "g-1", "type": 0, "allow": "0", "deny": str(SEND)}
            ],
        }


@pytest.mark.anyio
async def test_guild_resolver_distinguishes_guild_and_channel_scope() -> None:
    resolver = GuildPermissionResolver(_GuildRest())
    guild_wide = await resolver.resolve("user-1", scope=PermissionScope(guild_id="g-1"))
    in_channel = await resolver.resolve(
        "user-1", scope=PermissionScope(guild_id="g-1", channel_id="c-1")
    )
    assert guild_wide == VIEW | SEND | EMBED
    assert in_channel == VIEW | EMBED
    with pytest.raises(LookupError):
        await resolver.resolve("user-1")
