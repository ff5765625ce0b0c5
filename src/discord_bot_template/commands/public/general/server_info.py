from __future__ import annotations

import logging
from typing import Any, Optional

from ....core.logging_utils import log_event
from ....integrations.discord.commands import CommandDescriptor
from ....integrations.discord.context import InteractionContext
from ....integrations.discord.embeds import add_fields, create_success_embed
from ....integrations.discord.errors import DiscordAPIError
from ....integrations.discord.interactions import snowflake_timestamp_ms
from ....integrations.discord.pagination import PageField, Paginator

CHANNEL_TYPE_TEXT = 0
CHANNEL_TYPE_VOICE = 2
MAX_LISTED_MEMBERS = 100
CDN_BASE_URL = "https://cdn.discordapp.com"


def _relative_timestamp(snowflake: Any) -> str:
    created_ms = snowflake_timestamp_ms(snowflake)
    if created_ms is None:
        return "unknown"
    return f"<t:{created_ms // 1000}:R>"


def guild_icon_url(guild: dict[str, Any]) -> Optional[str]:
    icon = guild.get("icon")
    if not icon:
        return None
    extension = "gif" if str(icon).startswith("a_") else "png"
    return f"{CDN_BASE_URL}/icons/{guild.get('id')}/{icon}.{extension}"


def build_server_info_embed(
    guild: dict[str, Any], channels: list[dict[str, Any]]
) -> dict[str, Any]:
    guild_id = str(guild.get("id") or "")
    embed = create_success_embed(
        str(guild.get("name") or "Server"),
        "Server information and statistics",
        thumbnail_url=guild_icon_url(guild),
        footer_text=f"Server ID: {guild_id}",
    )
    voice = sum(1 for channel in channels if channel.get("type") == CHANNEL_TYPE_VOICE)
    text = sum(1 for channel in channels if channel.get("type") == CHANNEL_TYPE_TEXT)
    member_count = guild.get("approximate_member_count", guild.get("member_count"))
    return add_fields(
        embed,
        [
            {"name": "Owner", "value": f"<@{guild.get('owner_id')}>", "inline": True},
            {"name": "Created At", "value": _relative_timestamp(guild_id), "inline": True},
            {"name": "Member Count", "value": str(member_count or 0), "inline": True},
            {"name": "Boost Tier", "value": f"Level {guild.get('premium_tier') or 0}", "inline": True},
            {
                "name": "Boost Count",
                "value": str(guild.get("premium_subscription_count") or 0),
                "inline": True,
            },
            {
                "name": "Verification Level",
                "value": str(guild.get("verification_level") or 0),
                "inline": True,
            },
            {
                "name": "Channels",
                "value": f"🔊 Voice: {voice}\n💬 Text: {text}",
                "inline": True,
            },
        ],
    )


def _format_member(member: dict[str, Any]) -> PageField:
    user = member.get("user") if isinstance(member.get("user"), dict) else {}
    name = user.get("global_name") or user.get("username") or str(user.get("id") or "unknown")
    joined = member.get("joined_at") or "unknown"
    roles = member.get("roles") if isinstance(member.get("roles"), list) else []
    return PageField(name=str(name), value=f"Joined: {joined}\nRoles: {len(roles)}")


def build_member_list(
    members: list[dict[str, Any]], *, guild_name: str, items_per_page: int
) -> Paginator[dict[str, Any]]:
    return Paginator(
        members,
        _format_member,
        title=f"Members of {guild_name}",
        description=f"Showing {len(members)} members",
        items_per_page=items_per_page,
        footer_text="Member List",
    )


async def server_info(ctx: InteractionContext) -> None:
    guild_id = ctx.guild_id
    if not guild_id:
        await ctx.safe_reply(
            ephemeral=True, content="This command can only be used in a server."
        )
        return

    guild = await ctx.rest.get_guild(guild_id=guild_id)
    channels = await ctx.rest.get_guild_channels(guild_id=guild_id)
    await ctx.reply(embeds=[build_server_info_embed(guild, channels)])

    # Listing members needs the privileged GUILD_MEMBERS intent.
    try:
        members = await ctx.rest.list_guild_members(
            guild_id=guild_id, limit=MAX_LISTED_MEMBERS
        )
    except DiscordAPIError as exc:
        log_event(
            ctx.logger,
            logging.INFO,
            "discord.command.server_info.members_unavailable",
            guild_id=guild_id,
            exc=exc,
        )
        return
    if not members:
        return
    await ctx.send_paginated(
        build_member_list(
            members,
            guild_name=str(guild.get("name") or "Server"),
            items_per_page=ctx.state.items_per_page,
        )
    )


def build_command() -> CommandDescriptor:
    return CommandDescriptor(
        name="server-info",
        description="Displays detailed information about the current server",
        handler=server_info,
        bot_required_permissions=frozenset({"SendMessages", "EmbedLinks"}),
        guild_only=True,
    )
