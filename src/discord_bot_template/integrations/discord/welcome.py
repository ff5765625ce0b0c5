from __future__ import annotations

from typing import Any, Optional

from .embeds import add_fields, create_success_embed
from .permissions import PERMISSION_FLAGS, apply_channel_overwrites, compute_base_permissions

CHANNEL_TYPE_GUILD_TEXT = 0
SEND_MESSAGES = PERMISSION_FLAGS["SendMessages"]


def build_welcome_embed(guild_name: str) -> dict[str, Any]:
    embed = create_success_embed(
        f"👋 Welcome to {guild_name}!",
        "Thank you for adding me to your server! "
        "I'm a Discord bot built with the Discord Bot Template.",
        footer_text="Use /help to see available commands",
    )
    return add_fields(
        embed,
        [
            {
                "name": "Getting Started",
                "value": "Use `/help` to view a list of available commands.",
            },
            {
                "name": "Need Support?",
                "value": "Contact the bot owner or check the documentation for assistance.",
            },
        ],
    )


def _bot_role_ids(guild: dict[str, Any], bot_id: str) -> list[str]:
    for member in guild.get("members") or []:
        if not isinstance(member, dict):
            continue
        user = member.get("user") if isinstance(member.get("user"), dict) else {}
        if str(user.get("id")) == bot_id:
            return [str(role) for role in member.get("roles") or []]
    return []


def _position(channel: dict[str, Any]) -> int:
    try:
        return int(channel.get("position") or 0)
    except (TypeError, ValueError):
        return 0


def find_welcome_channel(guild: dict[str, Any], bot_id: Optional[str]) -> Optional[str]:
    """Pick where to post the welcome embed from a GUILD_CREATE payload.

    The guild's system channel wins. Otherwise the top-most text channel in
    which the bot holds SendMessages after channel overwrites.
    """
    system_channel_id = guild.get("system_channel_id")
    if system_channel_id:
        return str(system_channel_id)
    if not bot_id:
        return None

    guild_id = str(guild.get("id") or "")
    role_ids = _bot_role_ids(guild, bot_id)
    owner_id = guild.get("owner_id")
    base = compute_base_permissions(
        guild_id=guild_id,
        guild_owner_id=str(owner_id) if owner_id is not None else None,
        member_id=bot_id,
        member_role_ids=role_ids,
        roles=[role for role in guild.get("roles") or [] if isinstance(role, dict)],
    )
    text_channels = sorted(
        (
            channel
            for channel in guild.get("channels") or []
            if isinstance(channel, dict)
            and channel.get("type") == CHANNEL_TYPE_GUILD_TEXT
            and channel.get("id") is not None
        ),
        key=_position,
    )
    for channel in text_channels:
        granted = apply_channel_overwrites(
            base,
            guild_id=guild_id,
            member_id=bot_id,
            member_role_ids=role_ids,
            overwrites=channel.get("permission_overwrites") or [],
        )
        if granted & SEND_MESSAGES:
            return str(channel["id"])
    return None
