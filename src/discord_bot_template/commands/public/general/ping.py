from __future__ import annotations

import logging

from ....core.logging_utils import log_event
from ....integrations.discord.commands import CommandDescriptor
from ....integrations.discord.context import InteractionContext
from ....integrations.discord.embeds import create_error_embed, create_success_embed
from ....integrations.discord.errors import DiscordAPIError
from ....integrations.discord.interactions import snowflake_timestamp_ms


def _format_ms(value: float | None) -> str:
    return "n/a" if value is None else f"{round(value)}ms"


async def ping(ctx: InteractionContext) -> None:
    try:
        await ctx.reply(content="Pinging...")
        sent = await ctx.fetch_original()
        sent_at = snowflake_timestamp_ms(sent.get("id"))
        received_at = snowflake_timestamp_ms(ctx.interaction_id)
        bot_latency = (
            sent_at - received_at
            if sent_at is not None and received_at is not None
            else None
        )
        gateway_latency = ctx.state.latency
        api_latency = gateway_latency * 1000 if gateway_latency is not None else None
        embed = create_success_embed(
            "🏓 Pong!",
            f"**Bot Latency:** {_format_ms(bot_latency)}\n"
            f"**API Latency:** {_format_ms(api_latency)}\n"
            f"**Environment:** {ctx.state.environment}",
        )
        await ctx.edit_original(content="", embeds=[embed])
    except DiscordAPIError as exc:
        log_event(ctx.logger, logging.WARNING, "discord.command.ping_failed", exc=exc)
        await ctx.safe_reply(
            ephemeral=True,
            embeds=[create_error_embed("Ping Error", "Failed to calculate ping information.")],
        )


def build_command() -> CommandDescriptor:
    return CommandDescriptor(
        name="ping",
        description="Replies with latency and API ping information",
        handler=ping,
        bot_required_permissions=frozenset({"SendMessages", "ViewChannel"}),
    )
