from __future__ import annotations

import logging

from ....core.logging_utils import log_event
from ....integrations.discord.commands import CommandDescriptor
from ....integrations.discord.context import InteractionContext
from ....integrations.discord.embeds import create_warning_embed
from ....integrations.discord.events import BotEvent

COMMAND_NAME = "purge-cooldowns"


async def purge_cooldowns(ctx: InteractionContext) -> None:
    await ctx.send_confirmation(
        create_warning_embed(
            "Purge Cooldowns",
            "This clears every active command cooldown for all users. Continue?",
        ),
        source=COMMAND_NAME,
        ephemeral=True,
    )


async def on_confirmation_accepted(ctx: InteractionContext) -> None:
    message_id = ctx.message_id
    if not message_id or ctx.state.confirmations.get(message_id) != COMMAND_NAME:
        return
    cleared = ctx.state.cooldowns.reset()
    log_event(
        ctx.logger,
        logging.INFO,
        "discord.command.cooldowns_purged",
        user_id=ctx.user_id,
        cleared=cleared,
    )


def build_command() -> CommandDescriptor:
    return CommandDescriptor(
        name=COMMAND_NAME,
        description="Clears all active command cooldowns (Admin only)",
        handler=purge_cooldowns,
        required_permissions=frozenset({"Administrator"}),
        bot_required_permissions=frozenset({"SendMessages", "EmbedLinks"}),
        notes="Asks for confirmation before clearing anything.",
        listeners=((BotEvent.CONFIRMATION_ACCEPTED.value, on_confirmation_accepted),),
    )
