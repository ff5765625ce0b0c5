from __future__ import annotations

from typing import Optional

from ....integrations.discord.commands import (
    CommandDescriptor,
    CommandRegistry,
    build_option,
)
from ....integrations.discord.context import InteractionContext
from ....integrations.discord.embeds import (
    add_fields,
    create_error_embed,
    create_success_embed,
)
from ....integrations.discord.pagination import PageField, Paginator
from ....integrations.discord.permissions import format_permission_list

COMMANDS_PER_PAGE = 10
MAX_AUTOCOMPLETE_RESULTS = 25
DEFAULT_GROUP = "General"


def visible_commands(
    registry: CommandRegistry, *, guild_id: Optional[str], admin_guild_id: Optional[str]
) -> list[CommandDescriptor]:
    """Commands the caller may see, sorted by group then name.

    Private commands are only listed inside the admin guild.
    """
    in_admin_guild = bool(admin_guild_id) and guild_id == admin_guild_id
    commands = [cmd for cmd in registry if in_admin_guild or not cmd.is_private]
    return sorted(commands, key=lambda cmd: ((cmd.group or DEFAULT_GROUP).lower(), cmd.name))


def _format_command(command: CommandDescriptor) -> PageField:
    return PageField(
        name=f"/{command.name} ({command.group or DEFAULT_GROUP})",
        value=command.description,
    )


def build_command_list(commands: list[CommandDescriptor]) -> Paginator[CommandDescriptor]:
    return Paginator(
        commands,
        _format_command,
        title="Available Commands",
        description="Here are all the commands you can use with this bot:",
        items_per_page=COMMANDS_PER_PAGE,
        footer_text="Use /help [command] to get more information",
    )


def build_command_detail(
    command: CommandDescriptor, *, default_cooldown: Optional[float] = None
) -> dict:
    embed = create_success_embed(f"Command: /{command.name}", command.description)
    fields = []
    if command.options:
        lines = []
        for option in command.options:
            required = "(required)" if option.get("required") else "(optional)"
            lines.append(f"**{option.get('name')}** {required} - {option.get('description', '')}")
        fields.append({"name": "Options", "value": "\n".join(lines)})
    if command.required_permissions:
        fields.append(
            {
                "name": "Required Permissions",
                "value": format_permission_list(sorted(command.required_permissions)),
            }
        )
    if command.bot_required_permissions:
        fields.append(
            {
                "name": "Bot Required Permissions",
                "value": format_permission_list(sorted(command.bot_required_permissions)),
            }
        )
    cooldown = command.cooldown_seconds
    if cooldown is None:
        cooldown = default_cooldown
    if cooldown:
        fields.append({"name": "Cooldown", "value": f"{cooldown:g} seconds"})
    if command.notes:
        fields.append({"name": "Notes", "value": command.notes})
    return add_fields(embed, fields)


async def help_command(ctx: InteractionContext) -> None:
    state = ctx.state
    commands = visible_commands(
        state.commands, guild_id=ctx.guild_id, admin_guild_id=state.admin_guild_id
    )
    requested = ctx.options.get("command")
    if not requested:
        await ctx.send_paginated(build_command_list(commands))
        return

    command = next((cmd for cmd in commands if cmd.name == requested), None)
    if command is None:
        await ctx.safe_reply(
            ephemeral=True,
            embeds=[
                create_error_embed(
                    "Command Not Found",
                    f"I couldn't find a command called `{requested}`.",
                )
            ],
        )
        return
    await ctx.safe_reply(ephemeral=True, embeds=[build_command_detail(command)])


async def help_autocomplete(ctx: InteractionContext) -> None:
    _name, value = ctx.focused_option
    needle = (value or "").lower()
    commands = visible_commands(
        ctx.state.commands,
        guild_id=ctx.guild_id,
        admin_guild_id=ctx.state.admin_guild_id,
    )
    choices = [
        {"name": cmd.name, "value": cmd.name}
        for cmd in commands
        if needle in cmd.name.lower() or needle in cmd.description.lower()
    ]
    await ctx.respond_autocomplete(choices[:MAX_AUTOCOMPLETE_RESULTS])


def build_command() -> CommandDescriptor:
    return CommandDescriptor(
        name="help",
        description="Lists all available commands or info about a specific command",
        handler=help_command,
        autocomplete=help_autocomplete,
        options=(
            build_option(
                "command",
                "Get details about a specific command",
                autocomplete=True,
            ),
        ),
        bot_required_permissions=frozenset({"SendMessages", "EmbedLinks"}),
    )
