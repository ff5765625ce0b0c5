from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from ....core.logging_utils import log_event
from ....integrations.discord.commands import (
    INTEGER,
    SUB_COMMAND,
    CommandDescriptor,
    build_option,
)
from ....integrations.discord.context import InteractionContext
from ....integrations.discord.embeds import (
    COLOR_BOOTSTRAP_ERROR,
    COLOR_BOOTSTRAP_INFO,
    COLOR_BOOTSTRAP_SUCCESS,
    COLOR_BOOTSTRAP_WARNING,
    EMBED_FIELD_VALUE_LIMIT,
    EMBED_MAX_FIELDS,
    add_fields,
    create_embed,
    create_error_embed,
    create_success_embed,
    truncate,
)
from ....integrations.discord.errors import DiscordAPIError, StatusPageError
from ....integrations.discord.pagination import PageField, Paginator
from ....integrations.discord.status_page import (
    DEFAULT_INCIDENT_LIMIT,
    Incident,
    StatusSummary,
)

MAX_INCIDENTS = 10
MAX_UPDATES_DISPLAYED = 3
ERROR_TITLE = "Discord Status Error"
ERROR_DESCRIPTION = "Failed to fetch Discord service information. Please try again later."

_INDICATOR_STYLE = {
    "none": ("✅", COLOR_BOOTSTRAP_SUCCESS),
    "minor": ("⚠️", COLOR_BOOTSTRAP_WARNING),
    "major": ("🔴", COLOR_BOOTSTRAP_ERROR),
    "critical": ("🔴", COLOR_BOOTSTRAP_ERROR),
}
_COMPONENT_EMOJI = {
    "operational": "🟢",
    "degraded_performance": "🟡",
    "partial_outage": "🟡",
    "major_outage": "🔴",
}
_IMPACT_EMOJI = {"critical": "🔴", "major": "🟠", "minor": "🟡", "none": "🟢"}


def format_timestamp(value: Optional[str]) -> str:
    """Discord ``<t:...:f>`` markup for an ISO-8601 timestamp."""
    if not value:
        return "unknown"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return f"<t:{int(parsed.timestamp())}:f>"


def build_summary_embed(summary: StatusSummary) -> dict[str, Any]:
    emoji, color = _INDICATOR_STYLE.get(summary.indicator, ("❓", COLOR_BOOTSTRAP_INFO))
    embed = create_embed(
        title=f"{emoji} Discord Status",
        description=summary.description,
        color=color,
        url=summary.page_url,
        footer_text=f"Last updated: {format_timestamp(summary.updated_at)}",
    )
    fields = [
        {
            "name": component.name,
            "value": (
                f"{_COMPONENT_EMOJI.get(component.status, '⚪')} "
                f"{component.status.replace('_', ' ')}"
            ),
            "inline": True,
        }
        for component in summary.components[: EMBED_MAX_FIELDS - 1]
    ]
    if not fields:
        fields.append(
            {"name": "Status", "value": "No component status information available"}
        )
    fields.append(
        {"name": "Status Page", "value": f"[View detailed status]({summary.page_url})"}
    )
    return add_fields(embed, fields)


def format_incident(incident: Incident) -> PageField:
    shown = incident.updates[:MAX_UPDATES_DISPLAYED]
    if shown:
        updates = "\n\n".join(
            f"**{update.status}** ({format_timestamp(update.created_at)}):\n{update.body}"
            for update in shown
        )
        hidden = len(incident.updates) - len(shown)
        if hidden:
            updates += f"\n\n*{hidden} more update(s) not shown*"
    else:
        updates = "*No updates available*"
    value = (
        f"**Impact:** {incident.impact}\n"
        f"**Created:** {format_timestamp(incident.created_at)}\n\n"
        f"**Updates:**\n{updates}\n\n"
        f"[View on Status Page]({incident.url})"
    )
    return PageField(
        name=f"{_IMPACT_EMOJI.get(incident.impact, '⚪')} {incident.name} ({incident.status})",
        value=truncate(value, EMBED_FIELD_VALUE_LIMIT) or "",
    )


def build_incident_list(incidents: list[Incident]) -> Paginator[Incident]:
    return Paginator(
        incidents,
        format_incident,
        title="📊 Discord Incidents",
        description=f"Showing recent Discord incidents ({len(incidents)} total)",
        items_per_page=1,
        footer_text="Discord Status",
        color=COLOR_BOOTSTRAP_INFO,
    )


async def _show_summary(ctx: InteractionContext) -> None:
    summary = await ctx.state.status_page.get_summary()
    await ctx.edit_original(embeds=[build_summary_embed(summary)])


async def _show_incidents(ctx: InteractionContext) -> None:
    limit = ctx.options.get("limit") or DEFAULT_INCIDENT_LIMIT
    limit = max(1, min(int(limit), MAX_INCIDENTS))
    incidents = await ctx.state.status_page.get_incidents(limit)
    if not incidents:
        await ctx.edit_original(
            embeds=[
                create_success_embed(
                    "📊 Discord Incidents", "No recent incidents reported."
                )
            ]
        )
        return
    await ctx.send_paginated(build_incident_list(incidents))


async def discord_status(ctx: InteractionContext) -> None:
    await ctx.defer()
    subcommand = ctx.command_path[-1] if ctx.command_path else "summary"
    try:
        if ctx.state.status_page is None:
            raise StatusPageError("Discord status client is not configured")
        if subcommand == "incidents":
            await _show_incidents(ctx)
        else:
            await _show_summary(ctx)
    except (StatusPageError, DiscordAPIError) as exc:
        log_event(
            ctx.logger,
            logging.ERROR,
            "discord.command.discord_status.failed",
            subcommand=subcommand,
            status_code=getattr(exc, "status_code", None),
            exc=exc,
        )
        await ctx.edit_original(
            embeds=[create_error_embed(ERROR_TITLE, ERROR_DESCRIPTION)]
        )


def build_command() -> CommandDescriptor:
    return CommandDescriptor(
        name="discord-status",
        description="Check Discord's service status (Admin only)",
        handler=discord_status,
        options=(
            build_option(
                "summary",
                "Get a summary of Discord's current status",
                option_type=SUB_COMMAND,
            ),
            {
                **build_option(
                    "incidents",
                    "Get recent Discord incidents",
                    option_type=SUB_COMMAND,
                ),
                "options": [
                    build_option(
                        "limit",
                        f"Number of incidents to show (default: {DEFAULT_INCIDENT_LIMIT})",
                        option_type=INTEGER,
                        min_value=1,
                        max_value=MAX_INCIDENTS,
                    )
                ],
            },
        ),
        required_permissions=frozenset({"Administrator"}),
        bot_required_permissions=frozenset({"SendMessages", "EmbedLinks"}),
    )
