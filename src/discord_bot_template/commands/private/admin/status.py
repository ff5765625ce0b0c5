from __future__ import annotations

import platform
import sys
from typing import Optional

from .... import __version__
from ....integrations.discord.commands import CommandDescriptor
from ....integrations.discord.context import InteractionContext
from ....integrations.discord.embeds import add_fields, create_success_embed
from ....integrations.discord.state import BotState


def format_uptime(seconds: float) -> str:
    remaining = int(max(seconds, 0))
    days, remaining = divmod(remaining, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, secs = divmod(remaining, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def peak_memory_mb() -> Optional[float]:
    if sys.platform == "win32":
        return None
    import resource

    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere.
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return usage / divisor


def build_status_embed(state: BotState) -> dict:
    embed = create_success_embed(
        "Bot Status Information",
        "Current operational statistics for the bot",
        footer_text="Discord Bot Template",
    )
    memory = peak_memory_mb()
    latency = state.latency
    return add_fields(
        embed,
        [
            {"name": "🤖 Bot Version", "value": __version__, "inline": True},
            {"name": "🐍 Python Version", "value": platform.python_version(), "inline": True},
            {"name": "⏱️ Uptime", "value": format_uptime(state.uptime_seconds), "inline": True},
            {
                "name": "🖥️ Platform",
                "value": f"{platform.system()} {platform.release()}",
                "inline": True,
            },
            {
                "name": "💾 Peak Memory",
                "value": "n/a" if memory is None else f"{round(memory)} MB",
                "inline": True,
            },
            {"name": "🌐 Servers", "value": str(len(state.guild_ids)), "inline": True},
            {"name": "📚 Commands", "value": str(len(state.commands)), "inline": True},
            {"name": "📄 Active Paginators", "value": str(len(state.paginators)), "inline": True},
            {
                "name": "📊 Connection Status",
                "value": "Ping: n/a" if latency is None else f"Ping: {round(latency * 1000)}ms",
                "inline": True,
            },
        ],
    )


async def status(ctx: InteractionContext) -> None:
    await ctx.safe_reply(embeds=[build_status_embed(ctx.state)])


def build_command() -> CommandDescriptor:
    return CommandDescriptor(
        name="status",
        description="Displays detailed bot status information (Admin only)",
        handler=status,
        required_permissions=frozenset({"Administrator"}),
        bot_required_permissions=frozenset({"SendMessages", "EmbedLinks", "ViewChannel"}),
    )
