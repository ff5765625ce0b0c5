from __future__ import annotations

import logging
from typing import Any, Optional

from ...core.logging_utils import log_event
from .rest import DiscordRestClient


async def _overwrite(
    rest: DiscordRestClient,
    *,
    application_id: str,
    commands: list[dict[str, Any]],
    guild_id: Optional[str],
    logger: logging.Logger,
) -> None:
    updated = await rest.bulk_overwrite_application_commands(
        application_id=application_id,
        commands=commands,
        guild_id=guild_id,
    )
    log_event(
        logger,
        logging.INFO,
        "discord.commands.sync.overwrite",
        scope="global" if guild_id is None else "guild",
        guild_id=guild_id,
        application_id=application_id,
        command_count=len(commands),
        updated_count=len(updated),
    )


async def sync_commands(
    rest: DiscordRestClient,
    *,
    application_id: str,
    commands: list[dict[str, Any]],
    scope: str,
    guild_ids: tuple[str, ...],
    logger: logging.Logger,
    private_commands: Optional[list[dict[str, Any]]] = None,
    admin_guild_id: Optional[str] = None,
) -> None:
    """Overwrite the registered application commands.

    Public ``commands`` go to every target of ``scope``. ``private_commands``
    are only ever registered to ``admin_guild_id``; without one they are
    skipped with a warning.
    """
    normalized_scope = scope.strip().lower()
    if normalized_scope not in {"global", "guild"}:
        raise ValueError("scope must be 'global' or 'guild'")
    private = list(private_commands or [])
    admin_guild = (admin_guild_id or "").strip() or None
    if private and admin_guild is None:
        log_event(
            logger,
            logging.WARNING,
            "discord.commands.sync.private_skipped",
            reason="admin_guild_id not configured",
            command_count=len(private),
        )
        private = []

    if normalized_scope == "global":
        await _overwrite(
            rest,
            application_id=application_id,
            commands=commands,
            guild_id=None,
            logger=logger,
        )
        if admin_guild is not None and private:
            await _overwrite(
                rest,
                application_id=application_id,
                commands=private,
                guild_id=admin_guild,
                logger=logger,
            )
        return

    public_guild_ids = {
        guild_id.strip() for guild_id in guild_ids if guild_id.strip()
    }
    normalized_guild_ids = set(public_guild_ids)
    if admin_guild is not None and private:
        normalized_guild_ids.add(admin_guild)
    if not normalized_guild_ids:
        raise ValueError("guild scope requires at least one guild_id")

    for guild_id in sorted(normalized_guild_ids):
        guild_commands = list(commands) if guild_id in public_guild_ids else []
        if guild_id == admin_guild:
            guild_commands.extend(private)
        await _overwrite(
            rest,
            application_id=application_id,
            commands=guild_commands,
            guild_id=guild_id,
            logger=logger,
        )
