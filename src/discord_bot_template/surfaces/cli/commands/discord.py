from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import typer

from ....core.config import BotConfig, load_bot_config
from ....core.exceptions import ConfigError
from ....core.logging_utils import setup_rotating_logger
from ....integrations.discord.commands import CommandRegistry
from ....integrations.discord.config import DiscordBotConfigError
from ....integrations.discord.errors import DiscordAPIError
from ....integrations.discord.rest import DiscordRestClient
from ....integrations.discord.service import (
    build_bot_state,
    create_discord_bot_service,
    deploy_commands,
)

LOGGER_NAME = "discord_bot_template"


def _load_config(path: Optional[Path], raise_exit: Callable) -> BotConfig:
    try:
        return load_bot_config(path or Path.cwd())
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)


def _require_credentials(config: BotConfig) -> None:
    discord_cfg = config.discord
    if not discord_cfg.bot_token:
        raise DiscordBotConfigError(f"missing bot token env '{discord_cfg.bot_token_env}'")
    if not discord_cfg.application_id:
        raise DiscordBotConfigError(f"missing application id env '{discord_cfg.app_id_env}'")


async def _sync_application_commands(
    config: BotConfig,
    registry: CommandRegistry,
    *,
    logger: logging.Logger,
    rest_client_factory: Callable[..., Any] = DiscordRestClient,
) -> None:
    _require_credentials(config)
    async with rest_client_factory(bot_token=config.discord.bot_token) as rest:
        await deploy_commands(rest, config, registry, logger=logger)


async def _fetch_remote_commands(
    config: BotConfig,
    *,
    guild_id: Optional[str],
    rest_client_factory: Callable[..., Any] = DiscordRestClient,
) -> list[dict[str, Any]]:
    _require_credentials(config)
    async with rest_client_factory(bot_token=config.discord.bot_token) as rest:
        return await rest.list_application_commands(
            application_id=config.discord.application_id or "", guild_id=guild_id
        )


def format_command_table(registry: CommandRegistry, *, default_cooldown: float) -> list[str]:
    lines = []
    for descriptor in registry:
        perms = ", ".join(sorted(descriptor.required_permissions)) or "-"
        lines.append(
            f"/{descriptor.name:<20} {descriptor.category}/{descriptor.group or '-':<10} "
            f"cooldown={descriptor.effective_cooldown(default_cooldown):g}s "
            f"permissions={perms}"
        )
    return lines


def register_discord_commands(app: typer.Typer, *, raise_exit: Callable) -> None:
    @app.command("start")
    def discord_start(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Bot root containing discord-bot.yml"
        ),
    ) -> None:
        """Connect to the gateway and serve interactions until interrupted."""
        config = _load_config(path, raise_exit)
        try:
            if not config.discord.enabled:
                raise_exit("discord_bot is disabled; set discord_bot.enabled: true")
            _require_credentials(config)
            logger = setup_rotating_logger(LOGGER_NAME, config.log)
            service = create_discord_bot_service(config, logger=logger)
            asyncio.run(service.run_forever())
        except (DiscordBotConfigError, ValueError) as exc:
            raise_exit(str(exc), cause=exc)
        except KeyboardInterrupt:
            typer.echo("Discord bot stopped.")

    @app.command("register-commands")
    def discord_register_commands(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Bot root containing discord-bot.yml"
        ),
    ) -> None:
        """Overwrite the application commands registered with Discord."""
        config = _load_config(path, raise_exit)
        logger = logging.getLogger(f"{LOGGER_NAME}.commands")
        try:
            state = build_bot_state(config, logger=logger)
            asyncio.run(_sync_application_commands(config, state.commands, logger=logger))
        except (DiscordBotConfigError, DiscordAPIError, ValueError) as exc:
            raise_exit(str(exc), cause=exc)
        typer.echo(
            f"Discord application commands synchronized ({config.environment})."
        )

    @app.command("list-commands")
    def discord_list_commands(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Bot root containing discord-bot.yml"
        ),
        remote: bool = typer.Option(
            False, "--remote", help="List commands registered with Discord instead"
        ),
        guild_id: Optional[str] = typer.Option(
            None, "--guild-id", help="Guild to query with --remote"
        ),
    ) -> None:
        """Show loaded (or registered) slash commands."""
        config = _load_config(path, raise_exit)
        if remote:
            try:
                commands = asyncio.run(_fetch_remote_commands(config, guild_id=guild_id))
            except (DiscordBotConfigError, DiscordAPIError, ValueError) as exc:
                raise_exit(str(exc), cause=exc)
            for command in commands:
                typer.echo(f"/{command.get('name')} {command.get('description', '')}")
            return
        state = build_bot_state(config, logger=logging.getLogger(f"{LOGGER_NAME}.commands"))
        for line in format_command_table(
            state.commands, default_cooldown=config.app.cooldown_default
        ):
            typer.echo(line)
