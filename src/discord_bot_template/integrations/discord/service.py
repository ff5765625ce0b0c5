from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any, Optional

from ...core.logging_utils import log_event
from .command_registry import sync_commands
from .commands import (
    CATEGORY_PRIVATE,
    CATEGORY_PUBLIC,
    DEFAULT_COMMANDS_PACKAGE,
    CommandRegistry,
    build_application_commands,
    load_commands,
)
from .cooldowns import CooldownTracker
from .dispatcher import InteractionDispatcher
from .embeds import tag_embed_footers
from .errors import DiscordAPIError
from .gateway import DiscordGatewayClient
from .pagination import PaginationRegistry
from .rest import DiscordRestClient
from .state import BotIdentity, BotState
from .status_page import DiscordStatusClient
from .welcome import build_welcome_embed, find_welcome_channel

if TYPE_CHECKING:
    from ...core.config import BotConfig


def register_command_listeners(state: BotState) -> int:
    count = 0
    for descriptor in state.commands:
        for event_name, listener in descriptor.listeners:
            state.events.on(event_name, listener)
            count += 1
    return count


def build_bot_state(
    config: "BotConfig",
    *,
    logger: logging.Logger,
    package_name: str = DEFAULT_COMMANDS_PACKAGE,
) -> BotState:
    """Load commands and assemble the shared runtime state."""
    pagination = config.app.pagination
    state = BotState(
        commands=CommandRegistry(),
        cooldowns=CooldownTracker(),
        paginators=PaginationRegistry(
            max_entries=pagination.registry_max_entries,
            ttl_seconds=pagination.registry_ttl_seconds,
        ),
        environment=config.environment,
        admin_guild_id=config.discord.admin_guild_id,
        items_per_page=pagination.items_per_page,
        component_timeout_seconds=pagination.timeout_seconds,
        status_page=DiscordStatusClient(
            enabled=config.api.enabled, timeout_seconds=config.api.timeout_seconds
        ),
    )
    load_commands(
        state.commands,
        package_name=package_name,
        default_cooldown=config.app.cooldown_default,
        logger=logger,
    )
    register_command_listeners(state)
    return state


async def deploy_commands(
    rest: DiscordRestClient,
    config: "BotConfig",
    registry: CommandRegistry,
    *,
    logger: logging.Logger,
) -> None:
    """Register the loaded commands with Discord.

    Outside production every command goes to the admin guild only, so edits
    show up immediately without touching the global command list.
    """
    discord_cfg = config.discord
    application_id = (discord_cfg.application_id or "").strip()
    if not application_id:
        raise ValueError("missing Discord application id for command sync")
    public = build_application_commands(registry, category=CATEGORY_PUBLIC)
    private = build_application_commands(registry, category=CATEGORY_PRIVATE)

    if config.environment != "production":
        if not discord_cfg.admin_guild_id:
            raise ValueError(
                f"{config.environment} deploys require admin_guild_id"
            )
        await sync_commands(
            rest,
            application_id=application_id,
            commands=public + private,
            scope="guild",
            guild_ids=(discord_cfg.admin_guild_id,),
            logger=logger,
        )
        return

    registration = discord_cfg.command_registration
    if registration.scope == "guild" and not registration.guild_ids:
        raise ValueError("guild scope requires at least one guild_id")
    await sync_commands(
        rest,
        application_id=application_id,
        commands=public,
        scope=registration.scope,
        guild_ids=registration.guild_ids,
        logger=logger,
        private_commands=private,
        admin_guild_id=discord_cfg.admin_guild_id,
    )


class DiscordBotService:
    def __init__(
        self,
        config: "BotConfig",
        *,
        logger: logging.Logger,
        rest_client: Optional[DiscordRestClient] = None,
        gateway_client: Optional[DiscordGatewayClient] = None,
        state: Optional[BotState] = None,
    ) -> None:
        self._config = config
        self._logger = logger
        discord_cfg = config.discord

        self._rest = (
            rest_client
            if rest_client is not None
            else DiscordRestClient(bot_token=discord_cfg.bot_token or "")
        )
        self._owns_rest = rest_client is None

        self._gateway = (
            gateway_client
            if gateway_client is not None
            else DiscordGatewayClient(
                bot_token=discord_cfg.bot_token or "",
                intents=discord_cfg.intents,
                logger=logger,
                presence=discord_cfg.presence,
                rest=self._rest,
            )
        )
        self._owns_gateway = gateway_client is None

        self._state = state if state is not None else build_bot_state(config, logger=logger)
        self._state.latency_provider = lambda: self._gateway.latency
        self._dispatcher = InteractionDispatcher(
            self._state,
            rest=self._rest,
            application_id=discord_cfg.application_id or "",
            owner_id=discord_cfg.owner_id,
            default_cooldown=float(config.app.cooldown_default),
            logger=logger,
            max_message_length=discord_cfg.max_message_length,
        )

    @property
    def state(self) -> BotState:
        return self._state

    @property
    def dispatcher(self) -> InteractionDispatcher:
        return self._dispatcher

    async def run_forever(self) -> None:
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(self._handle_loop_exception)
        await self._sync_application_commands_on_startup()
        housekeeping_task = asyncio.create_task(self._housekeeping_loop())
        try:
            log_event(
                self._logger,
                logging.INFO,
                "discord.bot.starting",
                environment=self._config.environment,
                command_count=len(self._state.commands),
            )
            await self._gateway.run(self._on_dispatch)
        finally:
            housekeeping_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await housekeeping_task
            await self._shutdown()

    def _handle_loop_exception(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        exc = context.get("exception")
        log_event(
            self._logger,
            logging.ERROR,
            "discord.bot.loop_exception",
            message=context.get("message"),
            exc=exc if isinstance(exc, BaseException) else None,
        )

    async def _sync_application_commands_on_startup(self) -> None:
        registration = self._config.discord.command_registration
        if not registration.enabled:
            log_event(self._logger, logging.INFO, "discord.commands.sync.disabled")
            return
        try:
            await deploy_commands(
                self._rest, self._config, self._state.commands, logger=self._logger
            )
        except ValueError:
            raise
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.commands.sync.startup_failed",
                environment=self._config.environment,
                command_count=len(self._state.commands),
                exc=exc,
            )

    async def _housekeeping_loop(self) -> None:
        interval = self._config.app.housekeeping_interval_seconds
        while True:
            await asyncio.sleep(interval)
            self.run_housekeeping()

    def run_housekeeping(self) -> tuple[int, int]:
        cooldowns = self._state.cooldowns.sweep()
        paginators = self._state.paginators.sweep()
        if cooldowns or paginators:
            log_event(
                self._logger,
                logging.DEBUG,
                "discord.bot.housekeeping",
                cooldowns_purged=cooldowns,
                paginators_purged=paginators,
                paginators_active=len(self._state.paginators),
            )
        return cooldowns, paginators

    async def _shutdown(self) -> None:
        tasks = list(self._state.background_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_gateway:
            with contextlib.suppress(Exception):
                await self._gateway.stop()
        if self._owns_rest:
            with contextlib.suppress(Exception):
                await self._rest.close()
        if self._state.status_page is not None:
            with contextlib.suppress(Exception):
                await self._state.status_page.close()
        log_event(self._logger, logging.INFO, "discord.bot.stopped")

    async def _on_dispatch(self, event_type: str, payload: dict[str, Any]) -> None:
        if event_type == "INTERACTION_CREATE":
            self._state.spawn(self._dispatcher.dispatch(payload))
        elif event_type == "READY":
            self._handle_ready(payload)
        elif event_type == "GUILD_CREATE":
            self._handle_guild_create(payload)
        elif event_type == "GUILD_DELETE":
            self._handle_guild_delete(payload)

    def _handle_ready(self, payload: dict[str, Any]) -> None:
        user = payload.get("user") if isinstance(payload.get("user"), dict) else {}
        self._state.identity = BotIdentity(
            user_id=str(user["id"]) if user.get("id") is not None else None,
            username=user.get("username"),
        )
        guilds = payload.get("guilds")
        if isinstance(guilds, list):
            self._state.guild_ids = {
                str(guild["id"])
                for guild in guilds
                if isinstance(guild, dict) and guild.get("id") is not None
            }
        log_event(
            self._logger,
            logging.INFO,
            "discord.bot.ready",
            user_id=self._state.identity.user_id,
            username=self._state.identity.username,
            guild_count=len(self._state.guild_ids),
        )

    def _handle_guild_create(self, payload: dict[str, Any]) -> None:
        guild_id = payload.get("id")
        if guild_id is None:
            return
        guild_id = str(guild_id)
        known = guild_id in self._state.guild_ids
        self._state.guild_ids.add(guild_id)
        # GUILD_CREATE also fires for every guild during startup.
        if known:
            return
        log_event(
            self._logger,
            logging.INFO,
            "discord.guild.joined",
            guild_id=guild_id,
            guild_name=payload.get("name"),
            member_count=payload.get("member_count"),
            guild_count=len(self._state.guild_ids),
        )
        self._state.spawn(self.send_welcome_message(payload))

    async def send_welcome_message(self, guild: dict[str, Any]) -> Optional[str]:
        """Post the welcome embed in a newly joined guild; returns the channel id."""
        guild_id = str(guild.get("id"))
        channel_id = find_welcome_channel(guild, self._dispatcher.bot_id)
        if channel_id is None:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.guild.welcome_skipped",
                guild_id=guild_id,
                guild_name=guild.get("name"),
                reason="no writable text channel",
            )
            return None
        embed = build_welcome_embed(str(guild.get("name") or "your server"))
        try:
            await self._rest.create_channel_message(
                channel_id=channel_id,
                payload={"embeds": tag_embed_footers([embed], self._state.environment_tag)},
            )
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.guild.welcome_failed",
                guild_id=guild_id,
                channel_id=channel_id,
                exc=exc,
            )
            return None
        log_event(
            self._logger,
            logging.INFO,
            "discord.guild.welcome_sent",
            guild_id=guild_id,
            channel_id=channel_id,
        )
        return channel_id

    def _handle_guild_delete(self, payload: dict[str, Any]) -> None:
        guild_id = payload.get("id")
        if guild_id is None:
            return
        guild_id = str(guild_id)
        # Outages mark guilds unavailable without removing the bot.
        if payload.get("unavailable"):
            log_event(
                self._logger,
                logging.WARNING,
                "discord.guild.unavailable",
                guild_id=guild_id,
            )
            return
        self._state.guild_ids.discard(guild_id)
        log_event(
            self._logger,
            logging.INFO,
            "discord.guild.left",
            guild_id=guild_id,
            guild_count=len(self._state.guild_ids),
        )


def create_discord_bot_service(
    config: "BotConfig", *, logger: logging.Logger
) -> DiscordBotService:
    return DiscordBotService(config, logger=logger)
