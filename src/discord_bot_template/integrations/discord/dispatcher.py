"""Routes inbound interactions to commands, pagination and confirmation flows.

Command path, in order: descriptor lookup, cooldown gate, actor permission
gate, bot permission gate, handler. Every failure ends in a bounded,
user-visible notice; nothing raised here escapes ``dispatch``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from ...core.logging_utils import log_event
from .components import CANCEL_ID, CONFIRM_ID, PAGINATION_ACTIONS
from .constants import DISCORD_MAX_MESSAGE_LENGTH
from .context import InteractionContext
from .embeds import (
    add_fields,
    create_error_embed,
    create_success_embed,
    create_warning_embed,
)
from .errors import (
    CommandHandlerError,
    CommandNotFoundError,
    CooldownActiveError,
    DiscordAPIError,
    PaginationStateError,
    PermissionDeniedError,
)
from .events import BotEvent, PaginationUpdate
from .interactions import (
    is_autocomplete_interaction,
    is_button_interaction,
    is_command_interaction,
    is_component_interaction,
    is_modal_submit_interaction,
    is_select_menu_interaction,
)
from .pagination import build_expired_embed, calculate_new_page, parse_page_indicator
from .permissions import (
    InteractionPermissionResolver,
    PermissionEvaluator,
    PermissionResolver,
    PermissionScope,
    format_permission_list,
)
from .rest import DiscordRestClient
from .state import BotState

ResolverFactory = Callable[[dict[str, Any]], PermissionResolver]

NOT_IMPLEMENTED_BUTTON = "This button has no handler implemented."
NOT_IMPLEMENTED_SELECT = "This select menu has no handler implemented."
NOT_IMPLEMENTED_MODAL = "This modal has no handler implemented."


class InteractionDispatcher:
    def __init__(
        self,
        state: BotState,
        *,
        rest: DiscordRestClient,
        application_id: str,
        owner_id: Optional[str],
        default_cooldown: float,
        logger: logging.Logger,
        bot_id: Optional[str] = None,
        resolver_factory: Optional[ResolverFactory] = None,
        max_message_length: int = DISCORD_MAX_MESSAGE_LENGTH,
    ) -> None:
        self._state = state
        self._rest = rest
        self._application_id = application_id
        self._owner_id = owner_id
        self._default_cooldown = default_cooldown
        self._logger = logger
        self._bot_id = bot_id
        self._resolver_factory = resolver_factory or self._interaction_resolver
        self._max_message_length = max_message_length
        state.events.on(BotEvent.PAGINATION_UPDATE, self.handle_pagination_update)

    @property
    def bot_id(self) -> str:
        # A bot user's id equals its application's id.
        return self._bot_id or self._state.identity.user_id or self._application_id

    def _interaction_resolver(self, payload: dict[str, Any]) -> PermissionResolver:
        return InteractionPermissionResolver(payload, bot_id=self.bot_id)

    def build_context(self, payload: dict[str, Any]) -> InteractionContext:
        return InteractionContext(
            payload,
            rest=self._rest,
            application_id=self._application_id,
            state=self._state,
            logger=self._logger,
            max_message_length=self._max_message_length,
        )

    async def dispatch(self, payload: dict[str, Any]) -> None:
        ctx = self.build_context(payload)
        try:
            if is_command_interaction(payload):
                await self._handle_command(ctx)
            elif is_autocomplete_interaction(payload):
                await self._handle_autocomplete(ctx)
            elif is_button_interaction(payload):
                await self._handle_button(ctx)
            elif is_select_menu_interaction(payload):
                await self._handle_not_implemented(ctx, "select_menu", NOT_IMPLEMENTED_SELECT)
            elif is_modal_submit_interaction(payload):
                await self._handle_not_implemented(ctx, "modal", NOT_IMPLEMENTED_MODAL)
            elif is_component_interaction(payload):
                await self._handle_not_implemented(ctx, "component", NOT_IMPLEMENTED_BUTTON)
            else:
                log_event(
                    self._logger,
                    logging.DEBUG,
                    "discord.interaction.ignored",
                    interaction_id=ctx.interaction_id,
                    interaction_type=payload.get("type"),
                )
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.interaction.unhandled_error",
                interaction_id=ctx.interaction_id,
                interaction_type=payload.get("type"),
                exc=exc,
            )

    async def _handle_command(self, ctx: InteractionContext) -> None:
        command_name = ctx.command_name or ""
        descriptor = self._state.commands.get(command_name)
        if descriptor is None:
            not_found = CommandNotFoundError(command_name)
            log_event(
                self._logger,
                logging.ERROR,
                "discord.command.not_found",
                command=command_name,
                user_id=ctx.user_id,
            )
            await ctx.safe_reply(
                ephemeral=True,
                embeds=[create_error_embed("Command Not Found", not_found.user_message or "")],
            )
            return

        actor_id = ctx.user_id or ""
        remaining = self._state.cooldowns.check_and_arm(
            descriptor.name,
            actor_id,
            descriptor.effective_cooldown(self._default_cooldown),
        )
        if remaining is not None:
            cooldown = CooldownActiveError(descriptor.name, remaining)
            log_event(
                self._logger,
                logging.INFO,
                "discord.command.cooldown",
                command=descriptor.name,
                user_id=actor_id,
                remaining_seconds=round(remaining, 3),
            )
            await ctx.safe_reply(
                ephemeral=True,
                embeds=[create_warning_embed("Command on Cooldown", cooldown.user_message or "")],
            )
            return

        if not await self._check_actor_permissions(ctx, descriptor.name, descriptor.required_permissions):
            return
        if not await self._check_bot_permissions(ctx, descriptor.name, descriptor.bot_required_permissions):
            return

        log_event(
            self._logger,
            logging.INFO,
            "discord.command.execute",
            command=descriptor.name,
            user_id=actor_id,
            user=ctx.user_display_name,
            guild_id=ctx.guild_id,
            channel_id=ctx.channel_id,
        )
        try:
            await descriptor.handler(ctx)
        except Exception as exc:
            failure = CommandHandlerError(descriptor.name, exc)
            log_event(
                self._logger,
                logging.ERROR,
                "discord.command.failed",
                command=descriptor.name,
                user_id=actor_id,
                exc=exc,
            )
            await ctx.safe_reply(
                ephemeral=True,
                embeds=[create_error_embed("Command Error", failure.user_message or "")],
            )

    def _scope(self, ctx: InteractionContext) -> PermissionScope:
        return PermissionScope(guild_id=ctx.guild_id, channel_id=ctx.channel_id)

    async def _check_actor_permissions(
        self, ctx: InteractionContext, command_name: str, required: frozenset[str]
    ) -> bool:
        # Outside a guild there is no grant to check against.
        if not required or not ctx.guild_id:
            return True
        evaluator = PermissionEvaluator(
            self._owner_id, self._resolver_factory(ctx.payload), logger=self._logger
        )
        check = await evaluator.evaluate(ctx.user_id or "", required, scope=self._scope(ctx))
        if check.allowed:
            return True
        denied = PermissionDeniedError(check.missing)
        log_event(
            self._logger,
            logging.INFO,
            "discord.command.permission_denied",
            command=command_name,
            user_id=ctx.user_id,
            missing=list(denied.missing),
        )
        await ctx.safe_reply(ephemeral=True, embeds=[self._permission_denied_embed(denied)])
        return False

    async def _check_bot_permissions(
        self, ctx: InteractionContext, command_name: str, required: frozenset[str]
    ) -> bool:
        if not required or not ctx.guild_id:
            return True
        # No owner bypass for the bot's own grant.
        evaluator = PermissionEvaluator(
            None, self._resolver_factory(ctx.payload), logger=self._logger
        )
        check = await evaluator.evaluate(self.bot_id, required, scope=self._scope(ctx))
        if check.allowed:
            return True
        denied = PermissionDeniedError(check.missing, service=True)
        log_event(
            self._logger,
            logging.WARNING,
            "discord.command.bot_permission_denied",
            command=command_name,
            guild_id=ctx.guild_id,
            channel_id=ctx.channel_id,
            missing=list(denied.missing),
        )
        await ctx.safe_reply(ephemeral=True, embeds=[self._permission_denied_embed(denied)])
        return False

    @staticmethod
    def _permission_denied_embed(denied: PermissionDeniedError) -> dict[str, Any]:
        if denied.service:
            title = "Missing Bot Permissions"
            field_name = "Missing Permissions"
            footer = "Please contact a server administrator to resolve this issue."
        else:
            title = "Missing Permissions"
            field_name = "Required Permissions"
            footer = "Please contact a server administrator if you believe this is an error."
        embed = create_error_embed(title, denied.user_message or "", footer_text=footer)
        # A failed lookup denies without naming anything.
        if denied.missing:
            add_fields(
                embed,
                [{"name": field_name, "value": f"• {format_permission_list(denied.missing)}"}],
            )
        return embed

    async def _handle_autocomplete(self, ctx: InteractionContext) -> None:
        descriptor = self._state.commands.get(ctx.command_name)
        if descriptor is None or descriptor.autocomplete is None:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.autocomplete.missing_handler",
                command=ctx.command_name,
            )
            return
        try:
            await descriptor.autocomplete(ctx)
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.autocomplete.failed",
                command=descriptor.name,
                exc=exc,
            )

    async def _handle_button(self, ctx: InteractionContext) -> None:
        custom_id = ctx.custom_id or ""
        log_event(
            self._logger,
            logging.INFO,
            "discord.button.clicked",
            custom_id=custom_id,
            user_id=ctx.user_id,
            message_id=ctx.message_id,
        )
        if custom_id in (CONFIRM_ID, CANCEL_ID):
            await self._handle_confirmation(ctx, confirmed=custom_id == CONFIRM_ID)
            return
        if custom_id in PAGINATION_ACTIONS:
            await self._handle_pagination_button(ctx, custom_id)
            return
        await self._handle_not_implemented(ctx, "button", NOT_IMPLEMENTED_BUTTON)

    async def _handle_confirmation(self, ctx: InteractionContext, *, confirmed: bool) -> None:
        if confirmed:
            embed = create_success_embed("Action Confirmed", "You confirmed the action.")
            event = BotEvent.CONFIRMATION_ACCEPTED
        else:
            embed = create_error_embed("Action Cancelled", "You cancelled the action.")
            event = BotEvent.CONFIRMATION_REJECTED
        try:
            await ctx.update(embeds=[embed], components=[])
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.confirmation.update_failed",
                message_id=ctx.message_id,
                confirmed=confirmed,
                exc=exc,
            )
            return
        await self._state.events.emit(event, ctx)
        if ctx.message_id:
            self._state.confirmations.pop(ctx.message_id, None)

    async def _handle_pagination_button(self, ctx: InteractionContext, action: str) -> None:
        try:
            current_page, total_pages = parse_page_indicator(ctx.message_components)
        except PaginationStateError as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.pagination.state_unreadable",
                message_id=ctx.message_id,
                exc=exc,
            )
            await ctx.safe_reply(
                ephemeral=True,
                embeds=[
                    create_error_embed(
                        "Pagination Error",
                        "Failed to update the page. Please try again.",
                    )
                ],
            )
            return

        new_page = calculate_new_page(action, current_page, total_pages)
        try:
            await ctx.defer_update()
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.pagination.defer_failed",
                message_id=ctx.message_id,
                exc=exc,
            )
            return
        if new_page == current_page:
            return
        await self._state.events.emit(
            BotEvent.PAGINATION_UPDATE,
            PaginationUpdate(context=ctx, old_page=current_page, new_page=new_page),
        )

    async def handle_pagination_update(self, update: PaginationUpdate) -> None:
        ctx = update.context
        message_id = ctx.message_id
        paginator = self._state.paginators.get(message_id) if message_id else None
        try:
            if paginator is None:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.pagination.missing",
                    message_id=message_id,
                )
                await ctx.edit_original(
                    embeds=[build_expired_embed(ctx.message_embeds)], components=[]
                )
                return
            render = paginator.get_page(update.new_page)
            await ctx.edit_original(embeds=render.embeds, components=render.components)
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.pagination.update_failed",
                message_id=message_id,
                exc=exc,
            )
            return
        log_event(
            self._logger,
            logging.INFO,
            "discord.pagination.updated",
            message_id=message_id,
            old_page=update.old_page + 1,
            new_page=(render.current_page + 1) if paginator is not None else None,
        )

    async def _handle_not_implemented(
        self, ctx: InteractionContext, kind: str, description: str
    ) -> None:
        log_event(
            self._logger,
            logging.INFO,
            "discord.interaction.not_implemented",
            kind=kind,
            custom_id=ctx.custom_id,
            values=ctx.values,
            user_id=ctx.user_id,
        )
        await ctx.safe_reply(
            ephemeral=True,
            embeds=[create_error_embed("Not Implemented", description)],
        )
