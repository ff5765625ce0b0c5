from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from ...core.logging_utils import log_event
from .components import build_confirmation_buttons
from .constants import (
    CALLBACK_AUTOCOMPLETE_RESULT,
    CALLBACK_CHANNEL_MESSAGE_WITH_SOURCE,
    CALLBACK_DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE,
    CALLBACK_DEFERRED_UPDATE_MESSAGE,
    CALLBACK_UPDATE_MESSAGE,
    DISCORD_EPHEMERAL_FLAG,
    DISCORD_MAX_MESSAGE_LENGTH,
)
from .embeds import tag_embed_footers, truncate
from .errors import DiscordAPIError
from .interactions import (
    extract_channel_id,
    extract_command_name,
    extract_command_path_and_options,
    extract_component_custom_id,
    extract_component_values,
    extract_focused_option,
    extract_guild_id,
    extract_interaction_id,
    extract_interaction_token,
    extract_message_components,
    extract_message_embeds,
    extract_message_id,
    extract_user_display_name,
    extract_user_id,
)
from .pagination import Paginator
from .rest import DiscordRestClient
from .state import BotState

MAX_AUTOCOMPLETE_CHOICES = 25


class InteractionContext:
    """One inbound interaction plus the means to answer it.

    Tracks whether the interaction was already acknowledged so ``safe_reply``
    can choose between the initial callback and a follow-up message.
    """

    def __init__(
        self,
        payload: dict[str, Any],
        *,
        rest: DiscordRestClient,
        application_id: str,
        state: BotState,
        logger: logging.Logger,
        max_message_length: int = DISCORD_MAX_MESSAGE_LENGTH,
    ) -> None:
        self.payload = payload
        self.rest = rest
        self.application_id = application_id
        self.state = state
        self.logger = logger
        self._max_message_length = max_message_length
        self.replied = False
        self.deferred = False
        self.command_path, self.options = extract_command_path_and_options(payload)

    @property
    def interaction_id(self) -> Optional[str]:
        return extract_interaction_id(self.payload)

    @property
    def token(self) -> Optional[str]:
        return extract_interaction_token(self.payload)

    @property
    def guild_id(self) -> Optional[str]:
        return extract_guild_id(self.payload)

    @property
    def channel_id(self) -> Optional[str]:
        return extract_channel_id(self.payload)

    @property
    def user_id(self) -> Optional[str]:
        return extract_user_id(self.payload)

    @property
    def user_display_name(self) -> str:
        return extract_user_display_name(self.payload) or self.user_id or "unknown"

    @property
    def command_name(self) -> Optional[str]:
        return extract_command_name(self.payload)

    @property
    def custom_id(self) -> Optional[str]:
        return extract_component_custom_id(self.payload)

    @property
    def values(self) -> list[str]:
        return extract_component_values(self.payload)

    @property
    def message_id(self) -> Optional[str]:
        return extract_message_id(self.payload)

    @property
    def message_components(self) -> list[Any]:
        return extract_message_components(self.payload)

    @property
    def message_embeds(self) -> list[dict[str, Any]]:
        return extract_message_embeds(self.payload)

    @property
    def focused_option(self) -> tuple[Optional[str], str]:
        return extract_focused_option(self.payload)

    @property
    def acknowledged(self) -> bool:
        return self.replied or self.deferred

    def _message_data(
        self,
        *,
        content: Optional[str] = None,
        embeds: Optional[list[dict[str, Any]]] = None,
        components: Optional[list[dict[str, Any]]] = None,
        ephemeral: bool = False,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if content is not None:
            data["content"] = truncate(content, self._max_message_length) or ""
        if embeds is not None:
            data["embeds"] = tag_embed_footers(embeds, self.state.environment_tag)
        if components is not None:
            data["components"] = components
        if ephemeral:
            data["flags"] = DISCORD_EPHEMERAL_FLAG
        return data

    async def _callback(self, callback_type: int, data: Optional[dict[str, Any]] = None) -> None:
        payload: dict[str, Any] = {"type": callback_type}
        if data is not None:
            payload["data"] = data
        await self.rest.create_interaction_response(
            interaction_id=self.interaction_id or "",
            interaction_token=self.token or "",
            payload=payload,
        )

    async def reply(self, *, ephemeral: bool = False, **message: Any) -> None:
        await self._callback(
            CALLBACK_CHANNEL_MESSAGE_WITH_SOURCE,
            self._message_data(ephemeral=ephemeral, **message),
        )
        self.replied = True

    async def defer(self, *, ephemeral: bool = False) -> None:
        await self._callback(
            CALLBACK_DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE,
            {"flags": DISCORD_EPHEMERAL_FLAG} if ephemeral else None,
        )
        self.deferred = True

    async def defer_update(self) -> None:
        await self._callback(CALLBACK_DEFERRED_UPDATE_MESSAGE)
        self.deferred = True

    async def update(self, **message: Any) -> None:
        """Replace the message a component is attached to."""
        await self._callback(CALLBACK_UPDATE_MESSAGE, self._message_data(**message))
        self.replied = True

    async def follow_up(self, *, ephemeral: bool = False, **message: Any) -> dict[str, Any]:
        response = await self.rest.create_followup_message(
            application_id=self.application_id,
            interaction_token=self.token or "",
            payload=self._message_data(ephemeral=ephemeral, **message),
        )
        self.replied = True
        return response

    async def edit_original(self, **message: Any) -> dict[str, Any]:
        return await self.rest.edit_original_interaction_response(
            application_id=self.application_id,
            interaction_token=self.token or "",
            payload=self._message_data(**message),
        )

    async def fetch_original(self) -> dict[str, Any]:
        return await self.rest.get_original_interaction_response(
            application_id=self.application_id,
            interaction_token=self.token or "",
        )

    async def respond_autocomplete(self, choices: list[dict[str, Any]]) -> None:
        await self._callback(
            CALLBACK_AUTOCOMPLETE_RESULT,
            {"choices": choices[:MAX_AUTOCOMPLETE_CHOICES]},
        )
        self.replied = True

    async def safe_reply(self, *, ephemeral: bool = False, **message: Any) -> Optional[dict[str, Any]]:
        """Reply or follow up, whichever the interaction state allows.

        A failed ephemeral send is retried once as a normal message. Errors
        are logged, never raised.
        """
        try:
            if not self.acknowledged:
                await self.reply(ephemeral=ephemeral, **message)
                return None
            return await self.follow_up(ephemeral=ephemeral, **message)
        except DiscordAPIError as exc:
            log_event(
                self.logger,
                logging.ERROR,
                "discord.interaction.reply_failed",
                interaction_id=self.interaction_id,
                ephemeral=ephemeral,
                status_code=exc.status_code,
                error_code=exc.error_code,
                exc=exc,
            )
            if ephemeral:
                return await self.safe_reply(ephemeral=False, **message)
            return None

    async def send_confirmation(
        self, embed: dict[str, Any], *, source: str, ephemeral: bool = False
    ) -> Optional[str]:
        """Send a yes/no dialog and remember which command opened it."""
        message = await self.safe_reply(
            ephemeral=ephemeral,
            embeds=[embed],
            components=[build_confirmation_buttons()],
        )
        if message is None:
            message = await self.fetch_original()
        message_id = message.get("id") if isinstance(message, dict) else None
        if not message_id:
            return None
        message_id = str(message_id)
        self.state.confirmations[message_id] = source
        schedule_component_expiry(
            self, message_id, self.state.component_timeout_seconds
        )
        return message_id

    async def send_paginated(
        self, paginator: Paginator[Any], *, ephemeral: bool = False
    ) -> Optional[str]:
        """Send page 0, register the paginator and schedule control expiry.

        Returns the message id the paginator is keyed by.
        """
        render = paginator.get_page(0)
        if self.acknowledged:
            message = await self.follow_up(
                ephemeral=ephemeral, embeds=render.embeds, components=render.components
            )
        else:
            await self.reply(
                ephemeral=ephemeral, embeds=render.embeds, components=render.components
            )
            message = await self.fetch_original()
        message_id = message.get("id") if isinstance(message, dict) else None
        if not message_id:
            log_event(
                self.logger,
                logging.WARNING,
                "discord.pagination.register_skipped",
                interaction_id=self.interaction_id,
                reason="missing message id",
            )
            return None
        message_id = str(message_id)
        self.state.paginators.register(message_id, paginator)
        log_event(
            self.logger,
            logging.DEBUG,
            "discord.pagination.registered",
            message_id=message_id,
            page_count=paginator.page_count,
            item_count=paginator.item_count,
        )
        schedule_component_expiry(
            self, message_id, self.state.component_timeout_seconds
        )
        return message_id


def schedule_component_expiry(
    context: InteractionContext, message_id: str, timeout_seconds: float
) -> Optional["asyncio.Task[None]"]:
    """Strip interactive controls from a message after a timeout.

    Pagination and confirmation entries for the message are dropped at the
    same time. Advisory only: a failed
    edit is logged at debug level.
    """
    if timeout_seconds <= 0:
        return None
    return context.state.spawn(
        _expire_components(context, message_id, timeout_seconds)
    )


async def _expire_components(
    context: InteractionContext, message_id: str, timeout_seconds: float
) -> None:
    await asyncio.sleep(timeout_seconds)
    context.state.paginators.discard(message_id)
    context.state.confirmations.pop(message_id, None)
    try:
        await context.rest.edit_webhook_message(
            application_id=context.application_id,
            interaction_token=context.token or "",
            message_id=message_id,
            payload={"components": []},
        )
    except DiscordAPIError as exc:
        log_event(
            context.logger,
            logging.DEBUG,
            "discord.pagination.expire_failed",
            message_id=message_id,
            exc=exc,
        )
        return
    log_event(
        context.logger,
        logging.DEBUG,
        "discord.pagination.controls_expired",
        message_id=message_id,
    )
