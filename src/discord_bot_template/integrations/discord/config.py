from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from .constants import (
    DISCORD_INTENT_GUILDS,
    DISCORD_MAX_MESSAGE_LENGTH,
)

DEFAULT_BOT_TOKEN_ENV = "DISCORD_TOKEN"
DEFAULT_APP_ID_ENV = "DISCORD_CLIENT_ID"
DEFAULT_OWNER_ID_ENV = "DISCORD_OWNER_ID"
DEFAULT_ADMIN_GUILD_ID_ENV = "ADMIN_GUILD_ID"
DEFAULT_COMMAND_SCOPE = "global"
DEFAULT_INTENTS = DISCORD_INTENT_GUILDS
PRESENCE_STATUS_OPTIONS = frozenset({"online", "idle", "dnd", "invisible"})
# Gateway activity types: PLAYING=0, STREAMING=1, LISTENING=2, WATCHING=3, COMPETING=5.
ACTIVITY_TYPES = {
    "playing": 0,
    "streaming": 1,
    "listening": 2,
    "watching": 3,
    "competing": 5,
}


class DiscordBotConfigError(Exception):
    """Raised when discord bot config is invalid."""


@dataclass(frozen=True)
class DiscordCommandRegistration:
    enabled: bool
    scope: str
    guild_ids: tuple[str, ...]


@dataclass(frozen=True)
class DiscordPresenceConfig:
    status: str = "online"
    activity_type: int = 0
    activity_name: Optional[str] = None

    def to_gateway_payload(self) -> dict[str, Any]:
        activities: list[dict[str, Any]] = []
        if self.activity_name:
            activities.append({"name": self.activity_name, "type": self.activity_type})
        return {
            "since": None,
            "activities": activities,
            "status": self.status,
            "afk": False,
        }


@dataclass(frozen=True)
class DiscordBotConfig:
    root: Path
    enabled: bool
    bot_token_env: str
    app_id_env: str
    bot_token: Optional[str]
    application_id: Optional[str]
    owner_id: Optional[str]
    admin_guild_id: Optional[str]
    command_registration: DiscordCommandRegistration
    intents: int
    max_message_length: int
    presence: DiscordPresenceConfig = field(default_factory=DiscordPresenceConfig)

    @classmethod
    def from_raw(
        cls,
        *,
        root: Path,
        raw: dict[str, Any],
        env: Optional[Mapping[str, str]] = None,
    ) -> "DiscordBotConfig":
        environ: Mapping[str, str] = os.environ if env is None else env
        cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}
        enabled = bool(cfg.get("enabled", True))
        bot_token_env = str(cfg.get("bot_token_env", DEFAULT_BOT_TOKEN_ENV)).strip()
        app_id_env = str(cfg.get("app_id_env", DEFAULT_APP_ID_ENV)).strip()
        owner_id_env = str(cfg.get("owner_id_env", DEFAULT_OWNER_ID_ENV)).strip()
        admin_guild_id_env = str(
            cfg.get("admin_guild_id_env", DEFAULT_ADMIN_GUILD_ID_ENV)
        ).strip()
        if not bot_token_env:
            raise DiscordBotConfigError("discord_bot.bot_token_env must be non-empty")
        if not app_id_env:
            raise DiscordBotConfigError("discord_bot.app_id_env must be non-empty")

        bot_token = _env_value(environ, bot_token_env)
        application_id = _env_value(environ, app_id_env)
        owner_id = _as_id(cfg.get("owner_id")) or _env_value(environ, owner_id_env)
        admin_guild_id = _as_id(cfg.get("admin_guild_id")) or _env_value(
            environ, admin_guild_id_env
        )

        registration_raw = cfg.get("command_registration")
        registration_cfg = (
            registration_raw if isinstance(registration_raw, dict) else {}
        )
        scope_raw = (
            str(registration_cfg.get("scope", DEFAULT_COMMAND_SCOPE)).strip().lower()
        )
        if scope_raw not in {"global", "guild"}:
            raise DiscordBotConfigError(
                "discord_bot.command_registration.scope must be 'global' or 'guild'"
            )
        guild_ids = tuple(_parse_string_ids(registration_cfg.get("guild_ids")))
        if scope_raw == "guild" and not guild_ids and admin_guild_id:
            guild_ids = (admin_guild_id,)
        command_registration = DiscordCommandRegistration(
            enabled=bool(registration_cfg.get("enabled", True)),
            scope=scope_raw,
            guild_ids=guild_ids,
        )

        intents_value = cfg.get("intents", DEFAULT_INTENTS)
        if not isinstance(intents_value, int) or isinstance(intents_value, bool):
            raise DiscordBotConfigError("discord_bot.intents must be an integer")
        if intents_value < 0:
            raise DiscordBotConfigError("discord_bot.intents must be >= 0")

        max_message_length_value = cfg.get(
            "max_message_length", DISCORD_MAX_MESSAGE_LENGTH
        )
        if not isinstance(max_message_length_value, int):
            raise DiscordBotConfigError(
                "discord_bot.max_message_length must be an integer"
            )
        if max_message_length_value <= 0:
            raise DiscordBotConfigError("discord_bot.max_message_length must be > 0")
        max_message_length = min(max_message_length_value, DISCORD_MAX_MESSAGE_LENGTH)

        presence = _parse_presence(cfg.get("presence"))

        if enabled:
            if not bot_token:
                raise DiscordBotConfigError(
                    f"Discord bot is enabled but env var {bot_token_env} is unset"
                )
            if not application_id:
                raise DiscordBotConfigError(
                    f"Discord bot is enabled but env var {app_id_env} is unset"
                )

        return cls(
            root=root,
            enabled=enabled,
            bot_token_env=bot_token_env,
            app_id_env=app_id_env,
            bot_token=bot_token,
            application_id=application_id,
            owner_id=owner_id,
            admin_guild_id=admin_guild_id,
            command_registration=command_registration,
            intents=intents_value,
            max_message_length=max_message_length,
            presence=presence,
        )


def _as_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def _env_value(environ: Mapping[str, str], name: str) -> Optional[str]:
    if not name:
        return None
    return _as_id(environ.get(name))


def _parse_string_ids(value: Any) -> list[str]:
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed: list[str] = []
    for item in items:
        token = str(item).strip()
        if token:
            parsed.append(token)
    return parsed


def _parse_presence(value: Any) -> DiscordPresenceConfig:
    if value is None:
        return DiscordPresenceConfig()
    if not isinstance(value, dict):
        raise DiscordBotConfigError("discord_bot.presence must be a mapping")
    status = str(value.get("status", "online")).strip().lower()
    if status not in PRESENCE_STATUS_OPTIONS:
        raise DiscordBotConfigError(
            "discord_bot.presence.status must be one of: "
            + ", ".join(sorted(PRESENCE_STATUS_OPTIONS))
        )
    activity_type_raw = str(value.get("activity_type", "playing")).strip().lower()
    if activity_type_raw not in ACTIVITY_TYPES:
        raise DiscordBotConfigError(
            "discord_bot.presence.activity_type must be one of: "
            + ", ".join(sorted(ACTIVITY_TYPES))
        )
    return DiscordPresenceConfig(
        status=status,
        activity_type=ACTIVITY_TYPES[activity_type_raw],
        activity_name=_as_id(value.get("activity_name")),
    )
