"""Permission evaluation for commands.

Permission sets are ``frozenset[str]`` of canonical Discord flag names
(``"Administrator"``, ``"SendMessages"`` ...). Grants come from a resolver
as a raw bitfield so they can be taken straight from an interaction payload
or computed from guild role/overwrite data.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

from ...core.logging_utils import log_event
from .interactions import (
    extract_app_permissions,
    extract_member_permissions,
    extract_user_id,
)

PERMISSION_FLAGS: dict[str, int] = {
    "CreateInstantInvite": 1 << 0,
    "KickMembers": 1 << 1,
    "BanMembers": 1 << 2,
    "Administrator": 1 << 3,
    "ManageChannels": 1 << 4,
    "ManageGuild": 1 << 5,
    "AddReactions": 1 << 6,
    "ViewAuditLog": 1 << 7,
    "PrioritySpeaker": 1 << 8,
    "Stream": 1 << 9,
    "ViewChannel": 1 << 10,
    "SendMessages": 1 << 11,
    "SendTTSMessages": 1 << 12,
    "ManageMessages": 1 << 13,
    "EmbedLinks": 1 << 14,
    "AttachFiles": 1 << 15,
    "ReadMessageHistory": 1 << 16,
    "MentionEveryone": 1 << 17,
    "UseExternalEmojis": 1 << 18,
    "ViewGuildInsights": 1 << 19,
    "Connect": 1 << 20,
    "Speak": 1 << 21,
    "MuteMembers": 1 << 22,
    "DeafenMembers": 1 << 23,
    "MoveMembers": 1 << 24,
    "UseVAD": 1 << 25,
    "ChangeNickname": 1 << 26,
    "ManageNicknames": 1 << 27,
    "ManageRoles": 1 << 28,
    "ManageWebhooks": 1 << 29,
    "ManageGuildExpressions": 1 << 30,
    "UseApplicationCommands": 1 << 31,
    "RequestToSpeak": 1 << 32,
    "ManageEvents": 1 << 33,
    "ManageThreads": 1 << 34,
    "CreatePublicThreads": 1 << 35,
    "CreatePrivateThreads": 1 << 36,
    "UseExternalStickers": 1 << 37,
    "SendMessagesInThreads": 1 << 38,
    "UseEmbeddedActivities": 1 << 39,
    "ModerateMembers": 1 << 40,
    "ViewCreatorMonetizationAnalytics": 1 << 41,
    "UseSoundboard": 1 << 42,
    "CreateGuildExpressions": 1 << 43,
    "CreateEvents": 1 << 44,
    "UseExternalSounds": 1 << 45,
    "SendVoiceMessages": 1 << 46,
    "SendPolls": 1 << 49,
    "UseExternalApps": 1 << 50,
}
ADMINISTRATOR = PERMISSION_FLAGS["Administrator"]
ALL_PERMISSIONS = 0
for _bit in PERMISSION_FLAGS.values():
    ALL_PERMISSIONS |= _bit
del _bit

# Lookup tolerant of "SEND_MESSAGES" / "send messages" spellings.
_FOLDED_NAMES = {name.lower(): name for name in PERMISSION_FLAGS}

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionScope:
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None


@dataclass(frozen=True)
class PermissionCheck:
    allowed: bool
    missing: frozenset[str] = frozenset()


class PermissionResolver(Protocol):
    async def resolve(
        self, subject_id: str, *, scope: Optional[PermissionScope] = None
    ) -> int: ...


def permission_names(bits: int) -> frozenset[str]:
    """Canonical names of every known flag set in ``bits``."""
    return frozenset(name for name, flag in PERMISSION_FLAGS.items() if bits & flag)


def permission_bits(names: Iterable[str]) -> int:
    bits = 0
    for name in normalize_permissions(names):
        bits |= PERMISSION_FLAGS.get(name, 0)
    return bits


def _canonical_name(token: Any) -> set[str]:
    if isinstance(token, bool):
        return {str(token)}
    if isinstance(token, int):
        names = permission_names(token)
        return set(names) if names else {str(token)}
    text = str(token).strip()
    if not text:
        return set()
    if text in PERMISSION_FLAGS:
        return {text}
    folded = _FOLDED_NAMES.get(text.replace("_", "").replace(" ", "").lower())
    return {folded or text}


def normalize_permissions(tokens: Any) -> frozenset[str]:
    """Fold names, bitflags, or a mix of both into canonical names.

    Unknown tokens are kept as their string form so they surface as missing.
    """
    if tokens is None:
        return frozenset()
    if isinstance(tokens, (str, int)):
        tokens = [tokens]
    names: set[str] = set()
    for token in tokens:
        names.update(_canonical_name(token))
    return frozenset(names)


def format_permission_list(permissions: Optional[Iterable[str]]) -> str:
    """Render names as title-cased words joined by bullet separators."""
    items = [str(perm) for perm in permissions or []]
    if not items:
        return "None"
    formatted = []
    for perm in items:
        spaced = re.sub(r"([A-Z])", r" \1", perm).replace("_", " ").strip()
        words = [word[:1].upper() + word[1:].lower() for word in spaced.split(" ")]
        formatted.append(" ".join(words))
    return "\n• ".join(formatted)


def _as_bits(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def compute_base_permissions(
    *,
    guild_id: str,
    guild_owner_id: Optional[str],
    member_id: str,
    member_role_ids: Iterable[str],
    roles: Iterable[dict[str, Any]],
) -> int:
    """Guild-wide grant: ``@everyone`` plus every role the member holds."""
    if guild_owner_id is not None and member_id == guild_owner_id:
        return ALL_PERMISSIONS
    role_bits = {str(role.get("id")): _as_bits(role.get("permissions")) for role in roles}
    permissions = role_bits.get(str(guild_id), 0)
    for role_id in member_role_ids:
        permissions |= role_bits.get(str(role_id), 0)
    if permissions & ADMINISTRATOR:
        return ALL_PERMISSIONS
    return permissions


def apply_channel_overwrites(
    base_permissions: int,
    *,
    guild_id: str,
    member_id: str,
    member_role_ids: Iterable[str],
    overwrites: Iterable[dict[str, Any]],
) -> int:
    """Narrow or widen a guild grant by a channel's permission overwrites.

    Order: ``@everyone`` overwrite, then the union of role overwrites, then
    the member's own overwrite.
    """
    if base_permissions & ADMINISTRATOR:
        return ALL_PERMISSIONS
    by_id = {str(item.get("id")): item for item in overwrites if isinstance(item, dict)}
    permissions = base_permissions

    everyone = by_id.get(str(guild_id))
    if everyone is not None:
        permissions &= ~_as_bits(everyone.get("deny"))
        permissions |= _as_bits(everyone.get("allow"))

    allow = 0
    deny = 0
    for role_id in member_role_ids:
        overwrite = by_id.get(str(role_id))
        if overwrite is not None and str(role_id) != str(guild_id):
            allow |= _as_bits(overwrite.get("allow"))
            deny |= _as_bits(overwrite.get("deny"))
    permissions &= ~deny
    permissions |= allow

    member_overwrite = by_id.get(str(member_id))
    if member_overwrite is not None:
        permissions &= ~_as_bits(member_overwrite.get("deny"))
        permissions |= _as_bits(member_overwrite.get("allow"))
    return permissions


class InteractionPermissionResolver:
    """Reads the grants Discord already resolved into an interaction.

    ``member.permissions`` is the invoker's grant in the channel and
    ``app_permissions`` is the bot's.
    """

    def __init__(self, interaction_payload: dict[str, Any], *, bot_id: Optional[str]) -> None:
        self._payload = interaction_payload
        self._bot_id = bot_id

    async def resolve(
        self, subject_id: str, *, scope: Optional[PermissionScope] = None
    ) -> int:
        if self._bot_id is not None and subject_id == self._bot_id:
            bits = extract_app_permissions(self._payload)
        elif subject_id == extract_user_id(self._payload):
            bits = extract_member_permissions(self._payload)
        else:
            raise LookupError(f"No permission data for subject {subject_id}")
        if bits is None:
            raise LookupError(f"Interaction carries no permissions for {subject_id}")
        return bits


class GuildPermissionResolver:
    """Computes grants from guild, role, member and channel data over REST."""

    def __init__(self, rest: Any) -> None:
        self._rest = rest

    async def resolve(
        self, subject_id: str, *, scope: Optional[PermissionScope] = None
    ) -> int:
        if scope is None or scope.guild_id is None:
            raise LookupError("Guild permissions need a guild scope")
        guild_id = scope.guild_id
        guild = await self._rest.get_guild(guild_id=guild_id, with_counts=False)
        roles = await self._rest.get_guild_roles(guild_id=guild_id)
        member = await self._rest.get_guild_member(guild_id=guild_id, user_id=subject_id)
        member_roles = [str(role) for role in member.get("roles") or []]
        owner_id = guild.get("owner_id")
        base = compute_base_permissions(
            guild_id=guild_id,
            guild_owner_id=str(owner_id) if owner_id is not None else None,
            member_id=subject_id,
            member_role_ids=member_roles,
            roles=roles,
        )
        if scope.channel_id is None:
            return base
        channel = await self._rest.get_channel(channel_id=scope.channel_id)
        return apply_channel_overwrites(
            base,
            guild_id=guild_id,
            member_id=subject_id,
            member_role_ids=member_roles,
            overwrites=channel.get("permission_overwrites") or [],
        )


class PermissionEvaluator:
    def __init__(
        self,
        owner_id: Optional[str],
        resolver: PermissionResolver,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._owner_id = owner_id
        self._resolver = resolver
        self._logger = logger or _LOGGER

    async def evaluate(
        self,
        actor_id: str,
        required: Any,
        *,
        scope: Optional[PermissionScope] = None,
    ) -> PermissionCheck:
        required_names = normalize_permissions(required)
        if not required_names:
            return PermissionCheck(allowed=True)
        if self._owner_id and actor_id == self._owner_id:
            return PermissionCheck(allowed=True)
        try:
            granted_bits = await self._resolver.resolve(actor_id, scope=scope)
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.permissions.resolve_failed",
                actor_id=actor_id,
                required=sorted(required_names),
                exc=exc,
            )
            return PermissionCheck(allowed=False)
        if granted_bits & ADMINISTRATOR:
            return PermissionCheck(allowed=True)
        missing = required_names - permission_names(granted_bits)
        return PermissionCheck(allowed=not missing, missing=frozenset(missing))
