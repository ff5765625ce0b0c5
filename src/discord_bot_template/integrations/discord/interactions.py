from __future__ import annotations

from typing import Any, Optional

from .constants import (
    COMPONENT_BUTTON,
    COMPONENT_STRING_SELECT,
    DISCORD_EPOCH_MS,
    INTERACTION_TYPE_APPLICATION_COMMAND,
    INTERACTION_TYPE_AUTOCOMPLETE,
    INTERACTION_TYPE_MESSAGE_COMPONENT,
    INTERACTION_TYPE_MODAL_SUBMIT,
)

# Option types 1 and 2 are SUB_COMMAND and SUB_COMMAND_GROUP.
_SUBCOMMAND_OPTION_TYPES = (1, 2)


def _as_id(value: object) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def _data(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    data = interaction_payload.get("data")
    return data if isinstance(data, dict) else {}


def _leaf_options(data: dict[str, Any]) -> tuple[list[str], list[Any]]:
    path: list[str] = []
    options = data.get("options")
    current_options = options if isinstance(options, list) else []
    while current_options:
        first = current_options[0]
        if not isinstance(first, dict):
            break
        if first.get("type") not in _SUBCOMMAND_OPTION_TYPES:
            break
        name = first.get("name")
        if isinstance(name, str) and name:
            path.append(name)
        nested = first.get("options")
        current_options = nested if isinstance(nested, list) else []
    return path, current_options


def extract_command_path_and_options(
    interaction_payload: dict[str, Any],
) -> tuple[tuple[str, ...], dict[str, Any]]:
    data = _data(interaction_payload)
    root_name = data.get("name")
    if not isinstance(root_name, str) or not root_name:
        return (), {}

    subpath, leaf_options = _leaf_options(data)
    parsed_options: dict[str, Any] = {}
    for item in leaf_options:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        parsed_options[name] = item.get("value")

    return (root_name, *subpath), parsed_options


def extract_command_name(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(_data(interaction_payload).get("name"))


def extract_focused_option(
    interaction_payload: dict[str, Any],
) -> tuple[Optional[str], str]:
    """Return ``(name, current_value)`` of the option being autocompleted."""
    _, leaf_options = _leaf_options(_data(interaction_payload))
    for item in leaf_options:
        if isinstance(item, dict) and item.get("focused"):
            name = item.get("name")
            value = item.get("value")
            return (
                name if isinstance(name, str) else None,
                "" if value is None else str(value),
            )
    return None, ""


def extract_interaction_type(interaction_payload: dict[str, Any]) -> Optional[int]:
    value = interaction_payload.get("type")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def extract_interaction_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("id"))


def extract_interaction_token(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("token"))


def extract_application_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("application_id"))


def extract_channel_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("channel_id"))


def extract_guild_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("guild_id"))


def _user(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    member = interaction_payload.get("member")
    if isinstance(member, dict):
        member_user = member.get("user")
        if isinstance(member_user, dict) and _as_id(member_user.get("id")):
            return member_user
    user = interaction_payload.get("user")
    return user if isinstance(user, dict) else {}


def extract_user_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(_user(interaction_payload).get("id"))


def extract_user_display_name(interaction_payload: dict[str, Any]) -> Optional[str]:
    user = _user(interaction_payload)
    for key in ("global_name", "username"):
        value = _as_id(user.get(key))
        if value:
            return value
    return None


def extract_member_permissions(interaction_payload: dict[str, Any]) -> Optional[int]:
    """Resolved channel permissions of the invoking member, if in a guild."""
    member = interaction_payload.get("member")
    if not isinstance(member, dict):
        return None
    return _as_bitfield(member.get("permissions"))


def extract_member_role_ids(interaction_payload: dict[str, Any]) -> list[str]:
    member = interaction_payload.get("member")
    if not isinstance(member, dict):
        return []
    roles = member.get("roles")
    if not isinstance(roles, list):
        return []
    return [role for role in (_as_id(item) for item in roles) if role]


def extract_app_permissions(interaction_payload: dict[str, Any]) -> Optional[int]:
    """Resolved permissions of the bot in the interaction's channel."""
    return _as_bitfield(interaction_payload.get("app_permissions"))


def _as_bitfield(value: Any) -> Optional[int]:
    # Discord serializes permission bitfields as decimal strings.
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def is_command_interaction(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == INTERACTION_TYPE_APPLICATION_COMMAND


def is_autocomplete_interaction(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == INTERACTION_TYPE_AUTOCOMPLETE


def is_component_interaction(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == INTERACTION_TYPE_MESSAGE_COMPONENT


def is_modal_submit_interaction(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == INTERACTION_TYPE_MODAL_SUBMIT


def extract_component_type(interaction_payload: dict[str, Any]) -> Optional[int]:
    value = _data(interaction_payload).get("component_type")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def is_button_interaction(interaction_payload: dict[str, Any]) -> bool:
    return (
        is_component_interaction(interaction_payload)
        and extract_component_type(interaction_payload) == COMPONENT_BUTTON
    )


def is_select_menu_interaction(interaction_payload: dict[str, Any]) -> bool:
    # String select is 3; user/role/mentionable/channel selects are 5-8.
    component_type = extract_component_type(interaction_payload)
    return is_component_interaction(interaction_payload) and (
        component_type == COMPONENT_STRING_SELECT
        or (component_type is not None and 5 <= component_type <= 8)
    )


def extract_component_custom_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(_data(interaction_payload).get("custom_id"))


def extract_component_values(interaction_payload: dict[str, Any]) -> list[str]:
    values = _data(interaction_payload).get("values")
    if not isinstance(values, list):
        return []
    return [str(v) for v in values if isinstance(v, (str, int, float))]


def extract_message(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    message = interaction_payload.get("message")
    return message if isinstance(message, dict) else {}


def extract_message_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(extract_message(interaction_payload).get("id"))


def extract_message_components(interaction_payload: dict[str, Any]) -> list[Any]:
    components = extract_message(interaction_payload).get("components")
    return components if isinstance(components, list) else []


def extract_message_embeds(interaction_payload: dict[str, Any]) -> list[dict[str, Any]]:
    embeds = extract_message(interaction_payload).get("embeds")
    if not isinstance(embeds, list):
        return []
    return [embed for embed in embeds if isinstance(embed, dict)]


def snowflake_timestamp_ms(snowflake: Any) -> Optional[int]:
    """Unix time in milliseconds encoded in a Discord id."""
    try:
        value = int(str(snowflake))
    except (TypeError, ValueError):
        return None
    return (value >> 22) + DISCORD_EPOCH_MS
