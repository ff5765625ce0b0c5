from __future__ import annotations

from typing import Any, Iterator, Optional

from .constants import COMPONENT_ACTION_ROW, COMPONENT_BUTTON, COMPONENT_STRING_SELECT

DISCORD_BUTTON_STYLE_PRIMARY = 1
DISCORD_BUTTON_STYLE_SECONDARY = 2
DISCORD_BUTTON_STYLE_SUCCESS = 3
DISCORD_BUTTON_STYLE_DANGER = 4
DISCORD_BUTTON_STYLE_LINK = 5
DISCORD_SELECT_OPTION_MAX_OPTIONS = 25
DISCORD_BUTTON_LABEL_MAX_CHARS = 80

PAGINATION_FIRST = "first"
PAGINATION_PREV = "prev"
PAGINATION_NEXT = "next"
PAGINATION_LAST = "last"
PAGINATION_ACTIONS = (PAGINATION_FIRST, PAGINATION_PREV, PAGINATION_NEXT, PAGINATION_LAST)
PAGE_INDICATOR_ID = "page"

CONFIRM_ID = "confirm"
CANCEL_ID = "cancel"


def build_action_row(components: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": COMPONENT_ACTION_ROW,
        "components": components,
    }


def build_button(
    label: Optional[str],
    custom_id: str,
    *,
    style: int = DISCORD_BUTTON_STYLE_SECONDARY,
    emoji: Optional[str] = None,
    disabled: bool = False,
) -> dict[str, Any]:
    button: dict[str, Any] = {
        "type": COMPONENT_BUTTON,
        "style": style,
        "custom_id": custom_id,
        "disabled": disabled,
    }
    if label:
        button["label"] = label[:DISCORD_BUTTON_LABEL_MAX_CHARS]
    if emoji:
        button["emoji"] = {"name": emoji}
    return button


def build_link_button(
    label: str, url: str, *, emoji: Optional[str] = None
) -> dict[str, Any]:
    button: dict[str, Any] = {
        "type": COMPONENT_BUTTON,
        "style": DISCORD_BUTTON_STYLE_LINK,
        "label": label[:DISCORD_BUTTON_LABEL_MAX_CHARS],
        "url": url,
    }
    if emoji:
        button["emoji"] = {"name": emoji}
    return button


def build_select_menu(
    custom_id: str,
    options: list[dict[str, Any]],
    *,
    placeholder: Optional[str] = "Make a selection...",
    min_values: int = 1,
    max_values: int = 1,
    disabled: bool = False,
) -> dict[str, Any]:
    select: dict[str, Any] = {
        "type": COMPONENT_STRING_SELECT,
        "custom_id": custom_id,
        "options": options[:DISCORD_SELECT_OPTION_MAX_OPTIONS],
        "min_values": min_values,
        "max_values": min(max_values, DISCORD_SELECT_OPTION_MAX_OPTIONS),
        "disabled": disabled,
    }
    if placeholder:
        select["placeholder"] = placeholder[:100]
    return select


def build_select_option(
    label: str,
    value: str,
    *,
    description: Optional[str] = None,
    emoji: Optional[str] = None,
    default: bool = False,
) -> dict[str, Any]:
    option: dict[str, Any] = {
        "label": label[:100],
        "value": value[:100],
        "default": default,
    }
    if description:
        option["description"] = description[:100]
    if emoji:
        option["emoji"] = {"name": emoji}
    return option


def page_indicator_custom_id(current_page: int, total_pages: int) -> str:
    return f"{PAGE_INDICATOR_ID}:{current_page}:{total_pages}"


def build_pagination_buttons(current_page: int, page_count: int) -> dict[str, Any]:
    """Navigation row: first, prev, ``n/total`` indicator, next, last."""
    is_first_page = current_page <= 0
    is_last_page = current_page >= page_count - 1
    return build_action_row(
        [
            build_button(
                None,
                PAGINATION_FIRST,
                emoji="⏮️",
                disabled=is_first_page,
            ),
            build_button(
                None,
                PAGINATION_PREV,
                emoji="◀️",
                disabled=is_first_page,
                style=DISCORD_BUTTON_STYLE_PRIMARY,
            ),
            build_button(
                f"{current_page + 1}/{page_count}",
                page_indicator_custom_id(current_page, page_count),
                disabled=True,
            ),
            build_button(
                None,
                PAGINATION_NEXT,
                emoji="▶️",
                disabled=is_last_page,
                style=DISCORD_BUTTON_STYLE_PRIMARY,
            ),
            build_button(
                None,
                PAGINATION_LAST,
                emoji="⏭️",
                disabled=is_last_page,
            ),
        ]
    )


def build_confirmation_buttons(
    *,
    confirm_id: str = CONFIRM_ID,
    cancel_id: str = CANCEL_ID,
    confirm_label: str = "Yes",
    cancel_label: str = "No",
    confirm_emoji: Optional[str] = "✅",
    cancel_emoji: Optional[str] = "❌",
) -> dict[str, Any]:
    return build_action_row(
        [
            build_button(
                confirm_label,
                confirm_id,
                style=DISCORD_BUTTON_STYLE_SUCCESS,
                emoji=confirm_emoji,
            ),
            build_button(
                cancel_label,
                cancel_id,
                style=DISCORD_BUTTON_STYLE_DANGER,
                emoji=cancel_emoji,
            ),
        ]
    )


def iter_components(rows: Any) -> Iterator[dict[str, Any]]:
    """Yield leaf components from a list of action rows."""
    if not isinstance(rows, list):
        return
    for row in rows:
        if not isinstance(row, dict):
            continue
        if row.get("type") != COMPONENT_ACTION_ROW:
            yield row
            continue
        children = row.get("components")
        if not isinstance(children, list):
            continue
        for child in children:
            if isinstance(child, dict):
                yield child
