"""Paginated embeds and the message-id keyed registry behind them.

The control row of a rendered page carries enough state (current page and
page count) for navigation buttons to work without a registry hit; the
registry only holds the item list needed to re-render.
"""

from __future__ import annotations

import math
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, Sequence, TypeVar, Union

from .components import (
    PAGE_INDICATOR_ID,
    PAGINATION_FIRST,
    PAGINATION_LAST,
    PAGINATION_NEXT,
    PAGINATION_PREV,
    build_pagination_buttons,
    iter_components,
)
from .embeds import COLOR_ERROR, COLOR_PRIMARY, add_fields, create_embed
from .errors import PaginationStateError

T = TypeVar("T")

DEFAULT_ITEMS_PER_PAGE = 5
DEFAULT_TITLE = "Results"
EXPIRED_DESCRIPTION = (
    "This paginated content has expired. "
    "Please run the command again to view fresh data."
)
EXPIRED_FOOTER = "Pagination expired due to bot restart or timeout"

_INDICATOR_LABEL_RE = re.compile(r"^\s*(\d+)\s*/\s*(\d+)\s*$")


@dataclass(frozen=True)
class PageField:
    name: str
    value: str
    inline: bool = False


@dataclass(frozen=True)
class PageRender:
    embeds: list[dict[str, Any]]
    components: list[dict[str, Any]]
    current_page: int


FormattedItem = Union[PageField, tuple, dict]


def _coerce_field(formatted: FormattedItem) -> Optional[PageField]:
    if isinstance(formatted, PageField):
        return formatted
    if isinstance(formatted, dict):
        return PageField(
            name=str(formatted.get("name") or ""),
            value=str(formatted.get("value") or ""),
            inline=bool(formatted.get("inline", False)),
        )
    if isinstance(formatted, tuple) and len(formatted) >= 2:
        return PageField(name=str(formatted[0] or ""), value=str(formatted[1] or ""))
    return None


class Paginator(Generic[T]):
    def __init__(
        self,
        items: Iterable[T],
        format_item: Callable[[T], FormattedItem],
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        items_per_page: int = DEFAULT_ITEMS_PER_PAGE,
        footer_text: Optional[str] = None,
        color: Optional[int] = None,
    ) -> None:
        if items_per_page < 1:
            raise ValueError("items_per_page must be >= 1")
        self._items: tuple[T, ...] = tuple(items)
        self._format_item = format_item
        self._title = title
        self._description = description
        self._items_per_page = items_per_page
        self._footer_text = footer_text
        self._color = color
        # Zero items still renders one (empty) page.
        self._page_count = max(1, math.ceil(len(self._items) / items_per_page))

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def item_count(self) -> int:
        return len(self._items)

    def clamp(self, page: int) -> int:
        return max(0, min(page, self._page_count - 1))

    def get_page(self, page: int) -> PageRender:
        current = self.clamp(page)
        start = current * self._items_per_page
        end = min(start + self._items_per_page, len(self._items))
        if self._description:
            description = self._description
        elif self._items:
            description = f"Showing {start + 1}-{end} of {len(self._items)} items"
        else:
            description = "No items to display."

        embed = create_embed(
            title=self._title or DEFAULT_TITLE,
            description=description,
            color=COLOR_PRIMARY if self._color is None else self._color,
            footer_text=f"{self._footer_text or 'Page'} {current + 1}/{self._page_count}",
        )
        fields = []
        for item in self._items[start:end]:
            field = _coerce_field(self._format_item(item))
            if field is not None and field.name and field.value:
                fields.append(
                    {"name": field.name, "value": field.value, "inline": field.inline}
                )
        if fields:
            add_fields(embed, fields)

        return PageRender(
            embeds=[embed],
            components=[build_pagination_buttons(current, self._page_count)],
            current_page=current,
        )


def calculate_new_page(action: str, current_page: int, total_pages: int) -> int:
    last_page = max(total_pages - 1, 0)
    if action == PAGINATION_FIRST:
        return 0
    if action == PAGINATION_PREV:
        return max(0, current_page - 1)
    if action == PAGINATION_NEXT:
        return min(last_page, current_page + 1)
    if action == PAGINATION_LAST:
        return last_page
    return current_page


def parse_page_indicator(components: Any) -> tuple[int, int]:
    """Recover ``(current_page, total_pages)`` from a rendered control row.

    The ``page:<index>:<total>`` custom id is preferred; the ``"n/total"``
    label is the fallback for messages rendered without it.
    """
    for component in iter_components(components):
        custom_id = component.get("custom_id")
        if not isinstance(custom_id, str):
            continue
        if custom_id != PAGE_INDICATOR_ID and not custom_id.startswith(
            PAGE_INDICATOR_ID + ":"
        ):
            continue
        parts = custom_id.split(":")
        if len(parts) == 3 and parts[1].isdigit() and parts[2].isdigit():
            current, total = int(parts[1]), int(parts[2])
        else:
            match = _INDICATOR_LABEL_RE.match(str(component.get("label") or ""))
            if match is None:
                raise PaginationStateError(
                    f"Page indicator has no readable state: {component!r}"
                )
            current, total = int(match.group(1)) - 1, int(match.group(2))
        if total < 1 or current < 0:
            raise PaginationStateError(
                f"Page indicator out of range: current={current} total={total}"
            )
        return min(current, total - 1), total
    raise PaginationStateError("Page indicator button not found")


def build_expired_embed(previous_embeds: Sequence[dict[str, Any]]) -> dict[str, Any]:
    previous_title = None
    if previous_embeds:
        previous_title = previous_embeds[0].get("title")
    return create_embed(
        title=previous_title or "Information",
        description=EXPIRED_DESCRIPTION,
        color=COLOR_ERROR,
        footer_text=EXPIRED_FOOTER,
        timestamp=False,
    )


class PaginationRegistry:
    """Message id -> Paginator, bounded by size and idle time.

    Least recently used entries are evicted past ``max_entries``; entries not
    read for ``ttl_seconds`` are gone on the next access or ``sweep()``.
    """

    def __init__(
        self,
        *,
        max_entries: int = 1000,
        ttl_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Paginator[Any], float]] = OrderedDict()

    def _expired(self, last_access: float, now: float) -> bool:
        return self._ttl_seconds > 0 and now - last_access >= self._ttl_seconds

    def register(self, message_id: str, paginator: Paginator[Any]) -> None:
        self._entries[message_id] = (paginator, self._clock())
        self._entries.move_to_end(message_id)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def get(self, message_id: str) -> Optional[Paginator[Any]]:
        entry = self._entries.get(message_id)
        if entry is None:
            return None
        paginator, last_access = entry
        now = self._clock()
        if self._expired(last_access, now):
            del self._entries[message_id]
            return None
        self._entries[message_id] = (paginator, now)
        self._entries.move_to_end(message_id)
        return paginator

    def discard(self, message_id: str) -> bool:
        return self._entries.pop(message_id, None) is not None

    def sweep(self) -> int:
        now = self._clock()
        expired = [
            message_id
            for message_id, (_, last_access) in self._entries.items()
            if self._expired(last_access, now)
        ]
        for message_id in expired:
            del self._entries[message_id]
        return len(expired)

    def __contains__(self, message_id: object) -> bool:
        entry = self._entries.get(message_id)  # type: ignore[call-overload]
        return entry is not None and not self._expired(entry[1], self._clock())

    def __len__(self) -> int:
        return len(self._entries)
