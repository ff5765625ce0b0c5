from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from ...core.logging_utils import log_event

if TYPE_CHECKING:
    from .context import InteractionContext

logger = logging.getLogger(__name__)


class BotEvent(str, Enum):
    PAGINATION_UPDATE = "paginationUpdate"
    CONFIRMATION_ACCEPTED = "confirmationAccepted"
    CONFIRMATION_REJECTED = "confirmationRejected"


@dataclass(frozen=True)
class PaginationUpdate:
    context: "InteractionContext"
    old_page: int
    new_page: int


Listener = Callable[..., Union[None, Awaitable[None]]]


class EventEmitter:
    """Named in-process events.

    Listeners run in registration order and are awaited when they return an
    awaitable. A failing listener is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: Union[BotEvent, str], listener: Listener) -> Listener:
        self._listeners.setdefault(_event_name(event), []).append(listener)
        return listener

    def off(self, event: Union[BotEvent, str], listener: Listener) -> None:
        name = _event_name(event)
        self._listeners[name] = [
            lst for lst in self._listeners.get(name, []) if lst != listener
        ]

    def listener_count(self, event: Union[BotEvent, str]) -> int:
        return len(self._listeners.get(_event_name(event), []))

    async def emit(self, event: Union[BotEvent, str], *args: Any) -> int:
        name = _event_name(event)
        listeners = list(self._listeners.get(name, []))
        for listener in listeners:
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                log_event(
                    logger,
                    logging.ERROR,
                    "discord.event.listener_failed",
                    event_name=name,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    exc=exc,
                )
        return len(listeners)


def _event_name(event: Union[BotEvent, str]) -> str:
    return event.value if isinstance(event, BotEvent) else str(event)
