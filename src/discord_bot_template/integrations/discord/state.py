from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Optional

from .commands import CommandRegistry
from .cooldowns import CooldownTracker
from .events import EventEmitter
from .pagination import DEFAULT_ITEMS_PER_PAGE, PaginationRegistry
from .status_page import DiscordStatusClient


@dataclass
class BotIdentity:
    user_id: Optional[str] = None
    username: Optional[str] = None


@dataclass
class BotState:
    """Process-wide runtime state shared by the dispatcher and commands."""

    commands: CommandRegistry = field(default_factory=CommandRegistry)
    cooldowns: CooldownTracker = field(default_factory=CooldownTracker)
    paginators: PaginationRegistry = field(default_factory=PaginationRegistry)
    events: EventEmitter = field(default_factory=EventEmitter)
    identity: BotIdentity = field(default_factory=BotIdentity)
    guild_ids: set[str] = field(default_factory=set)
    # Message id of an open confirmation dialog -> command that opened it.
    confirmations: dict[str, str] = field(default_factory=dict)
    environment: str = "production"
    admin_guild_id: Optional[str] = None
    items_per_page: int = DEFAULT_ITEMS_PER_PAGE
    component_timeout_seconds: float = 300.0
    status_page: Optional[DiscordStatusClient] = None
    started_at: float = field(default_factory=time.monotonic)
    latency_provider: Callable[[], Optional[float]] = lambda: None
    clock: Callable[[], float] = time.monotonic
    background_tasks: set["asyncio.Task[Any]"] = field(default_factory=set)

    @property
    def uptime_seconds(self) -> float:
        return max(self.clock() - self.started_at, 0.0)

    @property
    def latency(self) -> Optional[float]:
        return self.latency_provider()

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def environment_tag(self) -> Optional[str]:
        """Footer prefix for outgoing embeds; only set in development."""
        return self.environment.upper() if self.is_development else None

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task
