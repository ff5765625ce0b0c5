from __future__ import annotations

import time
from typing import Callable, Optional


class CooldownTracker:
    """Per-command, per-actor rate limit.

    Entries hold the monotonic expiry instant. Expired entries are treated as
    absent on read and removed in bulk by ``sweep()``.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, dict[str, float]] = {}

    def check_and_arm(
        self, command_name: str, actor_id: str, cooldown_seconds: float
    ) -> Optional[float]:
        """Return the remaining seconds if the actor is cooling down.

        Otherwise arm a new cooldown and return ``None``. A live entry is
        never re-armed.
        """
        if cooldown_seconds <= 0:
            return None
        now = self._clock()
        timestamps = self._entries.setdefault(command_name, {})
        expiry = timestamps.get(actor_id)
        if expiry is not None and now < expiry:
            return expiry - now
        timestamps[actor_id] = now + cooldown_seconds
        return None

    def remaining(self, command_name: str, actor_id: str) -> float:
        expiry = self._entries.get(command_name, {}).get(actor_id)
        if expiry is None:
            return 0.0
        return max(expiry - self._clock(), 0.0)

    def reset(self, command_name: Optional[str] = None) -> int:
        """Drop cooldowns for one command (or all); returns entries removed."""
        if command_name is None:
            removed = sum(len(entries) for entries in self._entries.values())
            self._entries.clear()
            return removed
        return len(self._entries.pop(command_name, {}))

    def sweep(self) -> int:
        now = self._clock()
        removed = 0
        for command_name in list(self._entries):
            timestamps = self._entries[command_name]
            for actor_id, expiry in list(timestamps.items()):
                if expiry <= now:
                    del timestamps[actor_id]
                    removed += 1
            if not timestamps:
                del self._entries[command_name]
        return removed

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
