from __future__ import annotations

import pytest

from discord_bot_template.integrations.discord.cooldowns import CooldownTracker


class _Clock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_first_use_arms_and_second_use_reports_remaining() -> None:
    clock = _Clock()
    tracker = CooldownTracker(clock=clock)

    assert tracker.check_and_arm("ping", "user-1", 5) is None
    clock.now += 1.0
    remaining = tracker.check_and_arm("ping", "user-1", 5)

    assert remaining == pytest.approx(4.0)
    # A rejected attempt does not extend the window.
    clock.now += 1.0
    assert tracker.check_and_arm("ping", "user-1", 5) == pytest.approx(3.0)


def test_expired_entry_is_treated_as_absent() -> None:
    clock = _Clock()
    tracker = CooldownTracker(clock=clock)
    tracker.check_and_arm("ping", "user-1", 5)

    clock.now += 5.0
    assert tracker.check_and_arm("ping", "user-1", 5) is None
    assert tracker.remaining("ping", "user-1") == pytest.approx(5.0)


def test_commands_and_actors_are_independent() -> None:
    tracker = CooldownTracker(clock=_Clock())
    tracker.check_and_arm("ping", "user-1", 5)

    assert tracker.check_and_arm("help", "user-1", 5) is None
    assert tracker.check_and_arm("ping", "user-2", 5) is None
    assert len(tracker) == 3


def test_non_positive_cooldown_never_arms() -> None:
    tracker = CooldownTracker(clock=_Clock())
    assert tracker.check_and_arm("ping", "user-1", 0) is None
    assert tracker.check_and_arm("ping", "user-1", -1) is None
    assert len(tracker) == 0


def test_sweep_purges_only_expired_entries() -> None:
    clock = _Clock()
    tracker = CooldownTracker(clock=clock)
    tracker.check_and_arm("ping", "user-1", 2)
    tracker.check_and_arm("help", "user-1", 10)

    clock.now += 3.0
    assert tracker.sweep() == 1
    assert len(tracker) == 1
    assert tracker.remaining("ping", "user-1") == 0.0


def test_reset_clears_one_command_or_everything() -> None:
    tracker = CooldownTracker(clock=_Clock())
    tracker.check_and_arm("ping", "user-1", 5)
    tracker.check_and_arm("ping", "user-2", 5)
    tracker.check_and_arm("help", "user-1", 5)

    assert tracker.reset("ping") == 2
    assert tracker.reset() == 1
    assert len(tracker) == 0
