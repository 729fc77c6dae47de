"""
Game clock arithmetic.

The clock is stored as frozen ``remaining_seconds`` plus, while running, the
wall-clock instant it was started at. Remaining time is always derived from
those two and the current instant; nothing ticks.
"""
from __future__ import annotations

import math
from dataclasses import replace

from scoreboard.state import ScoreboardState
from shared.models.enums import ClockStatus


def elapsed_seconds(started_at: float | None, now: float) -> int:
    """Whole seconds since ``started_at``, floored and never negative."""
    if started_at is None:
        return 0
    return max(0, math.floor(now - started_at))


def remaining_at(state: ScoreboardState, now: float) -> int:
    if not state.clock_running:
        return state.remaining_seconds
    return max(0, state.remaining_seconds - elapsed_seconds(state.clock_started_at, now))


def is_expired(state: ScoreboardState, now: float) -> bool:
    return state.clock_running and remaining_at(state, now) == 0


def fold(state: ScoreboardState, now: float) -> ScoreboardState:
    """Stop a running clock, keeping the time it has used up."""
    if not state.clock_running:
        return state
    return replace(
        state,
        remaining_seconds=remaining_at(state, now),
        clock_running=False,
        clock_started_at=None,
    )


def settle(state: ScoreboardState, now: float) -> ScoreboardState:
    """Stop the clock if it has run out; otherwise return ``state`` unchanged."""
    if is_expired(state, now):
        return fold(state, now)
    return state


def start(state: ScoreboardState, now: float) -> ScoreboardState:
    if state.clock_running:
        return state
    return replace(state, clock_running=True, clock_started_at=now)


def set_remaining(state: ScoreboardState, seconds: int, now: float) -> ScoreboardState:
    seconds = max(0, seconds)
    if state.clock_running:
        return replace(state, remaining_seconds=seconds, clock_started_at=now)
    return replace(state, remaining_seconds=seconds)


def status(state: ScoreboardState, now: float) -> ClockStatus:
    if state.clock_running and not is_expired(state, now):
        return ClockStatus.RUNNING
    if remaining_at(state, now) == state.current_duration_seconds:
        return ClockStatus.STOPPED
    return ClockStatus.PAUSED


def format_clock(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"
