"""
Immutable values for the live scoreboard.

Every manager operation computes a new ``ScoreboardState`` from the current one,
persists it, and only then swaps it in.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from shared.models.enums import CloseStatus, Side

REGULATION_PERIODS = 4
DEFAULT_PERIOD_SECONDS = 600
DEFAULT_OVERTIME_SECONDS = 300


@dataclass(frozen=True)
class TeamSlot:
    """A team as seen by the scoreboard: identity plus its live score and fouls.

    ``id`` is None for a team that has not been written yet; the store inserts it.
    """
    id: Optional[int]
    name: str
    score: int = 0
    fouls: int = 0

    def zeroed(self) -> "TeamSlot":
        return replace(self, score=0, fouls=0)


@dataclass(frozen=True)
class ScoreboardState:
    home: TeamSlot
    away: TeamSlot
    current_period: int = 1
    in_overtime: bool = False
    overtime_number: int = 0
    remaining_seconds: int = DEFAULT_PERIOD_SECONDS
    clock_running: bool = False
    clock_started_at: Optional[float] = None
    period_duration_seconds: int = DEFAULT_PERIOD_SECONDS
    overtime_duration_seconds: int = DEFAULT_OVERTIME_SECONDS
    fixture_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def current_duration_seconds(self) -> int:
        if self.in_overtime:
            return self.overtime_duration_seconds
        return self.period_duration_seconds

    @property
    def regulation_over(self) -> bool:
        return self.in_overtime or self.current_period >= REGULATION_PERIODS

    @property
    def is_tied(self) -> bool:
        return self.home.score == self.away.score

    def team(self, side: Side) -> TeamSlot:
        return self.home if side is Side.HOME else self.away

    def with_team(self, side: Side, slot: TeamSlot) -> "ScoreboardState":
        if side is Side.HOME:
            return replace(self, home=slot)
        return replace(self, away=slot)

    def with_fouls_reset(self) -> "ScoreboardState":
        return replace(
            self,
            home=replace(self.home, fouls=0),
            away=replace(self.away, fouls=0),
        )

    def sanitized(self) -> "ScoreboardState":
        """Repair a state read back from storage.

        The running-since instant is never stored, so a loaded clock is always stopped.
        """
        return replace(
            self,
            current_period=max(1, self.current_period),
            overtime_number=max(0, self.overtime_number),
            remaining_seconds=max(0, self.remaining_seconds),
            period_duration_seconds=max(0, self.period_duration_seconds),
            overtime_duration_seconds=max(0, self.overtime_duration_seconds),
            home=replace(self.home, score=max(0, self.home.score), fouls=max(0, self.home.fouls)),
            away=replace(self.away, score=max(0, self.away.score), fouls=max(0, self.away.fouls)),
            clock_running=False,
            clock_started_at=None,
        )


@dataclass(frozen=True)
class MatchHistoryRecord:
    """What a closed match looked like, written once and never updated."""
    recorded_at: datetime
    home: TeamSlot
    away: TeamSlot
    period: int
    in_overtime: bool
    overtime_number: int
    period_duration_seconds: int
    remaining_seconds: int
    status: CloseStatus
    reason: Optional[str] = None
    fixture_id: Optional[int] = None

    @classmethod
    def from_state(
        cls,
        state: ScoreboardState,
        *,
        status: CloseStatus,
        reason: Optional[str],
        recorded_at: datetime,
    ) -> "MatchHistoryRecord":
        reason = (reason or "").strip() or None
        return cls(
            recorded_at=recorded_at,
            home=state.home,
            away=state.away,
            period=state.current_period,
            in_overtime=state.in_overtime,
            overtime_number=state.overtime_number,
            period_duration_seconds=state.period_duration_seconds,
            remaining_seconds=state.remaining_seconds,
            status=status,
            reason=reason,
            fixture_id=state.fixture_id,
        )

    @property
    def winner(self) -> Optional[Side]:
        if self.home.score == self.away.score:
            return None
        return Side.HOME if self.home.score > self.away.score else Side.AWAY
