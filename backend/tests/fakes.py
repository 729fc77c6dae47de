"""Test doubles for the scoreboard: a hand-driven wall clock and an in-memory store."""
from __future__ import annotations

import itertools
from dataclasses import replace
from typing import Optional

from scoreboard.state import MatchHistoryRecord, ScoreboardState, TeamSlot
from shared.errors import ConflictError, NotFoundError


class FakeClock:
    """Wall clock the tests move by hand."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StoreDown(RuntimeError):
    pass


class InMemoryScoreboardStore:
    """ScoreboardStore kept in memory. Set ``fail_next`` to make the next write raise."""

    def __init__(self, state: Optional[ScoreboardState] = None) -> None:
        self.state = state
        self.history: list[MatchHistoryRecord] = []
        self.fixtures: dict[int, tuple[TeamSlot, TeamSlot]] = {}
        self.closed_fixtures: set[int] = set()
        self.saves = 0
        self.fail_next = False
        self._team_ids = itertools.count(1)
        self._state_ids = itertools.count(1)

    def _check(self) -> None:
        if self.fail_next:
            self.fail_next = False
            raise StoreDown("database unavailable")

    def _with_ids(self, state: ScoreboardState) -> ScoreboardState:
        home, away = state.home, state.away
        if home.id is None:
            home = replace(home, id=next(self._team_ids))
        if away.id is None:
            away = replace(away, id=next(self._team_ids))
        return replace(
            state, home=home, away=away, id=state.id or next(self._state_ids)
        )

    async def load(self) -> Optional[ScoreboardState]:
        return self.state

    async def save(self, state: ScoreboardState) -> ScoreboardState:
        self._check()
        self.state = self._with_ids(state)
        self.saves += 1
        return self.state

    async def fixture_teams(self, fixture_id: int) -> tuple[TeamSlot, TeamSlot]:
        if fixture_id not in self.fixtures:
            raise NotFoundError("fixture", fixture_id)
        if fixture_id in self.closed_fixtures:
            raise ConflictError(f"Fixture {fixture_id} is already finished", fixture_id=fixture_id)
        return self.fixtures[fixture_id]

    async def record_close(
        self, state: ScoreboardState, record: MatchHistoryRecord
    ) -> ScoreboardState:
        self._check()
        self.state = self._with_ids(state)
        self.history.append(record)
        self.saves += 1
        return self.state
