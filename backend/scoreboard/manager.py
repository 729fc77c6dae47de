"""
The live scoreboard.

One ``ScoreboardManager`` is built at startup and injected into the routes. It owns
the current ``ScoreboardState`` and the lock that guards it. Every operation:

1. takes the lock for its whole duration (including the database write),
2. computes the intended next state from the current one,
3. persists it through the store,
4. swaps it in only after the write succeeded,
5. returns an immutable ``ScoreboardSnapshot``.

A failed write therefore leaves the in-memory state exactly as it was.

Reads are not pure: ``snapshot()`` stops a running clock that has reached zero and
persists that stop ("read with lazy settlement").
"""
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional, Union

from scoreboard import clock
from scoreboard.state import (
    REGULATION_PERIODS,
    MatchHistoryRecord,
    ScoreboardState,
    TeamSlot,
)
from scoreboard.store import ScoreboardStore
from shared.config import Settings, get_settings
from shared.errors import InvalidArgumentError, InvalidSideError
from shared.models.domain import ClockSnapshot, ScoreboardSnapshot, TeamScore
from shared.models.enums import CloseStatus, Side
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    MATCHES_CLOSED,
    SCOREBOARD_LOCK_WAIT,
    SCOREBOARD_OPERATIONS,
    atrack_latency,
)

logger = get_logger(__name__)

TIME_EXPIRED_REASON = "time expired"

Transition = Callable[[ScoreboardState, float], ScoreboardState]


def resolve_side(side: Union[str, Side]) -> Side:
    if isinstance(side, Side):
        return side
    resolved = Side.parse(side)
    if resolved is None:
        raise InvalidSideError(side)
    return resolved


def resolve_close_status(status: Union[str, CloseStatus]) -> CloseStatus:
    if isinstance(status, CloseStatus):
        return status
    try:
        return CloseStatus(status or "")
    except ValueError:
        allowed = ", ".join(s.value for s in CloseStatus)
        raise InvalidArgumentError(
            f"Unknown close status {status!r}; expected one of {allowed}", status=status
        ) from None


def _clean_name(name: Optional[str]) -> Optional[str]:
    if name is None:
        return None
    return name.strip() or None


def _next_period(state: ScoreboardState) -> ScoreboardState:
    if state.current_period < REGULATION_PERIODS:
        nxt = replace(
            state,
            current_period=state.current_period + 1,
            in_overtime=False,
            overtime_number=0,
            remaining_seconds=state.period_duration_seconds,
        )
    else:
        nxt = replace(
            state,
            in_overtime=True,
            overtime_number=state.overtime_number + 1,
            remaining_seconds=state.overtime_duration_seconds,
        )
    return nxt.with_fouls_reset()


def _fresh_match(state: ScoreboardState) -> ScoreboardState:
    return replace(
        state,
        home=state.home.zeroed(),
        away=state.away.zeroed(),
        current_period=1,
        in_overtime=False,
        overtime_number=0,
        remaining_seconds=max(1, state.period_duration_seconds),
        clock_running=False,
        clock_started_at=None,
        fixture_id=None,
    )


class ScoreboardManager:
    """Serialises every read and write of the single live scoreboard."""

    def __init__(
        self,
        store: ScoreboardStore,
        settings: Settings | None = None,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._now = wall_clock
        self._lock = asyncio.Lock()
        self._state: Optional[ScoreboardState] = None

    # ── Lifecycle ───────────────────────────────────────────────────────
    @property
    def started(self) -> bool:
        return self._state is not None

    async def start(self) -> ScoreboardSnapshot:
        """Load the persisted scoreboard, creating the default one on first run."""
        async with self._lock:
            loaded = await self._store.load()
            if loaded is None:
                state = await self._store.save(self._default_state())
                logger.info("scoreboard_created", scoreboard_id=state.id)
            else:
                state = loaded.sanitized()
                if state != loaded:
                    state = await self._store.save(state)
                logger.info(
                    "scoreboard_loaded",
                    scoreboard_id=state.id,
                    period=state.current_period,
                    home=state.home.name,
                    away=state.away.name,
                )
            self._state = state
        if self._settings.scoreboard_reset_on_startup:
            return await self.reset_to_zero()
        return await self.snapshot()

    def _default_state(self) -> ScoreboardState:
        period = max(0, self._settings.scoreboard_period_seconds)
        return ScoreboardState(
            home=TeamSlot(id=None, name=self._settings.scoreboard_home_name),
            away=TeamSlot(id=None, name=self._settings.scoreboard_away_name),
            remaining_seconds=period,
            period_duration_seconds=period,
            overtime_duration_seconds=max(0, self._settings.scoreboard_overtime_seconds),
        )

    def uses_team(self, team_id: int) -> bool:
        state = self._state
        return state is not None and team_id in (state.home.id, state.away.id)

    # ── Plumbing ────────────────────────────────────────────────────────
    @asynccontextmanager
    async def _locked(self, operation: str) -> AsyncIterator[ScoreboardState]:
        async with atrack_latency(SCOREBOARD_LOCK_WAIT):
            await self._lock.acquire()
        try:
            if self._state is None:
                raise RuntimeError("ScoreboardManager not started. Call start() first.")
            SCOREBOARD_OPERATIONS.labels(operation=operation).inc()
            yield self._state
        finally:
            self._lock.release()

    async def _commit(self, current: ScoreboardState, intended: ScoreboardState) -> ScoreboardState:
        if intended == current:
            return current
        saved = await self._store.save(intended)
        self._state = saved
        return saved

    async def _apply(self, operation: str, transition: Transition) -> ScoreboardSnapshot:
        async with self._locked(operation) as current:
            now = self._now()
            state = await self._commit(current, transition(clock.settle(current, now), now))
            snapshot = self._snapshot(state, now)
        logger.info(
            f"scoreboard_{operation}",
            period=snapshot.period,
            overtime=snapshot.overtime_number,
            home_score=snapshot.home.score,
            away_score=snapshot.away.score,
            remaining_seconds=snapshot.remaining_seconds,
        )
        return snapshot

    @staticmethod
    def _snapshot(state: ScoreboardState, now: float) -> ScoreboardSnapshot:
        remaining = clock.remaining_at(state, now)
        return ScoreboardSnapshot(
            period=state.current_period,
            in_overtime=state.in_overtime,
            overtime_number=state.overtime_number,
            home=TeamScore(**vars(state.home)),
            away=TeamScore(**vars(state.away)),
            remaining_seconds=remaining,
            clock=clock.format_clock(remaining),
            clock_running=state.clock_running and remaining > 0,
            clock_status=clock.status(state, now),
            period_duration_seconds=state.period_duration_seconds,
            overtime_duration_seconds=state.overtime_duration_seconds,
            fixture_id=state.fixture_id,
        )

    # ── Reads ───────────────────────────────────────────────────────────
    async def snapshot(self) -> ScoreboardSnapshot:
        """Current scoreboard. Stops and persists a clock that has run out."""
        async with self._locked("snapshot") as current:
            now = self._now()
            settled = clock.settle(current, now)
            if settled is not current:
                settled = await self._commit(current, settled)
                logger.info("scoreboard_clock_expired", period=settled.current_period)
            return self._snapshot(settled, now)

    async def clock_snapshot(self) -> ClockSnapshot:
        async with self._locked("clock_snapshot") as current:
            now = self._now()
            state = await self._commit(current, clock.settle(current, now))
            return ClockSnapshot(
                status=clock.status(state, now),
                period=state.current_period,
                remaining_seconds=clock.remaining_at(state, now),
                duration_seconds=state.current_duration_seconds,
            )

    # ── Score and fouls ─────────────────────────────────────────────────
    async def add_points(self, side: Union[str, Side], amount: int) -> ScoreboardSnapshot:
        resolved = resolve_side(side)
        points = max(0, amount)

        def transition(state: ScoreboardState, now: float) -> ScoreboardState:
            team = state.team(resolved)
            return state.with_team(resolved, replace(team, score=team.score + points))

        return await self._apply("add_points", transition)

    async def subtract_points(self, side: Union[str, Side], amount: int) -> ScoreboardSnapshot:
        resolved = resolve_side(side)
        points = max(0, amount)

        def transition(state: ScoreboardState, now: float) -> ScoreboardState:
            team = state.team(resolved)
            return state.with_team(resolved, replace(team, score=max(0, team.score - points)))

        return await self._apply("subtract_points", transition)

    async def register_foul(self, side: Union[str, Side]) -> ScoreboardSnapshot:
        resolved = resolve_side(side)

        def transition(state: ScoreboardState, now: float) -> ScoreboardState:
            team = state.team(resolved)
            return state.with_team(resolved, replace(team, fouls=team.fouls + 1))

        return await self._apply("register_foul", transition)

    # ── Clock ───────────────────────────────────────────────────────────
    async def start_clock(self) -> ScoreboardSnapshot:
        return await self._apply("start_clock", clock.start)

    resume_clock = start_clock

    async def pause_clock(self) -> ScoreboardSnapshot:
        return await self._apply("pause_clock", clock.fold)

    async def set_remaining(self, seconds: int) -> ScoreboardSnapshot:
        return await self._apply(
            "set_remaining", lambda state, now: clock.set_remaining(state, seconds, now)
        )

    async def reset_clock(self, seconds: Optional[int] = None) -> ScoreboardSnapshot:
        if seconds is None:
            seconds = self._settings.scoreboard_period_seconds
        seconds = max(0, seconds)

        def transition(state: ScoreboardState, now: float) -> ScoreboardState:
            return replace(
                state,
                period_duration_seconds=seconds,
                remaining_seconds=seconds,
                clock_running=False,
                clock_started_at=None,
                in_overtime=False,
                overtime_number=0,
            )

        return await self._apply("reset_clock", transition)

    # ── Periods ─────────────────────────────────────────────────────────
    async def advance_period(self) -> ScoreboardSnapshot:
        """Next quarter, or the next overtime once regulation is over. Never closes the match."""
        return await self._apply(
            "advance_period", lambda state, now: _next_period(clock.fold(state, now))
        )

    async def end_period(self) -> ScoreboardSnapshot:
        """Finish the current period.

        Before the fourth quarter ends this is ``advance_period``. From then on a
        tied game goes to (another) overtime and an untied game is closed as
        ``finished_auto``.
        """
        async with self._locked("end_period") as current:
            now = self._now()
            folded = clock.fold(current, now)
            if folded.regulation_over and not folded.is_tied:
                snapshot = await self._close(
                    folded, CloseStatus.FINISHED_AUTO, TIME_EXPIRED_REASON, now
                )
            else:
                state = await self._commit(current, _next_period(folded))
                snapshot = self._snapshot(state, now)
                logger.info(
                    "scoreboard_period_ended",
                    period=state.current_period,
                    overtime=state.overtime_number,
                )
        return snapshot

    # ── Teams ───────────────────────────────────────────────────────────
    async def rename_teams(
        self, home: Optional[str] = None, away: Optional[str] = None
    ) -> ScoreboardSnapshot:
        home, away = _clean_name(home), _clean_name(away)

        def transition(state: ScoreboardState, now: float) -> ScoreboardState:
            if home:
                state = replace(state, home=replace(state.home, name=home))
            if away:
                state = replace(state, away=replace(state.away, name=away))
            return state

        return await self._apply("rename_teams", transition)

    async def rename_creating_new_roster(
        self, home: Optional[str] = None, away: Optional[str] = None
    ) -> ScoreboardSnapshot:
        """Point the scoreboard at brand-new team rows instead of renaming the current ones.

        The new teams carry over the live score and fouls. Replacing either side unlinks
        the loaded fixture, whose result belongs to the teams it was scheduled for.
        """
        home, away = _clean_name(home), _clean_name(away)

        def transition(state: ScoreboardState, now: float) -> ScoreboardState:
            if home:
                state = replace(state, home=replace(state.home, id=None, name=home))
            if away:
                state = replace(state, away=replace(state.away, id=None, name=away))
            if home or away:
                state = replace(state, fixture_id=None)
            return state

        return await self._apply("rename_creating_new_roster", transition)

    # ── Match lifecycle ─────────────────────────────────────────────────
    async def new_match(self) -> ScoreboardSnapshot:
        return await self._apply("new_match", lambda state, now: _fresh_match(state))

    async def reset_to_zero(self) -> ScoreboardSnapshot:
        return await self._apply(
            "reset_to_zero", lambda state, now: _fresh_match(clock.fold(state, now))
        )

    async def load_fixture(self, fixture_id: int) -> ScoreboardSnapshot:
        """Put a fixture's teams on the scoreboard, zeroed, at the start of period 1.

        Finished and cancelled fixtures are rejected with ConflictError.
        """
        async with self._locked("load_fixture") as current:
            home, away = await self._store.fixture_teams(fixture_id)
            now = self._now()
            intended = replace(
                current,
                home=home.zeroed(),
                away=away.zeroed(),
                current_period=1,
                in_overtime=False,
                overtime_number=0,
                remaining_seconds=max(1, current.period_duration_seconds),
                clock_running=False,
                clock_started_at=None,
                fixture_id=fixture_id,
            )
            state = await self._commit(current, intended)
            snapshot = self._snapshot(state, now)
        logger.info("scoreboard_fixture_loaded", fixture_id=fixture_id, home=home.name, away=away.name)
        return snapshot

    async def close_match(
        self,
        status: Union[str, CloseStatus] = CloseStatus.FINISHED,
        reason: Optional[str] = None,
    ) -> ScoreboardSnapshot:
        """Write the current match to history and stop the clock.

        History row, team rows, scoreboard mirror and linked fixture are written in
        one transaction. Not idempotent: every call appends a history row.
        """
        resolved = resolve_close_status(status)
        async with self._locked("close_match") as current:
            now = self._now()
            return await self._close(clock.fold(current, now), resolved, reason, now)

    async def _close(
        self,
        folded: ScoreboardState,
        status: CloseStatus,
        reason: Optional[str],
        now: float,
    ) -> ScoreboardSnapshot:
        record = MatchHistoryRecord.from_state(
            folded,
            status=status,
            reason=reason,
            recorded_at=datetime.fromtimestamp(now, tz=timezone.utc),
        )
        saved = await self._store.record_close(replace(folded, fixture_id=None), record)
        self._state = saved
        MATCHES_CLOSED.labels(status=status.value).inc()
        logger.info(
            "match_closed",
            status=status.value,
            reason=record.reason,
            home=record.home.name,
            away=record.away.name,
            home_score=record.home.score,
            away_score=record.away.score,
            period=record.period,
            overtime=record.overtime_number,
            fixture_id=record.fixture_id,
        )
        return self._snapshot(saved, now)
