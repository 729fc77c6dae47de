"""
Persistence for the live scoreboard.

``ScoreboardStore`` is what the manager needs from storage. ``SqlScoreboardStore``
implements it on PostgreSQL; every write is one ``write_session`` (one transaction).
"""
from __future__ import annotations

from dataclasses import replace
from typing import Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from scoreboard.state import MatchHistoryRecord, ScoreboardState, TeamSlot
from shared.config import Settings, get_settings
from shared.errors import ConflictError, NotFoundError
from shared.models.enums import CloseStatus, FixtureStatus
from shared.models.orm import FixtureORM, MatchHistoryORM, ScoreboardORM, TeamORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from tournament import service as tournament_service

logger = get_logger(__name__)

_CLOSED_FIXTURE_STATUSES = (FixtureStatus.FINISHED.value, FixtureStatus.CANCELLED.value)


class ScoreboardStore(Protocol):
    async def load(self) -> Optional[ScoreboardState]:
        """Return the persisted scoreboard, or None if none was ever saved."""

    async def save(self, state: ScoreboardState) -> ScoreboardState:
        """Write the mirror row and both team rows. Returns ``state`` with ids filled in."""

    async def fixture_teams(self, fixture_id: int) -> tuple[TeamSlot, TeamSlot]:
        """Home and away team of a fixture.

        Raises NotFoundError, or ConflictError when the fixture is finished or cancelled.
        """

    async def record_close(
        self, state: ScoreboardState, record: MatchHistoryRecord
    ) -> ScoreboardState:
        """Append ``record`` and save ``state`` (plus the linked fixture) atomically."""


class SqlScoreboardStore:
    def __init__(self, db: DatabaseManager, settings: Settings | None = None) -> None:
        self._db = db
        self._settings = settings or get_settings()

    async def load(self) -> Optional[ScoreboardState]:
        async with self._db.read_session() as session:
            row = (
                await session.execute(select(ScoreboardORM).order_by(ScoreboardORM.id).limit(1))
            ).scalar_one_or_none()
            if row is None:
                return None
            home = await session.get(TeamORM, row.home_team_id)
            away = await session.get(TeamORM, row.away_team_id)
            if home is None or away is None:
                raise NotFoundError("team", row.home_team_id if home is None else row.away_team_id)
            return ScoreboardState(
                id=row.id,
                home=_slot(home),
                away=_slot(away),
                current_period=row.current_period,
                in_overtime=row.in_overtime,
                overtime_number=row.overtime_number,
                remaining_seconds=row.remaining_seconds,
                clock_running=row.clock_running,
                period_duration_seconds=row.period_duration_seconds,
                overtime_duration_seconds=row.overtime_duration_seconds,
                fixture_id=row.fixture_id,
            )

    async def save(self, state: ScoreboardState) -> ScoreboardState:
        async with self._db.write_session() as session:
            return await _write_state(session, state)

    async def fixture_teams(self, fixture_id: int) -> tuple[TeamSlot, TeamSlot]:
        async with self._db.read_session() as session:
            fixture = await session.get(FixtureORM, fixture_id)
            if fixture is None:
                raise NotFoundError("fixture", fixture_id)
            if fixture.status in _CLOSED_FIXTURE_STATUSES:
                raise ConflictError(
                    f"Fixture {fixture_id} is already {fixture.status}",
                    fixture_id=fixture_id,
                    status=fixture.status,
                )
            home = await session.get(TeamORM, fixture.home_team_id)
            if home is None:
                raise NotFoundError("team", fixture.home_team_id)
            away = await session.get(TeamORM, fixture.away_team_id)
            if away is None:
                raise NotFoundError("team", fixture.away_team_id)
            return _slot(home), _slot(away)

    async def record_close(
        self, state: ScoreboardState, record: MatchHistoryRecord
    ) -> ScoreboardState:
        async with self._db.write_session() as session:
            session.add(_history_row(record))
            saved = await _write_state(session, state)
            if record.fixture_id is not None:
                await self._close_fixture(session, record)
            return saved

    async def _close_fixture(self, session: AsyncSession, record: MatchHistoryRecord) -> None:
        fixture = await session.get(FixtureORM, record.fixture_id)
        if fixture is None:
            logger.warning("close_fixture_missing", fixture_id=record.fixture_id)
            return
        if record.status.has_result:
            await tournament_service.record_fixture_result(
                session,
                fixture,
                record.home.score,
                record.away.score,
                settings=self._settings,
            )
        elif record.status is CloseStatus.SUSPENDED:
            fixture.status = FixtureStatus.POSTPONED.value
        else:
            fixture.status = FixtureStatus.CANCELLED.value


def _slot(team: TeamORM) -> TeamSlot:
    return TeamSlot(id=team.id, name=team.name, score=team.score, fouls=team.fouls)


async def ensure_unique_team_name(
    session: AsyncSession, name: str, exclude_id: Optional[int] = None
) -> None:
    """Raise ConflictError if another team already uses ``name`` (ignoring case)."""
    stmt = select(TeamORM.id).where(func.lower(TeamORM.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(TeamORM.id != exclude_id)
    if (await session.execute(stmt.limit(1))).scalar_one_or_none() is not None:
        raise ConflictError(f"A team named '{name}' already exists", name=name)


async def _write_team(session: AsyncSession, slot: TeamSlot) -> TeamSlot:
    if slot.id is None:
        await ensure_unique_team_name(session, slot.name)
        team = TeamORM(name=slot.name, score=slot.score, fouls=slot.fouls)
        session.add(team)
        await session.flush()
        return replace(slot, id=team.id)
    team = await session.get(TeamORM, slot.id)
    if team is None:
        raise NotFoundError("team", slot.id)
    if team.name != slot.name:
        await ensure_unique_team_name(session, slot.name, exclude_id=team.id)
    team.name = slot.name
    team.score = slot.score
    team.fouls = slot.fouls
    return slot


async def _write_state(session: AsyncSession, state: ScoreboardState) -> ScoreboardState:
    home = await _write_team(session, state.home)
    away = await _write_team(session, state.away)

    row = await session.get(ScoreboardORM, state.id) if state.id is not None else None
    if row is None:
        row = ScoreboardORM()
        session.add(row)
    row.home_team_id = home.id
    row.away_team_id = away.id
    row.current_period = state.current_period
    row.in_overtime = state.in_overtime
    row.overtime_number = state.overtime_number
    row.remaining_seconds = state.remaining_seconds
    row.clock_running = state.clock_running
    row.period_duration_seconds = state.period_duration_seconds
    row.overtime_duration_seconds = state.overtime_duration_seconds
    row.fixture_id = state.fixture_id
    await session.flush()
    return replace(state, id=row.id, home=home, away=away)


def _history_row(record: MatchHistoryRecord) -> MatchHistoryORM:
    return MatchHistoryORM(
        recorded_at=record.recorded_at,
        home_team_id=record.home.id,
        away_team_id=record.away.id,
        home_name=record.home.name,
        away_name=record.away.name,
        home_score=record.home.score,
        away_score=record.away.score,
        home_fouls=record.home.fouls,
        away_fouls=record.away.fouls,
        period=record.period,
        in_overtime=record.in_overtime,
        overtime_number=record.overtime_number,
        period_duration_seconds=record.period_duration_seconds,
        remaining_seconds=record.remaining_seconds,
        status=record.status.value,
        reason=record.reason,
        fixture_id=record.fixture_id,
    )
