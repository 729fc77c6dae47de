"""
Match (fixture) REST endpoints.

GET  /v1/matches               Paged list; filters: tournament, status, round, team, date range.
GET  /v1/matches/{id}          One fixture.
POST /v1/matches               Create a friendly (no series).
PUT  /v1/matches/{id}/status   Set the fixture status.
PUT  /v1/matches/{id}/result   Store the final score; advances a playoff series.
POST /v1/matches/{id}/roster   Replace one team's roster for the fixture.
GET  /v1/matches/{id}/roster   Both rosters.

Listing first promotes scheduled fixtures whose start time has passed to in_progress.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shared.config import Settings, get_settings
from shared.errors import InvalidArgumentError, NotFoundError
from shared.models.domain import (
    FixtureCreate,
    FixtureOut,
    FixtureResultIn,
    FixtureStatusUpdate,
    RosterEntryOut,
    RosterIn,
)
from shared.models.enums import FixtureStatus, RoundType
from shared.models.orm import FixtureORM, FixtureRosterORM, PlayerORM, PlayoffSeriesORM, TeamORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from tournament import service as tournament_service

from api.dependencies import get_db
from api.pagination import PaginationParams

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/matches", tags=["matches"])

_ONE_DAY = timedelta(days=1)

_FIXTURE_OPTIONS = (
    selectinload(FixtureORM.home_team),
    selectinload(FixtureORM.away_team),
    selectinload(FixtureORM.series),
)


def _fixture_out(fixture: FixtureORM) -> dict[str, Any]:
    out = FixtureOut.model_validate(fixture)
    if fixture.series is not None:
        out.round = RoundType(fixture.series.round)
    return out.model_dump(mode="json")


async def _load_fixture(session: AsyncSession, fixture_id: int) -> FixtureORM:
    stmt = (
        select(FixtureORM)
        .options(*_FIXTURE_OPTIONS)
        .where(FixtureORM.id == fixture_id)
        .execution_options(populate_existing=True)
    )
    fixture = (await session.execute(stmt)).scalar_one_or_none()
    if fixture is None:
        raise NotFoundError("fixture", fixture_id)
    return fixture


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min).astimezone()


@router.get("")
async def list_matches(
    tournament_id: Optional[int] = Query(None),
    status: Optional[FixtureStatus] = Query(None),
    round_: Optional[RoundType] = Query(None, alias="round", description="2=final, 4=semifinal, 8, 16"),
    team_id: Optional[int] = Query(None, description="Home or away team"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None, description="Inclusive"),
    pagination: PaginationParams = Depends(),
    db: DatabaseManager = Depends(get_db),
) -> dict[str, Any]:
    """Most recent first."""
    stmt = select(FixtureORM)
    if tournament_id is not None:
        stmt = stmt.where(FixtureORM.tournament_id == tournament_id)
    if status is not None:
        stmt = stmt.where(FixtureORM.status == status.value)
    if round_ is not None:
        stmt = stmt.join(PlayoffSeriesORM, FixtureORM.series_id == PlayoffSeriesORM.id).where(
            PlayoffSeriesORM.round == int(round_)
        )
    if team_id is not None:
        stmt = stmt.where(
            or_(FixtureORM.home_team_id == team_id, FixtureORM.away_team_id == team_id)
        )
    if date_from is not None:
        stmt = stmt.where(FixtureORM.start_time >= _day_start(date_from))
    if date_to is not None:
        stmt = stmt.where(FixtureORM.start_time < _day_start(date_to) + _ONE_DAY)

    async with db.write_session() as session:
        await tournament_service.promote_started_fixtures(session)
        total = (
            await session.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()
        page = pagination.apply(
            stmt.options(*_FIXTURE_OPTIONS).order_by(
                FixtureORM.start_time.desc(), FixtureORM.id.desc()
            )
        )
        rows = (await session.execute(page)).scalars().all()
        items = [_fixture_out(f) for f in rows]

    return pagination.paginate(items, total)


@router.get("/{fixture_id}")
async def get_match(fixture_id: int, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.read_session() as session:
        return _fixture_out(await _load_fixture(session, fixture_id))


@router.post("", status_code=201)
async def create_friendly(body: FixtureCreate, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    if body.home_team_id == body.away_team_id:
        raise InvalidArgumentError("Home and away teams must differ")

    async with db.write_session() as session:
        for team_id in (body.home_team_id, body.away_team_id):
            if await session.get(TeamORM, team_id) is None:
                raise NotFoundError("team", team_id)
        fixture = FixtureORM(
            start_time=body.start_time,
            status=FixtureStatus.SCHEDULED.value,
            home_team_id=body.home_team_id,
            away_team_id=body.away_team_id,
        )
        session.add(fixture)
        await session.flush()
        out = _fixture_out(await _load_fixture(session, fixture.id))

    logger.info("friendly_created", fixture_id=out["id"])
    return out


@router.put("/{fixture_id}/status")
async def update_match_status(
    fixture_id: int, body: FixtureStatusUpdate, db: DatabaseManager = Depends(get_db)
) -> dict[str, Any]:
    async with db.write_session() as session:
        fixture = await _load_fixture(session, fixture_id)
        previous = fixture.status
        fixture.status = body.status.value
        await session.flush()
        out = _fixture_out(fixture)

    logger.info("fixture_status_changed", fixture_id=fixture_id, old=previous, new=body.status.value)
    return out


@router.put("/{fixture_id}/result")
async def record_match_result(
    fixture_id: int,
    body: FixtureResultIn,
    db: DatabaseManager = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Finish the fixture. For series games, returns the next scheduled game if any."""
    async with db.write_session() as session:
        fixture = await _load_fixture(session, fixture_id)
        next_game = await tournament_service.record_fixture_result(
            session, fixture, body.home_score, body.away_score, settings=settings
        )
        out = _fixture_out(fixture)
        next_out = (
            _fixture_out(await _load_fixture(session, next_game.id)) if next_game else None
        )

    return {"fixture": out, "next_game": next_out}


@router.post("/{fixture_id}/roster")
async def assign_roster(
    fixture_id: int,
    body: RosterIn,
    db: DatabaseManager = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Replace the roster of one team for this fixture."""
    if len(body.players) > settings.roster_max_players:
        raise InvalidArgumentError(
            f"A roster holds at most {settings.roster_max_players} players",
            players=len(body.players),
        )
    player_ids = [entry.player_id for entry in body.players]
    if len(set(player_ids)) != len(player_ids):
        raise InvalidArgumentError("A player appears more than once in the roster")

    async with db.write_session() as session:
        fixture = await session.get(FixtureORM, fixture_id)
        if fixture is None:
            raise NotFoundError("fixture", fixture_id)
        if body.team_id not in (fixture.home_team_id, fixture.away_team_id):
            raise InvalidArgumentError(
                "Team does not play in this fixture", team_id=body.team_id, fixture_id=fixture_id
            )

        if player_ids:
            players = {
                p.id: p
                for p in (
                    await session.execute(select(PlayerORM).where(PlayerORM.id.in_(player_ids)))
                ).scalars()
            }
            for player_id in player_ids:
                player = players.get(player_id)
                if player is None:
                    raise NotFoundError("player", player_id)
                if player.team_id != body.team_id:
                    raise InvalidArgumentError(
                        "Player does not belong to the team",
                        player_id=player_id,
                        team_id=body.team_id,
                    )

        await session.execute(
            delete(FixtureRosterORM).where(
                FixtureRosterORM.fixture_id == fixture_id,
                FixtureRosterORM.team_id == body.team_id,
            )
        )
        for entry in body.players:
            session.add(
                FixtureRosterORM(
                    fixture_id=fixture_id,
                    team_id=body.team_id,
                    player_id=entry.player_id,
                    starter=entry.starter,
                )
            )
        await session.flush()
        roster = await _roster(session, fixture_id)

    logger.info(
        "roster_assigned", fixture_id=fixture_id, team_id=body.team_id, players=len(player_ids)
    )
    return {"fixture_id": fixture_id, "roster": roster}


@router.get("/{fixture_id}/roster")
async def get_roster(fixture_id: int, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.read_session() as session:
        if await session.get(FixtureORM, fixture_id) is None:
            raise NotFoundError("fixture", fixture_id)
        roster = await _roster(session, fixture_id)
    return {"fixture_id": fixture_id, "roster": roster}


async def _roster(session: AsyncSession, fixture_id: int) -> list[dict[str, Any]]:
    stmt = (
        select(
            FixtureRosterORM.player_id,
            FixtureRosterORM.team_id,
            FixtureRosterORM.starter,
            PlayerORM.name,
            PlayerORM.number,
            PlayerORM.position,
        )
        .join(PlayerORM, FixtureRosterORM.player_id == PlayerORM.id)
        .where(FixtureRosterORM.fixture_id == fixture_id)
        .order_by(
            FixtureRosterORM.team_id,
            FixtureRosterORM.starter.desc(),
            PlayerORM.number.asc().nullslast(),
            PlayerORM.name,
        )
    )
    rows = (await session.execute(stmt)).all()
    return [RosterEntryOut.model_validate(dict(row._mapping)).model_dump() for row in rows]
