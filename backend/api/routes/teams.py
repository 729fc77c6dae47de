"""
Team REST endpoints.

GET    /v1/teams       Paged list (search, city, sort).
GET    /v1/teams/{id}  One team.
POST   /v1/teams       Create; names are unique ignoring case.
PUT    /v1/teams/{id}  Rename / change city.
DELETE /v1/teams/{id}  Delete a team nothing else refers to.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from scoreboard.manager import ScoreboardManager
from scoreboard.store import ensure_unique_team_name
from shared.errors import ConflictError, NotFoundError
from shared.models.domain import TeamCreate, TeamOut, TeamUpdate
from shared.models.orm import FixtureORM, PlayoffSeriesORM, ScoreboardORM, TeamORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

from api.dependencies import get_db, get_scoreboard
from api.pagination import PaginationParams

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/teams", tags=["teams"])

_SORT_COLUMNS = {
    "name": TeamORM.name,
    "city": TeamORM.city,
    "score": TeamORM.score,
    "fouls": TeamORM.fouls,
}


async def _get_team(session: AsyncSession, team_id: int) -> TeamORM:
    team = await session.get(TeamORM, team_id)
    if team is None:
        raise NotFoundError("team", team_id)
    return team


@router.get("")
async def list_teams(
    search: Optional[str] = Query(None, description="Substring of the team name"),
    city: Optional[str] = Query(None),
    sort: str = Query("name", pattern="^(name|city|score|fouls)$"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    pagination: PaginationParams = Depends(),
    db: DatabaseManager = Depends(get_db),
) -> dict[str, Any]:
    stmt = select(TeamORM)
    if search:
        stmt = stmt.where(TeamORM.name.ilike(f"%{search.strip()}%"))
    if city:
        stmt = stmt.where(TeamORM.city.ilike(city.strip()))

    column = _SORT_COLUMNS[sort]
    stmt = stmt.order_by(column.desc() if order == "desc" else column.asc(), TeamORM.id)

    async with db.read_session() as session:
        total = (
            await session.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
        ).scalar_one()
        rows = (await session.execute(pagination.apply(stmt))).scalars().all()
        items = [TeamOut.model_validate(r).model_dump() for r in rows]

    return pagination.paginate(items, total)


@router.get("/{team_id}")
async def get_team(team_id: int, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.read_session() as session:
        team = await _get_team(session, team_id)
        return TeamOut.model_validate(team).model_dump()


@router.post("", status_code=201)
async def create_team(body: TeamCreate, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.write_session() as session:
        await ensure_unique_team_name(session, body.name)
        team = TeamORM(name=body.name, city=body.city, score=0, fouls=0)
        session.add(team)
        await session.flush()
        out = TeamOut.model_validate(team).model_dump()

    logger.info("team_created", team_id=out["id"], name=out["name"])
    return out


@router.put("/{team_id}")
async def update_team(
    team_id: int,
    body: TeamUpdate,
    db: DatabaseManager = Depends(get_db),
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
) -> dict[str, Any]:
    """Teams on the live scoreboard are renamed through the scoreboard instead."""
    async with db.write_session() as session:
        team = await _get_team(session, team_id)
        if body.name is not None and body.name != team.name:
            if scoreboard.uses_team(team_id):
                raise ConflictError(
                    "Team is on the live scoreboard; rename it there", team_id=team_id
                )
            await ensure_unique_team_name(session, body.name, exclude_id=team_id)
            team.name = body.name
        if "city" in body.model_fields_set:
            team.city = body.city
        await session.flush()
        out = TeamOut.model_validate(team).model_dump()

    logger.info("team_updated", team_id=team_id)
    return out


@router.delete("/{team_id}")
async def delete_team(
    team_id: int,
    db: DatabaseManager = Depends(get_db),
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
) -> dict[str, Any]:
    if scoreboard.uses_team(team_id):
        raise ConflictError("Team is on the live scoreboard", team_id=team_id)

    async with db.write_session() as session:
        await _get_team(session, team_id)
        references = (
            await session.execute(
                select(func.count()).select_from(FixtureORM).where(
                    or_(FixtureORM.home_team_id == team_id, FixtureORM.away_team_id == team_id)
                )
            )
        ).scalar_one()
        references += (
            await session.execute(
                select(func.count()).select_from(PlayoffSeriesORM).where(
                    or_(
                        PlayoffSeriesORM.team_a_id == team_id,
                        PlayoffSeriesORM.team_b_id == team_id,
                    )
                )
            )
        ).scalar_one()
        references += (
            await session.execute(
                select(func.count()).select_from(ScoreboardORM).where(
                    or_(ScoreboardORM.home_team_id == team_id, ScoreboardORM.away_team_id == team_id)
                )
            )
        ).scalar_one()
        if references:
            raise ConflictError(
                "Team is referenced by fixtures or playoff series", team_id=team_id
            )
        await session.execute(delete(TeamORM).where(TeamORM.id == team_id))

    logger.info("team_deleted", team_id=team_id)
    return {"deleted": True, "id": team_id}
