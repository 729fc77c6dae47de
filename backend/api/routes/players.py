"""
Player REST endpoints.

GET    /v1/players       Paged list (search, team, position).
GET    /v1/players/{id}
POST   /v1/players
PUT    /v1/players/{id}  Partial update; "team_id": null releases the player.
DELETE /v1/players/{id}
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import NotFoundError
from shared.models.domain import PlayerCreate, PlayerOut, PlayerUpdate
from shared.models.orm import PlayerORM, TeamORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

from api.dependencies import get_db
from api.pagination import PaginationParams

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/players", tags=["players"])


async def _get_player(session: AsyncSession, player_id: int) -> PlayerORM:
    player = await session.get(PlayerORM, player_id)
    if player is None:
        raise NotFoundError("player", player_id)
    return player


async def _check_team(session: AsyncSession, team_id: Optional[int]) -> None:
    if team_id is not None and await session.get(TeamORM, team_id) is None:
        raise NotFoundError("team", team_id)


@router.get("")
async def list_players(
    search: Optional[str] = Query(None, description="Substring of the player name"),
    team_id: Optional[int] = Query(None),
    position: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    db: DatabaseManager = Depends(get_db),
) -> dict[str, Any]:
    stmt = select(PlayerORM)
    if search:
        stmt = stmt.where(PlayerORM.name.ilike(f"%{search.strip()}%"))
    if team_id is not None:
        stmt = stmt.where(PlayerORM.team_id == team_id)
    if position:
        stmt = stmt.where(PlayerORM.position.ilike(position.strip()))
    stmt = stmt.order_by(PlayerORM.name, PlayerORM.id)

    async with db.read_session() as session:
        total = (
            await session.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
        ).scalar_one()
        rows = (await session.execute(pagination.apply(stmt))).scalars().all()
        items = [PlayerOut.model_validate(r).model_dump() for r in rows]

    return pagination.paginate(items, total)


@router.get("/{player_id}")
async def get_player(player_id: int, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.read_session() as session:
        return PlayerOut.model_validate(await _get_player(session, player_id)).model_dump()


@router.post("", status_code=201)
async def create_player(body: PlayerCreate, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.write_session() as session:
        await _check_team(session, body.team_id)
        player = PlayerORM(**body.model_dump(), points=0, fouls=0)
        player.name = player.name.strip()
        session.add(player)
        await session.flush()
        out = PlayerOut.model_validate(player).model_dump()

    logger.info("player_created", player_id=out["id"], team_id=out["team_id"])
    return out


@router.put("/{player_id}")
async def update_player(
    player_id: int, body: PlayerUpdate, db: DatabaseManager = Depends(get_db)
) -> dict[str, Any]:
    changes = body.model_dump(exclude_unset=True)
    for required in ("name", "points", "fouls"):
        if changes.get(required, 0) is None:
            del changes[required]
    async with db.write_session() as session:
        player = await _get_player(session, player_id)
        if "team_id" in changes:
            await _check_team(session, changes["team_id"])
        for key, value in changes.items():
            setattr(player, key, value)
        await session.flush()
        out = PlayerOut.model_validate(player).model_dump()

    logger.info("player_updated", player_id=player_id, fields=sorted(changes))
    return out


@router.delete("/{player_id}")
async def delete_player(player_id: int, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.write_session() as session:
        await _get_player(session, player_id)
        await session.execute(delete(PlayerORM).where(PlayerORM.id == player_id))

    logger.info("player_deleted", player_id=player_id)
    return {"deleted": True, "id": player_id}
