"""
Closed-match history.

GET /v1/history       Paged, newest first; filter by status and team name.
GET /v1/history/{id}
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select

from shared.errors import NotFoundError
from shared.models.domain import MatchHistoryOut
from shared.models.enums import CloseStatus
from shared.models.orm import MatchHistoryORM
from shared.utils.database import DatabaseManager

from api.dependencies import get_db
from api.pagination import PaginationParams

router = APIRouter(prefix="/v1/history", tags=["history"])


@router.get("")
async def list_history(
    status: Optional[CloseStatus] = Query(None),
    team: Optional[str] = Query(None, description="Substring of either team name"),
    pagination: PaginationParams = Depends(),
    db: DatabaseManager = Depends(get_db),
) -> dict[str, Any]:
    stmt = select(MatchHistoryORM)
    if status is not None:
        stmt = stmt.where(MatchHistoryORM.status == status.value)
    if team:
        pattern = f"%{team.strip()}%"
        stmt = stmt.where(
            or_(MatchHistoryORM.home_name.ilike(pattern), MatchHistoryORM.away_name.ilike(pattern))
        )

    async with db.read_session() as session:
        total = (
            await session.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()
        page = pagination.apply(
            stmt.order_by(MatchHistoryORM.recorded_at.desc(), MatchHistoryORM.id.desc())
        )
        rows = (await session.execute(page)).scalars().all()
        items = [MatchHistoryOut.model_validate(r).model_dump(mode="json") for r in rows]

    return pagination.paginate(items, total)


@router.get("/{record_id}")
async def get_history_record(record_id: int, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.read_session() as session:
        record = await session.get(MatchHistoryORM, record_id)
        if record is None:
            raise NotFoundError("match history record", record_id)
        return MatchHistoryOut.model_validate(record).model_dump(mode="json")
