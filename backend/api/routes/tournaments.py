"""
Playoff tournament endpoints.

POST /v1/tournaments                  Create with seeded teams (2, 4, 8 or 16).
GET  /v1/tournaments/{id}             Tournament with all its series.
GET  /v1/tournaments/{id}/series      Series, latest round first.
POST /v1/tournaments/{id}/next-round  Open the next round once every series is closed.
POST /v1/tournaments/seed-demo        Demo tournament over the first four teams.
"""
from __future__ import annotations

from typing import Any, Sequence

from fastapi import APIRouter, Depends

from shared.config import Settings, get_settings
from shared.models.domain import SeriesOut, TournamentCreate, TournamentOut
from shared.models.enums import TournamentStatus
from shared.models.orm import PlayoffSeriesORM, TournamentORM
from shared.utils.database import DatabaseManager
from tournament import service as tournament_service

from api.dependencies import get_db

router = APIRouter(prefix="/v1/tournaments", tags=["tournaments"])


def _series_out(series: Sequence[PlayoffSeriesORM]) -> list[dict[str, Any]]:
    return [SeriesOut.model_validate(s).model_dump(mode="json") for s in series]


def _tournament_out(
    tournament: TournamentORM, series: Sequence[PlayoffSeriesORM]
) -> dict[str, Any]:
    return {
        "tournament": TournamentOut.model_validate(tournament).model_dump(mode="json"),
        "series": _series_out(series),
    }


@router.post("", status_code=201)
async def create_tournament(
    body: TournamentCreate,
    db: DatabaseManager = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    async with db.write_session() as session:
        tournament = await tournament_service.create_tournament(
            session,
            name=body.name,
            season=body.season,
            best_of=body.best_of,
            seed_team_ids=body.team_ids,
            settings=settings,
        )
        series = await tournament_service.list_series(session, tournament.id)
        return _tournament_out(tournament, series)


@router.post("/seed-demo", status_code=201)
async def seed_demo(
    db: DatabaseManager = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    async with db.write_session() as session:
        tournament = await tournament_service.seed_demo(session, settings=settings)
        series = await tournament_service.list_series(session, tournament.id)
        return _tournament_out(tournament, series)


@router.get("/{tournament_id}")
async def get_tournament(tournament_id: int, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.read_session() as session:
        tournament = await tournament_service.get_tournament(session, tournament_id)
        return _tournament_out(tournament, tournament.series)


@router.get("/{tournament_id}/series")
async def list_series(tournament_id: int, db: DatabaseManager = Depends(get_db)) -> dict[str, Any]:
    async with db.read_session() as session:
        series = await tournament_service.list_series(session, tournament_id)
        return {"tournament_id": tournament_id, "series": _series_out(series)}


@router.post("/{tournament_id}/next-round")
async def next_round(
    tournament_id: int,
    db: DatabaseManager = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """409 while any series of the current round is open."""
    async with db.write_session() as session:
        tournament, created = await tournament_service.advance_tournament(
            session, tournament_id, settings=settings
        )
        out = _tournament_out(tournament, created)
    out["finished"] = out["tournament"]["status"] == TournamentStatus.FINISHED.value
    return out
