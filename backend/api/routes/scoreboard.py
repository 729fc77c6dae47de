"""
Live scoreboard endpoints.

GET  /v1/scoreboard                 Current snapshot (settles an expired clock).
GET  /v1/scoreboard/clock           Clock view: status, period, remaining, duration.
POST /v1/scoreboard/points/add      ?side=home|away&points=N
POST /v1/scoreboard/points/subtract ?side=home|away&points=N
POST /v1/scoreboard/fouls           ?side=home|away
POST /v1/scoreboard/clock/start | /clock/resume | /clock/pause
POST /v1/scoreboard/clock/set       ?seconds=N
POST /v1/scoreboard/clock/reset     ?seconds=N (optional)
POST /v1/scoreboard/period/advance  Next quarter or overtime.
POST /v1/scoreboard/period/end      Next quarter, overtime on a tie, or close.
POST /v1/scoreboard/teams/rename    {"home": ..., "away": ...}
POST /v1/scoreboard/teams/rename-new ?home=...&away=...
POST /v1/scoreboard/new | /reset
POST /v1/scoreboard/fixture/{id}    Load a scheduled fixture.
POST /v1/scoreboard/close           {"status": ..., "reason": ...}
POST /v1/scoreboard/close/auto      Close as finished_auto.
WS   /v1/scoreboard/ws              Live snapshots.

Every mutating endpoint returns the new snapshot and pushes it to the displays.
"""
from __future__ import annotations

import hashlib
from typing import Any, Awaitable, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response, WebSocket

from scoreboard.manager import TIME_EXPIRED_REASON, ScoreboardManager
from shared.models.domain import CloseMatchIn, RenameTeamsIn, ScoreboardSnapshot
from shared.models.enums import CloseStatus

from api.dependencies import get_fanout, get_scoreboard
from api.ws.manager import ScoreboardFanout, snapshot_payload

router = APIRouter(prefix="/v1/scoreboard", tags=["scoreboard"])

SideQuery = Query(..., description="home or away (local/visitante accepted)")


async def _push(
    operation: Awaitable[ScoreboardSnapshot], fanout: ScoreboardFanout
) -> dict[str, Any]:
    snapshot = await operation
    await fanout.publish(snapshot)
    return snapshot.model_dump(mode="json")


def _compute_etag(payload: str) -> str:
    return f'W/"{hashlib.md5(payload.encode()).hexdigest()[:16]}"'


@router.get("")
async def get_scoreboard_snapshot(
    request: Request,
    response: Response,
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
) -> Any:
    snapshot = await scoreboard.snapshot()
    etag = _compute_etag(snapshot_payload(snapshot))
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers={"ETag": etag})
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "no-cache"
    return snapshot.model_dump(mode="json")


@router.get("/clock")
async def get_clock(scoreboard: ScoreboardManager = Depends(get_scoreboard)) -> dict[str, Any]:
    clock = await scoreboard.clock_snapshot()
    return clock.model_dump(mode="json")


# ── Score and fouls ─────────────────────────────────────────────────────
@router.post("/points/add")
async def add_points(
    side: str = SideQuery,
    points: int = Query(..., description="Negative values add nothing"),
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.add_points(side, points), fanout)


@router.post("/points/subtract")
async def subtract_points(
    side: str = SideQuery,
    points: int = Query(...),
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.subtract_points(side, points), fanout)


@router.post("/fouls")
async def register_foul(
    side: str = SideQuery,
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.register_foul(side), fanout)


# ── Clock ───────────────────────────────────────────────────────────────
@router.post("/clock/start")
async def start_clock(
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.start_clock(), fanout)


@router.post("/clock/resume")
async def resume_clock(
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.resume_clock(), fanout)


@router.post("/clock/pause")
async def pause_clock(
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.pause_clock(), fanout)


@router.post("/clock/set")
async def set_remaining(
    seconds: int = Query(..., description="Clamped to 0 when negative"),
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.set_remaining(seconds), fanout)


@router.post("/clock/reset")
async def reset_clock(
    seconds: Optional[int] = Query(None, description="New period length; defaults to the configured one"),
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.reset_clock(seconds), fanout)


# ── Periods ─────────────────────────────────────────────────────────────
@router.post("/period/advance")
async def advance_period(
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.advance_period(), fanout)


@router.post("/period/end")
async def end_period(
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.end_period(), fanout)


# ── Teams ───────────────────────────────────────────────────────────────
@router.post("/teams/rename")
async def rename_teams(
    body: RenameTeamsIn,
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.rename_teams(body.home, body.away), fanout)


@router.post("/teams/rename-new")
async def rename_creating_new_roster(
    home: Optional[str] = Query(None, max_length=100),
    away: Optional[str] = Query(None, max_length=100),
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.rename_creating_new_roster(home, away), fanout)


# ── Match lifecycle ─────────────────────────────────────────────────────
@router.post("/new")
async def new_match(
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.new_match(), fanout)


@router.post("/reset")
async def reset_to_zero(
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.reset_to_zero(), fanout)


@router.post("/fixture/{fixture_id}")
async def load_fixture(
    fixture_id: int,
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(scoreboard.load_fixture(fixture_id), fanout)


@router.post("/close")
async def close_match(
    body: Optional[CloseMatchIn] = Body(None),
    reason: Optional[str] = Query(None, max_length=500, description="Used when the body has none"),
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    """Snapshot the match into history. Not idempotent: each call writes one record."""
    body = body or CloseMatchIn()
    return await _push(scoreboard.close_match(body.status, body.reason or reason), fanout)


@router.post("/close/auto")
async def close_match_auto(
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> dict[str, Any]:
    return await _push(
        scoreboard.close_match(CloseStatus.FINISHED_AUTO, TIME_EXPIRED_REASON), fanout
    )


@router.websocket("/ws")
async def scoreboard_ws(
    ws: WebSocket,
    scoreboard: ScoreboardManager = Depends(get_scoreboard),
    fanout: ScoreboardFanout = Depends(get_fanout),
) -> None:
    await fanout.handle_connection(ws, scoreboard)
