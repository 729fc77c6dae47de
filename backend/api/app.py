"""
FastAPI application factory for the Courtside API service.

Creates the app with:
- Scoreboard routes and the live WebSocket endpoint
- Team, player, match, tournament and history routes
- Middleware stack
- Health check endpoints
- Lifespan management (startup/shutdown)
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Union

from fastapi import FastAPI

from scoreboard.manager import ScoreboardManager
from scoreboard.store import SqlScoreboardStore
from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server
from shared.utils.redis_manager import RedisManager

from api.dependencies import get_db, get_redis, init_dependencies, reset_dependencies
from api.middleware import setup_middleware
from api.routes.history import router as history_router
from api.routes.matches import router as matches_router
from api.routes.players import router as players_router
from api.routes.scoreboard import router as scoreboard_router
from api.routes.teams import router as teams_router
from api.routes.tournaments import router as tournaments_router
from api.ws.manager import ScoreboardFanout

logger = get_logger(__name__)

_CONNECT_RETRY_ATTEMPTS = 10
_CONNECT_RETRY_BASE_DELAY_S = 2.0


async def _connect_with_retry(connect_fn, name: str) -> None:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, _CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == _CONNECT_RETRY_ATTEMPTS:
                raise
            delay = _CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=_CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without DB/Redis."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: connect Redis and Postgres, load the live scoreboard, start the fan-out.
    Shutdown: stop the fan-out, then release connections.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server(settings.metrics_port)

    redis = RedisManager(settings)
    db = DatabaseManager(settings)

    await _connect_with_retry(redis.connect, "Redis")
    await _connect_with_retry(db.connect, "Database")
    if settings.db_auto_create:
        await db.create_schema()

    scoreboard = ScoreboardManager(SqlScoreboardStore(db, settings), settings)
    snapshot = await scoreboard.start()

    fanout = ScoreboardFanout(redis, settings)
    await fanout.start()
    await fanout.publish(snapshot)

    init_dependencies(redis, db, scoreboard, fanout)

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
    )

    yield

    await fanout.stop()
    await db.disconnect()
    await redis.disconnect()
    reset_dependencies()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without DB/Redis."""
    app = FastAPI(
        title="Courtside API",
        description="Basketball scoreboard, rosters and playoff tournaments",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(scoreboard_router)
    app.include_router(teams_router)
    app.include_router(players_router)
    app.include_router(matches_router)
    app.include_router(tournaments_router)
    app.include_router(history_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> Dict[str, Union[str, bool]]:
        """Readiness probe: checks Redis and Postgres."""
        redis_ok = False
        db_ok = False

        try:
            redis_ok = await get_redis().ping()
        except Exception as exc:
            logger.warning("readiness_redis_failed", error=str(exc))

        try:
            db_ok = await get_db().ping()
        except Exception as exc:
            logger.warning("readiness_database_failed", error=str(exc))

        return {
            "status": "ok" if (redis_ok and db_ok) else "degraded",
            "redis": redis_ok,
            "database": db_ok,
        }

    return app


# For running with uvicorn directly
app = create_app()
