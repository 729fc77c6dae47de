"""
Dependency injection for the API service.
Provides the database, Redis, the live scoreboard and its fan-out to route handlers.
"""
from __future__ import annotations

from scoreboard.manager import ScoreboardManager
from shared.utils.database import DatabaseManager
from shared.utils.redis_manager import RedisManager

from api.ws.manager import ScoreboardFanout

# Module-level singletons, initialized at startup
_redis: RedisManager | None = None
_db: DatabaseManager | None = None
_scoreboard: ScoreboardManager | None = None
_fanout: ScoreboardFanout | None = None


def init_dependencies(
    redis: RedisManager,
    db: DatabaseManager,
    scoreboard: ScoreboardManager,
    fanout: ScoreboardFanout,
) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _redis, _db, _scoreboard, _fanout
    _redis = redis
    _db = db
    _scoreboard = scoreboard
    _fanout = fanout


def reset_dependencies() -> None:
    global _redis, _db, _scoreboard, _fanout
    _redis = _db = _scoreboard = _fanout = None


def get_redis() -> RedisManager:
    if _redis is None:
        raise RuntimeError("RedisManager not initialized; call init_dependencies first")
    return _redis


def get_db() -> DatabaseManager:
    if _db is None:
        raise RuntimeError("DatabaseManager not initialized; call init_dependencies first")
    return _db


def get_scoreboard() -> ScoreboardManager:
    if _scoreboard is None:
        raise RuntimeError("ScoreboardManager not initialized; call init_dependencies first")
    return _scoreboard


def get_fanout() -> ScoreboardFanout:
    if _fanout is None:
        raise RuntimeError("ScoreboardFanout not initialized; call init_dependencies first")
    return _fanout
