"""
Redis connection manager for Courtside.
Caches the latest scoreboard snapshot and carries it to display clients over pub/sub.
"""
from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.asyncio.client import PubSub

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
SNAP_SCOREBOARD_KEY = "snap:scoreboard"
FANOUT_CHANNEL = "fanout:scoreboard"


class RedisManager:
    """Manages the async Redis connection pool."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_str)

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    # ── Scoreboard snapshot ─────────────────────────────────────────────
    async def get_scoreboard_snapshot(self) -> Optional[str]:
        return await self.client.get(SNAP_SCOREBOARD_KEY)

    # ── Pub/Sub ─────────────────────────────────────────────────────────
    async def publish_scoreboard(self, payload: str) -> int:
        """Cache and publish a snapshot. Returns the number of receivers."""
        pipe = self.client.pipeline(transaction=True)
        pipe.set(SNAP_SCOREBOARD_KEY, payload, ex=self._settings.redis_snapshot_ttl_s)
        pipe.publish(FANOUT_CHANNEL, payload)
        results = await pipe.execute()
        return int(results[1])

    async def subscribe_scoreboard(self) -> PubSub:
        pubsub = self.client.pubsub()
        await pubsub.subscribe(FANOUT_CHANNEL)
        return pubsub
