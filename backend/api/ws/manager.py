"""
Live scoreboard fan-out.

Routes that change the scoreboard hand the returned snapshot to ``ScoreboardFanout.publish``,
which caches it in Redis and publishes it on ``fanout:scoreboard``. Every API instance
bridges that channel to its own WebSocket clients, so displays see each change once,
whichever instance applied it.

Connected clients:
- get the current snapshot right after connecting,
- get every published snapshot,
- may send {"op": "ping"} and get a pong,
- are pinged by the server and dropped when they stop answering.
"""
from __future__ import annotations

import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from scoreboard.manager import ScoreboardManager
from shared.config import Settings, get_settings
from shared.models.domain import ScoreboardSnapshot
from shared.models.enums import WSServerMsgType
from shared.utils.logging import get_logger
from shared.utils.metrics import FANOUT_PUBLISHES, WS_CONNECTIONS
from shared.utils.redis_manager import RedisManager

logger = get_logger(__name__)


@dataclass
class WSConnection:
    ws: WebSocket
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: float = field(default_factory=time.monotonic)
    last_seen_at: float = field(default_factory=time.monotonic)
    remote_addr: str = ""

    @property
    def alive_seconds(self) -> float:
        return time.monotonic() - self.created_at


def snapshot_payload(snapshot: ScoreboardSnapshot) -> str:
    return snapshot.model_dump_json()


class ScoreboardFanout:
    """Pushes scoreboard snapshots to every connected display."""

    def __init__(self, redis: RedisManager, settings: Settings | None = None) -> None:
        self._redis = redis
        self._settings = settings or get_settings()
        self._connections: dict[str, WSConnection] = {}
        self._pubsub_task: Optional[asyncio.Task[None]] = None
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._shutdown = asyncio.Event()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def start(self) -> None:
        self._shutdown.clear()
        self._pubsub_task = asyncio.create_task(self._run_pubsub_bridge())
        self._heartbeat_task = asyncio.create_task(self._run_heartbeat())
        logger.info("fanout_started")

    async def stop(self) -> None:
        self._shutdown.set()
        for task in (self._pubsub_task, self._heartbeat_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        for conn in list(self._connections.values()):
            await self._close_connection(conn, code=1001, reason="server_shutdown")
        logger.info("fanout_stopped")

    # ── Publishing ──────────────────────────────────────────────────────
    async def publish(self, snapshot: ScoreboardSnapshot) -> None:
        """Best effort: a Redis failure is logged and counted, never raised."""
        try:
            receivers = await self._redis.publish_scoreboard(snapshot_payload(snapshot))
        except Exception as exc:
            FANOUT_PUBLISHES.labels(result="error").inc()
            logger.warning("fanout_publish_failed", error=str(exc))
            return
        FANOUT_PUBLISHES.labels(result="ok").inc()
        logger.debug("fanout_published", receivers=receivers)

    # ── Connections ─────────────────────────────────────────────────────
    async def handle_connection(self, ws: WebSocket, scoreboard: ScoreboardManager) -> None:
        await ws.accept()
        conn = WSConnection(
            ws=ws,
            remote_addr=f"{ws.client.host}:{ws.client.port}" if ws.client else "unknown",
        )
        self._connections[conn.connection_id] = conn
        WS_CONNECTIONS.inc()
        logger.info("ws_connected", connection_id=conn.connection_id, remote_addr=conn.remote_addr)

        try:
            snapshot = await scoreboard.snapshot()
            await self._send(conn, {
                "type": WSServerMsgType.SNAPSHOT.value,
                "connection_id": conn.connection_id,
                "heartbeat_interval": self._settings.ws_heartbeat_interval_s,
                "data": snapshot.model_dump(mode="json"),
                "replay": True,
            })
            while not self._shutdown.is_set():
                raw = await ws.receive_text()
                conn.last_seen_at = time.monotonic()
                await self._handle_message(conn, raw)
        except WebSocketDisconnect:
            pass
        except Exception as exc:
            logger.warning("ws_connection_error", connection_id=conn.connection_id, error=str(exc))
        finally:
            self._forget(conn)

    async def _handle_message(self, conn: WSConnection, raw: str) -> None:
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await self._send_error(conn, "invalid_json", "Message must be valid JSON")
            return
        op = msg.get("op") if isinstance(msg, dict) else None
        if op == "ping":
            await self._send(conn, {"type": WSServerMsgType.PONG.value, "timestamp": time.time()})
        elif op == "pong":
            return
        else:
            await self._send_error(conn, "unknown_op", f"Unknown operation: {op}")

    # ── Background tasks ────────────────────────────────────────────────
    async def _run_pubsub_bridge(self) -> None:
        pubsub = await self._redis.subscribe_scoreboard()
        logger.info("fanout_pubsub_bridge_started")
        try:
            while not self._shutdown.is_set():
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message and message["type"] == "message":
                    await self.broadcast(message["data"])
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe()
            await pubsub.aclose()

    async def broadcast(self, data: str) -> int:
        """Relay one published snapshot to every local connection. Returns the number sent."""
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("fanout_invalid_payload")
            return 0
        message = {
            "type": WSServerMsgType.SNAPSHOT.value,
            "data": payload,
            "timestamp": time.time(),
        }
        conns = list(self._connections.values())
        if conns:
            await asyncio.gather(*(self._send(c, message) for c in conns), return_exceptions=True)
        return len(conns)

    async def _run_heartbeat(self) -> None:
        interval = self._settings.ws_heartbeat_interval_s
        timeout = self._settings.ws_heartbeat_timeout_s
        while not self._shutdown.is_set():
            try:
                await asyncio.sleep(interval)
                now = time.monotonic()
                for conn in list(self._connections.values()):
                    if now - conn.last_seen_at > interval + timeout:
                        logger.info(
                            "ws_heartbeat_timeout",
                            connection_id=conn.connection_id,
                            alive_seconds=round(conn.alive_seconds, 1),
                        )
                        await self._close_connection(conn, code=1000, reason="heartbeat_timeout")
                    else:
                        await self._send(conn, {"type": "ping", "timestamp": time.time()})
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("ws_heartbeat_error", error=str(exc))

    # ── Helpers ─────────────────────────────────────────────────────────
    async def _send(self, conn: WSConnection, message: dict[str, Any]) -> None:
        try:
            if conn.ws.client_state == WebSocketState.CONNECTED:
                await conn.ws.send_text(json.dumps(message, default=str))
        except Exception as exc:
            logger.debug("ws_send_error", connection_id=conn.connection_id, error=str(exc))

    async def _send_error(self, conn: WSConnection, code: str, message: str) -> None:
        await self._send(conn, {
            "type": WSServerMsgType.ERROR.value,
            "error": {"code": code, "message": message},
        })

    async def _close_connection(self, conn: WSConnection, code: int = 1000, reason: str = "") -> None:
        try:
            if conn.ws.client_state == WebSocketState.CONNECTED:
                await conn.ws.close(code=code, reason=reason)
        except Exception as exc:
            logger.debug("ws_close_error", connection_id=conn.connection_id, error=str(exc))
        self._forget(conn)

    def _forget(self, conn: WSConnection) -> None:
        if self._connections.pop(conn.connection_id, None) is None:
            return
        WS_CONNECTIONS.dec()
        logger.info(
            "ws_disconnected",
            connection_id=conn.connection_id,
            alive_seconds=round(conn.alive_seconds, 1),
        )
