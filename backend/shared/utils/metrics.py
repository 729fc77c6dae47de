"""
Prometheus metrics for the Courtside API.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
SCOREBOARD_OPERATIONS = Counter(
    "cs_scoreboard_operations_total",
    "Scoreboard operations applied to the live state",
    ["operation"],
)
MATCHES_CLOSED = Counter(
    "cs_matches_closed_total",
    "Matches snapshotted into history",
    ["status"],
)
FANOUT_PUBLISHES = Counter(
    "cs_fanout_publishes_total",
    "Scoreboard snapshots pushed to Redis pub/sub",
    ["result"],
)
FIXTURES_FINISHED = Counter(
    "cs_fixtures_finished_total",
    "Fixtures that received a final result",
)

# ── Histograms ──────────────────────────────────────────────────────────
SCOREBOARD_LOCK_WAIT = Histogram(
    "cs_scoreboard_lock_wait_seconds",
    "Time spent waiting for the scoreboard lock",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
WS_CONNECTIONS = Gauge(
    "cs_ws_connections_active",
    "Currently connected scoreboard displays",
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Observe how long the wrapped block took."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if labels:
            histogram.labels(**labels).observe(elapsed)
        else:
            histogram.observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus exporter when metrics are enabled."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
