"""
Shared fixtures: a fake wall clock, an in-memory scoreboard store and a started manager.

Run: pytest backend/tests -v
"""
from __future__ import annotations

import os

import pytest

from scoreboard.manager import ScoreboardManager
from shared.config import Settings

from tests.fakes import FakeClock, InMemoryScoreboardStore


@pytest.fixture
def settings() -> Settings:
    return Settings(
        scoreboard_period_seconds=600,
        scoreboard_overtime_seconds=300,
        scoreboard_home_name="Home",
        scoreboard_away_name="Away",
        scoreboard_reset_on_startup=False,
        metrics_enabled=False,
    )


@pytest.fixture
def db_settings() -> Settings:
    """Settings for the Postgres-backed tests (CS_TEST_DATABASE_URL)."""
    return Settings(
        database_url=os.environ["CS_TEST_DATABASE_URL"],
        scoreboard_period_seconds=600,
        scoreboard_overtime_seconds=300,
        metrics_enabled=False,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryScoreboardStore:
    return InMemoryScoreboardStore()


@pytest.fixture
async def manager(
    store: InMemoryScoreboardStore, settings: Settings, fake_clock: FakeClock
) -> ScoreboardManager:
    m = ScoreboardManager(store, settings, wall_clock=fake_clock)
    await m.start()
    return m
