"""
Pydantic v2 wire models for Courtside.
These are the canonical API representations, NOT ORM models.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.models.enums import (
    ClockStatus,
    CloseStatus,
    FixtureStatus,
    RoundType,
    TournamentStatus,
)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FrozenModel(DomainModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ── Scoreboard ──────────────────────────────────────────────────────────
class TeamScore(FrozenModel):
    id: Optional[int] = None
    name: str
    score: int = 0
    fouls: int = 0


class ScoreboardSnapshot(FrozenModel):
    """Everything a scoreboard display needs, computed at one instant."""
    period: int
    in_overtime: bool
    overtime_number: int
    home: TeamScore
    away: TeamScore
    remaining_seconds: int
    clock: str
    clock_running: bool
    clock_status: ClockStatus
    period_duration_seconds: int
    overtime_duration_seconds: int
    fixture_id: Optional[int] = None


class ClockSnapshot(FrozenModel):
    status: ClockStatus
    period: int
    remaining_seconds: int
    duration_seconds: int


class RenameTeamsIn(DomainModel):
    home: Optional[str] = Field(default=None, max_length=100)
    away: Optional[str] = Field(default=None, max_length=100)

    @field_validator("home", "away")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class CloseMatchIn(DomainModel):
    status: CloseStatus = CloseStatus.FINISHED
    reason: Optional[str] = Field(default=None, max_length=500)


class MatchHistoryOut(DomainModel):
    id: int
    recorded_at: datetime
    home_team_id: Optional[int] = None
    away_team_id: Optional[int] = None
    home_name: str
    away_name: str
    home_score: int
    away_score: int
    home_fouls: int
    away_fouls: int
    period: int
    in_overtime: bool
    overtime_number: int
    period_duration_seconds: int
    remaining_seconds: int
    status: CloseStatus
    reason: Optional[str] = None
    fixture_id: Optional[int] = None


# ── Teams / players ─────────────────────────────────────────────────────
class TeamCreate(DomainModel):
    name: str = Field(min_length=1, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("city")
    @classmethod
    def strip_city(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class TeamUpdate(DomainModel):
    name: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name", "city")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class TeamOut(DomainModel):
    id: int
    name: str
    city: Optional[str] = None
    score: int = 0
    fouls: int = 0


class PlayerCreate(DomainModel):
    name: str = Field(min_length=1, max_length=100)
    team_id: Optional[int] = None
    number: Optional[int] = Field(default=None, ge=0, le=99)
    position: Optional[str] = Field(default=None, max_length=30)
    age: Optional[int] = Field(default=None, ge=0, le=120)
    height: Optional[float] = Field(default=None, gt=0)
    nationality: Optional[str] = Field(default=None, max_length=60)


class PlayerUpdate(DomainModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    team_id: Optional[int] = None
    number: Optional[int] = Field(default=None, ge=0, le=99)
    position: Optional[str] = Field(default=None, max_length=30)
    age: Optional[int] = Field(default=None, ge=0, le=120)
    height: Optional[float] = Field(default=None, gt=0)
    nationality: Optional[str] = Field(default=None, max_length=60)
    points: Optional[int] = Field(default=None, ge=0)
    fouls: Optional[int] = Field(default=None, ge=0)


class PlayerOut(DomainModel):
    id: int
    name: str
    team_id: Optional[int] = None
    number: Optional[int] = None
    position: Optional[str] = None
    age: Optional[int] = None
    height: Optional[float] = None
    nationality: Optional[str] = None
    points: int = 0
    fouls: int = 0


# ── Fixtures ────────────────────────────────────────────────────────────
class TeamRef(DomainModel):
    id: int
    name: str


class FixtureCreate(DomainModel):
    home_team_id: int
    away_team_id: int
    start_time: datetime


class FixtureStatusUpdate(DomainModel):
    status: FixtureStatus


class FixtureResultIn(DomainModel):
    home_score: int = Field(ge=0)
    away_score: int = Field(ge=0)


class FixtureOut(DomainModel):
    id: int
    tournament_id: Optional[int] = None
    series_id: Optional[int] = None
    game_number: Optional[int] = None
    start_time: datetime
    status: FixtureStatus
    home_team: TeamRef
    away_team: TeamRef
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    round: Optional[RoundType] = None


class RosterEntryIn(DomainModel):
    player_id: int
    starter: bool = False


class RosterIn(DomainModel):
    team_id: int
    players: list[RosterEntryIn] = Field(default_factory=list)


class RosterEntryOut(DomainModel):
    player_id: int
    team_id: int
    name: str
    number: Optional[int] = None
    position: Optional[str] = None
    starter: bool


# ── Tournaments ─────────────────────────────────────────────────────────
class TournamentCreate(DomainModel):
    name: str = Field(min_length=1, max_length=120)
    season: Optional[str] = Field(default=None, max_length=20)
    best_of: int = 5
    team_ids: list[int] = Field(min_length=2)


class SeriesOut(DomainModel):
    id: int
    tournament_id: int
    round: RoundType
    seed_a: int
    seed_b: int
    team_a_id: int
    team_b_id: int
    best_of: int
    wins_a: int
    wins_b: int
    closed: bool
    winner_team_id: Optional[int] = None


class TournamentOut(DomainModel):
    id: int
    name: str
    season: Optional[str] = None
    best_of: int
    status: TournamentStatus
