"""
SQLAlchemy 2.0 ORM models for Courtside.
Created by run_migration_001.py (or on API startup with CS_DB_AUTO_CREATE=true).
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class TeamORM(Base):
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    city: Mapped[Optional[str]] = mapped_column(String(100))
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fouls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    players: Mapped[list["PlayerORM"]] = relationship(back_populates="team")


class PlayerORM(Base):
    __tablename__ = "players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="SET NULL"), index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    number: Mapped[Optional[int]] = mapped_column(SmallInteger)
    position: Mapped[Optional[str]] = mapped_column(String(30))
    age: Mapped[Optional[int]] = mapped_column(SmallInteger)
    height: Mapped[Optional[float]] = mapped_column(Float)
    nationality: Mapped[Optional[str]] = mapped_column(String(60))
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fouls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    team: Mapped[Optional["TeamORM"]] = relationship(back_populates="players")


class TournamentORM(Base):
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    season: Mapped[Optional[str]] = mapped_column(String(20))
    best_of: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=5)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="planned")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    series: Mapped[list["PlayoffSeriesORM"]] = relationship(
        back_populates="tournament", order_by="PlayoffSeriesORM.id"
    )


class PlayoffSeriesORM(Base):
    __tablename__ = "playoff_series"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    round: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    seed_a: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    seed_b: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    team_a_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    team_b_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    # 0 means "inherit the tournament's best_of"
    best_of: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    wins_a: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    wins_b: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    winner_team_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("teams.id"))

    tournament: Mapped["TournamentORM"] = relationship(back_populates="series")
    fixtures: Mapped[list["FixtureORM"]] = relationship(
        back_populates="series", order_by="FixtureORM.game_number"
    )


class FixtureORM(Base):
    __tablename__ = "fixtures"
    __table_args__ = (
        CheckConstraint("home_team_id != away_team_id", name="chk_fixture_different_teams"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), index=True
    )
    series_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("playoff_series.id", ondelete="CASCADE"), index=True
    )
    game_number: Mapped[Optional[int]] = mapped_column(SmallInteger)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    home_team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    away_team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    home_score: Mapped[Optional[int]] = mapped_column(Integer)
    away_score: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    series: Mapped[Optional["PlayoffSeriesORM"]] = relationship(back_populates="fixtures")
    home_team: Mapped["TeamORM"] = relationship(foreign_keys=[home_team_id])
    away_team: Mapped["TeamORM"] = relationship(foreign_keys=[away_team_id])
    roster: Mapped[list["FixtureRosterORM"]] = relationship(
        back_populates="fixture", cascade="all, delete-orphan"
    )


class FixtureRosterORM(Base):
    __tablename__ = "fixture_roster"
    __table_args__ = (UniqueConstraint("fixture_id", "player_id", name="uq_roster_fixture_player"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fixture_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("fixtures.id", ondelete="CASCADE"), nullable=False, index=True
    )
    team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    player_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    starter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    fixture: Mapped["FixtureORM"] = relationship(back_populates="roster")
    player: Mapped["PlayerORM"] = relationship()


class ScoreboardORM(Base):
    """Durable mirror of the single live scoreboard."""
    __tablename__ = "scoreboard"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    home_team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    away_team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    current_period: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    in_overtime: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    overtime_number: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    remaining_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=600)
    clock_running: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    period_duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=600)
    overtime_duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=300)
    fixture_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("fixtures.id", ondelete="SET NULL")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class MatchHistoryORM(Base):
    """Append-only snapshot of a closed match."""
    __tablename__ = "match_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    home_team_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="SET NULL")
    )
    away_team_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="SET NULL")
    )
    home_name: Mapped[str] = mapped_column(String(100), nullable=False)
    away_name: Mapped[str] = mapped_column(String(100), nullable=False)
    home_score: Mapped[int] = mapped_column(Integer, nullable=False)
    away_score: Mapped[int] = mapped_column(Integer, nullable=False)
    home_fouls: Mapped[int] = mapped_column(Integer, nullable=False)
    away_fouls: Mapped[int] = mapped_column(Integer, nullable=False)
    period: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    in_overtime: Mapped[bool] = mapped_column(Boolean, nullable=False)
    overtime_number: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    period_duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    fixture_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("fixtures.id", ondelete="SET NULL")
    )
