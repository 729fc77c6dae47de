"""
Tournament and fixture scheduling on top of ``tournament.bracket``.

Every function works inside the caller's session and never commits; the caller
owns the transaction (``DatabaseManager.write_session``).
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shared.config import Settings, get_settings
from shared.errors import InvalidArgumentError, NotFoundError
from shared.models.enums import FixtureStatus, TournamentStatus
from shared.models.orm import FixtureORM, PlayoffSeriesORM, TeamORM, TournamentORM
from shared.utils.logging import get_logger
from shared.utils.metrics import FIXTURES_FINISHED
from tournament import bracket

logger = get_logger(__name__)

DEMO_TEAM_COUNT = 4


def _local_now() -> datetime:
    return datetime.now().astimezone()


async def get_tournament(session: AsyncSession, tournament_id: int) -> TournamentORM:
    stmt = (
        select(TournamentORM)
        .options(selectinload(TournamentORM.series))
        .where(TournamentORM.id == tournament_id)
    )
    tournament = (await session.execute(stmt)).scalar_one_or_none()
    if tournament is None:
        raise NotFoundError("tournament", tournament_id)
    return tournament


async def list_series(session: AsyncSession, tournament_id: int) -> list[PlayoffSeriesORM]:
    await get_tournament(session, tournament_id)
    stmt = (
        select(PlayoffSeriesORM)
        .where(PlayoffSeriesORM.tournament_id == tournament_id)
        .order_by(PlayoffSeriesORM.round, PlayoffSeriesORM.seed_a)
    )
    return list((await session.execute(stmt)).scalars().all())


async def _schedule_first_games(
    session: AsyncSession,
    tournament: TournamentORM,
    pairings: Sequence[bracket.Pairing],
    *,
    first_day_offset: int,
    now: datetime,
    settings: Settings,
) -> list[PlayoffSeriesORM]:
    """One series per pairing plus its game 1, one day apart per series."""
    created: list[PlayoffSeriesORM] = []
    for pairing in pairings:
        series = PlayoffSeriesORM(
            tournament_id=tournament.id,
            round=int(pairing.round),
            seed_a=pairing.seed_a,
            seed_b=pairing.seed_b,
            team_a_id=pairing.team_a_id,
            team_b_id=pairing.team_b_id,
            best_of=0,
        )
        session.add(series)
        created.append(series)
    await session.flush()

    for offset, series in enumerate(created):
        session.add(
            FixtureORM(
                tournament_id=tournament.id,
                series_id=series.id,
                game_number=1,
                start_time=bracket.game_start(
                    now, first_day_offset + offset, settings.fixture_start_hour
                ),
                status=FixtureStatus.SCHEDULED.value,
                home_team_id=series.team_a_id,
                away_team_id=series.team_b_id,
            )
        )
    await session.flush()
    return created


async def create_tournament(
    session: AsyncSession,
    *,
    name: str,
    seed_team_ids: Sequence[int],
    season: Optional[str] = None,
    best_of: Optional[int] = None,
    settings: Settings | None = None,
    now: Optional[datetime] = None,
) -> TournamentORM:
    """Create a tournament, its first round and game 1 of every series (from tomorrow)."""
    settings = settings or get_settings()
    now = now or _local_now()
    pairings = bracket.initial_pairings(list(seed_team_ids))

    found = set(
        (await session.execute(select(TeamORM.id).where(TeamORM.id.in_(seed_team_ids)))).scalars()
    )
    missing = [tid for tid in seed_team_ids if tid not in found]
    if missing:
        raise NotFoundError("team", missing[0])

    tournament = TournamentORM(
        name=name.strip(),
        season=season,
        best_of=bracket.normalize_best_of(best_of, settings.tournament_default_best_of),
        status=TournamentStatus.ACTIVE.value,
    )
    session.add(tournament)
    await session.flush()

    series = await _schedule_first_games(
        session, tournament, pairings, first_day_offset=1, now=now, settings=settings
    )
    logger.info(
        "tournament_created",
        tournament_id=tournament.id,
        teams=len(seed_team_ids),
        round=pairings[0].round.label,
        series=len(series),
        best_of=tournament.best_of,
    )
    return tournament


async def advance_tournament(
    session: AsyncSession,
    tournament_id: int,
    *,
    settings: Settings | None = None,
    now: Optional[datetime] = None,
) -> tuple[TournamentORM, list[PlayoffSeriesORM]]:
    """Open the next round, or mark the tournament finished after the final.

    Returns the tournament and the series that were created (empty when finished).
    """
    settings = settings or get_settings()
    now = now or _local_now()
    tournament = await get_tournament(session, tournament_id)

    pairings = bracket.next_round_pairings(tournament.series)
    if pairings is None:
        tournament.status = TournamentStatus.FINISHED.value
        logger.info("tournament_finished", tournament_id=tournament.id)
        return tournament, []

    series = await _schedule_first_games(
        session, tournament, pairings, first_day_offset=2, now=now, settings=settings
    )
    logger.info(
        "tournament_round_created",
        tournament_id=tournament.id,
        round=pairings[0].round.label,
        series=len(series),
    )
    return tournament, series


async def record_fixture_result(
    session: AsyncSession,
    fixture: FixtureORM,
    home_score: int,
    away_score: int,
    *,
    settings: Settings | None = None,
) -> Optional[FixtureORM]:
    """Store a final score and move the fixture's series along.

    Returns the next game of the series when one was scheduled. A tied score,
    or a fixture that already had a score, is stored without touching the series.
    The fixture status alone does not count as a recorded result.
    """
    settings = settings or get_settings()
    if home_score < 0 or away_score < 0:
        raise InvalidArgumentError("Scores cannot be negative")

    already_scored = fixture.home_score is not None and fixture.away_score is not None
    if fixture.status != FixtureStatus.FINISHED.value:
        FIXTURES_FINISHED.inc()
    fixture.home_score = home_score
    fixture.away_score = away_score
    fixture.status = FixtureStatus.FINISHED.value
    logger.info(
        "fixture_result_recorded",
        fixture_id=fixture.id,
        home_score=home_score,
        away_score=away_score,
    )

    if fixture.series_id is None or already_scored:
        return None
    if home_score == away_score:
        logger.warning("fixture_tied_in_series", fixture_id=fixture.id, series_id=fixture.series_id)
        return None

    series = await session.get(PlayoffSeriesORM, fixture.series_id)
    if series is None or series.closed:
        return None

    best_of = series.best_of
    if best_of <= 0:
        tournament = await session.get(TournamentORM, series.tournament_id)
        best_of = bracket.normalize_best_of(
            tournament.best_of if tournament else None, settings.tournament_default_best_of
        )

    winner = fixture.home_team_id if home_score > away_score else fixture.away_team_id
    outcome = bracket.apply_game_result(series, winner, best_of)
    series.wins_a = outcome.wins_a
    series.wins_b = outcome.wins_b
    series.closed = outcome.closed
    series.winner_team_id = outcome.winner_team_id
    if outcome.closed:
        logger.info(
            "series_closed",
            series_id=series.id,
            winner_team_id=outcome.winner_team_id,
            wins_a=outcome.wins_a,
            wins_b=outcome.wins_b,
        )
        return None

    played = (
        await session.execute(
            select(func.count()).select_from(FixtureORM).where(FixtureORM.series_id == series.id)
        )
    ).scalar_one()
    game_number = played + 1
    home_is_a = bracket.next_game_home_is_a(game_number)
    next_game = FixtureORM(
        tournament_id=series.tournament_id,
        series_id=series.id,
        game_number=game_number,
        start_time=bracket.game_start(fixture.start_time, 1, settings.fixture_start_hour),
        status=FixtureStatus.SCHEDULED.value,
        home_team_id=series.team_a_id if home_is_a else series.team_b_id,
        away_team_id=series.team_b_id if home_is_a else series.team_a_id,
    )
    session.add(next_game)
    await session.flush()
    logger.info(
        "series_game_scheduled",
        series_id=series.id,
        game_number=game_number,
        start_time=next_game.start_time.isoformat(),
    )
    return next_game


async def promote_started_fixtures(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """Scheduled fixtures that have started and have no score become in progress."""
    now = now or _local_now()
    result = await session.execute(
        update(FixtureORM)
        .where(
            FixtureORM.status == FixtureStatus.SCHEDULED.value,
            FixtureORM.start_time <= now,
            FixtureORM.home_score.is_(None),
            FixtureORM.away_score.is_(None),
        )
        .values(status=FixtureStatus.IN_PROGRESS.value)
        .execution_options(synchronize_session=False)
    )
    promoted = result.rowcount or 0
    if promoted:
        logger.info("fixtures_promoted", count=promoted)
    return promoted


async def seed_demo(
    session: AsyncSession,
    *,
    settings: Settings | None = None,
    now: Optional[datetime] = None,
) -> TournamentORM:
    """A demo tournament over the first four teams with one past, one live and one upcoming game."""
    settings = settings or get_settings()
    now = now or _local_now()
    team_ids = list(
        (
            await session.execute(select(TeamORM.id).order_by(TeamORM.id).limit(DEMO_TEAM_COUNT))
        ).scalars()
    )
    if len(team_ids) < DEMO_TEAM_COUNT:
        raise InvalidArgumentError(
            f"The demo tournament needs at least {DEMO_TEAM_COUNT} teams", teams=len(team_ids)
        )

    tournament = await create_tournament(
        session,
        name="Playoffs (Demo)",
        season=str(now.year),
        best_of=5,
        seed_team_ids=team_ids,
        settings=settings,
        now=now,
    )
    fixtures = list(
        (
            await session.execute(
                select(FixtureORM)
                .where(FixtureORM.tournament_id == tournament.id)
                .order_by(FixtureORM.id)
            )
        ).scalars()
    )
    past, live = fixtures[0], fixtures[1]
    past.start_time = bracket.game_start(now, -2, settings.fixture_start_hour)
    upcoming = await record_fixture_result(session, past, 82, 76, settings=settings)
    if upcoming is not None:
        upcoming.start_time = bracket.game_start(now, 1, settings.fixture_start_hour)
    live.start_time = now
    live.status = FixtureStatus.IN_PROGRESS.value
    await session.flush()
    logger.info("tournament_demo_seeded", tournament_id=tournament.id)
    return tournament
