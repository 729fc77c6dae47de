"""
Playoff bracket arithmetic. No I/O; ``tournament.service`` applies the results.

Rounds are named by how many teams start them (16 -> 8 -> 4 -> 2). Seeds pair
1 v n, 2 v n-1, ...; in later rounds the winners, ordered by the seed of the
series they came from, pair 1-2, 3-4, ...
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Protocol, Sequence

from shared.errors import ConflictError, InvalidArgumentError
from shared.models.enums import RoundType

DEFAULT_BEST_OF = 5
GAME_START_HOUR = 19


class SeriesLike(Protocol):
    round: int
    seed_a: int
    team_a_id: int
    team_b_id: int
    wins_a: int
    wins_b: int
    closed: bool
    winner_team_id: Optional[int]


@dataclass(frozen=True)
class Pairing:
    round: RoundType
    seed_a: int
    seed_b: int
    team_a_id: int
    team_b_id: int


@dataclass(frozen=True)
class SeriesOutcome:
    wins_a: int
    wins_b: int
    closed: bool
    winner_team_id: Optional[int]


def round_for_size(teams: int) -> RoundType:
    try:
        return RoundType(teams)
    except ValueError:
        raise InvalidArgumentError(
            f"A bracket needs 2, 4, 8 or 16 teams, got {teams}", teams=teams
        ) from None


def normalize_best_of(best_of: int | None, default: int = DEFAULT_BEST_OF) -> int:
    if best_of is None or best_of <= 0:
        return default
    return best_of


def wins_needed(best_of: int) -> int:
    return best_of // 2 + 1


def initial_pairings(seed_team_ids: Sequence[int]) -> list[Pairing]:
    """Seed i meets seed n+1-i. ``seed_team_ids`` is in seed order."""
    n = len(seed_team_ids)
    rnd = round_for_size(n)
    if len(set(seed_team_ids)) != n:
        raise InvalidArgumentError("A team can only be seeded once", teams=list(seed_team_ids))
    return [
        Pairing(
            round=rnd,
            seed_a=i + 1,
            seed_b=n - i,
            team_a_id=seed_team_ids[i],
            team_b_id=seed_team_ids[n - 1 - i],
        )
        for i in range(n // 2)
    ]


def series_winner(series: SeriesLike) -> int:
    if series.winner_team_id is not None:
        return series.winner_team_id
    return series.team_a_id if series.wins_a > series.wins_b else series.team_b_id


def next_round_pairings(series: Sequence[SeriesLike]) -> Optional[list[Pairing]]:
    """Pairings for the round after the latest one, or None once the final is decided.

    Raises ConflictError while any series is still open.
    """
    if not series:
        raise InvalidArgumentError("Tournament has no series")
    if any(not s.closed for s in series):
        raise ConflictError("There are still open series")

    latest = min(s.round for s in series)
    if latest == RoundType.FINAL:
        return None

    winners = [series_winner(s) for s in sorted(
        (s for s in series if s.round == latest), key=lambda s: s.seed_a
    )]
    rnd = RoundType(latest // 2)
    return [
        Pairing(
            round=rnd,
            seed_a=i + 1,
            seed_b=i + 2,
            team_a_id=winners[i],
            team_b_id=winners[i + 1],
        )
        for i in range(0, len(winners) - 1, 2)
    ]


def apply_game_result(
    series: SeriesLike, winner_team_id: int, best_of: int
) -> SeriesOutcome:
    """Count one game won by ``winner_team_id`` towards ``series``."""
    if winner_team_id not in (series.team_a_id, series.team_b_id):
        raise InvalidArgumentError(
            "Winner does not play in this series", team_id=winner_team_id
        )
    wins_a = series.wins_a + (1 if winner_team_id == series.team_a_id else 0)
    wins_b = series.wins_b + (1 if winner_team_id == series.team_b_id else 0)
    needed = wins_needed(best_of)
    if wins_a >= needed or wins_b >= needed:
        winner = series.team_a_id if wins_a > wins_b else series.team_b_id
        return SeriesOutcome(wins_a=wins_a, wins_b=wins_b, closed=True, winner_team_id=winner)
    return SeriesOutcome(wins_a=wins_a, wins_b=wins_b, closed=False, winner_team_id=None)


def next_game_home_is_a(game_number: int) -> bool:
    """Team A hosts the odd-numbered games of a series."""
    return game_number % 2 == 1


def game_start(day: date | datetime, offset_days: int = 0, hour: int = GAME_START_HOUR) -> datetime:
    """``hour``:00 on ``day + offset_days``, keeping ``day``'s timezone if it has one."""
    tzinfo = day.tzinfo if isinstance(day, datetime) else None
    base = day.date() if isinstance(day, datetime) else day
    return datetime.combine(base + timedelta(days=offset_days), time(hour, 0), tzinfo=tzinfo)
