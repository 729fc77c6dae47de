"""
Unit tests for playoff bracket arithmetic.

Run: pytest backend/tests/test_bracket.py -v
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from shared.errors import ConflictError, InvalidArgumentError
from shared.models.enums import RoundType
from tournament import bracket


@dataclass
class Series:
    round: int
    seed_a: int
    team_a_id: int
    team_b_id: int
    wins_a: int = 0
    wins_b: int = 0
    closed: bool = False
    winner_team_id: Optional[int] = None


def _closed(round_: RoundType, seed_a: int, a: int, b: int, winner: int) -> Series:
    return Series(
        round=int(round_), seed_a=seed_a, team_a_id=a, team_b_id=b,
        wins_a=3 if winner == a else 1, wins_b=3 if winner == b else 1,
        closed=True, winner_team_id=winner,
    )


# ── Rounds and pairings ─────────────────────────────────────────────────

@pytest.mark.parametrize("teams,round_", [
    (2, RoundType.FINAL), (4, RoundType.SEMIFINAL),
    (8, RoundType.QUARTERFINAL), (16, RoundType.ROUND_OF_16),
])
def test_round_for_size(teams: int, round_: RoundType) -> None:
    assert bracket.round_for_size(teams) is round_


@pytest.mark.parametrize("teams", [0, 1, 3, 6, 12, 32])
def test_round_for_unsupported_size(teams: int) -> None:
    with pytest.raises(InvalidArgumentError):
        bracket.round_for_size(teams)


def test_initial_pairings_one_versus_n() -> None:
    pairings = bracket.initial_pairings([11, 12, 13, 14, 15, 16, 17, 18])
    assert [(p.seed_a, p.seed_b) for p in pairings] == [(1, 8), (2, 7), (3, 6), (4, 5)]
    assert [(p.team_a_id, p.team_b_id) for p in pairings] == [(11, 18), (12, 17), (13, 16), (14, 15)]
    assert all(p.round is RoundType.QUARTERFINAL for p in pairings)


def test_initial_pairings_rejects_duplicate_seed() -> None:
    with pytest.raises(InvalidArgumentError):
        bracket.initial_pairings([1, 2, 2, 3])


def test_next_round_pairs_winners_by_seed() -> None:
    series = [
        _closed(RoundType.QUARTERFINAL, 4, 14, 15, 15),
        _closed(RoundType.QUARTERFINAL, 1, 11, 18, 11),
        _closed(RoundType.QUARTERFINAL, 3, 13, 16, 13),
        _closed(RoundType.QUARTERFINAL, 2, 12, 17, 17),
    ]
    pairings = bracket.next_round_pairings(series)
    assert pairings is not None
    assert [(p.team_a_id, p.team_b_id) for p in pairings] == [(11, 17), (13, 15)]
    assert all(p.round is RoundType.SEMIFINAL for p in pairings)


def test_next_round_only_looks_at_latest_round() -> None:
    series = [
        _closed(RoundType.SEMIFINAL, 1, 1, 4, 1),
        _closed(RoundType.SEMIFINAL, 2, 2, 3, 3),
        _closed(RoundType.FINAL, 1, 1, 3, 3),
    ]
    assert bracket.next_round_pairings(series) is None


def test_next_round_blocked_by_open_series() -> None:
    series = [
        _closed(RoundType.SEMIFINAL, 1, 1, 4, 1),
        Series(round=int(RoundType.SEMIFINAL), seed_a=2, team_a_id=2, team_b_id=3, wins_a=2),
    ]
    with pytest.raises(ConflictError):
        bracket.next_round_pairings(series)


def test_next_round_without_series() -> None:
    with pytest.raises(InvalidArgumentError):
        bracket.next_round_pairings([])


# ── Series progression ──────────────────────────────────────────────────

@pytest.mark.parametrize("best_of,needed", [(1, 1), (3, 2), (5, 3), (7, 4)])
def test_wins_needed(best_of: int, needed: int) -> None:
    assert bracket.wins_needed(best_of) == needed


@pytest.mark.parametrize("value,expected", [(None, 5), (0, 5), (-3, 5), (7, 7)])
def test_normalize_best_of(value, expected: int) -> None:
    assert bracket.normalize_best_of(value) == expected


def test_best_of_five_closes_at_three_wins() -> None:
    series = Series(round=2, seed_a=1, team_a_id=1, team_b_id=2, wins_a=2, wins_b=2)
    outcome = bracket.apply_game_result(series, 2, 5)
    assert outcome == bracket.SeriesOutcome(wins_a=2, wins_b=3, closed=True, winner_team_id=2)


def test_series_stays_open_below_needed_wins() -> None:
    series = Series(round=2, seed_a=1, team_a_id=1, team_b_id=2, wins_a=1)
    outcome = bracket.apply_game_result(series, 1, 5)
    assert (outcome.wins_a, outcome.closed, outcome.winner_team_id) == (2, False, None)


def test_game_result_for_outside_team() -> None:
    series = Series(round=2, seed_a=1, team_a_id=1, team_b_id=2)
    with pytest.raises(InvalidArgumentError):
        bracket.apply_game_result(series, 9, 5)


def test_series_winner_falls_back_to_wins() -> None:
    series = Series(round=2, seed_a=1, team_a_id=1, team_b_id=2, wins_a=1, wins_b=3, closed=True)
    assert bracket.series_winner(series) == 2


# ── Scheduling ──────────────────────────────────────────────────────────

@pytest.mark.parametrize("game,home_is_a", [(1, True), (2, False), (3, True), (4, False), (5, True)])
def test_home_court_alternates(game: int, home_is_a: bool) -> None:
    assert bracket.next_game_home_is_a(game) is home_is_a


def test_game_start_keeps_timezone() -> None:
    tz = timezone(timedelta(hours=-6))
    day = datetime(2026, 4, 10, 8, 30, tzinfo=tz)
    assert bracket.game_start(day, 1) == datetime(2026, 4, 11, 19, 0, tzinfo=tz)


def test_game_start_from_date() -> None:
    assert bracket.game_start(date(2026, 4, 30), 2, hour=20) == datetime(2026, 5, 2, 20, 0)
