"""
Unit tests for the live scoreboard manager, on the in-memory store and a fake clock.

Run: pytest backend/tests/test_scoreboard_manager.py -v
"""
from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from scoreboard.manager import TIME_EXPIRED_REASON, ScoreboardManager, resolve_close_status
from scoreboard.state import ScoreboardState, TeamSlot
from shared.config import Settings
from shared.errors import ConflictError, InvalidArgumentError, InvalidSideError, NotFoundError
from shared.models.enums import ClockStatus, CloseStatus, Side

from tests.fakes import FakeClock, InMemoryScoreboardStore, StoreDown


async def _advance_to_period(manager: ScoreboardManager, period: int) -> None:
    for _ in range(period - 1):
        await manager.advance_period()


# ── Startup ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_start_creates_default_scoreboard(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    snap = await manager.snapshot()
    assert snap.period == 1
    assert snap.remaining_seconds == 600
    assert snap.clock == "10:00"
    assert snap.clock_status is ClockStatus.STOPPED
    assert (snap.home.name, snap.away.name) == ("Home", "Away")
    assert snap.home.id is not None and snap.away.id is not None
    assert store.saves == 1


@pytest.mark.asyncio
async def test_start_sanitizes_persisted_state(settings: Settings, fake_clock: FakeClock) -> None:
    persisted = ScoreboardState(
        home=TeamSlot(id=1, name="Lions", score=-4, fouls=2),
        away=TeamSlot(id=2, name="Tigers", score=10),
        current_period=0,
        remaining_seconds=-5,
        clock_running=True,
        clock_started_at=12.0,
        id=1,
    )
    store = InMemoryScoreboardStore(persisted)
    manager = ScoreboardManager(store, settings, wall_clock=fake_clock)

    snap = await manager.start()

    assert snap.home.score == 0
    assert snap.away.score == 10
    assert snap.period == 1
    assert snap.remaining_seconds == 0
    assert snap.clock_running is False
    assert store.state.clock_running is False


@pytest.mark.asyncio
async def test_start_resets_when_configured(fake_clock: FakeClock) -> None:
    persisted = ScoreboardState(
        home=TeamSlot(id=1, name="Lions", score=40, fouls=3),
        away=TeamSlot(id=2, name="Tigers", score=38),
        current_period=3,
        id=1,
    )
    store = InMemoryScoreboardStore(persisted)
    settings = Settings(scoreboard_reset_on_startup=True, metrics_enabled=False)

    snap = await ScoreboardManager(store, settings, wall_clock=fake_clock).start()

    assert (snap.home.score, snap.away.score, snap.period) == (0, 0, 1)
    assert snap.home.name == "Lions"


@pytest.mark.asyncio
async def test_operations_require_start(store: InMemoryScoreboardStore, settings: Settings) -> None:
    with pytest.raises(RuntimeError):
        await ScoreboardManager(store, settings).snapshot()


# ── Points and fouls ────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, 1, 2, 3, 17])
async def test_add_points_adds_to_one_side(manager: ScoreboardManager, amount: int) -> None:
    await manager.add_points("away", 4)
    snap = await manager.add_points("home", amount)
    assert snap.home.score == amount
    assert snap.away.score == 4
    assert (await manager.snapshot()).home.score == amount


@pytest.mark.asyncio
async def test_add_negative_points_changes_nothing(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    await manager.add_points("home", 5)
    saves = store.saves
    snap = await manager.add_points("home", -3)
    assert snap.home.score == 5
    assert store.saves == saves


@pytest.mark.asyncio
@pytest.mark.parametrize("start,amount,expected", [(5, 3, 2), (5, 5, 0), (2, 9, 0), (4, -1, 4)])
async def test_subtract_points_never_negative(
    manager: ScoreboardManager, start: int, amount: int, expected: int
) -> None:
    await manager.add_points("away", start)
    snap = await manager.subtract_points("away", amount)
    assert snap.away.score == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("token,side", [
    ("HOME", Side.HOME), (" away ", Side.AWAY), ("local", Side.HOME), ("Visitante", Side.AWAY),
])
async def test_side_tokens_are_case_insensitive(
    manager: ScoreboardManager, token: str, side: Side
) -> None:
    snap = await manager.add_points(token, 2)
    team = snap.home if side is Side.HOME else snap.away
    assert team.score == 2


@pytest.mark.asyncio
async def test_invalid_side_is_rejected_without_mutation(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    await manager.add_points("home", 2)
    saves = store.saves
    for op in (
        lambda: manager.add_points("middle", 2),
        lambda: manager.subtract_points("", 1),
        lambda: manager.register_foul("referee"),
    ):
        with pytest.raises(InvalidSideError) as exc_info:
            await op()
        assert isinstance(exc_info.value, InvalidArgumentError)
    snap = await manager.snapshot()
    assert (snap.home.score, snap.home.fouls, snap.away.fouls) == (2, 0, 0)
    assert store.saves == saves


@pytest.mark.asyncio
async def test_register_foul_increments_one_side(manager: ScoreboardManager) -> None:
    await manager.register_foul("home")
    snap = await manager.register_foul("home")
    assert snap.home.fouls == 2
    assert snap.away.fouls == 0


# ── Clock ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("k", [0, 1, 10, 599, 600, 900])
async def test_running_clock_counts_down(
    manager: ScoreboardManager, fake_clock: FakeClock, k: int
) -> None:
    await manager.start_clock()
    fake_clock.advance(k)
    snap = await manager.snapshot()
    assert snap.remaining_seconds == max(0, 600 - k)


@pytest.mark.asyncio
async def test_start_clock_is_noop_when_running(
    manager: ScoreboardManager, fake_clock: FakeClock
) -> None:
    await manager.start_clock()
    fake_clock.advance(5)
    await manager.start_clock()
    fake_clock.advance(5)
    snap = await manager.snapshot()
    assert snap.remaining_seconds == 590
    assert snap.clock_status is ClockStatus.RUNNING


@pytest.mark.asyncio
async def test_pause_freezes_remaining(manager: ScoreboardManager, fake_clock: FakeClock) -> None:
    await manager.start_clock()
    fake_clock.advance(10.7)
    paused = await manager.pause_clock()
    fake_clock.advance(120)
    snap = await manager.snapshot()
    assert paused.remaining_seconds == 590
    assert snap.remaining_seconds == 590
    assert snap.clock_running is False
    assert snap.clock_status is ClockStatus.PAUSED
    assert snap.clock == "09:50"


@pytest.mark.asyncio
async def test_resume_continues_from_paused_time(
    manager: ScoreboardManager, fake_clock: FakeClock
) -> None:
    await manager.start_clock()
    fake_clock.advance(20)
    await manager.pause_clock()
    fake_clock.advance(300)
    await manager.resume_clock()
    fake_clock.advance(30)
    assert (await manager.snapshot()).remaining_seconds == 550


@pytest.mark.asyncio
async def test_pause_is_noop_when_stopped(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    saves = store.saves
    snap = await manager.pause_clock()
    assert snap.remaining_seconds == 600
    assert store.saves == saves


@pytest.mark.asyncio
async def test_set_remaining_while_running_restarts_elapsed(
    manager: ScoreboardManager, fake_clock: FakeClock
) -> None:
    await manager.start_clock()
    fake_clock.advance(30)
    snap = await manager.set_remaining(120)
    assert snap.remaining_seconds == 120
    fake_clock.advance(20)
    assert (await manager.snapshot()).remaining_seconds == 100


@pytest.mark.asyncio
async def test_set_remaining_clamps_negative(manager: ScoreboardManager) -> None:
    snap = await manager.set_remaining(-30)
    assert snap.remaining_seconds == 0
    assert snap.clock == "00:00"


@pytest.mark.asyncio
async def test_snapshot_settles_expired_clock(
    manager: ScoreboardManager, store: InMemoryScoreboardStore, fake_clock: FakeClock
) -> None:
    await manager.start_clock()
    fake_clock.advance(700)
    snap = await manager.snapshot()
    assert snap.remaining_seconds == 0
    assert snap.clock_running is False
    assert store.state.clock_running is False
    assert store.state.remaining_seconds == 0


@pytest.mark.asyncio
async def test_mutation_after_expiry_sees_stopped_clock(
    manager: ScoreboardManager, fake_clock: FakeClock
) -> None:
    await manager.start_clock()
    fake_clock.advance(650)
    snap = await manager.add_points("home", 2)
    assert snap.clock_running is False
    assert snap.remaining_seconds == 0
    assert snap.home.score == 2


@pytest.mark.asyncio
async def test_reset_clock_sets_new_duration(manager: ScoreboardManager, fake_clock: FakeClock) -> None:
    await _advance_to_period(manager, 4)
    await manager.advance_period()
    await manager.start_clock()
    fake_clock.advance(12)
    snap = await manager.reset_clock(300)
    assert snap.period_duration_seconds == 300
    assert snap.remaining_seconds == 300
    assert snap.clock_running is False
    assert snap.in_overtime is False
    assert snap.overtime_number == 0


@pytest.mark.asyncio
async def test_reset_clock_defaults_to_configured_length(manager: ScoreboardManager) -> None:
    await manager.reset_clock(120)
    snap = await manager.reset_clock()
    assert snap.period_duration_seconds == 600
    assert snap.remaining_seconds == 600


@pytest.mark.asyncio
async def test_clock_snapshot(manager: ScoreboardManager, fake_clock: FakeClock) -> None:
    clock = await manager.clock_snapshot()
    assert clock.status is ClockStatus.STOPPED
    assert (clock.period, clock.remaining_seconds, clock.duration_seconds) == (1, 600, 600)

    await manager.start_clock()
    fake_clock.advance(61)
    clock = await manager.clock_snapshot()
    assert clock.status is ClockStatus.RUNNING
    assert clock.remaining_seconds == 539


# ── Periods ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_advance_from_second_to_third_quarter(manager: ScoreboardManager) -> None:
    await manager.advance_period()
    await manager.register_foul("home")
    await manager.register_foul("away")
    await manager.set_remaining(42)

    snap = await manager.advance_period()

    assert snap.period == 3
    assert snap.in_overtime is False
    assert (snap.home.fouls, snap.away.fouls) == (0, 0)
    assert snap.remaining_seconds == snap.period_duration_seconds == 600


@pytest.mark.asyncio
async def test_advance_after_fourth_quarter_enters_overtime(manager: ScoreboardManager) -> None:
    await _advance_to_period(manager, 4)
    await manager.add_points("home", 10)

    first = await manager.advance_period()
    second = await manager.advance_period()

    assert first.in_overtime is True
    assert first.overtime_number == 1
    assert first.period == 4
    assert first.remaining_seconds == first.overtime_duration_seconds == 300
    assert second.overtime_number == 2


@pytest.mark.asyncio
async def test_advance_folds_running_clock(manager: ScoreboardManager, fake_clock: FakeClock) -> None:
    await manager.start_clock()
    fake_clock.advance(30)
    snap = await manager.advance_period()
    assert snap.period == 2
    assert snap.clock_running is False
    assert snap.remaining_seconds == 600


@pytest.mark.asyncio
async def test_end_period_before_fourth_quarter_advances(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    await manager.add_points("home", 3)
    snap = await manager.end_period()
    assert snap.period == 2
    assert store.history == []


@pytest.mark.asyncio
async def test_end_period_closes_untied_game(
    manager: ScoreboardManager, store: InMemoryScoreboardStore, fake_clock: FakeClock
) -> None:
    await _advance_to_period(manager, 4)
    await manager.add_points("away", 2)
    await manager.start_clock()
    fake_clock.advance(600)

    snap = await manager.end_period()

    assert len(store.history) == 1
    record = store.history[0]
    assert record.status is CloseStatus.FINISHED_AUTO
    assert record.reason == TIME_EXPIRED_REASON
    assert record.period == 4
    assert record.winner is Side.AWAY
    assert snap.period == 4
    assert snap.clock_running is False


@pytest.mark.asyncio
async def test_end_period_tied_goes_to_overtime(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    await _advance_to_period(manager, 4)
    await manager.add_points("home", 2)
    await manager.add_points("away", 2)

    snap = await manager.end_period()
    assert snap.in_overtime is True
    assert snap.overtime_number == 1
    assert store.history == []

    await manager.add_points("home", 1)
    await manager.end_period()
    assert len(store.history) == 1
    assert store.history[0].overtime_number == 1


# ── Teams ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_rename_teams_keeps_identity(manager: ScoreboardManager) -> None:
    before = await manager.snapshot()
    snap = await manager.rename_teams(home="  Eagles ", away=None)
    assert snap.home.name == "Eagles"
    assert snap.away.name == "Away"
    assert (snap.home.id, snap.away.id) == (before.home.id, before.away.id)


@pytest.mark.asyncio
async def test_rename_with_blank_names_is_noop(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    saves = store.saves
    await manager.rename_teams(home="   ", away="")
    assert store.saves == saves


@pytest.mark.asyncio
async def test_rename_creating_new_roster_assigns_new_teams(manager: ScoreboardManager) -> None:
    await manager.add_points("home", 5)
    await manager.register_foul("away")
    before = await manager.snapshot()

    snap = await manager.rename_creating_new_roster("Falcons", "Hawks")

    assert (snap.home.name, snap.away.name) == ("Falcons", "Hawks")
    assert snap.home.id not in (None, before.home.id, before.away.id)
    assert snap.away.id not in (None, before.home.id, before.away.id, snap.home.id)
    assert (snap.home.score, snap.away.fouls) == (5, 1)
    assert manager.uses_team(snap.home.id)
    assert not manager.uses_team(before.home.id)


@pytest.mark.asyncio
async def test_rename_creating_new_roster_only_named_side(manager: ScoreboardManager) -> None:
    before = await manager.snapshot()
    snap = await manager.rename_creating_new_roster(None, "Hawks")
    assert snap.home.id == before.home.id
    assert snap.away.id != before.away.id


@pytest.mark.asyncio
async def test_rename_creating_new_roster_unlinks_fixture(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    store.fixtures[4] = (TeamSlot(id=10, name="Lions"), TeamSlot(id=11, name="Tigers"))
    await manager.load_fixture(4)

    snap = await manager.rename_teams(home="Leones")
    assert snap.fixture_id == 4

    snap = await manager.rename_creating_new_roster("Falcons", None)
    assert snap.fixture_id is None
    await manager.close_match()
    assert store.history[0].fixture_id is None


# ── Match lifecycle ─────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["new_match", "reset_to_zero"])
async def test_fresh_match(manager: ScoreboardManager, fake_clock: FakeClock, operation: str) -> None:
    await manager.add_points("home", 8)
    await manager.register_foul("away")
    await _advance_to_period(manager, 3)
    await manager.start_clock()
    fake_clock.advance(15)

    snap = await getattr(manager, operation)()

    assert (snap.home.score, snap.away.score, snap.away.fouls) == (0, 0, 0)
    assert snap.period == 1
    assert snap.in_overtime is False
    assert snap.clock_running is False
    assert snap.remaining_seconds == 600
    assert snap.home.name == "Home"


@pytest.mark.asyncio
async def test_load_fixture_puts_teams_on_scoreboard(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    store.fixtures[7] = (TeamSlot(id=10, name="Lions", score=3), TeamSlot(id=11, name="Tigers"))
    await manager.add_points("home", 4)

    snap = await manager.load_fixture(7)

    assert snap.fixture_id == 7
    assert (snap.home.id, snap.home.name, snap.home.score) == (10, "Lions", 0)
    assert (snap.away.id, snap.away.name) == (11, "Tigers")
    assert manager.uses_team(10)


@pytest.mark.asyncio
async def test_load_missing_fixture_is_not_found(manager: ScoreboardManager) -> None:
    before = await manager.snapshot()
    with pytest.raises(NotFoundError):
        await manager.load_fixture(99)
    assert await manager.snapshot() == before


@pytest.mark.asyncio
async def test_load_closed_fixture_is_conflict(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    store.fixtures[8] = (TeamSlot(id=10, name="Lions"), TeamSlot(id=11, name="Tigers"))
    store.closed_fixtures.add(8)
    before = await manager.snapshot()
    saves = store.saves
    with pytest.raises(ConflictError):
        await manager.load_fixture(8)
    assert await manager.snapshot() == before
    assert store.saves == saves


@pytest.mark.asyncio
async def test_load_fixture_with_zero_length_period_keeps_one_second(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    store.fixtures[9] = (TeamSlot(id=10, name="Lions"), TeamSlot(id=11, name="Tigers"))
    await manager.reset_clock(0)

    assert (await manager.load_fixture(9)).remaining_seconds == 1
    assert (await manager.new_match()).remaining_seconds == 1


@pytest.mark.asyncio
async def test_close_match_scenario(
    manager: ScoreboardManager, store: InMemoryScoreboardStore, fake_clock: FakeClock
) -> None:
    snap = await manager.add_points("home", 2)
    assert snap.home.score == 2

    await manager.start_clock()
    fake_clock.advance(10)
    snap = await manager.pause_clock()
    assert snap.remaining_seconds == 590

    snap = await manager.advance_period()
    assert (snap.period, snap.remaining_seconds, snap.home.fouls) == (2, 600, 0)

    snap = await manager.add_points("away", 3)
    assert snap.away.score == 3

    closed = await manager.close_match("finished", "fin de prueba")

    assert len(store.history) == 1
    record = store.history[0]
    assert (record.home.name, record.home.score) == ("Home", 2)
    assert (record.away.name, record.away.score) == ("Away", 3)
    assert record.period == 2
    assert record.reason == "fin de prueba"
    assert record.status is CloseStatus.FINISHED
    assert (store.state.home.score, store.state.away.score) == (2, 3)
    assert closed.clock_running is False


@pytest.mark.asyncio
async def test_close_match_twice_writes_two_records(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    await manager.close_match(CloseStatus.SUSPENDED, "rain")
    await manager.close_match(CloseStatus.SUSPENDED, "rain")
    assert len(store.history) == 2


@pytest.mark.asyncio
async def test_close_match_folds_running_clock(
    manager: ScoreboardManager, store: InMemoryScoreboardStore, fake_clock: FakeClock
) -> None:
    await manager.start_clock()
    fake_clock.advance(45)
    snap = await manager.close_match()
    assert store.history[0].remaining_seconds == 555
    assert snap.remaining_seconds == 555
    assert snap.clock_running is False


@pytest.mark.asyncio
async def test_close_match_unlinks_fixture(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    store.fixtures[3] = (TeamSlot(id=10, name="Lions"), TeamSlot(id=11, name="Tigers"))
    await manager.load_fixture(3)
    snap = await manager.close_match("cancelled", "  ")
    assert store.history[0].fixture_id == 3
    assert store.history[0].reason is None
    assert snap.fixture_id is None


@pytest.mark.asyncio
async def test_close_match_rejects_unknown_status(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    with pytest.raises(InvalidArgumentError):
        await manager.close_match("abandoned")
    assert store.history == []


@pytest.mark.parametrize(
    "token, expected",
    [
        ("finished", CloseStatus.FINISHED),
        (" FINISHED_AUTO ", CloseStatus.FINISHED_AUTO),
        ("Terminado", CloseStatus.FINISHED),
        ("TerminadoAuto", CloseStatus.FINISHED_AUTO),
        ("Suspendido", CloseStatus.SUSPENDED),
        ("cancelado", CloseStatus.CANCELLED),
        ("canceled", CloseStatus.CANCELLED),
    ],
)
def test_close_status_tokens(token: str, expected: CloseStatus) -> None:
    assert resolve_close_status(token) is expected


@pytest.mark.parametrize("token", ["", "abandoned", "terminated"])
def test_unknown_close_status_token(token: str) -> None:
    with pytest.raises(InvalidArgumentError):
        resolve_close_status(token)


# ── Failure and concurrency ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_failed_write_leaves_state_unchanged(
    manager: ScoreboardManager, store: InMemoryScoreboardStore
) -> None:
    await manager.add_points("home", 2)
    store.fail_next = True
    with pytest.raises(StoreDown):
        await manager.add_points("home", 3)
    assert (await manager.snapshot()).home.score == 2


@pytest.mark.asyncio
async def test_failed_close_writes_nothing(
    manager: ScoreboardManager, store: InMemoryScoreboardStore, fake_clock: FakeClock
) -> None:
    await manager.start_clock()
    store.fail_next = True
    with pytest.raises(StoreDown):
        await manager.close_match()
    fake_clock.advance(5)
    snap = await manager.snapshot()
    assert store.history == []
    assert snap.clock_running is True
    assert snap.remaining_seconds == 595


@pytest.mark.asyncio
async def test_concurrent_operations_are_serialised(manager: ScoreboardManager) -> None:
    await asyncio.gather(*(manager.add_points("home", 1) for _ in range(50)))
    await asyncio.gather(*(manager.register_foul("away") for _ in range(20)))
    snap = await manager.snapshot()
    assert snap.home.score == 50
    assert snap.away.fouls == 20


@pytest.mark.asyncio
async def test_snapshots_are_immutable(manager: ScoreboardManager) -> None:
    snap = await manager.snapshot()
    with pytest.raises(ValidationError):
        snap.period = 3
    await manager.add_points("home", 2)
    assert snap.home.score == 0
