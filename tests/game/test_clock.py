"""Tests for Clock."""

import math

from relaychess.core.enums import Color
from relaychess.game.clock import Clock
from relaychess.game.interfaces import TimeControl


class TestClockBasics:
    def test_initial_remaining(self) -> None:
        clock = Clock(TimeControl(300, 0))
        assert clock.remaining(Color.WHITE) == 300.0
        assert clock.remaining(Color.BLACK) == 300.0

    def test_not_running_initially(self) -> None:
        clock = Clock(TimeControl(300, 0))
        assert not clock.is_running

    def test_start_sets_running(self) -> None:
        clock = Clock(TimeControl(300, 0))
        clock.start(Color.WHITE)
        assert clock.is_running
        assert clock.active_color == Color.WHITE

    def test_stop_pauses(self, fake_time) -> None:
        clock = Clock(TimeControl(300, 0), now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(5)
        clock.stop()
        fake_time.advance(100)
        clock.tick()
        assert not clock.is_running
        assert clock.remaining(Color.WHITE) == 295.0

    def test_tick_charges_side_to_move_only(self, fake_time) -> None:
        clock = Clock(TimeControl(300, 0), now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(12.5)
        clock.tick()
        assert clock.remaining(Color.WHITE) == 287.5
        assert clock.remaining(Color.BLACK) == 300.0

    def test_switch(self, fake_time) -> None:
        clock = Clock(TimeControl(300, 0), now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(2)
        clock.switch()
        assert clock.active_color == Color.BLACK
        assert clock.remaining(Color.WHITE) == 298.0
        fake_time.advance(3)
        clock.tick()
        assert clock.remaining(Color.BLACK) == 297.0

    def test_time_going_backwards_is_ignored(self, fake_time) -> None:
        clock = Clock(TimeControl(300, 0), now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(-10)
        clock.tick()
        assert clock.remaining(Color.WHITE) == 300.0


class TestClockIncrement:
    def test_increment_credited_on_turn_flip(self, fake_time) -> None:
        clock = Clock(TimeControl(300, 5), now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(10)
        clock.switch()
        assert clock.remaining(Color.WHITE) == 295.0
        assert clock.remaining(Color.BLACK) == 300.0

    def test_set_turn_same_side_is_noop(self, fake_time) -> None:
        clock = Clock(TimeControl(300, 5), now=fake_time)
        clock.start(Color.WHITE)
        clock.set_turn(Color.WHITE)
        assert clock.remaining(Color.WHITE) == 300.0

    def test_increment_adds_up(self) -> None:
        clock = Clock(TimeControl(10, 2))
        clock.add_increment(Color.WHITE)
        clock.add_increment(Color.WHITE)
        assert clock.remaining(Color.WHITE) == 14.0


class TestClockFlagFall:
    def test_flag_not_fallen_initially(self) -> None:
        clock = Clock(TimeControl(300, 0))
        assert not clock.is_flag_fallen(Color.WHITE)

    def test_flag_falls_at_zero(self, fake_time) -> None:
        clock = Clock(TimeControl(1, 0), now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(3)
        clock.tick()
        assert clock.is_flag_fallen(Color.WHITE)
        assert not clock.is_flag_fallen(Color.BLACK)
        assert clock.remaining(Color.WHITE) == 0.0

    def test_timeout_fires_exactly_once(self, fake_time) -> None:
        fired: list[Color] = []
        clock = Clock(TimeControl(10, 0), on_timeout=fired.append, now=fake_time)
        clock.start(Color.BLACK)
        fake_time.advance(9)
        clock.tick()
        assert fired == []
        fake_time.advance(2)
        clock.tick()
        fake_time.advance(5)
        clock.tick()
        clock.tick()
        assert fired == [Color.BLACK]

    def test_timeout_refires_after_sync_restores_time(self, fake_time) -> None:
        fired: list[Color] = []
        clock = Clock(TimeControl(5, 0), on_timeout=fired.append, now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(6)
        clock.tick()
        clock.sync(white_remaining=2, black_remaining=5)
        fake_time.advance(3)
        clock.tick()
        assert fired == [Color.WHITE, Color.WHITE]


class TestClockUntimed:
    def test_untimed_is_infinite(self) -> None:
        clock = Clock(TimeControl.unlimited())
        assert clock.is_untimed
        assert clock.remaining(Color.WHITE) == math.inf

    def test_untimed_never_runs_or_flags(self, fake_time) -> None:
        fired: list[Color] = []
        clock = Clock(TimeControl.unlimited(), on_timeout=fired.append, now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(10_000)
        clock.tick()
        assert not clock.is_running
        assert not clock.is_flag_fallen(Color.WHITE)
        assert fired == []

    def test_untimed_switch_gives_no_increment(self) -> None:
        clock = Clock(TimeControl(0, 5))
        clock.start(Color.WHITE)
        clock.switch()
        assert clock.remaining(Color.WHITE) == math.inf
        assert clock.snapshot().white_remaining == 0.0


class TestClockCheckpoints:
    def test_snapshot_and_restore(self, fake_time) -> None:
        clock = Clock(TimeControl(300, 0), now=fake_time)
        clock.start(Color.WHITE)
        fake_time.advance(20)
        snap = clock.snapshot()
        assert snap.white_remaining == 280.0
        assert snap.active_color == Color.WHITE
        assert snap.is_running

        fake_time.advance(50)
        clock.restore(snap)
        fake_time.advance(1)
        clock.tick()
        assert clock.remaining(Color.WHITE) == 279.0

    def test_sync_overrides_both_sides(self, fake_time) -> None:
        clock = Clock(TimeControl(300, 0), now=fake_time)
        clock.sync(white_remaining=42.0, black_remaining=-3.0)
        assert clock.remaining(Color.WHITE) == 42.0
        assert clock.remaining(Color.BLACK) == 0.0
