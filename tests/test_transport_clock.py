from __future__ import annotations

from gameplay_models import TransportState
from transport_clock import TransportClock


def test_new_clock_is_idle_at_zero():
    clock = TransportClock(pre_roll_ms=1000.0)

    assert clock.state() is TransportState.IDLE
    assert clock.logical_time_ms(12345.0) == 0.0
    assert clock.pre_roll_remaining_ms(12345.0) == 0.0


def test_pre_roll_counts_down_with_negative_logical_time():
    clock = TransportClock(pre_roll_ms=1000.0)
    clock.start(5000.0)

    assert clock.state() is TransportState.PRE_ROLL
    assert clock.logical_time_ms(5250.0) == -750.0
    assert clock.pre_roll_remaining_ms(5250.0) == 750.0
    assert clock.update(5999.0) is False
    assert clock.state() is TransportState.PRE_ROLL


def test_pre_roll_turns_into_playing_at_the_deadline():
    clock = TransportClock(pre_roll_ms=1000.0)
    clock.start(5000.0)

    assert clock.update(6000.0) is True
    assert clock.state() is TransportState.PLAYING
    assert clock.logical_time_ms(6000.0) == 0.0
    assert clock.logical_time_ms(6400.0) == 400.0
    assert clock.update(6500.0) is False


def test_late_first_tick_starts_at_zero():
    clock = TransportClock(pre_roll_ms=1000.0)
    clock.start(0.0)

    clock.update(1300.0)

    assert clock.logical_time_ms(1300.0) == 0.0


def test_pause_is_only_allowed_while_playing():
    clock = TransportClock(pre_roll_ms=1000.0)
    assert clock.pause(0.0) is False

    clock.start(0.0)
    assert clock.pause(500.0) is False
    assert clock.state() is TransportState.PRE_ROLL


def test_pause_freezes_and_resume_continues_without_jump():
    clock = TransportClock(pre_roll_ms=0.0)
    clock.start(1000.0)
    clock.update(1000.0)

    assert clock.pause(1500.0) is True
    assert clock.logical_time_ms(9000.0) == 500.0

    assert clock.resume(9000.0) is True
    assert clock.logical_time_ms(9000.0) == 500.0
    assert clock.logical_time_ms(9016.0) == 516.0


def test_immediate_pause_resume_round_trip():
    clock = TransportClock(pre_roll_ms=0.0)
    clock.start(0.0)
    clock.update(0.0)

    clock.pause(250.0)
    clock.resume(250.0)

    assert clock.logical_time_ms(250.0) == 250.0


def test_resume_requires_paused_state():
    clock = TransportClock(pre_roll_ms=0.0)
    clock.start(0.0)
    clock.update(0.0)

    assert clock.resume(100.0) is False
    assert clock.state() is TransportState.PLAYING


def test_finish_pins_time_past_last_note():
    clock = TransportClock(pre_roll_ms=0.0, completion_margin_ms=50.0)
    clock.start(0.0)
    clock.update(0.0)

    assert clock.mark_complete() is True
    assert clock.state() is TransportState.COMPLETE
    clock.finish(900.0)

    assert clock.state() is TransportState.IDLE
    assert clock.logical_time_ms(99999.0) == 950.0


def test_seek_to_start_returns_to_idle_zero():
    clock = TransportClock(pre_roll_ms=0.0)
    clock.start(0.0)
    clock.update(0.0)
    clock.pause(700.0)

    clock.seek_to_start()

    assert clock.state() is TransportState.IDLE
    assert clock.logical_time_ms(800.0) == 0.0


def test_start_from_paused_enters_a_fresh_pre_roll():
    clock = TransportClock(pre_roll_ms=500.0)
    clock.start(0.0)
    clock.update(500.0)
    clock.pause(900.0)

    clock.start(2000.0)

    assert clock.state() is TransportState.PRE_ROLL
    assert clock.logical_time_ms(2000.0) == -500.0


def test_pre_roll_change_applies_from_next_start():
    clock = TransportClock(pre_roll_ms=1000.0)
    clock.start(0.0)
    clock.set_pre_roll_ms(200.0)

    assert clock.pre_roll_remaining_ms(0.0) == 1000.0

    clock.start(0.0)
    assert clock.pre_roll_remaining_ms(0.0) == 200.0


def test_snapshot_reports_state_and_times():
    clock = TransportClock(pre_roll_ms=300.0)
    clock.start(0.0)

    snapshot = clock.snapshot(100.0)

    assert snapshot.state is TransportState.PRE_ROLL
    assert snapshot.logical_time_ms == -200.0
    assert snapshot.pre_roll_remaining_ms == 200.0
