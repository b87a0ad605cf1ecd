# -*- coding: utf-8 -*-
########################
# transport_clock.py
########################
# Purpose:
# - Single source of truth for logical song time in gameplay.
# - Converts monotonic wall-clock samples (milliseconds) into logical time and tracks the transport
#   state machine: IDLE, PRE_ROLL, PLAYING, PAUSED, COMPLETE.
#
# Design notes:
# - No Qt usage. Keep this module pure and deterministic: callers pass the wall sample in, the clock
#   never reads the system time itself.
# - While PLAYING: logical = max(0, wall - epoch). The epoch is recomputed on every entry into PLAYING:
#   - fresh start: epoch = wall sample of the tick that ends PRE_ROLL, so logical time starts at 0
#   - resume:      epoch = wall - paused_offset, so logical time continues without a jump
# - PRE_ROLL reports a non-positive countdown value. It is for display only and must never be judged.
# - COMPLETE is left by the owner either via start() (loop) or finish() (pin past the last note).
#
########################
# Interfaces:
# Public dataclasses:
# - TransportSnapshot(state: TransportState, logical_time_ms: float, pre_roll_remaining_ms: float)
#
# Public classes:
# - class TransportClock
#   - __init__(*, pre_roll_ms: float, completion_margin_ms: float)
#   - state() -> TransportState
#   - is_playing() -> bool
#   - set_pre_roll_ms(pre_roll_ms: float) -> None
#   - start(wall_now_ms: float) -> None
#   - update(wall_now_ms: float) -> bool
#   - pause(wall_now_ms: float) -> bool
#   - resume(wall_now_ms: float) -> bool
#   - mark_complete() -> bool
#   - finish(last_note_time_ms: float) -> None
#   - seek_to_start() -> None
#   - logical_time_ms(wall_now_ms: float) -> float
#   - pre_roll_remaining_ms(wall_now_ms: float) -> float
#   - snapshot(wall_now_ms: float) -> TransportSnapshot
#
# Inputs:
# - wall_now_ms sampled once per tick from a monotonic source.
#
# Outputs:
# - Logical time used by NoteScheduler, JudgeEngine, AutoplaySimulator and renderer snapshots.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Optional

from gameplay_models import TransportState


logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class TransportSnapshot:
    state: TransportState
    logical_time_ms: float
    pre_roll_remaining_ms: float


class TransportClock:
    def __init__(self, *, pre_roll_ms: float = 3000.0, completion_margin_ms: float = 50.0) -> None:
        self._pre_roll_ms = max(0.0, float(pre_roll_ms))
        self._completion_margin_ms = max(0.0, float(completion_margin_ms))
        self._state = TransportState.IDLE
        self._epoch_ms: Optional[float] = None
        self._pre_roll_deadline_ms = 0.0
        self._paused_offset_ms = 0.0
        self._pinned_time_ms = 0.0

    def state(self) -> TransportState:
        return self._state

    def is_playing(self) -> bool:
        return self._state is TransportState.PLAYING

    def pre_roll_ms(self) -> float:
        return float(self._pre_roll_ms)

    def set_pre_roll_ms(self, pre_roll_ms: float) -> None:
        # Applies from the next start(); a running countdown keeps its deadline.
        self._pre_roll_ms = max(0.0, float(pre_roll_ms))

    def _transition(self, new_state: TransportState) -> None:
        if new_state is not self._state:
            logger.debug("transport %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def start(self, wall_now_ms: float) -> None:
        self._pre_roll_deadline_ms = float(wall_now_ms) + self._pre_roll_ms
        self._epoch_ms = None
        self._paused_offset_ms = 0.0
        self._pinned_time_ms = 0.0
        self._transition(TransportState.PRE_ROLL)

    def update(self, wall_now_ms: float) -> bool:
        """Advance automatic transitions. Returns True when PRE_ROLL just turned into PLAYING."""
        if self._state is not TransportState.PRE_ROLL:
            return False
        if float(wall_now_ms) < self._pre_roll_deadline_ms:
            return False
        self._epoch_ms = float(wall_now_ms)
        self._transition(TransportState.PLAYING)
        return True

    def pause(self, wall_now_ms: float) -> bool:
        if self._state is not TransportState.PLAYING:
            return False
        self._paused_offset_ms = self.logical_time_ms(wall_now_ms)
        self._transition(TransportState.PAUSED)
        return True

    def resume(self, wall_now_ms: float) -> bool:
        if self._state is not TransportState.PAUSED:
            return False
        self._epoch_ms = float(wall_now_ms) - self._paused_offset_ms
        self._transition(TransportState.PLAYING)
        return True

    def mark_complete(self) -> bool:
        if self._state is not TransportState.PLAYING:
            return False
        self._transition(TransportState.COMPLETE)
        return True

    def finish(self, last_note_time_ms: float) -> None:
        self._pinned_time_ms = float(last_note_time_ms) + self._completion_margin_ms
        self._epoch_ms = None
        self._transition(TransportState.IDLE)

    def seek_to_start(self) -> None:
        self._epoch_ms = None
        self._paused_offset_ms = 0.0
        self._pinned_time_ms = 0.0
        self._transition(TransportState.IDLE)

    def logical_time_ms(self, wall_now_ms: float) -> float:
        if self._state is TransportState.PLAYING and self._epoch_ms is not None:
            return max(0.0, float(wall_now_ms) - self._epoch_ms)
        if self._state is TransportState.PAUSED:
            return float(self._paused_offset_ms)
        if self._state is TransportState.PRE_ROLL:
            return min(0.0, float(wall_now_ms) - self._pre_roll_deadline_ms)
        return float(self._pinned_time_ms)

    def pre_roll_remaining_ms(self, wall_now_ms: float) -> float:
        if self._state is not TransportState.PRE_ROLL:
            return 0.0
        return max(0.0, self._pre_roll_deadline_ms - float(wall_now_ms))

    def snapshot(self, wall_now_ms: float) -> TransportSnapshot:
        return TransportSnapshot(
            state=self._state,
            logical_time_ms=self.logical_time_ms(wall_now_ms),
            pre_roll_remaining_ms=self.pre_roll_remaining_ms(wall_now_ms),
        )


def _run_unit_tests() -> None:
    clock = TransportClock(pre_roll_ms=1000.0, completion_margin_ms=50.0)
    assert clock.state() is TransportState.IDLE
    assert clock.logical_time_ms(123.0) == 0.0

    clock.start(10_000.0)
    assert clock.state() is TransportState.PRE_ROLL
    assert abs(clock.logical_time_ms(10_250.0) - (-750.0)) < 1e-9
    assert not clock.update(10_999.0)
    assert clock.update(11_000.0)
    assert clock.logical_time_ms(11_000.0) == 0.0
    assert clock.logical_time_ms(11_500.0) == 500.0

    assert clock.pause(11_600.0)
    assert clock.logical_time_ms(50_000.0) == 600.0
    assert clock.resume(60_000.0)
    assert clock.logical_time_ms(60_000.0) == 600.0

    assert clock.mark_complete()
    clock.finish(900.0)
    assert clock.state() is TransportState.IDLE
    assert clock.logical_time_ms(99_999.0) == 950.0


if __name__ == "__main__":
    _run_unit_tests()
    print("transport_clock.py: ok")
