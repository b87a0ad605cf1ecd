# -*- coding: utf-8 -*-
########################
# note_scheduler.py
########################
# Purpose:
# - Own the per-run working copy of a chart, organized into per-lane schedules.
# - Tracks runtime judgement state (per ScheduledNote) and provides candidate queries for judging,
#   the late-miss sweep, autoplay planning and rendering.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Schedule order is deterministic: sort by (time_ms, lane).
# - The canonical Chart is never mutated. reset() rebuilds every ScheduledNote from it, so runtime
#   fields (judged, hit, autoplay plan) can never leak from one run into the next.
# - A judged note stays judged until reset().
#
########################
# Interfaces:
# Public dataclasses:
# - ScheduledNote(
#     note_event: NoteEvent,
#     is_judged: bool = False,
#     is_hit: bool = False,
#     judgement: Optional[str] = None,
#     judgement_delta_ms: Optional[float] = None,
#     autoplay_plan: Optional[AutoplayPlan] = None,
#   )
#
# Public classes:
# - class NoteScheduler
#   - __init__(chart: gameplay_models.Chart)
#   - chart() -> gameplay_models.Chart
#   - reset() -> None
#   - notes() -> list[ScheduledNote]
#   - all_judged() -> bool
#   - judged_count() -> int
#   - mark_judged(scheduled_note, *, judgement: str, delta_ms: float, is_hit: bool) -> bool
#   - visible_notes(*, current_time_ms: float, lookback_ms: float, lookahead_ms: float) -> list[ScheduledNote]
#   - find_nearest_unjudged_note(*, lane: int, target_time_ms: float, max_window_ms: float) -> Optional[ScheduledNote]
#   - advance_lane_index(lane: int) -> None
#   - unjudged_notes_past_late_miss(*, current_time_ms: float, late_miss_ms: float) -> list[ScheduledNote]
#
# Inputs:
# - Chart and time parameters (milliseconds).
#
# Outputs:
# - ScheduledNote views for rendering and candidate selection for JudgeEngine and AutoplaySimulator.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import gameplay_models


@dataclass
class ScheduledNote:
    note_event: gameplay_models.NoteEvent
    is_judged: bool = False
    is_hit: bool = False
    judgement: Optional[str] = None
    judgement_delta_ms: Optional[float] = None
    autoplay_plan: Optional[gameplay_models.AutoplayPlan] = None

    @property
    def time_ms(self) -> float:
        return float(self.note_event.time_ms)

    @property
    def lane(self) -> int:
        return int(self.note_event.lane)


class NoteScheduler:
    def __init__(self, chart: gameplay_models.Chart) -> None:
        sorted_notes = sorted(chart.notes, key=lambda item: (float(item.time_ms), int(item.lane)))
        self._chart = gameplay_models.Chart(
            notes=tuple(sorted_notes),
            metadata=dict(chart.metadata),
            fingerprint=str(chart.fingerprint),
        )
        self._scheduled_notes: List[ScheduledNote] = []
        self._lanes: Dict[int, List[ScheduledNote]] = {}
        self._lane_indices: Dict[int, int] = {}
        self.reset()

    def chart(self) -> gameplay_models.Chart:
        return self._chart

    def reset(self) -> None:
        self._scheduled_notes = [ScheduledNote(note_event=note) for note in self._chart.notes]
        self._lanes = {}
        for scheduled_note in self._scheduled_notes:
            self._lanes.setdefault(scheduled_note.lane, []).append(scheduled_note)
        self._lane_indices = {lane: 0 for lane in self._lanes.keys()}

    def notes(self) -> List[ScheduledNote]:
        return list(self._scheduled_notes)

    def all_judged(self) -> bool:
        return all(note.is_judged for note in self._scheduled_notes)

    def judged_count(self) -> int:
        return sum(1 for note in self._scheduled_notes if note.is_judged)

    def mark_judged(self, scheduled_note: ScheduledNote, *, judgement: str, delta_ms: float, is_hit: bool) -> bool:
        if scheduled_note.is_judged:
            return False
        scheduled_note.is_judged = True
        scheduled_note.is_hit = bool(is_hit)
        scheduled_note.judgement = str(judgement)
        scheduled_note.judgement_delta_ms = float(delta_ms)
        return True

    def visible_notes(
        self,
        *,
        current_time_ms: float,
        lookback_ms: float,
        lookahead_ms: float,
    ) -> List[ScheduledNote]:
        start_time = float(current_time_ms) - float(lookback_ms)
        end_time = float(current_time_ms) + float(lookahead_ms)
        visible: List[ScheduledNote] = []
        for scheduled_note in self._scheduled_notes:
            note_time = scheduled_note.time_ms
            if start_time <= note_time <= end_time:
                visible.append(scheduled_note)
        return visible

    def _lane_list(self, lane: int) -> List[ScheduledNote]:
        return self._lanes.get(int(lane), [])

    def advance_lane_index(self, lane: int) -> None:
        lane_key = int(lane)
        lane_list = self._lane_list(lane_key)
        index = int(self._lane_indices.get(lane_key, 0))
        while index < len(lane_list) and lane_list[index].is_judged:
            index += 1
        self._lane_indices[lane_key] = index

    def find_nearest_unjudged_note(
        self,
        *,
        lane: int,
        target_time_ms: float,
        max_window_ms: float,
    ) -> Optional[ScheduledNote]:
        lane_key = int(lane)
        lane_list = self._lane_list(lane_key)
        if not lane_list:
            return None

        window = float(max_window_ms)
        target = float(target_time_ms)
        start = target - window
        end = target + window

        start_index = int(self._lane_indices.get(lane_key, 0))
        best_note: Optional[ScheduledNote] = None
        best_abs_delta = float("inf")

        for index in range(start_index, len(lane_list)):
            candidate = lane_list[index]
            if candidate.is_judged:
                continue
            note_time = candidate.time_ms
            if note_time < start:
                continue
            if note_time > end:
                break

            abs_delta = abs(target - note_time)
            # Lane lists are time-ordered, so strict comparison keeps the earliest note on ties.
            if abs_delta < best_abs_delta:
                best_note = candidate
                best_abs_delta = abs_delta

        return best_note

    def unjudged_notes_past_late_miss(
        self,
        *,
        current_time_ms: float,
        late_miss_ms: float,
    ) -> List[ScheduledNote]:
        current = float(current_time_ms)
        threshold = float(late_miss_ms)
        candidates: List[ScheduledNote] = []

        for lane_key in sorted(self._lanes.keys()):
            lane_list = self._lane_list(lane_key)
            start_index = int(self._lane_indices.get(lane_key, 0))
            for index in range(start_index, len(lane_list)):
                scheduled_note = lane_list[index]
                if scheduled_note.is_judged:
                    continue
                if current - scheduled_note.time_ms > threshold:
                    candidates.append(scheduled_note)
                else:
                    break

        candidates.sort(key=lambda item: (item.time_ms, item.lane))
        return candidates


def _run_unit_tests() -> None:
    notes = (
        gameplay_models.NoteEvent(time_ms=1000.0, lane=1),
        gameplay_models.NoteEvent(time_ms=1000.0, lane=0),
        gameplay_models.NoteEvent(time_ms=500.0, lane=2),
    )
    chart = gameplay_models.Chart(notes=notes, fingerprint="self-test")
    scheduler = NoteScheduler(chart)

    ordered = [(n.time_ms, n.lane) for n in scheduler.visible_notes(current_time_ms=1000.0, lookback_ms=10000.0, lookahead_ms=10000.0)]
    assert ordered == [(500.0, 2), (1000.0, 0), (1000.0, 1)]

    nearest = scheduler.find_nearest_unjudged_note(lane=0, target_time_ms=1000.0, max_window_ms=200.0)
    assert nearest is not None
    assert nearest.lane == 0

    late = scheduler.unjudged_notes_past_late_miss(current_time_ms=1000.0, late_miss_ms=400.0)
    assert [(m.time_ms, m.lane) for m in late] == [(500.0, 2)]

    assert scheduler.mark_judged(late[0], judgement="miss", delta_ms=500.0, is_hit=False)
    assert not scheduler.mark_judged(late[0], judgement="perfect", delta_ms=0.0, is_hit=True)
    scheduler.reset()
    assert scheduler.judged_count() == 0


if __name__ == "__main__":
    _run_unit_tests()
    print("note_scheduler.py: ok")
