# -*- coding: utf-8 -*-
########################
# judge.py
########################
# Purpose:
# - Hit judgement and scoring engine.
# - Matches lane activations to the nearest unjudged ScheduledNote within the outer tier window.
# - Sweeps notes that were never addressed into late misses.
# - Generates JudgementEvent feedback for both hits and misses.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Strict inputs: consume only lane, activation time and current logical time (milliseconds).
# - Scheduler owns the note list; JudgeEngine marks ScheduledNote judgement fields via scheduler boundary.
# - RunState is an immutable value object. JudgeEngine replaces it on every judgement, so readers
#   holding a reference never observe a half-applied update.
# - Ghost taps (no candidate in the lane) are ignored: no penalty, no state change.
#
########################
# Interfaces:
# Public dataclasses:
# - JudgementTier(name: str, threshold_ms: float, score: int, color: str)
# - JudgementTiers(tiers: tuple[JudgementTier, ...], miss_color: str)
#   - from_config(judgement_config: config.JudgementConfig) -> JudgementTiers
#   - outer_window_ms -> float
#   - classify_delta(delta_ms: float) -> Optional[JudgementTier]
# - RunState(score: int, combo: int, longest_streak: int, counts: tuple[tuple[str, int], ...])
#   - initial(tier_names) -> RunState
#   - with_hit(tier) -> RunState
#   - with_miss() -> RunState
#   - to_run_stats() -> RunStats
#
# Public classes:
# - class JudgeEngine
#   - __init__(note_scheduler: NoteScheduler, tiers: JudgementTiers, *, late_miss_ms: float)
#   - run_state() -> RunState
#   - tiers() -> JudgementTiers
#   - late_miss_ms() -> float
#   - recent_judgements() -> list[JudgementEvent]
#   - clear_recent_judgements() -> None
#   - reset() -> None
#   - evaluate_activation(lane: int, activation_time_ms: float) -> Optional[JudgementEvent]
#   - on_input_event(input_event: InputEvent) -> Optional[JudgementEvent]
#   - sweep_late_misses(current_time_ms: float) -> list[JudgementEvent]
#
# Inputs:
# - Lane activations (player or autoplay) and the tick's logical time.
#
# Outputs:
# - JudgementEvent objects for feedback and stats.
# - Mutates ScheduledNote judgement flags inside NoteScheduler via NoteScheduler.mark_judged.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, List, Optional, Tuple

import config
import gameplay_models
import note_scheduler


logger = logging.getLogger(__name__)

MISS = "miss"


@dataclass(frozen=True)
class JudgementTier:
    name: str
    threshold_ms: float
    score: int
    color: str = "#ffffff"


@dataclass(frozen=True)
class JudgementTiers:
    tiers: Tuple[JudgementTier, ...]
    miss_color: str = "#ff4d4f"

    def __post_init__(self) -> None:
        if not self.tiers:
            raise config.ConfigurationInvariantViolation("at least one judgement tier is required")
        names = [tier.name for tier in self.tiers]
        if len(set(names)) != len(names) or MISS in names:
            raise config.ConfigurationInvariantViolation("tier names must be unique and must not be 'miss'")
        thresholds = [float(tier.threshold_ms) for tier in self.tiers]
        if thresholds[0] <= 0.0:
            raise config.ConfigurationInvariantViolation("tier thresholds must be positive")
        for previous, current in zip(thresholds, thresholds[1:]):
            if current <= previous:
                raise config.ConfigurationInvariantViolation(
                    f"tier thresholds must be strictly increasing, got {thresholds}"
                )

    @classmethod
    def from_config(cls, judgement_config: config.JudgementConfig) -> "JudgementTiers":
        return cls(
            tiers=tuple(
                JudgementTier(
                    name=str(item.name),
                    threshold_ms=float(item.threshold_ms),
                    score=int(item.score),
                    color=str(item.color),
                )
                for item in judgement_config.tiers
            ),
            miss_color=str(judgement_config.miss_color),
        )

    @property
    def outer_window_ms(self) -> float:
        return float(self.tiers[-1].threshold_ms)

    def names(self) -> List[str]:
        return [tier.name for tier in self.tiers]

    def classify_delta(self, delta_ms: float) -> Optional[JudgementTier]:
        abs_delta = abs(float(delta_ms))
        for tier in self.tiers:
            if abs_delta <= float(tier.threshold_ms):
                return tier
        return None


@dataclass(frozen=True)
class RunState:
    score: int = 0
    combo: int = 0
    longest_streak: int = 0
    counts: Tuple[Tuple[str, int], ...] = ()

    @classmethod
    def initial(cls, tier_names: Iterable[str]) -> "RunState":
        names = [str(name) for name in tier_names] + [MISS]
        return cls(counts=tuple((name, 0) for name in names))

    def count(self, name: str) -> int:
        for key, value in self.counts:
            if key == name:
                return int(value)
        return 0

    def counts_by_tier(self) -> dict:
        return {key: int(value) for key, value in self.counts}

    def judged_total(self) -> int:
        return sum(int(value) for _key, value in self.counts)

    def _bumped(self, name: str) -> Tuple[Tuple[str, int], ...]:
        bumped = [(key, value + 1 if key == name else value) for key, value in self.counts]
        if name not in (key for key, _value in self.counts):
            bumped.append((name, 1))
        return tuple(bumped)

    def with_hit(self, tier: JudgementTier) -> "RunState":
        combo = self.combo + 1
        return RunState(
            score=self.score + int(tier.score),
            combo=combo,
            longest_streak=max(self.longest_streak, combo),
            counts=self._bumped(tier.name),
        )

    def with_miss(self) -> "RunState":
        return RunState(
            score=self.score,
            combo=0,
            longest_streak=self.longest_streak,
            counts=self._bumped(MISS),
        )

    def to_run_stats(self) -> gameplay_models.RunStats:
        return gameplay_models.RunStats(
            counts_by_tier=self.counts_by_tier(),
            score=int(self.score),
            longest_streak=int(self.longest_streak),
        )


class JudgeEngine:
    def __init__(
        self,
        note_scheduler_obj: note_scheduler.NoteScheduler,
        tiers: JudgementTiers,
        *,
        late_miss_ms: float,
    ) -> None:
        self._note_scheduler = note_scheduler_obj
        self._tiers = tiers
        self._late_miss_ms = float(late_miss_ms)
        self._run_state = RunState.initial(tiers.names())
        self._recent_judgements: List[gameplay_models.JudgementEvent] = []

    def run_state(self) -> RunState:
        return self._run_state

    def tiers(self) -> JudgementTiers:
        return self._tiers

    def late_miss_ms(self) -> float:
        return self._late_miss_ms

    def note_scheduler(self) -> note_scheduler.NoteScheduler:
        return self._note_scheduler

    def clear_recent_judgements(self) -> None:
        self._recent_judgements.clear()

    def recent_judgements(self) -> List[gameplay_models.JudgementEvent]:
        return list(self._recent_judgements)

    def reset(self) -> None:
        self._run_state = RunState.initial(self._tiers.names())
        self._recent_judgements.clear()

    def evaluate_activation(self, lane: int, activation_time_ms: float) -> Optional[gameplay_models.JudgementEvent]:
        activation_time = float(activation_time_ms)
        scheduled_note = self._note_scheduler.find_nearest_unjudged_note(
            lane=int(lane),
            target_time_ms=activation_time,
            max_window_ms=self._tiers.outer_window_ms,
        )
        if scheduled_note is None:
            return None

        note_time = scheduled_note.time_ms
        delta = activation_time - note_time
        tier = self._tiers.classify_delta(delta)
        if tier is None:
            return None

        if not self._note_scheduler.mark_judged(scheduled_note, judgement=tier.name, delta_ms=delta, is_hit=True):
            return None
        self._note_scheduler.advance_lane_index(int(lane))
        self._run_state = self._run_state.with_hit(tier)

        event = gameplay_models.JudgementEvent(
            time_ms=activation_time,
            lane=int(lane),
            note_time_ms=note_time,
            delta_ms=delta,
            judgement=tier.name,
            is_hit=True,
            color=tier.color,
        )
        self._recent_judgements.append(event)
        logger.debug("lane %d %s (%+.1fms)", int(lane), tier.name, delta)
        return event

    def on_input_event(self, input_event: gameplay_models.InputEvent) -> Optional[gameplay_models.JudgementEvent]:
        if input_event.time_ms is None:
            return None
        return self.evaluate_activation(int(input_event.lane), float(input_event.time_ms))

    def sweep_late_misses(self, current_time_ms: float) -> List[gameplay_models.JudgementEvent]:
        misses: List[gameplay_models.JudgementEvent] = []
        candidates = self._note_scheduler.unjudged_notes_past_late_miss(
            current_time_ms=float(current_time_ms),
            late_miss_ms=self._late_miss_ms,
        )
        for scheduled_note in candidates:
            note_time = scheduled_note.time_ms
            lane = scheduled_note.lane
            delta = float(current_time_ms) - note_time
            if not self._note_scheduler.mark_judged(scheduled_note, judgement=MISS, delta_ms=delta, is_hit=False):
                continue
            self._note_scheduler.advance_lane_index(lane)
            self._run_state = self._run_state.with_miss()

            event = gameplay_models.JudgementEvent(
                time_ms=float(current_time_ms),
                lane=lane,
                note_time_ms=note_time,
                delta_ms=delta,
                judgement=MISS,
                is_hit=False,
                color=self._tiers.miss_color,
            )
            self._recent_judgements.append(event)
            misses.append(event)
        if misses:
            logger.debug("late-miss sweep at %.1fms marked %d note(s)", float(current_time_ms), len(misses))
        return misses


def _run_unit_tests() -> None:
    chart = gameplay_models.Chart(notes=(gameplay_models.NoteEvent(time_ms=0.0, lane=0),))
    scheduler = note_scheduler.NoteScheduler(chart)
    tiers = JudgementTiers(
        tiers=(
            JudgementTier(name="perfect", threshold_ms=10.0, score=300),
            JudgementTier(name="great", threshold_ms=40.0, score=120),
            JudgementTier(name="good", threshold_ms=80.0, score=50),
        )
    )
    engine = JudgeEngine(scheduler, tiers, late_miss_ms=120.0)

    hit = engine.evaluate_activation(0, 5.0)
    assert hit is not None
    assert hit.judgement == "perfect"
    assert engine.run_state().score == 300
    assert engine.run_state().combo == 1

    stray = engine.evaluate_activation(1, 0.0)
    assert stray is None

    scheduler.reset()
    engine.reset()
    misses = engine.sweep_late_misses(121.0)
    assert len(misses) == 1
    assert engine.run_state().count(MISS) == 1
    assert engine.evaluate_activation(0, 200.0) is None
    assert engine.run_state().score == 0


if __name__ == "__main__":
    _run_unit_tests()
    print("judge.py: ok")
