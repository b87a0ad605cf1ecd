# -*- coding: utf-8 -*-
########################
# autoplay.py
########################
# Purpose:
# - Synthetic lane input for demos and tests.
# - Plans an outcome for each note exactly once, the first time the note enters the lookahead horizon,
#   then proposes activations at the planned time through the same path as real input.
#
# Design notes:
# - No Qt usage. Pure gameplay logic.
# - Randomness comes from an injected random.Random so runs can be reproduced from a seed.
# - Plans live on ScheduledNote.autoplay_plan and are replaced wholesale:
#   - on mode change (a plan sampled under another mode is discarded and re-sampled)
#   - on overshoot (a PlannedHit whose target passed beyond the outer window becomes PlannedMiss)
# - A PlannedMiss note is left alone, so the late-miss sweep counts it exactly once.
#
########################
# Interfaces:
# Public enums:
# - class AutoplayMode(enum.Enum): REALISTIC | PERFECT
#
# Public classes:
# - class AutoplaySimulator
#   - __init__(tiers: judge.JudgementTiers, *, mode, miss_rate, hit_window_ms, lookahead_ms, tier_weights, rng)
#   - from_config(tiers, autoplay_config, *, rng=None) -> AutoplaySimulator
#   - mode() -> AutoplayMode
#   - set_mode(mode) -> None
#   - sample_plan() -> AutoplayPlan
#   - propose_activations(current_time_ms: float, scheduler: NoteScheduler) -> list[InputEvent]
#
# Inputs:
# - The tick's logical time and the working chart.
#
# Outputs:
# - InputEvent proposals carrying an explicit planned time; the session feeds them to JudgeEngine.
#
########################

from __future__ import annotations

import enum
import logging
import random
from typing import List, Optional, Sequence, Union

import config
import gameplay_models
import judge
import note_scheduler


logger = logging.getLogger(__name__)


class AutoplayMode(enum.Enum):
    REALISTIC = "realistic"
    PERFECT = "perfect"


def parse_mode(value: Union[str, AutoplayMode, None]) -> AutoplayMode:
    if isinstance(value, AutoplayMode):
        return value
    text = str(value or "").strip().lower() or AutoplayMode.REALISTIC.value
    try:
        return AutoplayMode(text)
    except ValueError as exception:
        raise ValueError(f"Unknown autoplay mode: {value!r}") from exception


# Accuracy shares for the stock perfect/great/good/okay table.
FOUR_TIER_WEIGHTS = (0.10, 0.20, 0.35, 0.35)


def _default_weights(tier_count: int) -> List[float]:
    if tier_count == len(FOUR_TIER_WEIGHTS):
        return list(FOUR_TIER_WEIGHTS)
    # Custom tables: looser tiers are sampled more often than tighter ones.
    return [float(index + 1) for index in range(tier_count)]


class AutoplaySimulator:
    def __init__(
        self,
        tiers: judge.JudgementTiers,
        *,
        mode: Union[str, AutoplayMode] = AutoplayMode.REALISTIC,
        miss_rate: float = 0.12,
        hit_window_ms: float = 18.0,
        lookahead_ms: float = 200.0,
        tier_weights: Optional[Sequence[float]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._tiers = tiers
        self._mode = parse_mode(mode)
        self._miss_rate = float(miss_rate)
        self._hit_window_ms = float(hit_window_ms)
        self._lookahead_ms = float(lookahead_ms)
        weights = list(tier_weights) if tier_weights is not None else _default_weights(len(tiers.tiers))
        if len(weights) != len(tiers.tiers):
            raise config.ConfigurationInvariantViolation("autoplay tier weights must have one entry per tier")
        self._weights = [float(weight) for weight in weights]
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def from_config(
        cls,
        tiers: judge.JudgementTiers,
        autoplay_config: config.AutoplayConfig,
        *,
        rng: Optional[random.Random] = None,
    ) -> "AutoplaySimulator":
        if rng is None:
            rng = random.Random(autoplay_config.seed)
        return cls(
            tiers,
            mode=autoplay_config.mode,
            miss_rate=autoplay_config.miss_rate,
            hit_window_ms=autoplay_config.hit_window_ms,
            lookahead_ms=autoplay_config.lookahead_ms,
            tier_weights=autoplay_config.tier_weights,
            rng=rng,
        )

    def mode(self) -> AutoplayMode:
        return self._mode

    def set_mode(self, mode: Union[str, AutoplayMode]) -> None:
        new_mode = parse_mode(mode)
        if new_mode is not self._mode:
            logger.info("autoplay mode %s -> %s", self._mode.value, new_mode.value)
        self._mode = new_mode

    def _sample_offset_ms(self) -> float:
        thresholds = [float(tier.threshold_ms) for tier in self._tiers.tiers]
        index = self._rng.choices(range(len(thresholds)), weights=self._weights)[0]
        if index == 0:
            return (self._rng.random() * 2.0 - 1.0) * thresholds[0] * 0.8

        lower = thresholds[index - 1]
        spread = thresholds[index] - lower
        bias_floor = min(0.5, 0.25 * (index - 1))
        bias = bias_floor + self._rng.random() * (1.0 - bias_floor)
        direction = 1.0 if self._rng.random() > 0.5 else -1.0
        return direction * (lower + bias * spread)

    def sample_plan(self) -> gameplay_models.AutoplayPlan:
        mode_name = self._mode.value
        if self._mode is AutoplayMode.PERFECT:
            return gameplay_models.PlannedHit(mode=mode_name, target_offset_ms=0.0)
        if self._rng.random() < self._miss_rate:
            return gameplay_models.PlannedMiss(mode=mode_name)
        return gameplay_models.PlannedHit(mode=mode_name, target_offset_ms=self._sample_offset_ms())

    def propose_activations(
        self,
        current_time_ms: float,
        scheduler: note_scheduler.NoteScheduler,
    ) -> List[gameplay_models.InputEvent]:
        current = float(current_time_ms)
        outer_window = self._tiers.outer_window_ms
        mode_name = self._mode.value
        proposals: List[gameplay_models.InputEvent] = []

        for scheduled_note in scheduler.notes():
            if scheduled_note.time_ms - current > self._lookahead_ms:
                break
            if scheduled_note.is_judged:
                continue

            plan = scheduled_note.autoplay_plan
            if plan is None or plan.mode != mode_name:
                plan = self.sample_plan()
                scheduled_note.autoplay_plan = plan

            if isinstance(plan, gameplay_models.PlannedMiss):
                continue

            target_time = scheduled_note.time_ms + float(plan.target_offset_ms)
            if current - target_time > outer_window:
                scheduled_note.autoplay_plan = gameplay_models.PlannedMiss(mode=mode_name)
                continue
            if current + self._hit_window_ms < target_time:
                continue

            proposals.append(gameplay_models.InputEvent(lane=scheduled_note.lane, time_ms=target_time))

        return proposals
