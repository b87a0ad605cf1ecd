"""Tests for plan sampling and activation proposals of the autoplay simulator."""

from __future__ import annotations

import random

import pytest

import autoplay
import config
import gameplay_models
import judge
from conftest import make_chart
from note_scheduler import NoteScheduler


@pytest.fixture
def default_tiers() -> judge.JudgementTiers:
    return judge.JudgementTiers.from_config(config.JudgementConfig())


def _simulator(tiers, **kwargs) -> autoplay.AutoplaySimulator:
    kwargs.setdefault("rng", random.Random(7))
    return autoplay.AutoplaySimulator(tiers, **kwargs)


def test_perfect_mode_fires_at_note_time(default_tiers):
    simulator = _simulator(default_tiers, mode="perfect")
    scheduler = NoteScheduler(make_chart([(1000, 3)]))

    assert simulator.propose_activations(900.0, scheduler) == []
    plan = scheduler.notes()[0].autoplay_plan
    assert plan == gameplay_models.PlannedHit(mode="perfect", target_offset_ms=0.0)

    proposals = simulator.propose_activations(985.0, scheduler)
    assert proposals == [gameplay_models.InputEvent(lane=3, time_ms=1000.0)]


def test_notes_beyond_lookahead_are_not_planned(default_tiers):
    simulator = _simulator(default_tiers, lookahead_ms=200.0)
    scheduler = NoteScheduler(make_chart([(1000, 0)]))

    simulator.propose_activations(700.0, scheduler)

    assert scheduler.notes()[0].autoplay_plan is None


def test_plan_is_sampled_once_per_note(default_tiers):
    simulator = _simulator(default_tiers, miss_rate=0.0)
    scheduler = NoteScheduler(make_chart([(1000, 0)]))

    simulator.propose_activations(850.0, scheduler)
    first_plan = scheduler.notes()[0].autoplay_plan
    simulator.propose_activations(870.0, scheduler)

    assert first_plan is not None
    assert scheduler.notes()[0].autoplay_plan is first_plan


def test_mode_change_replans_the_note(default_tiers):
    simulator = _simulator(default_tiers, miss_rate=1.0)
    scheduler = NoteScheduler(make_chart([(1000, 0)]))

    simulator.propose_activations(900.0, scheduler)
    assert isinstance(scheduler.notes()[0].autoplay_plan, gameplay_models.PlannedMiss)

    simulator.set_mode("perfect")
    simulator.propose_activations(900.0, scheduler)

    assert scheduler.notes()[0].autoplay_plan == gameplay_models.PlannedHit(mode="perfect", target_offset_ms=0.0)


def test_planned_miss_never_proposes(default_tiers):
    simulator = _simulator(default_tiers, miss_rate=1.0)
    scheduler = NoteScheduler(make_chart([(100, 0)]))

    for current in (0.0, 90.0, 100.0, 120.0):
        assert simulator.propose_activations(current, scheduler) == []


def test_overshot_hit_becomes_a_miss(default_tiers):
    simulator = _simulator(default_tiers)
    scheduler = NoteScheduler(make_chart([(1000, 0)]))
    scheduler.notes()[0].autoplay_plan = gameplay_models.PlannedHit(mode="realistic", target_offset_ms=0.0)

    proposals = simulator.propose_activations(1031.0, scheduler)

    assert proposals == []
    assert scheduler.notes()[0].autoplay_plan == gameplay_models.PlannedMiss(mode="realistic")


def test_judged_notes_are_skipped(default_tiers):
    simulator = _simulator(default_tiers, mode="perfect")
    scheduler = NoteScheduler(make_chart([(100, 0)]))
    scheduler.mark_judged(scheduler.notes()[0], judgement="perfect", delta_ms=0.0, is_hit=True)

    assert simulator.propose_activations(100.0, scheduler) == []


def test_sampled_offsets_stay_inside_the_outer_window(default_tiers):
    simulator = _simulator(default_tiers, miss_rate=0.0, rng=random.Random(1234))

    for _ in range(500):
        plan = simulator.sample_plan()
        assert isinstance(plan, gameplay_models.PlannedHit)
        assert default_tiers.classify_delta(plan.target_offset_ms) is not None


def test_tier_weights_select_the_tightest_tier(default_tiers):
    simulator = _simulator(default_tiers, miss_rate=0.0, tier_weights=[1.0, 0.0, 0.0, 0.0])

    for _ in range(200):
        plan = simulator.sample_plan()
        assert abs(plan.target_offset_ms) <= 4.0


def test_default_four_tier_shares(default_tiers):
    simulator = _simulator(default_tiers, miss_rate=0.0, rng=random.Random(1))
    counts = {name: 0 for name in default_tiers.names()}
    samples = 20000

    for _ in range(samples):
        plan = simulator.sample_plan()
        counts[default_tiers.classify_delta(plan.target_offset_ms).name] += 1

    shares = [counts[name] / samples for name in default_tiers.names()]
    assert shares == pytest.approx(list(autoplay.FOUR_TIER_WEIGHTS), abs=0.02)


def test_other_tier_counts_weight_looser_tiers_heavier(three_tiers):
    simulator = _simulator(three_tiers, miss_rate=0.0, rng=random.Random(1))
    counts = {name: 0 for name in three_tiers.names()}
    samples = 12000

    for _ in range(samples):
        plan = simulator.sample_plan()
        counts[three_tiers.classify_delta(plan.target_offset_ms).name] += 1

    shares = [counts[name] / samples for name in three_tiers.names()]
    assert shares == pytest.approx([1 / 6, 2 / 6, 3 / 6], abs=0.02)


def test_weight_count_must_match_tiers(default_tiers):
    with pytest.raises(config.ConfigurationInvariantViolation):
        autoplay.AutoplaySimulator(default_tiers, tier_weights=[1.0, 2.0])


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        autoplay.parse_mode("sloppy")
    assert autoplay.parse_mode(None) is autoplay.AutoplayMode.REALISTIC
    assert autoplay.parse_mode("PERFECT") is autoplay.AutoplayMode.PERFECT


def test_seeded_simulators_produce_identical_plans(default_tiers):
    autoplay_config = config.AutoplayConfig(seed=99)
    first = autoplay.AutoplaySimulator.from_config(default_tiers, autoplay_config)
    second = autoplay.AutoplaySimulator.from_config(default_tiers, autoplay_config)

    assert [first.sample_plan() for _ in range(50)] == [second.sample_plan() for _ in range(50)]
