"""Tests for tiered judgement, tie-break and the late-miss sweep."""

from __future__ import annotations

import dataclasses

import pytest

import config
import judge
import note_scheduler
from conftest import make_chart


def _engine(tiers, notes, late_miss_ms=120.0):
    scheduler = note_scheduler.NoteScheduler(make_chart(notes))
    return scheduler, judge.JudgeEngine(scheduler, tiers, late_miss_ms=late_miss_ms)


def test_activation_near_note_is_perfect(three_tiers):
    _scheduler, engine = _engine(three_tiers, [(0, 0)])

    event = engine.evaluate_activation(0, 5.0)

    assert event is not None
    assert event.judgement == "perfect"
    assert event.is_hit
    assert event.delta_ms == 5.0
    assert engine.run_state().score == 300
    assert engine.run_state().combo == 1


def test_late_activation_after_sweep_finds_nothing(three_tiers):
    scheduler, engine = _engine(three_tiers, [(0, 0)])

    misses = engine.sweep_late_misses(121.0)
    event = engine.evaluate_activation(0, 200.0)

    assert len(misses) == 1
    assert misses[0].judgement == judge.MISS
    assert event is None
    assert engine.run_state().score == 0
    assert engine.run_state().combo == 0
    assert engine.run_state().count(judge.MISS) == 1
    assert scheduler.notes()[0].is_judged and not scheduler.notes()[0].is_hit


def test_sweep_threshold_is_strict(three_tiers):
    _scheduler, engine = _engine(three_tiers, [(0, 0)])

    assert engine.sweep_late_misses(120.0) == []
    assert len(engine.sweep_late_misses(120.5)) == 1


def test_nearest_note_wins_over_earlier_note(three_tiers):
    _scheduler, engine = _engine(three_tiers, [(0, 0), (15, 0)])

    event = engine.evaluate_activation(0, 8.0)

    assert event is not None
    assert event.note_time_ms == 15.0
    assert event.delta_ms == -7.0


def test_equal_distance_binds_earliest_note(three_tiers):
    _scheduler, engine = _engine(three_tiers, [(0, 0), (20, 0)])

    event = engine.evaluate_activation(0, 10.0)

    assert event is not None
    assert event.note_time_ms == 0.0


def test_ghost_tap_changes_nothing(three_tiers):
    scheduler, engine = _engine(three_tiers, [(0, 0)])
    before = engine.run_state()

    assert engine.evaluate_activation(1, 0.0) is None
    assert engine.evaluate_activation(0, 500.0) is None

    assert engine.run_state() is before
    assert engine.recent_judgements() == []
    assert scheduler.judged_count() == 0


def test_activation_outside_outer_window_is_ignored(three_tiers):
    _scheduler, engine = _engine(three_tiers, [(0, 0)])

    assert engine.evaluate_activation(0, 80.5) is None
    assert engine.evaluate_activation(0, 80.0).judgement == "good"


def test_judged_note_is_never_reevaluated(three_tiers):
    scheduler, engine = _engine(three_tiers, [(0, 0)])
    engine.evaluate_activation(0, 2.0)

    engine.sweep_late_misses(10_000.0)
    second = engine.evaluate_activation(0, 1.0)

    note = scheduler.notes()[0]
    assert second is None
    assert note.is_hit
    assert note.judgement == "perfect"
    assert engine.run_state().count(judge.MISS) == 0


def test_combo_resets_on_miss_and_streak_is_kept(three_tiers):
    _scheduler, engine = _engine(three_tiers, [(0, 0), (100, 0), (200, 0), (300, 0)])

    engine.evaluate_activation(0, 0.0)
    engine.evaluate_activation(0, 100.0)
    engine.sweep_late_misses(321.0)
    engine.evaluate_activation(0, 305.0)

    state = engine.run_state()
    assert state.combo == 1
    assert state.longest_streak == 2
    assert state.score == 900
    assert state.counts_by_tier() == {"perfect": 3, "great": 0, "good": 0, "miss": 1}


def test_classify_delta_boundaries(three_tiers):
    assert three_tiers.classify_delta(10.0).name == "perfect"
    assert three_tiers.classify_delta(-10.5).name == "great"
    assert three_tiers.classify_delta(80.0).name == "good"
    assert three_tiers.classify_delta(-80.1) is None
    assert three_tiers.outer_window_ms == 80.0


@pytest.mark.parametrize("thresholds", [(10.0, 5.0), (10.0, 10.0)])
def test_non_monotonic_tiers_are_rejected(thresholds):
    with pytest.raises(config.ConfigurationInvariantViolation):
        judge.JudgementTiers(
            tiers=tuple(
                judge.JudgementTier(name=f"tier{index}", threshold_ms=value, score=100)
                for index, value in enumerate(thresholds)
            )
        )


def test_run_state_is_immutable(three_tiers):
    _scheduler, engine = _engine(three_tiers, [(0, 0)])
    state = engine.run_state()

    with pytest.raises(dataclasses.FrozenInstanceError):
        state.score = 10  # type: ignore[misc]


def test_reset_clears_score_and_feedback(three_tiers):
    scheduler, engine = _engine(three_tiers, [(0, 0)])
    engine.evaluate_activation(0, 0.0)

    scheduler.reset()
    engine.reset()

    assert engine.run_state().score == 0
    assert engine.recent_judgements() == []
    assert engine.evaluate_activation(0, 0.0) is not None


def test_to_run_stats_includes_miss_bucket(three_tiers):
    _scheduler, engine = _engine(three_tiers, [(0, 0), (500, 1)])
    engine.evaluate_activation(1, 530.0)
    engine.sweep_late_misses(1_000.0)

    stats = engine.run_state().to_run_stats()

    assert stats.score == 120
    assert stats.count("great") == 1
    assert stats.count("miss") == 1
    assert stats.longest_streak == 1
