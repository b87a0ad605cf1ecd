# -*- coding: utf-8 -*-
########################
# gameplay_session.py
########################
# Purpose:
# - Owns one gameplay pipeline: TransportClock + NoteScheduler + JudgeEngine + AutoplaySimulator
#   + RunAggregator, and runs it one tick at a time.
# - Exposes the transport controls (start, restart, pause, resume, seek to start), loop and autoplay
#   toggles, the activate(lane, at_time_ms) input surface and read-only EngineSnapshot values.
#
# Design notes:
# - No Qt usage. The host (game_clock.GameClock, the simulate runner, tests) calls tick() with one
#   monotonic wall sample per frame; every comparison inside the tick uses that sample.
# - Tick order is fixed:
#   1) transport update (PRE_ROLL -> PLAYING)
#   2) late-miss sweep
#   3) autoplay proposals
#   4) queued activations
#   5) completion check (record run, then loop or finalize)
#   6) snapshot
# - activate() only queues. Activations without an explicit time are stamped with the logical time of
#   the tick that consumes them. Activations arriving while not PLAYING are dropped.
# - Snapshots are plain frozen values; nothing the renderer receives can mutate engine state.
#
########################
# Interfaces:
# Public dataclasses:
# - SessionState(loop_enabled: bool, autoplay_enabled: bool, completed_runs: int, last_run: Optional[RunStats])
#
# Public classes:
# - class GameplaySession
#   - __init__(app_config: Optional[config.AppConfig] = None, *, aggregator=None, rng=None)
#   - load_chart(chart: Chart) -> None
#   - chart() -> Chart
#   - start(wall_now_ms: float) -> None
#   - restart(wall_now_ms: float) -> None
#   - pause(wall_now_ms: float) -> bool
#   - resume(wall_now_ms: float) -> bool
#   - seek_to_start() -> None
#   - set_loop(enabled: bool) -> None
#   - set_autoplay(enabled: bool, mode: Optional[str] = None) -> None
#   - set_pre_roll_ms(pre_roll_ms: float) -> None
#   - set_drop_ms(drop_ms: float) -> None
#   - activate(lane: int, at_time_ms: Optional[float] = None) -> bool
#   - tick(wall_now_ms: float) -> EngineSnapshot
#   - snapshot() -> EngineSnapshot
#   - aggregator() -> RunAggregator
#   - history() -> dict[str, HistoryRecord]
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
from typing import Dict, List, Optional, Tuple

import autoplay
import config
import gameplay_models
import judge
import note_scheduler
import run_history
import transport_clock


logger = logging.getLogger(__name__)

# Notes stay in snapshots this long after their scheduled time.
VISIBLE_LOOKBACK_MS = 600.0


@dataclass
class SessionState:
    loop_enabled: bool = False
    autoplay_enabled: bool = False
    completed_runs: int = 0
    last_run: Optional[gameplay_models.RunStats] = None


class GameplaySession:
    def __init__(
        self,
        app_config: Optional[config.AppConfig] = None,
        *,
        aggregator: Optional[run_history.RunAggregator] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config = app_config if app_config is not None else config.AppConfig()
        self._tiers = judge.JudgementTiers.from_config(self._config.judgement)
        self._lanes = int(self._config.chart.lanes)
        self._drop_ms = float(self._config.transport.drop_ms)
        self._feedback_ttl_ms = float(self._config.transport.feedback_ttl_ms)

        self._clock = transport_clock.TransportClock(
            pre_roll_ms=self._config.transport.pre_roll_ms,
            completion_margin_ms=self._config.transport.completion_margin_ms,
        )
        self._aggregator = aggregator if aggregator is not None else run_history.RunAggregator()
        self._autoplay = autoplay.AutoplaySimulator.from_config(self._tiers, self._config.autoplay, rng=rng)
        self._state = SessionState(
            loop_enabled=bool(self._config.transport.loop),
            autoplay_enabled=bool(self._config.autoplay.enabled),
        )

        self._pending_inputs: List[gameplay_models.InputEvent] = []
        self._feedback: List[Tuple[float, gameplay_models.JudgementEvent]] = []
        self._last_wall_ms = 0.0

        self._note_scheduler = note_scheduler.NoteScheduler(gameplay_models.Chart(notes=()))
        self._judge_engine = judge.JudgeEngine(
            self._note_scheduler, self._tiers, late_miss_ms=self._config.judgement.late_miss_ms
        )

    # -----------------
    # Accessors
    # -----------------

    @property
    def state(self) -> SessionState:
        return self._state

    def chart(self) -> gameplay_models.Chart:
        return self._note_scheduler.chart()

    def transport_state(self) -> gameplay_models.TransportState:
        return self._clock.state()

    def run_state(self) -> judge.RunState:
        return self._judge_engine.run_state()

    def tiers(self) -> judge.JudgementTiers:
        return self._tiers

    def aggregator(self) -> run_history.RunAggregator:
        return self._aggregator

    def history(self) -> Dict[str, run_history.HistoryRecord]:
        return self._aggregator.records()

    def note_scheduler(self) -> note_scheduler.NoteScheduler:
        return self._note_scheduler

    # -----------------
    # Transport controls
    # -----------------

    def load_chart(self, chart: gameplay_models.Chart) -> None:
        self._note_scheduler = note_scheduler.NoteScheduler(chart)
        self._judge_engine = judge.JudgeEngine(
            self._note_scheduler, self._tiers, late_miss_ms=self._config.judgement.late_miss_ms
        )
        self._clock.seek_to_start()
        self._pending_inputs.clear()
        self._feedback.clear()
        self._state.last_run = None
        logger.info("chart loaded: %d notes (fingerprint %s)", len(chart.notes), chart.fingerprint or "-")

    def _reset_run(self) -> None:
        self._note_scheduler.reset()
        self._judge_engine.reset()
        self._pending_inputs.clear()

    def start(self, wall_now_ms: float) -> None:
        self._reset_run()
        self._feedback.clear()
        self._clock.start(float(wall_now_ms))
        self._last_wall_ms = float(wall_now_ms)

    def restart(self, wall_now_ms: float) -> None:
        self.start(wall_now_ms)

    def pause(self, wall_now_ms: float) -> bool:
        return self._clock.pause(float(wall_now_ms))

    def resume(self, wall_now_ms: float) -> bool:
        return self._clock.resume(float(wall_now_ms))

    def seek_to_start(self) -> None:
        self._reset_run()
        self._feedback.clear()
        self._clock.seek_to_start()

    def set_loop(self, enabled: bool) -> None:
        self._state.loop_enabled = bool(enabled)

    def set_autoplay(self, enabled: bool, mode: Optional[str] = None) -> None:
        if mode is not None:
            self._autoplay.set_mode(mode)
        self._state.autoplay_enabled = bool(enabled)

    def set_pre_roll_ms(self, pre_roll_ms: float) -> None:
        self._clock.set_pre_roll_ms(pre_roll_ms)

    def set_drop_ms(self, drop_ms: float) -> None:
        if float(drop_ms) > 0.0:
            self._drop_ms = float(drop_ms)

    # -----------------
    # Input surface
    # -----------------

    def activate(self, lane: int, at_time_ms: Optional[float] = None) -> bool:
        lane_value = int(lane)
        if lane_value < 0 or lane_value >= self._lanes:
            return False
        time_value = float(at_time_ms) if at_time_ms is not None else None
        self._pending_inputs.append(gameplay_models.InputEvent(lane=lane_value, time_ms=time_value))
        return True

    # -----------------
    # Tick
    # -----------------

    def tick(self, wall_now_ms: float) -> gameplay_models.EngineSnapshot:
        wall_now = float(wall_now_ms)
        self._last_wall_ms = wall_now

        self._clock.update(wall_now)
        if self._clock.is_playing():
            current_time = self._clock.logical_time_ms(wall_now)
            self._judge_engine.sweep_late_misses(current_time)

            if self._state.autoplay_enabled:
                for proposal in self._autoplay.propose_activations(current_time, self._note_scheduler):
                    self._judge_engine.on_input_event(proposal)

            pending = self._pending_inputs
            self._pending_inputs = []
            for input_event in pending:
                activation_time = input_event.time_ms if input_event.time_ms is not None else current_time
                self._judge_engine.evaluate_activation(input_event.lane, activation_time)

            self._collect_feedback(wall_now)

            if not self.chart().is_empty() and self._note_scheduler.all_judged():
                self._complete_run(wall_now)
        elif self._pending_inputs:
            logger.debug("dropped %d activation(s) outside play", len(self._pending_inputs))
            self._pending_inputs.clear()

        self._prune_feedback(wall_now)
        return self.snapshot()

    def _collect_feedback(self, wall_now_ms: float) -> None:
        for event in self._judge_engine.recent_judgements():
            self._feedback.append((wall_now_ms, event))
        self._judge_engine.clear_recent_judgements()

    def _prune_feedback(self, wall_now_ms: float) -> None:
        self._feedback = [
            (emitted_ms, event) for emitted_ms, event in self._feedback if wall_now_ms - emitted_ms < self._feedback_ttl_ms
        ]

    def _complete_run(self, wall_now_ms: float) -> None:
        self._clock.mark_complete()
        stats = self._judge_engine.run_state().to_run_stats()
        chart = self.chart()
        self._aggregator.record_run(chart.fingerprint, stats)
        self._state.completed_runs += 1
        self._state.last_run = stats

        if self._state.loop_enabled:
            logger.info("run complete (score=%d), looping", stats.score)
            self._reset_run()
            self._clock.start(wall_now_ms)
        else:
            logger.info("run complete (score=%d)", stats.score)
            self._clock.finish(chart.last_note_time_ms())

    # -----------------
    # Snapshot
    # -----------------

    def _note_views(self, current_time_ms: float) -> Tuple[gameplay_models.NoteView, ...]:
        views: List[gameplay_models.NoteView] = []
        visible = self._note_scheduler.visible_notes(
            current_time_ms=current_time_ms,
            lookback_ms=VISIBLE_LOOKBACK_MS,
            lookahead_ms=self._drop_ms,
        )
        for scheduled_note in visible:
            time_to_hit = scheduled_note.time_ms - current_time_ms
            progress = min(1.0, max(0.0, 1.0 - time_to_hit / self._drop_ms))
            views.append(
                gameplay_models.NoteView(
                    time_ms=scheduled_note.time_ms,
                    lane=scheduled_note.lane,
                    judged=scheduled_note.is_judged,
                    hit=scheduled_note.is_hit,
                    progress=progress,
                )
            )
        return tuple(views)

    def snapshot(self) -> gameplay_models.EngineSnapshot:
        wall_now = self._last_wall_ms
        clock_snapshot = self._clock.snapshot(wall_now)
        run_state = self._judge_engine.run_state()
        chart = self.chart()
        return gameplay_models.EngineSnapshot(
            logical_time_ms=clock_snapshot.logical_time_ms,
            transport_state=clock_snapshot.state,
            pre_roll_remaining_ms=clock_snapshot.pre_roll_remaining_ms,
            notes=self._note_views(clock_snapshot.logical_time_ms),
            recent_feedback=tuple(event for _emitted_ms, event in self._feedback),
            score=run_state.score,
            combo=run_state.combo,
            longest_streak=run_state.longest_streak,
            counts_by_tier=run_state.counts_by_tier(),
            total_notes=len(chart.notes),
            judged_notes=self._note_scheduler.judged_count(),
            fingerprint=chart.fingerprint,
            metadata=dict(chart.metadata),
            loop_enabled=self._state.loop_enabled,
            autoplay_enabled=self._state.autoplay_enabled,
            autoplay_mode=self._autoplay.mode().value,
            completed_runs=self._state.completed_runs,
            last_run=self._state.last_run,
        )
