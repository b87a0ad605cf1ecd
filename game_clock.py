# -*- coding: utf-8 -*-
########################
# game_clock.py
########################
# Purpose:
# - Qt frame host for a GameplaySession.
# - Samples the monotonic clock once per frame, applies queued control commands, ticks the session and
#   emits the resulting EngineSnapshot to subscribers (renderers, loggers, the control server).
#
# Design notes:
# - All engine work happens on the Qt thread inside the timer callback. No locking inside the engine.
# - One wall sample per frame: commands and the tick share it.
# - Errors from control commands are logged and dropped so a bad request never stops the frame loop.
#
########################
# Interfaces:
# Public classes:
# - class GameClock(PyQt6.QtCore.QObject)
#   - Signals:
#     - snapshotUpdated(EngineSnapshot)
#     - runCompleted(RunStats)
#   - Methods:
#     - start() -> None
#     - stop() -> None
#     - is_running() -> bool
#     - tick_once() -> EngineSnapshot
#     - last_snapshot() -> Optional[EngineSnapshot]
#
# Inputs:
# - GameplaySession, optional web_server.ControlState, optional time source returning milliseconds.
#
# Outputs:
# - snapshotUpdated and runCompleted signals; status and history published into ControlState.
#
########################

from __future__ import annotations

import logging
from typing import Callable, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

import gameplay_models
import gameplay_session
import run_history
import transport_clock
import web_server


logger = logging.getLogger(__name__)


class GameClock(QObject):
    snapshotUpdated = pyqtSignal(object)
    runCompleted = pyqtSignal(object)

    def __init__(
        self,
        session: gameplay_session.GameplaySession,
        *,
        control_state: Optional[web_server.ControlState] = None,
        interval_ms: int = 16,
        time_source: Callable[[], float] = transport_clock.monotonic_ms,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._session = session
        self._control_state = control_state
        self._time_source = time_source
        self._last_snapshot: Optional[gameplay_models.EngineSnapshot] = None
        self._completed_runs_seen = int(session.state.completed_runs)

        self._timer = QTimer(self)
        self._timer.setInterval(int(interval_ms))
        self._timer.timeout.connect(self.tick_once)

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def is_running(self) -> bool:
        return bool(self._timer.isActive())

    def last_snapshot(self) -> Optional[gameplay_models.EngineSnapshot]:
        return self._last_snapshot

    def _apply_control_commands(self, wall_now_ms: float) -> None:
        if self._control_state is None:
            return
        for command in self._control_state.drain():
            try:
                web_server.apply_command(self._session, command, wall_now_ms)
            except Exception:
                logger.exception("control command %r failed", command.name)

    def _publish(self, snapshot: gameplay_models.EngineSnapshot) -> None:
        if self._control_state is None:
            return
        status = {"ok": True}
        status.update(gameplay_models.snapshot_to_dict(snapshot))
        history = {
            fingerprint: run_history.record_to_dict(record)
            for fingerprint, record in self._session.aggregator().records().items()
        }
        self._control_state.publish(status, history)

    def tick_once(self) -> gameplay_models.EngineSnapshot:
        wall_now_ms = float(self._time_source())
        self._apply_control_commands(wall_now_ms)
        snapshot = self._session.tick(wall_now_ms)
        self._last_snapshot = snapshot

        self._publish(snapshot)
        self.snapshotUpdated.emit(snapshot)

        if snapshot.completed_runs > self._completed_runs_seen:
            self._completed_runs_seen = snapshot.completed_runs
            self.runCompleted.emit(snapshot.last_run)
        return snapshot
