from __future__ import annotations

import pytest

QtCore = pytest.importorskip("PyQt6.QtCore")

import chart_generator  # noqa: E402
import game_clock  # noqa: E402
import web_server  # noqa: E402
from conftest import make_app_config  # noqa: E402
from gameplay_session import GameplaySession  # noqa: E402


@pytest.fixture(scope="module")
def qt_application():
    application = QtCore.QCoreApplication.instance()
    if application is None:
        application = QtCore.QCoreApplication([])
    return application


class FakeTime:
    def __init__(self) -> None:
        self.now_ms = 0.0

    def __call__(self) -> float:
        return self.now_ms


def test_tick_once_applies_commands_and_publishes(qt_application):
    session = GameplaySession(make_app_config(transport={"pre_roll_ms": 0}))
    control_state = web_server.ControlState(lanes=12)
    fake_time = FakeTime()
    clock = game_clock.GameClock(session, control_state=control_state, time_source=fake_time)

    snapshots = []
    completed = []
    clock.snapshotUpdated.connect(snapshots.append)
    clock.runCompleted.connect(completed.append)

    control_state.enqueue("load", chart=chart_generator.generate_sample_chart())
    control_state.enqueue("autoplay", enabled=True, mode="perfect")
    control_state.enqueue("start")
    clock.tick_once()

    assert control_state.status()["transport_state"] == "playing"
    assert clock.last_snapshot() is snapshots[-1]

    while not completed and fake_time.now_ms < 60000.0:
        fake_time.now_ms += 16.0
        clock.tick_once()

    assert len(completed) == 1
    assert completed[0].count("perfect") == 53
    history = control_state.history()
    assert list(history.values())[0]["runs"] == 1


def test_failing_command_does_not_stop_the_frame(qt_application):
    session = GameplaySession(make_app_config(transport={"pre_roll_ms": 0}))
    control_state = web_server.ControlState(lanes=12)
    clock = game_clock.GameClock(session, control_state=control_state, time_source=lambda: 0.0)

    control_state.enqueue("activate")
    snapshot = clock.tick_once()

    assert snapshot.completed_runs == 0
    assert control_state.status()["ok"] is True
    assert not clock.is_running()
