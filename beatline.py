"""
beatline.py

Entrypoint that hosts a Beatline gameplay session.

Integration
- Loads config and the requested chart (file, sample or random)
- Builds a GameplaySession and applies CLI toggles (autoplay, loop)
- Either runs a synthetic-clock simulation and prints the results as JSON (--simulate),
  or starts a Qt event loop driven by GameClock plus the local control server
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import chart_generator
import chart_loader
import config as app_config_module
import gameplay_models
import gameplay_session
import logging_setup
import run_history
import transport_clock


logger = logging.getLogger("beatline")


def _build_argument_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(description="Beatline rhythm judgement engine")
    chart_group = argument_parser.add_mutually_exclusive_group()
    chart_group.add_argument("--chart", type=Path, help="Path to a JSON frames chart.")
    chart_group.add_argument("--sample", action="store_true", help="Use the built-in sample chart (default).")
    chart_group.add_argument("--random", action="store_true", help="Generate a random 30 second chart.")
    argument_parser.add_argument("--seed", type=int, default=None, help="Seed for --random and autoplay.")
    argument_parser.add_argument("--autoplay", action="store_true", help="Enable the autoplay simulator.")
    argument_parser.add_argument(
        "--autoplay-mode",
        choices=list(app_config_module.AUTOPLAY_MODES),
        default=None,
        help="Autoplay accuracy model.",
    )
    argument_parser.add_argument("--loop", action="store_true", help="Restart the chart after every completion.")
    argument_parser.add_argument("--no-server", action="store_true", help="Do not start the control server.")
    argument_parser.add_argument("--simulate", action="store_true", help="Run headless with a synthetic clock.")
    argument_parser.add_argument("--max-seconds", type=float, default=120.0, help="Simulation time limit.")
    argument_parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors.")
    argument_parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return argument_parser


def _load_requested_chart(parsed_args: argparse.Namespace, lanes: int) -> gameplay_models.Chart:
    if parsed_args.chart is not None:
        return chart_loader.load_chart_file(parsed_args.chart, lanes=lanes)
    if parsed_args.random:
        return chart_generator.generate_random_chart(seed=parsed_args.seed, lane_count=lanes)
    return chart_generator.generate_sample_chart(lane_count=lanes)


def run_simulation(
    session: gameplay_session.GameplaySession,
    *,
    max_seconds: float = 120.0,
    frame_ms: float = 16.0,
    runs: int = 1,
) -> Dict[str, Any]:
    """Drive a session with a synthetic clock until `runs` completions or the time limit."""
    wall_now_ms = 0.0
    limit_ms = float(max_seconds) * 1000.0
    target_runs = session.state.completed_runs + max(1, int(runs))

    session.start(wall_now_ms)
    snapshot = session.tick(wall_now_ms)
    while snapshot.completed_runs < target_runs and wall_now_ms < limit_ms:
        wall_now_ms += float(frame_ms)
        snapshot = session.tick(wall_now_ms)

    chart = session.chart()
    record = session.aggregator().get(chart.fingerprint)
    return {
        "ok": snapshot.completed_runs >= target_runs,
        "fingerprint": chart.fingerprint,
        "notes": len(chart.notes),
        "wall_ms": wall_now_ms,
        "last_run": None if snapshot.last_run is None else {
            "score": snapshot.last_run.score,
            "longest_streak": snapshot.last_run.longest_streak,
            "counts_by_tier": dict(snapshot.last_run.counts_by_tier),
        },
        "history": None if record is None else run_history.record_to_dict(record),
    }


def _run_qt_host(session: gameplay_session.GameplaySession, app_config: app_config_module.AppConfig, parsed_args) -> int:
    from PyQt6.QtCore import QCoreApplication

    import game_clock
    import web_server

    qt_application = QCoreApplication(sys.argv)

    control_state: Optional[web_server.ControlState] = None
    serve = app_config.control_server.enabled and not parsed_args.no_server
    if serve:
        control_state = web_server.ControlState(lanes=app_config.chart.lanes)
        web_server.start_in_background(
            web_server.WebServerConfig(
                host=str(app_config.control_server.host),
                port=int(app_config.control_server.port),
                debug=False,
            ),
            control_state,
        )

    clock = game_clock.GameClock(session, control_state=control_state, parent=qt_application)

    def on_run_completed(stats: Optional[gameplay_models.RunStats]) -> None:
        if stats is not None:
            logger.info("run finished: score=%d streak=%d %s", stats.score, stats.longest_streak, stats.counts_by_tier)
        if not session.state.loop_enabled and not serve:
            qt_application.quit()

    clock.runCompleted.connect(on_run_completed)

    session.start(transport_clock.monotonic_ms())
    clock.start()
    return int(qt_application.exec())


def main(argv: Optional[list] = None) -> int:
    parsed_args = _build_argument_parser().parse_args(argv)
    logging_setup.setup_logging(parsed_args)

    try:
        app_config, config_path = app_config_module.load_config()
    except (app_config_module.ConfigurationInvariantViolation, ValueError, OSError) as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2
    if config_path is not None:
        logger.info("using config %s", config_path)

    if parsed_args.seed is not None and app_config.autoplay.seed is None:
        app_config.autoplay.seed = int(parsed_args.seed)

    try:
        chart = _load_requested_chart(parsed_args, app_config.chart.lanes)
    except chart_loader.ChartLoadError as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    session = gameplay_session.GameplaySession(app_config)
    session.load_chart(chart)
    if parsed_args.autoplay or parsed_args.autoplay_mode is not None:
        session.set_autoplay(True, parsed_args.autoplay_mode)
    if parsed_args.loop:
        session.set_loop(True)

    if parsed_args.simulate:
        if not session.state.autoplay_enabled:
            logger.warning("simulating without autoplay: every note will be a late miss")
        result = run_simulation(session, max_seconds=parsed_args.max_seconds)
        print(json.dumps(result, ensure_ascii=False, indent=2))
        return 0 if result["ok"] else 1

    return _run_qt_host(session, app_config, parsed_args)


if __name__ == "__main__":
    raise SystemExit(main())
