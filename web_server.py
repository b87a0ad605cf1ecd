# -*- coding: utf-8 -*-
from __future__ import annotations

########################
# web_server.py
########################
# Purpose:
# - Local Flask control server for a running Beatline session.
# - Provides /api endpoints for load, start, pause, resume, restart, stop, loop, autoplay, settings, lane activation,
#   status and run history.
#
# Design notes:
# - The server never touches the engine. Request handlers validate payloads and enqueue ControlCommand
#   values into ControlState; the frame host drains them on its own thread at the start of a tick.
# - Status and history responses come from the last values the host published.
# - ControlState is the only object shared between threads; keep it lock protected and explicit.
#
########################
# Interfaces:
# Public dataclasses:
# - WebServerConfig(host: str, port: int, debug: bool)
# - ControlCommand(name: str, payload: dict)
#
# Public classes:
# - class ControlState
#   - enqueue(name: str, **payload) -> None
#   - drain() -> list[ControlCommand]
#   - publish(status: dict, history: dict) -> None
#   - status() -> dict
#   - history() -> dict
#
# Public functions:
# - apply_command(session: GameplaySession, command: ControlCommand, wall_now_ms: float) -> None
# - create_flask_app(control_state: ControlState) -> flask.Flask
# - start_in_background(config: WebServerConfig, control_state: ControlState) -> threading.Thread
#
# Inputs:
# - HTTP requests from local clients:
#   - /api/status, /api/history (GET)
#   - /api/load, /api/start, /api/pause, /api/resume, /api/restart, /api/stop (POST)
#   - /api/activate, /api/loop, /api/autoplay, /api/settings (POST)
#
# Outputs:
# - JSON responses.
#
########################

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List

from flask import Flask, Response, jsonify, request

import autoplay
import chart_generator
import chart_loader


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebServerConfig:
    host: str
    port: int
    debug: bool = False


@dataclass(frozen=True)
class ControlCommand:
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)


class ControlState:
    """Commands requested over HTTP plus the last status the host published."""

    def __init__(self, *, lanes: int = 12) -> None:
        self._lock = threading.RLock()
        self._lanes = int(lanes)
        self._commands: List[ControlCommand] = []
        self._status: Dict[str, Any] = {"ok": True, "transport_state": "idle"}
        self._history: Dict[str, Any] = {}

    @property
    def lanes(self) -> int:
        return self._lanes

    def enqueue(self, name: str, **payload: Any) -> None:
        with self._lock:
            self._commands.append(ControlCommand(name=str(name), payload=dict(payload)))

    def drain(self) -> List[ControlCommand]:
        with self._lock:
            commands = self._commands
            self._commands = []
        return commands

    def publish(self, status: Dict[str, Any], history: Dict[str, Any]) -> None:
        with self._lock:
            self._status = dict(status)
            self._history = dict(history)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._status)

    def history(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._history)


def apply_command(session, command: ControlCommand, wall_now_ms: float) -> None:
    """Apply one queued command to a GameplaySession. Runs on the host thread."""
    name = command.name
    payload = command.payload

    if name == "load":
        session.load_chart(payload["chart"])
    elif name == "start":
        session.start(wall_now_ms)
    elif name == "restart":
        session.restart(wall_now_ms)
    elif name == "pause":
        session.pause(wall_now_ms)
    elif name == "resume":
        session.resume(wall_now_ms)
    elif name == "stop":
        session.seek_to_start()
    elif name == "loop":
        session.set_loop(bool(payload.get("enabled")))
    elif name == "autoplay":
        session.set_autoplay(bool(payload.get("enabled")), payload.get("mode"))
    elif name == "activate":
        session.activate(int(payload["lane"]), payload.get("time_ms"))
    elif name == "settings":
        if payload.get("pre_roll_ms") is not None:
            session.set_pre_roll_ms(float(payload["pre_roll_ms"]))
        if payload.get("drop_ms") is not None:
            session.set_drop_ms(float(payload["drop_ms"]))
    else:
        logger.warning("ignoring unknown control command %r", name)


def create_flask_app(control_state: ControlState) -> Flask:
    flask_app = Flask(__name__, static_folder=None)
    flask_app.extensions["beatline_control_state"] = control_state

    @flask_app.after_request
    def add_no_cache_headers(response: Response) -> Response:
        response.headers["Cache-Control"] = "no-store"
        return response

    def bad_request(message: str):
        return jsonify({"ok": False, "error": message}), 400

    def ok_response() -> Response:
        return jsonify({"ok": True})

    @flask_app.get("/api/status")
    def api_status() -> Response:
        return jsonify(control_state.status())

    @flask_app.get("/api/history")
    def api_history() -> Response:
        return jsonify({"ok": True, "records": control_state.history()})

    @flask_app.post("/api/load")
    def api_load():
        payload = request.get_json(silent=True) or {}
        lanes = control_state.lanes
        try:
            if payload.get("sample"):
                chart = chart_generator.generate_sample_chart(lane_count=lanes)
            elif payload.get("random"):
                seed_value = payload.get("seed")
                seed = int(seed_value) if isinstance(seed_value, int) else None
                chart = chart_generator.generate_random_chart(seed=seed, lane_count=lanes)
            elif "chart" in payload:
                chart = chart_loader.parse_frames(payload.get("chart"), lanes=lanes)
            else:
                return bad_request("Expected one of: chart, sample, random")
        except chart_loader.ChartLoadError as exception:
            return bad_request(str(exception))

        control_state.enqueue("load", chart=chart)
        return jsonify({"ok": True, "notes": len(chart.notes), "fingerprint": chart.fingerprint})

    @flask_app.post("/api/start")
    def api_start() -> Response:
        control_state.enqueue("start")
        return ok_response()

    @flask_app.post("/api/pause")
    def api_pause() -> Response:
        control_state.enqueue("pause")
        return ok_response()

    @flask_app.post("/api/resume")
    def api_resume() -> Response:
        control_state.enqueue("resume")
        return ok_response()

    @flask_app.post("/api/restart")
    def api_restart() -> Response:
        control_state.enqueue("restart")
        return ok_response()

    @flask_app.post("/api/stop")
    def api_stop() -> Response:
        control_state.enqueue("stop")
        return ok_response()

    @flask_app.post("/api/loop")
    def api_loop():
        payload = request.get_json(silent=True) or {}
        enabled_value = payload.get("enabled")
        if not isinstance(enabled_value, bool):
            return bad_request("enabled must be a boolean")
        control_state.enqueue("loop", enabled=enabled_value)
        return ok_response()

    @flask_app.post("/api/autoplay")
    def api_autoplay():
        payload = request.get_json(silent=True) or {}
        enabled_value = payload.get("enabled")
        if not isinstance(enabled_value, bool):
            return bad_request("enabled must be a boolean")
        mode_value = payload.get("mode")
        if mode_value is not None:
            try:
                mode_value = autoplay.parse_mode(str(mode_value)).value
            except ValueError as exception:
                return bad_request(str(exception))
        control_state.enqueue("autoplay", enabled=enabled_value, mode=mode_value)
        return ok_response()

    @flask_app.post("/api/settings")
    def api_settings():
        payload = request.get_json(silent=True) or {}
        settings: Dict[str, float] = {}
        for key_name, minimum, inclusive in (("pre_roll_ms", 0.0, True), ("drop_ms", 0.0, False)):
            value = payload.get(key_name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                return bad_request(f"{key_name} must be a number")
            if value < minimum or (value == minimum and not inclusive):
                relation = ">=" if inclusive else ">"
                return bad_request(f"{key_name} must be {relation} {minimum:g}")
            settings[key_name] = float(value)
        if not settings:
            return bad_request("Expected at least one of: pre_roll_ms, drop_ms")
        control_state.enqueue("settings", **settings)
        return ok_response()

    @flask_app.post("/api/activate")
    def api_activate():
        payload = request.get_json(silent=True) or {}
        lane_value = payload.get("lane")
        if isinstance(lane_value, bool) or not isinstance(lane_value, int):
            return bad_request("lane must be an integer")
        if lane_value < 0 or lane_value >= control_state.lanes:
            return bad_request(f"lane must be in [0, {control_state.lanes})")
        time_value = payload.get("time_ms")
        if time_value is not None and (isinstance(time_value, bool) or not isinstance(time_value, (int, float))):
            return bad_request("time_ms must be a number")
        control_state.enqueue("activate", lane=lane_value, time_ms=float(time_value) if time_value is not None else None)
        return ok_response()

    return flask_app


def start_in_background(config: WebServerConfig, control_state: ControlState) -> threading.Thread:
    """Start the Flask server in a daemon thread."""
    flask_app = create_flask_app(control_state)

    def run_server() -> None:
        flask_app.run(
            host=config.host,
            port=config.port,
            debug=config.debug,
            use_reloader=False,
            threaded=False,
        )

    server_thread = threading.Thread(target=run_server, name="beatline-control-server", daemon=True)
    server_thread.start()
    logger.info("control server listening on http://%s:%d", config.host, config.port)
    return server_thread
