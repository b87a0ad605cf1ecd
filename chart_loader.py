# -*- coding: utf-8 -*-
########################
# chart_loader.py
########################
# Purpose:
# - Convert external chart data into a normalized gameplay_models.Chart.
# - Supports the JSON "frames" format (time + 16 character lane bit string) and generic
#   {time, lane} note lists produced by any other loader.
#
########################
# Key Logic:
# - Accepted frame documents:
#   - [frame, ...]
#   - {"frames": [frame, ...], "meta": {...}}
#   - {"data": [frame, ...], "meta": {...}}
# - A frame is [time_ms, bits] or {"t": time_ms, "bits": bits}. bits has 16 characters; characters
#   2..15 map to lanes 0..13 and "1" places a note on that lane.
# - Malformed entries (non-finite time, wrong bit string length, lane out of range) are skipped.
#   A chart with zero valid notes is a valid, empty chart.
# - Notes are sorted by (time, lane) and shifted so the earliest note sits at 0.
# - The fingerprint is a SHA-256 over the normalized notes, so identical content shares history.
#
########################
# Interfaces:
# Public exceptions:
# - class ChartLoadError(Exception)
#
# Public functions:
# - build_chart(notes: Iterable[Any], *, metadata: Optional[dict] = None, lanes: int = 12) -> Chart
# - parse_frames(document: Any, *, lanes: int = 12) -> Chart
# - parse_frames_json(text: str, *, lanes: int = 12) -> Chart
# - load_chart_file(chart_path: pathlib.Path, *, lanes: int = 12) -> Chart
# - chart_fingerprint(notes: Sequence[NoteEvent]) -> str
#
# Inputs:
# - JSON text, parsed JSON values or note dicts/objects.
#
# Outputs:
# - gameplay_models.Chart
#
########################
# Smoke Tests:
#   - python chart_loader.py
########################

from __future__ import annotations

import hashlib
import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import gameplay_models


logger = logging.getLogger(__name__)

BITS_LENGTH = 16
LANE_BIT_OFFSET = 2


class ChartLoadError(Exception):
    """Raised when chart data cannot be read or is not a recognizable chart document."""


def chart_fingerprint(notes: Sequence[gameplay_models.NoteEvent]) -> str:
    payload = ";".join(f"{float(note.time_ms):.3f}:{int(note.lane)}" for note in notes)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def _coerce_time(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def _coerce_lane(value: Any, lanes: int) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if not isinstance(value, int):
        return None
    if value < 0 or value >= int(lanes):
        return None
    return int(value)


def _normalize(raw_notes: List[Tuple[float, int]], metadata: Dict[str, Any]) -> gameplay_models.Chart:
    raw_notes.sort(key=lambda item: (item[0], item[1]))
    first_time = raw_notes[0][0] if raw_notes else 0.0
    notes = tuple(gameplay_models.NoteEvent(time_ms=time_ms - first_time, lane=lane) for time_ms, lane in raw_notes)
    return gameplay_models.Chart(notes=notes, metadata=dict(metadata), fingerprint=chart_fingerprint(notes))


def build_chart(
    notes: Iterable[Any],
    *,
    metadata: Optional[Dict[str, Any]] = None,
    lanes: int = 12,
) -> gameplay_models.Chart:
    raw_notes: List[Tuple[float, int]] = []
    skipped = 0
    for entry in notes:
        if isinstance(entry, dict):
            time_value = entry.get("time", entry.get("time_ms"))
            lane_value = entry.get("lane")
        else:
            time_value = getattr(entry, "time_ms", getattr(entry, "time", None))
            lane_value = getattr(entry, "lane", None)

        time_ms = _coerce_time(time_value)
        lane = _coerce_lane(lane_value, lanes)
        if time_ms is None or lane is None:
            skipped += 1
            continue
        raw_notes.append((time_ms, lane))

    if skipped:
        logger.debug("skipped %d malformed note entries", skipped)
    return _normalize(raw_notes, metadata or {})


def _frames_and_meta(document: Any) -> Tuple[List[Any], Dict[str, Any]]:
    if isinstance(document, list):
        return document, {}
    if isinstance(document, dict):
        meta_value = document.get("meta")
        meta = dict(meta_value) if isinstance(meta_value, dict) else {}
        for key in ("frames", "data"):
            frames = document.get(key)
            if isinstance(frames, list):
                return frames, meta
        return [], meta
    raise ChartLoadError("Chart document must be a list of frames or an object with frames/data")


def parse_frames(document: Any, *, lanes: int = 12) -> gameplay_models.Chart:
    frames, metadata = _frames_and_meta(document)

    raw_notes: List[Tuple[float, int]] = []
    skipped_frames = 0
    for entry in frames:
        if isinstance(entry, (list, tuple)):
            time_value = entry[0] if len(entry) > 0 else None
            bits_value = entry[1] if len(entry) > 1 else ""
        elif isinstance(entry, dict):
            time_value = entry.get("t")
            bits_value = entry.get("bits", "")
        else:
            skipped_frames += 1
            continue

        time_ms = _coerce_time(time_value)
        bits = str(bits_value if bits_value is not None else "").strip()
        if time_ms is None or len(bits) != BITS_LENGTH:
            skipped_frames += 1
            continue

        for bit_index in range(LANE_BIT_OFFSET, BITS_LENGTH):
            if bits[bit_index] != "1":
                continue
            lane = bit_index - LANE_BIT_OFFSET
            if lane >= int(lanes):
                continue
            raw_notes.append((time_ms, lane))

    if skipped_frames:
        logger.debug("skipped %d malformed frames", skipped_frames)
    chart = _normalize(raw_notes, metadata)
    if chart.is_empty():
        logger.warning("chart contains no valid notes")
    return chart


def parse_frames_json(text: str, *, lanes: int = 12) -> gameplay_models.Chart:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exception:
        raise ChartLoadError(f"Chart data is not valid JSON: {exception}") from exception
    return parse_frames(document, lanes=lanes)


def load_chart_file(chart_path: Path, *, lanes: int = 12) -> gameplay_models.Chart:
    try:
        raw_text = Path(chart_path).read_text(encoding="utf-8")
    except OSError as exception:
        raise ChartLoadError(f"Failed to read chart file: {chart_path}. Error: {exception}") from exception
    chart = parse_frames_json(raw_text, lanes=lanes)
    logger.info("loaded %d notes from %s (fingerprint %s)", len(chart.notes), chart_path, chart.fingerprint)
    return chart


def _run_smoke_tests() -> None:
    chart = parse_frames_json('[[1500, "0010000000000000"], [1000, "0000000000000011"], ["x", "0010"]]')
    # Lanes 12 and 13 fall outside the default 12 lane layout.
    assert [(note.time_ms, note.lane) for note in chart.notes] == [(0.0, 0)]

    chart = parse_frames({"frames": [{"t": 250, "bits": "0011000000000000"}], "meta": {"game": "Demo"}})
    assert [(note.time_ms, note.lane) for note in chart.notes] == [(0.0, 0), (0.0, 1)]
    assert chart.metadata == {"game": "Demo"}

    empty = build_chart([{"time": float("nan"), "lane": 0}, {"time": 5, "lane": 99}])
    assert empty.is_empty()


if __name__ == "__main__":
    _run_smoke_tests()
    print("chart_loader.py: ok")
