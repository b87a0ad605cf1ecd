from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import chart_loader
from gameplay_models import Chart


GENERATOR_VERSION = "frames_v1"


def make_bits_from_lanes(lanes: Sequence[int], *, lane_count: int = 12) -> str:
    bits = ["0"] * chart_loader.BITS_LENGTH
    for lane in lanes:
        if 0 <= int(lane) < int(lane_count):
            bits[int(lane) + chart_loader.LANE_BIT_OFFSET] = "1"
    return "".join(bits)


def _now_text() -> str:
    return datetime.now(timezone.utc).isoformat()


def sample_frames_document(*, lane_count: int = 12) -> dict:
    start_ms = 500
    step_ms = 300
    total = 42

    frames: List[list] = []
    for index in range(total):
        time_ms = start_ms + index * step_ms
        lane = index % lane_count
        # Every fourth frame adds a chord partner seven lanes over.
        chord = [(lane + 7) % lane_count] if index % 4 == 0 else []
        frames.append([time_ms, make_bits_from_lanes([lane, *chord], lane_count=lane_count)])

    return {
        "meta": {"start_time": _now_text(), "game": "Demo", "character": "Sampler"},
        "frames": frames,
    }


def random_frames_document(*, seed: Optional[int] = None, lane_count: int = 12, duration_ms: float = 30_000.0) -> dict:
    random_generator = random.Random(seed)
    start_ms = 500.0
    min_gap_ms = 200.0
    max_gap_ms = 800.0

    frames: List[list] = []
    current_time_ms = start_ms
    while current_time_ms < float(duration_ms):
        note_count = random_generator.randint(1, min(3, lane_count))
        lanes = random_generator.sample(range(lane_count), note_count)
        frames.append([current_time_ms, make_bits_from_lanes(lanes, lane_count=lane_count)])
        current_time_ms += min_gap_ms + random_generator.random() * (max_gap_ms - min_gap_ms)

    return {
        "meta": {
            "start_time": _now_text(),
            "game": "Random Pattern",
            "character": "Auto-Generated",
            "seed": seed,
            "generator_version": GENERATOR_VERSION,
        },
        "frames": frames,
    }


def generate_sample_chart(*, lane_count: int = 12) -> Chart:
    return chart_loader.parse_frames(sample_frames_document(lane_count=lane_count), lanes=lane_count)


def generate_random_chart(*, seed: Optional[int] = None, lane_count: int = 12) -> Chart:
    return chart_loader.parse_frames(random_frames_document(seed=seed, lane_count=lane_count), lanes=lane_count)
