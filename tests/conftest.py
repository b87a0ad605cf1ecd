from __future__ import annotations

from typing import Any, Dict, Iterable, Tuple

import pytest

import config
import gameplay_models
import judge


def make_app_config(**sections: Dict[str, Any]) -> config.AppConfig:
    return config.validate_config(dict(sections))


def make_chart(notes: Iterable[Tuple[float, int]], fingerprint: str = "test-chart") -> gameplay_models.Chart:
    return gameplay_models.Chart(
        notes=tuple(gameplay_models.NoteEvent(time_ms=float(time_ms), lane=int(lane)) for time_ms, lane in notes),
        fingerprint=fingerprint,
    )


@pytest.fixture
def three_tier_config() -> config.AppConfig:
    return make_app_config(
        judgement={
            "tiers": [
                {"name": "perfect", "threshold_ms": 10, "score": 300},
                {"name": "great", "threshold_ms": 40, "score": 120},
                {"name": "good", "threshold_ms": 80, "score": 50},
            ],
            "late_miss_ms": 120,
        },
        transport={"pre_roll_ms": 0},
    )


@pytest.fixture
def three_tiers(three_tier_config: config.AppConfig) -> judge.JudgementTiers:
    return judge.JudgementTiers.from_config(three_tier_config.judgement)
