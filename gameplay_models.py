# -*- coding: utf-8 -*-
########################
# gameplay_models.py
########################
# Purpose:
# - Core gameplay data models for the runtime judgement pipeline.
# - Defines the canonical Chart representation, input and feedback events, autoplay plans
#   and the read-only snapshot handed to renderers.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - No Qt usage. These are plain dataclasses.
# - All times are milliseconds. Chart times are normalized so the earliest note sits at 0.
#
########################
# Interfaces:
# Public enums:
# - class TransportState(enum.Enum): IDLE | PRE_ROLL | PLAYING | PAUSED | COMPLETE
#
# Public dataclasses:
# - NoteEvent(time_ms: float, lane: int)
# - Chart(notes: tuple[NoteEvent, ...], metadata: dict, fingerprint: str)
# - InputEvent(lane: int, time_ms: Optional[float])
# - JudgementEvent(time_ms, lane, note_time_ms, delta_ms, judgement, is_hit, color)
# - PlannedMiss(mode: str)
# - PlannedHit(mode: str, target_offset_ms: float)
# - RunStats(counts_by_tier: dict[str, int], score: int, longest_streak: int)
# - NoteView(time_ms, lane, judged, hit, progress)
# - EngineSnapshot(...)
#
# Public functions:
# - snapshot_to_dict(snapshot: EngineSnapshot) -> dict
#
# Inputs/Outputs:
# - These types are exchanged between TransportClock, NoteScheduler, JudgeEngine, AutoplaySimulator,
#   RunAggregator, GameplaySession and the host/control layers.
#
########################

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import enum
from typing import Any, Dict, Optional, Tuple, Union


class TransportState(enum.Enum):
    IDLE = "idle"
    PRE_ROLL = "pre_roll"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETE = "complete"


@dataclass(frozen=True)
class NoteEvent:
    time_ms: float
    lane: int


@dataclass(frozen=True)
class Chart:
    notes: Tuple[NoteEvent, ...]
    metadata: Dict[str, Any] = field(default_factory=dict)
    fingerprint: str = ""

    def is_empty(self) -> bool:
        return not self.notes

    def last_note_time_ms(self) -> float:
        if not self.notes:
            return 0.0
        return max(float(note.time_ms) for note in self.notes)


@dataclass(frozen=True)
class InputEvent:
    lane: int
    time_ms: Optional[float] = None


@dataclass(frozen=True)
class JudgementEvent:
    time_ms: float
    lane: int
    note_time_ms: float
    delta_ms: float
    judgement: str
    is_hit: bool
    color: str = "#ffffff"


# Autoplay plans are replaced wholesale, never edited field by field.
@dataclass(frozen=True)
class PlannedMiss:
    mode: str


@dataclass(frozen=True)
class PlannedHit:
    mode: str
    target_offset_ms: float


AutoplayPlan = Union[PlannedMiss, PlannedHit]


@dataclass(frozen=True)
class RunStats:
    counts_by_tier: Dict[str, int]
    score: int
    longest_streak: int

    def count(self, tier_name: str) -> int:
        return int(self.counts_by_tier.get(str(tier_name), 0))


@dataclass(frozen=True)
class NoteView:
    time_ms: float
    lane: int
    judged: bool
    hit: bool
    progress: float


@dataclass(frozen=True)
class EngineSnapshot:
    logical_time_ms: float
    transport_state: TransportState
    pre_roll_remaining_ms: float
    notes: Tuple[NoteView, ...]
    recent_feedback: Tuple[JudgementEvent, ...]
    score: int
    combo: int
    longest_streak: int
    counts_by_tier: Dict[str, int]
    total_notes: int
    judged_notes: int
    fingerprint: str
    metadata: Dict[str, Any]
    loop_enabled: bool
    autoplay_enabled: bool
    autoplay_mode: str
    completed_runs: int
    last_run: Optional[RunStats] = None


def snapshot_to_dict(snapshot: EngineSnapshot) -> Dict[str, Any]:
    payload = asdict(snapshot)
    payload["transport_state"] = snapshot.transport_state.value
    return payload
