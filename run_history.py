# -*- coding: utf-8 -*-
########################
# run_history.py
########################
# Purpose:
# - In-memory aggregate of completed runs, keyed by chart fingerprint.
# - Keeps best, worst and cumulative RunStats plus run count and longest streak per chart.
#
# Design notes:
# - No Qt usage. No persistence: records live for the lifetime of the process.
# - A record is created on the first completed run and updated in place afterwards.
# - best/worst are compared on score only. Ties keep the stored run.
#
########################
# Interfaces:
# Public dataclasses:
# - HistoryRecord(best: RunStats, worst: RunStats, total: RunStats, runs: int, longest_streak: int)
#
# Public classes:
# - class RunAggregator
#   - record_run(fingerprint: str, stats: RunStats) -> HistoryRecord
#   - get(fingerprint: str) -> Optional[HistoryRecord]
#   - records() -> dict[str, HistoryRecord]
#   - clear() -> None
#
# Public functions:
# - record_to_dict(record: HistoryRecord) -> dict
#
########################

from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
from typing import Any, Dict, Optional

import gameplay_models


logger = logging.getLogger(__name__)


@dataclass
class HistoryRecord:
    best: gameplay_models.RunStats
    worst: gameplay_models.RunStats
    total: gameplay_models.RunStats
    runs: int
    longest_streak: int


def _accumulate(total: gameplay_models.RunStats, current: gameplay_models.RunStats) -> gameplay_models.RunStats:
    counts = dict(total.counts_by_tier)
    for tier_name, count in current.counts_by_tier.items():
        counts[tier_name] = int(counts.get(tier_name, 0)) + int(count)
    return gameplay_models.RunStats(
        counts_by_tier=counts,
        score=int(total.score) + int(current.score),
        longest_streak=max(int(total.longest_streak), int(current.longest_streak)),
    )


class RunAggregator:
    def __init__(self) -> None:
        self._records: Dict[str, HistoryRecord] = {}

    def record_run(self, fingerprint: str, stats: gameplay_models.RunStats) -> HistoryRecord:
        key = str(fingerprint)
        record = self._records.get(key)
        if record is None:
            record = HistoryRecord(
                best=stats,
                worst=stats,
                total=stats,
                runs=1,
                longest_streak=int(stats.longest_streak),
            )
            self._records[key] = record
            logger.info("first run recorded for chart %s: score=%d", key, stats.score)
            return record

        record.runs += 1
        record.total = _accumulate(record.total, stats)
        record.longest_streak = max(record.longest_streak, int(stats.longest_streak))
        if stats.score > record.best.score:
            record.best = stats
        if stats.score < record.worst.score:
            record.worst = stats
        logger.info(
            "run %d recorded for chart %s: score=%d best=%d worst=%d",
            record.runs,
            key,
            stats.score,
            record.best.score,
            record.worst.score,
        )
        return record

    def get(self, fingerprint: str) -> Optional[HistoryRecord]:
        return self._records.get(str(fingerprint))

    def records(self) -> Dict[str, HistoryRecord]:
        return dict(self._records)

    def clear(self) -> None:
        self._records.clear()


def record_to_dict(record: HistoryRecord) -> Dict[str, Any]:
    return asdict(record)
