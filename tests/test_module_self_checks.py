"""Run the inline self-checks that ship with the engine modules."""

from __future__ import annotations

import chart_loader
import judge
import note_scheduler
import transport_clock


def test_note_scheduler_self_checks():
    note_scheduler._run_unit_tests()


def test_judge_self_checks():
    judge._run_unit_tests()


def test_transport_clock_self_checks():
    transport_clock._run_unit_tests()


def test_chart_loader_smoke_checks():
    chart_loader._run_smoke_tests()
