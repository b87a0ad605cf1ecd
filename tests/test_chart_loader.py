from __future__ import annotations

import json

import pytest

import chart_generator
import chart_loader


def _pairs(chart):
    return [(note.time_ms, note.lane) for note in chart.notes]


def test_frames_list_is_parsed_and_shifted_to_zero():
    chart = chart_loader.parse_frames(
        [
            [1300, "0000100000000000"],
            [1000, "0011000000000000"],
        ]
    )

    assert _pairs(chart) == [(0.0, 0), (0.0, 1), (300.0, 2)]


def test_object_document_keeps_metadata():
    document = {"meta": {"game": "Demo"}, "data": [{"t": 10, "bits": "0010000000000000"}]}

    chart = chart_loader.parse_frames(document)

    assert _pairs(chart) == [(0.0, 0)]
    assert chart.metadata == {"game": "Demo"}


def test_malformed_frames_are_skipped():
    text = '[[NaN, "0010000000000000"], ["abc", "0010000000000000"], [5, "00100"], [7, "0000010000000000"], "junk"]'

    chart = chart_loader.parse_frames_json(text)

    assert _pairs(chart) == [(0.0, 3)]


def test_numeric_strings_are_accepted_as_times():
    chart = chart_loader.parse_frames([["250", "0010000000000000"], [750, "0010000000000000"]])

    assert _pairs(chart) == [(0.0, 0), (500.0, 0)]


def test_lanes_outside_the_layout_are_dropped():
    chart = chart_loader.parse_frames([[0, "0000000000000011"], [0, "0010000000000000"]], lanes=12)

    assert _pairs(chart) == [(0.0, 0)]


def test_document_without_notes_gives_empty_chart():
    chart = chart_loader.parse_frames({"frames": [[0, "0000000000000000"]]})

    assert chart.is_empty()
    assert chart.last_note_time_ms() == 0.0


def test_invalid_json_raises_chart_load_error():
    with pytest.raises(chart_loader.ChartLoadError):
        chart_loader.parse_frames_json("{not json")


def test_unrecognized_document_raises_chart_load_error():
    with pytest.raises(chart_loader.ChartLoadError):
        chart_loader.parse_frames(42)


def test_fingerprint_ignores_metadata_and_absolute_offset():
    first = chart_loader.parse_frames({"meta": {"a": 1}, "frames": [[100, "0010000000000000"], [400, "0001000000000000"]]})
    second = chart_loader.parse_frames({"meta": {"b": 2}, "frames": [[1400, "0001000000000000"], [1100, "0010000000000000"]]})
    different = chart_loader.parse_frames([[100, "0010000000000000"], [401, "0001000000000000"]])

    assert first.fingerprint == second.fingerprint
    assert first.fingerprint != different.fingerprint
    assert len(first.fingerprint) == 16


def test_build_chart_accepts_dicts_and_objects():
    chart = chart_loader.build_chart(
        [
            {"time": 200, "lane": 1},
            {"time_ms": 100, "lane": 0},
            {"time": 50, "lane": True},
            {"time": 60, "lane": 1.5},
            {"time": 70, "lane": 12},
        ],
        metadata={"title": "dicts"},
    )

    assert _pairs(chart) == [(0.0, 0), (100.0, 1)]
    assert chart.metadata == {"title": "dicts"}


def test_load_chart_file_reads_utf8_json(tmp_path):
    chart_path = tmp_path / "chart.json"
    chart_path.write_text(json.dumps({"meta": {"game": "Über"}, "frames": [[0, "0010000000000000"]]}), encoding="utf-8")

    chart = chart_loader.load_chart_file(chart_path)

    assert _pairs(chart) == [(0.0, 0)]
    assert chart.metadata["game"] == "Über"


def test_missing_chart_file_raises_chart_load_error(tmp_path):
    with pytest.raises(chart_loader.ChartLoadError):
        chart_loader.load_chart_file(tmp_path / "missing.json")


def test_sample_chart_has_expected_shape():
    chart = chart_generator.generate_sample_chart(lane_count=12)

    assert len(chart.notes) == 53
    assert chart.notes[0].time_ms == 0.0
    assert chart.metadata["game"] == "Demo"


def test_random_chart_is_reproducible_from_seed():
    first = chart_generator.generate_random_chart(seed=5, lane_count=8)
    second = chart_generator.generate_random_chart(seed=5, lane_count=8)

    assert first.fingerprint == second.fingerprint
    assert all(0 <= note.lane < 8 for note in first.notes)


def test_make_bits_from_lanes():
    assert chart_generator.make_bits_from_lanes([0, 11]) == "0010000000000100"
    assert chart_generator.make_bits_from_lanes([13], lane_count=12) == "0" * 16
