from __future__ import annotations

import json
from dataclasses import FrozenInstanceError

import pytest

from src.content.time_format import FormatOptions
from src.content.window_normalizer import (
    build_time_windows,
    build_window_string,
    dedupe_time_windows,
    format_time_range,
    normalize_ranges,
    normalize_score_value,
    normalize_time_window,
    score_text,
    window_label,
)


def _base_window(**overrides):
    window = {
        "name": "Dawn Focus",
        "start": "2025-11-21T06:16:00+05:30",
        "end": "2025-11-21T07:46:00+05:30",
        "category": "Auspicious",
        "score": 0.8,
    }
    window.update(overrides)
    return window


def test_iso_window_is_normalized():
    window = normalize_time_window(_base_window(), 0)

    assert window.index == 0
    assert window.name == "Dawn Focus"
    assert window.start_display == "6:16 AM"
    assert window.end_display == "7:46 AM"
    assert window.start_iso == "2025-11-21T06:16:00+05:30"
    assert window.card_date == "Nov 21, 2025"
    assert window.score == 8.0
    assert window.score_text == "8"
    assert window.severity == "auspicious"
    assert window.time_range == "6:16 AM – 7:46 AM"


def test_normalized_window_is_frozen():
    window = normalize_time_window(_base_window(), 0)
    with pytest.raises(FrozenInstanceError):
        window.name = "Other"


def test_name_fallbacks():
    assert normalize_time_window({}, 2).name == "Window 3"
    assert normalize_time_window({"label": "L", "title": "T"}, 0).name == "L"
    assert normalize_time_window({"name": "  ", "title": "T"}, 0).name == "T"


def test_explicit_display_times_win():
    window = normalize_time_window(_base_window(start_display="9:00 AM", end_display="10:30 AM"), 0)
    assert window.start_display == "9:00 AM"
    assert window.end_display == "10:30 AM"


def test_time_objects_and_spans():
    window = normalize_time_window({"start": {"time": "14:30"}, "end": {"time": "16:00"}}, 0)
    assert (window.start_display, window.end_display) == ("2:30 PM", "4:00 PM")

    span = normalize_time_window({"time": {"start": "09:00", "end": "10:30"}}, 0)
    assert (span.start_display, span.end_display) == ("9:00 AM", "10:30 AM")


def test_unresolvable_times_use_placeholder():
    window = normalize_time_window({}, 0)
    assert window.start_display == "--:--"
    assert window.end_display == "--:--"
    assert window.score is None
    assert window.score_text == "-"
    assert window.severity == "neutral"


def test_bare_slot_covers_whole_slot():
    window = normalize_time_window(2, 0)
    assert window.start_display == "1:30 AM"
    assert window.end_display == "3:00 AM"


def test_date_option_builds_iso_from_display_times():
    window = normalize_time_window(
        {"start_display": "06:24 PM", "end_display": "07:54 PM"},
        0,
        FormatOptions(date="2025-12-10"),
    )
    assert window.start_iso == "2025-12-10T18:24:00"
    assert window.end_iso == "2025-12-10T19:54:00"
    assert window.card_date == "Dec 10, 2025"


def test_score_scaling_and_text():
    assert normalize_score_value(0.8) == 8.0
    assert normalize_score_value("6.5") == 6.5
    assert normalize_score_value(15) == 10.0
    assert normalize_score_value(-3) == 0.0
    assert normalize_score_value("abc") is None
    assert normalize_score_value(None) is None
    assert score_text(6.5) == "7"
    assert score_text(None) == "-"


def test_severity_precedence():
    explicit = normalize_time_window({"severity": "Inauspicious", "category": "Auspicious", "score": 9}, 0)
    assert explicit.severity == "inauspicious"

    category = normalize_time_window({"category": "Highly Auspicious", "score": 2}, 0)
    assert category.severity == "auspicious"

    status = normalize_time_window({"ght_status": "Mixed", "score": 9}, 0)
    assert status.severity == "neutral"
    assert status.pakshi_status == "Mixed"


def test_severity_from_score_thresholds():
    assert normalize_time_window({"score": 7}, 0).severity == "auspicious"
    assert normalize_time_window({"score": 5}, 0).severity == "neutral"
    assert normalize_time_window({"score": 4}, 0).severity == "inauspicious"
    assert normalize_time_window({"score": 0.35}, 0).severity == "inauspicious"


def test_pakshi_aliases():
    window = normalize_time_window({"day_ruling_pakshi": "Vulture", "night_pakshi": "Owl"}, 0)
    assert window.pakshi_day == "Vulture"
    assert window.pakshi_night == "Owl"


def test_embedded_note_payload_fills_gaps():
    raw = {
        "name": "Dawn",
        "category": "Neutral",
        "note": 'Quiet start __windows_json__ {"category": "Auspicious", "night_ruling_pakshi": "Crow", "score": 0.9}',
    }
    window = normalize_time_window(raw, 0)

    assert window.category == "Neutral"
    assert window.severity == "neutral"
    assert window.pakshi_night == "Crow"
    assert window.score == 9.0
    assert window.note == "Quiet start"
    assert window.short_desc == "Quiet start"


def test_short_desc_debug_payload_is_stripped():
    window = normalize_time_window({"short_desc": 'Normal text __debug__ {"hidden":"data"} more text'}, 0)

    assert "Normal text" in window.short_desc
    assert "more text" in window.short_desc
    assert "__debug__" not in window.short_desc
    assert "hidden" not in window.short_desc


def test_content_aliases():
    window = normalize_time_window({"facts": "<p>x</p>", "interpretation": "i", "practical_html": "p"}, 0)
    assert window.facts_html == "<p>x</p>"
    assert window.interpretation_html == "i"
    assert window.practical_html == "p"


def test_to_dict_drops_raw():
    data = normalize_time_window(_base_window(), 0).to_dict()
    assert "raw" not in data
    assert data["start_display"] == "6:16 AM"


def test_build_time_windows_index_matches_position():
    windows = build_time_windows({"time_windows": [_base_window(), {"name": "Noon"}, 3]})
    assert [w.index for w in windows] == [0, 1, 2]
    assert windows[2].start_display == "3:00 AM"


def test_build_time_windows_lookup_order():
    layered = {
        "layers": json.dumps({"time_windows": [{"name": "A"}]}),
        "time_windows": [{"name": "B"}],
    }
    assert [w.name for w in build_time_windows(layered)] == ["A"]
    assert [w.name for w in build_time_windows({"time_windows": [{"name": "B"}]})] == ["B"]
    debug_only = {"debug": {"layers": {"time_windows": [{"name": "C"}]}}}
    assert [w.name for w in build_time_windows(debug_only)] == ["C"]
    assert build_time_windows({"layers": "{not json"}) == []
    assert build_time_windows(None) == []


def test_dedupe_time_windows_keeps_first():
    windows = [
        {"name": "A", "start": "1", "end": "2"},
        {"name": "A", "start": "1", "end": "2", "note": "copy"},
        {"name": "A", "start": "2", "end": "3"},
    ]
    deduped = dedupe_time_windows(windows)
    assert len(deduped) == 2
    assert "note" not in deduped[0]
    assert dedupe_time_windows(None) == []


def test_display_helpers():
    window = {"name": "Dawn", "start_display": "6:16 AM", "end_display": "7:46 AM"}
    assert build_window_string(window, 0) == "Dawn (6:16 AM → 7:46 AM)"
    assert window_label(None, 4) == "Window 5"
    assert window_label({"category": "Good"}, 0) == "Good"
    assert format_time_range({"start": 3, "end": 3}) == "3:00 AM → 4:30 AM"
    assert format_time_range({}) == "--:-- → --:--"
    assert format_time_range(None) is None


def test_normalize_ranges():
    assert normalize_ranges({}) == []
    assert normalize_ranges({"range": []}) == []
    assert normalize_ranges({"range": "9:00 AM – 10:00 AM || 2:00 PM – 3:00 PM"}) == [
        "9:00 AM – 10:00 AM",
        "2:00 PM – 3:00 PM",
    ]
    assert normalize_ranges({"ranges": [{"start": "09:00", "end": "10:30", "note": "best"}]}) == [
        "9:00 AM – 10:30 AM (best)"
    ]
    assert normalize_ranges({"start_display": "6:16 AM", "end_display": "7:46 AM"}) == ["6:16 AM – 7:46 AM"]
    assert normalize_ranges({"start": "09:00"}) == ["9:00 AM – ?"]
    assert normalize_ranges({"start": 3, "end": 4}) == []
    assert normalize_ranges(normalize_time_window({}, 0)) == []


def test_non_finite_times_fall_back_to_placeholder():
    for value in (float("nan"), float("inf"), float("-inf"), 10**400):
        window = normalize_time_window({"name": "A", "start": value}, 0)
        assert window.start_display == "--:--"
        assert window.end_display == "--:--"
        assert normalize_ranges(window) == []
    assert format_time_range({"start": float("nan"), "end": float("nan")}) == "--:-- → --:--"


def test_blank_fields_do_not_hide_embedded_values():
    raw = {"category": "", "note": 'Calm hour __windows_json__ {"category": "Auspicious"}'}
    window = normalize_time_window(raw, 0)

    assert window.category == "Auspicious"
    assert window.severity == "auspicious"
    assert window.note == "Calm hour"
