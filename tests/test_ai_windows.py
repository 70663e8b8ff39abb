from __future__ import annotations

import logging

from src.content.ai_windows import (
    map_ai_windows_to_engine_windows,
    normalize_ai_summary_response,
    resolve_window_index,
    validate_ai_windows,
)


def _ai_window(i, **overrides):
    window = {
        "key": f"tw_{i}",
        "window_index": i + 1,
        "summary": f"Guidance for window {i + 1}.",
        "start_display": "6:16 AM",
        "end_display": "7:46 AM",
    }
    window.update(overrides)
    return window


def _engine_windows():
    return [
        {"name": "Dawn", "start_display": "6:16 AM", "end_display": "7:46 AM", "category": "Auspicious", "score": 0.8},
        {"name": "Morning", "start_display": "7:46 AM", "end_display": "9:16 AM"},
        {"name": "Late Morning", "start_display": "9:16 AM", "end_display": "10:46 AM", "score": 0.3},
    ]


def test_full_day_validates_in_strict_mode():
    assert validate_ai_windows([_ai_window(i) for i in range(16)], strict=True) is True


def test_strict_mode_requires_expected_count():
    entries = [_ai_window(i) for i in range(3)]
    assert validate_ai_windows(entries, strict=True) is False
    assert validate_ai_windows(entries) is True
    assert validate_ai_windows(entries, expected_count=3, strict=True) is True


def test_schema_violations_fail():
    assert validate_ai_windows([_ai_window(0, summary="   ")]) is False
    assert validate_ai_windows([_ai_window(0, window_index="1")]) is False
    missing = _ai_window(0)
    del missing["key"]
    assert validate_ai_windows([missing]) is False
    assert validate_ai_windows([]) is False
    assert validate_ai_windows({"key": "tw_0"}) is False
    assert validate_ai_windows(["not a window"]) is False


def test_missing_time_fields_only_warn(caplog):
    caplog.set_level(logging.WARNING)
    entry = {"key": "tw_0", "window_index": 1, "summary": "Plan calmly."}

    assert validate_ai_windows([entry]) is True
    assert "ai_window_missing_time_fields" in caplog.text


def test_resolve_window_index():
    assert resolve_window_index({"window_index": 3}, 0) == 2
    assert resolve_window_index({"key": "tw_5"}, 0) == 5
    assert resolve_window_index({"key": "other"}, 7) == 7


def test_map_ai_windows_keeps_engine_authoritative():
    ai_windows = [
        _ai_window(1, category="Neutral", score=6, interpretation="Steady hands."),
        _ai_window(2, category="Inauspicious", score=9),
    ]
    merged = map_ai_windows_to_engine_windows(ai_windows, _engine_windows())

    assert len(merged) == 3
    assert "ai_summary" not in merged[0]
    assert merged[1]["ai_summary"] == "Guidance for window 2."
    assert merged[1]["interpretation_html"] == "Steady hands."
    assert merged[1]["category"] == "Neutral"
    assert merged[1]["score"] == 6
    assert merged[2]["category"] == "Inauspicious"
    assert merged[2]["score"] == 0.3
    assert merged[2]["start_display"] == "9:16 AM"
    assert merged[2]["ai_raw"]["key"] == "tw_2"


def test_normalize_wrapped_stored_row_with_legacy_columns():
    raw = {
        "status": "ok",
        "data": {
            "profile_id": 7,
            "engine": "daily",
            "summary": {
                "summary_text": "Text",
                "html_text": "<p>x</p>",
                "window_1_summary": "First",
                "window_3_summary": "Third",
            },
        },
    }
    normalized = normalize_ai_summary_response(raw)

    assert normalized["profile_id"] == 7
    assert normalized["engine"] == "daily"
    assert normalized["summary"] == "Text"
    assert normalized["html"] == "<p>x</p>"
    assert normalized["time_windows"] == [
        {"key": "tw_0", "window_index": 1, "summary": "First", "interpretation": "First"},
        {"key": "tw_2", "window_index": 3, "summary": "Third", "interpretation": "Third"},
    ]
    assert validate_ai_windows(normalized["time_windows"]) is True


def test_layer_windows_win_over_legacy_columns():
    layered = [_ai_window(0)]
    raw = {
        "summary": {
            "summary_text": "Text",
            "summary_metadata": {"layers": {"time_windows": layered}},
            "window_1_summary": "Legacy",
        }
    }
    normalized = normalize_ai_summary_response(raw)

    assert normalized["time_windows"] == layered
    assert normalized["layers"] == {"time_windows": layered}
    assert normalized["summary_metadata"]["layers"]["time_windows"] == layered


def test_top_level_shape_prefers_layers():
    raw = {
        "profile_id": 1,
        "engine": "daily",
        "layers": {"time_windows": [{"name": "A"}]},
        "time_windows": [{"name": "B"}],
    }
    normalized = normalize_ai_summary_response(raw)

    assert normalized["time_windows"] == [{"name": "A"}]
    assert normalized["profile_id"] == 1


def test_invalid_payload():
    assert normalize_ai_summary_response(None) == {"profile_id": 0, "engine": "unknown"}
    assert normalize_ai_summary_response("oops") == {"profile_id": 0, "engine": "unknown"}
    assert normalize_ai_summary_response({})["time_windows"] is None
