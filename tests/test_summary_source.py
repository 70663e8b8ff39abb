from __future__ import annotations

from src.content.summary_source import (
    SummarySelection,
    format_selected_summary,
    normalize_candidate,
    select_summary_source,
)

DAY_SUMMARY = "A substantive day summary with guidance."


def _windows():
    return [
        {"name": "Dawn", "start_display": "6:16 AM", "end_display": "7:46 AM"},
        {"name": "Morning", "start_display": "7:46 AM", "end_display": "9:16 AM"},
    ]


def test_structured_layers_win_over_day_summary():
    ai = {"summary_metadata": {"layers": {"summary": {"overall": "AI overall text for the day."}}}}
    selection = select_summary_source(ai, DAY_SUMMARY)

    assert selection.source == "summary_metadata"
    assert selection.structured.overall == "AI overall text for the day."
    assert selection.text is None
    assert selection.html is None


def test_structured_layers_fallback_paths():
    top_level = select_summary_source({"layers": {"summary": {"health": "Hydrate and rest."}}})
    assert top_level.structured.health == "Hydrate and rest."

    debug = select_summary_source({"debug": {"layers": {"summary": {"money": "Review spending."}}}})
    assert debug.structured.money == "Review spending."


def test_whitespace_only_ai_falls_back_to_day_api():
    ai = {
        "summary_metadata": {"layers": {"summary": {"overall": "   ", "text": "   "}}},
        "summary": "  ",
        "html": " ",
    }
    selection = select_summary_source(ai, DAY_SUMMARY)

    assert selection.source == "day_api"
    assert selection.text == DAY_SUMMARY
    assert selection.structured is None


def test_ai_text_is_selected():
    selection = select_summary_source({"summary": "Today brings steady progress in work."}, DAY_SUMMARY)
    assert selection.source == "summary_metadata"
    assert selection.text == "Today brings steady progress in work."


def test_short_candidates_select_nothing():
    selection = select_summary_source({"summary": "Too short"})
    assert selection == SummarySelection()
    assert selection.to_dict() == {"text": None, "html": None, "source": None, "structured": None}


def test_leaked_json_is_rejected():
    ai = {"summary": '{"overall": "x", "health": "y", "money": "z"}'}
    selection = select_summary_source(ai, DAY_SUMMARY)
    assert selection.source == "day_api"


def test_html_candidate_goes_through_sanitizer():
    ai = {"html": "<p>Today brings <b>steady</b> progress.</p>"}
    selection = select_summary_source(ai, sanitizer=lambda markup: "SAFE:" + markup)

    assert selection.source == "summary_metadata"
    assert selection.html.startswith("SAFE:")
    assert selection.text == "Today brings steady progress."


def test_line_breaks_survive_selection():
    text = "# Morning\nPlan your tasks carefully.\n# Evening\nRest and reflect deeply."
    assert normalize_candidate(text) == text


def test_format_selected_summary_expands_and_dedupes():
    selection = SummarySelection(
        text="Plan during time_windows[0]. Plan during time_windows[0].",
        source="summary_metadata",
    )
    assert format_selected_summary(selection, _windows()) == "Plan during 6:16 AM – 7:46 AM."


def test_format_selected_summary_merges_window_numbers():
    selection = SummarySelection(text="Windows 1 and 2 favour planning.", source="day_api")
    assert format_selected_summary(selection, _windows()) == "6:16 AM to 9:16 AM favour planning."


def test_format_selected_summary_without_text():
    assert format_selected_summary(SummarySelection(), _windows()) == ""
