import logging

from fastapi.testclient import TestClient

from api.app import app

client = TestClient(app)


def _windows_payload():
    return [
        {"name": "Dawn", "start_display": "6:16 AM", "end_display": "7:46 AM", "score": 0.8},
        {"name": "Morning", "start_display": "7:46 AM", "end_display": "9:16 AM"},
        {"name": "Late Morning", "start_display": "9:16 AM", "end_display": "10:46 AM"},
    ]


def test_health():
    r = client.get("/__health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_view_with_structured_layers():
    payload = {
        "ai_summary": {
            "status": "ok",
            "data": {
                "profile_id": 3,
                "engine": "daily",
                "summary_metadata": {
                    "layers": {"summary": {"overall": "A balanced day.", "health": "Hydrate often."}}
                },
            },
        },
        "day_summary": "A fallback summary that is long enough.",
    }
    r = client.post("/v1/summary/view", json=payload)
    assert r.status_code == 200
    body = r.json()

    assert body["source"] == "summary_metadata"
    assert body["text"] is None
    assert body["structured"]["overall"] == "A balanced day."
    assert body["structured"]["health"] == "Hydrate often."
    assert body["structured"]["money"] is None
    assert [s["title"] for s in body["sections"]] == ["Overall Day Summary", "Health & Well-being"]


def test_view_expands_tokens_and_window_numbers():
    payload = {
        "ai_summary": {
            "summary": (
                "1) Morning Focus — Plan during time_windows[0].\n\n"
                "2) Evening Calm — Rest after Windows 2 and 3."
            ),
            "time_windows": _windows_payload(),
        }
    }
    r = client.post("/v1/summary/view", json=payload)
    assert r.status_code == 200
    body = r.json()

    assert body["source"] == "summary_metadata"
    sections = body["sections"]
    assert [s["title"] for s in sections] == ["Morning Focus", "Evening Calm"]
    assert sections[0]["text"] == "Plan during 6:16 AM – 7:46 AM."
    assert sections[1]["text"] == "Rest after 7:46 AM to 10:46 AM."
    assert [w["index"] for w in body["time_windows"]] == [0, 1, 2]
    assert body["time_windows"][0]["ranges"] == ["6:16 AM – 7:46 AM"]
    assert body["time_windows"][0]["severity"] == "auspicious"


def test_view_falls_back_to_day_summary():
    payload = {"ai_summary": {"summary": "   "}, "day_summary": "A steady day with room for rest."}
    r = client.post("/v1/summary/view", json=payload)
    assert r.status_code == 200
    body = r.json()

    assert body["source"] == "day_api"
    assert body["sections"] == [{"title": "Summary", "text": "A steady day with room for rest.", "html": None}]


def test_view_with_nothing_to_show():
    r = client.post("/v1/summary/view", json={"ai_summary": None})
    assert r.status_code == 200
    body = r.json()
    assert body["source"] is None
    assert body["sections"] == []
    assert body["time_windows"] == []


def test_engine_windows_are_authoritative():
    ai_windows = [
        {"key": "tw_0", "window_index": 1, "summary": "Begin gently.", "category": "Inauspicious"},
    ]
    payload = {
        "ai_summary": {"summary": "A steady day with room for rest.", "time_windows": ai_windows},
        "engine_windows": _windows_payload(),
        "options": {"dedupe": {"mode": "global"}},
    }
    r = client.post("/v1/summary/view", json=payload)
    assert r.status_code == 200
    windows = r.json()["time_windows"]

    assert len(windows) == 3
    assert windows[0]["ai_summary"] == "Begin gently."
    assert windows[0]["severity"] == "inauspicious"
    assert windows[0]["start_display"] == "6:16 AM"


def test_time_windows_endpoint():
    payload = {
        "data": {"layers": {"time_windows": [{"name": "Focus", "start_display": "9:00 AM", "end_display": "10:30 AM"}]}},
        "options": {"date": "2025-11-21"},
    }
    r = client.post("/v1/summary/time-windows", json=payload)
    assert r.status_code == 200
    window = r.json()["time_windows"][0]

    assert window["name"] == "Focus"
    assert window["start_iso"] == "2025-11-21T09:00:00"
    assert window["card_date"] == "Nov 21, 2025"


def test_dedupe_endpoint():
    r = client.post("/v1/summary/dedupe", json={"text": "Stay observant. Stay observant. Trust the plan."})
    assert r.status_code == 200
    assert r.json() == {"text": "Stay observant. Trust the plan."}


def test_dedupe_endpoint_rejects_unknown_mode():
    r = client.post("/v1/summary/dedupe", json={"text": "x", "mode": "sideways"})
    assert r.status_code == 422


def test_request_logging_is_opt_in(monkeypatch, caplog):
    caplog.set_level(logging.INFO, logger="api.requests")
    client.get("/__health")
    assert not [r for r in caplog.records if r.name == "api.requests"]

    monkeypatch.setenv("LOGGING_ENABLED", "true")
    client.get("/__health")
    lines = [r.getMessage() for r in caplog.records if r.name == "api.requests"]
    assert len(lines) == 1
    assert '"endpoint": "/__health"' in lines[0]
    assert '"status": 200' in lines[0]


def test_window_reference_keeps_section_boundaries():
    payload = {
        "ai_summary": {
            "summary": "1) Morning — Plan errands in window 3\n\n2) Evening — Rest well tonight.",
            "time_windows": _windows_payload(),
        }
    }
    r = client.post("/v1/summary/view", json=payload)
    assert r.status_code == 200
    sections = r.json()["sections"]

    assert [s["title"] for s in sections] == ["Morning", "Evening"]
    assert sections[0]["text"] == "Plan errands in 9:16 AM – 10:46 AM"
    assert sections[1]["text"] == "Rest well tonight."


def test_view_html_is_sanitized():
    payload = {
        "ai_summary": {
            "html": '<p onclick="x()">Today brings steady progress in work.</p><script>bad()</script>'
        }
    }
    r = client.post("/v1/summary/view", json=payload)
    assert r.status_code == 200
    body = r.json()

    assert body["html"] == "<p>Today brings steady progress in work.</p>"


def test_time_windows_endpoint_tolerates_nan_start():
    r = client.post(
        "/v1/summary/time-windows",
        content='{"data": {"time_windows": [{"name": "A", "start": NaN}]}}',
        headers={"content-type": "application/json"},
    )
    assert r.status_code == 200
    window = r.json()["time_windows"][0]

    assert window["name"] == "A"
    assert window["start_display"] == "--:--"
    assert window["end_display"] == "--:--"
