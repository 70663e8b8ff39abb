"""AI window validation, engine merge and AI summary response normalization."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)

EXPECTED_WINDOW_COUNT = 16
LEGACY_WINDOW_COLUMNS = 16

AI_WINDOW_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["key", "window_index", "summary"],
    "properties": {
        "key": {"type": "string"},
        "window_index": {"type": "number"},
        "summary": {"type": "string", "pattern": r"\S"},
        "start_iso": {"type": ["string", "null"]},
        "end_iso": {"type": ["string", "null"]},
        "start_display": {"type": ["string", "null"]},
        "end_display": {"type": ["string", "null"]},
        "score": {"type": ["number", "null"]},
        "category": {"type": ["string", "null"]},
    },
}

AI_WINDOW_VALIDATOR = Draft7Validator(AI_WINDOW_SCHEMA)

_TIME_FIELDS = ("start_iso", "start_display", "end_iso", "end_display")
_KEY_INDEX = re.compile(r"tw_(\d+)", re.I)


def ai_window_errors(entry: Any) -> List[str]:
    return [
        f"{'/'.join(str(p) for p in err.path) or '<root>'}: {err.message}"
        for err in AI_WINDOW_VALIDATOR.iter_errors(entry)
    ]


def validate_ai_windows(
    entries: Any,
    expected_count: int = EXPECTED_WINDOW_COUNT,
    strict: bool = False,
) -> bool:
    """Check that ``entries`` is a usable list of AI windows.

    Strict mode requires at least ``expected_count`` entries, lenient mode at
    least one. Each entry needs a string ``key``, a numeric ``window_index`` and
    a non-blank ``summary``; entries without any time field only log a warning.
    """
    if not isinstance(entries, (list, tuple)):
        logger.warning("ai_windows_validation_failed", extra={"reason": "not_a_list"})
        return False
    if strict and len(entries) < expected_count:
        logger.warning(
            "ai_windows_validation_failed",
            extra={"reason": "count_mismatch", "count": len(entries), "expected": expected_count},
        )
        return False
    if not entries:
        logger.warning("ai_windows_validation_failed", extra={"reason": "empty"})
        return False

    for position, entry in enumerate(entries):
        errors = ai_window_errors(entry)
        if errors:
            logger.warning(
                "ai_windows_validation_failed",
                extra={"reason": "schema", "position": position, "errors": errors},
            )
            return False
        if not any(isinstance(entry.get(f), str) for f in _TIME_FIELDS):
            logger.warning("ai_window_missing_time_fields", extra={"position": position})
    return True


def resolve_window_index(entry: Mapping[str, Any], position: int) -> int:
    """0-based index: ``window_index - 1``, then ``tw_N`` key, then physical position."""
    window_index = entry.get("window_index")
    if isinstance(window_index, (int, float)) and not isinstance(window_index, bool):
        return int(window_index) - 1
    key = entry.get("key")
    if isinstance(key, str):
        match = _KEY_INDEX.search(key)
        if match:
            return int(match.group(1))
    return position


def map_ai_windows_to_engine_windows(
    ai_windows: Sequence[Mapping[str, Any]],
    engine_windows: Sequence[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    """Attach AI prose to engine windows, in engine order.

    Engine timing, category and score stay authoritative; AI category/score are
    used only where the engine has none.
    """
    by_index: Dict[int, Mapping[str, Any]] = {}
    for position, ai_window in enumerate(ai_windows or []):
        if isinstance(ai_window, Mapping):
            by_index[resolve_window_index(ai_window, position)] = ai_window

    merged_windows: List[Dict[str, Any]] = []
    for index, engine_window in enumerate(engine_windows or []):
        merged = dict(engine_window) if isinstance(engine_window, Mapping) else {"start": engine_window}
        ai_data = by_index.get(index)
        if ai_data is None:
            merged_windows.append(merged)
            continue

        merged["ai_summary"] = (
            ai_data.get("summary") or ai_data.get("interpretation") or ai_data.get("practical") or ""
        )
        merged["interpretation_html"] = ai_data.get("interpretation_html") or ai_data.get("interpretation") or ""
        merged["practical_html"] = ai_data.get("practical_html") or ai_data.get("practical") or ""
        merged["ai_raw"] = dict(ai_data)
        if not merged.get("category") and ai_data.get("category"):
            merged["category"] = ai_data["category"]
        if merged.get("score") is None and isinstance(ai_data.get("score"), (int, float)):
            merged["score"] = ai_data["score"]
        merged_windows.append(merged)
    return merged_windows


def _legacy_windows(source: Mapping[str, Any]) -> List[Dict[str, Any]]:
    windows = []
    for i in range(1, LEGACY_WINDOW_COLUMNS + 1):
        value = source.get(f"window_{i}_summary")
        if isinstance(value, str) and value:
            windows.append({"key": f"tw_{i - 1}", "window_index": i, "summary": value, "interpretation": value})
    return windows


def _layers_of(source: Mapping[str, Any]) -> Mapping[str, Any] | None:
    metadata = source.get("summary_metadata")
    for candidate in (
        metadata.get("layers") if isinstance(metadata, Mapping) else None,
        source.get("layers"),
        (source.get("debug") or {}).get("layers") if isinstance(source.get("debug"), Mapping) else None,
    ):
        if isinstance(candidate, Mapping):
            return candidate
    return None


def _pick_time_windows(primary: Mapping[str, Any], *fallbacks: Mapping[str, Any]) -> Tuple[Any, str]:
    layers = _layers_of(primary)
    if layers and isinstance(layers.get("time_windows"), list) and layers["time_windows"]:
        return layers["time_windows"], "layers"
    for source in (primary, *fallbacks):
        if isinstance(source.get("time_windows"), list) and source["time_windows"]:
            return source["time_windows"], "time_windows"
    legacy = _legacy_windows(primary)
    if legacy:
        return legacy, "legacy_columns"
    return None, "none"


def normalize_ai_summary_response(raw: Any) -> Dict[str, Any]:
    """Flatten the AI summary API payload into one shape.

    Handles the ``{"status": "ok", "data": ...}`` wrapper and the stored-row
    shape (``summary: {summary_text, html_text, summary_metadata}``). Windows come
    from ``layers.time_windows``, then ``time_windows``, then the legacy
    ``window_N_summary`` columns.
    """
    if not isinstance(raw, Mapping):
        return {"profile_id": 0, "engine": "unknown"}

    data: Mapping[str, Any] = raw
    if data.get("status") == "ok" and isinstance(data.get("data"), Mapping):
        data = data["data"]

    summary_field = data.get("summary")
    if isinstance(summary_field, Mapping) and (
        "summary_text" in summary_field or "html_text" in summary_field or "summary_metadata" in summary_field
    ):
        row = summary_field
        metadata = row.get("summary_metadata") if isinstance(row.get("summary_metadata"), Mapping) else None
        layers = (metadata or {}).get("layers") or row.get("layers")
        windows, origin = _pick_time_windows(row, data)
        logger.debug("ai_summary_windows_resolved", extra={"origin": origin})
        return {
            "profile_id": data.get("profile_id") or row.get("profile_id") or 0,
            "engine": data.get("engine") or data.get("engine_name") or "unknown",
            "html": row.get("html_text") or row.get("html"),
            "summary": row.get("summary_text") or row.get("summary"),
            "updated_at": row.get("updated_at"),
            "time_windows": windows,
            "layers": layers,
            "sources": (metadata or {}).get("sources") or row.get("sources"),
            "debug": {"layers": layers, "sources": (metadata or {}).get("sources") or row.get("sources")},
            "summary_metadata": metadata or ({"layers": layers} if layers else None),
        }

    normalized = dict(data)
    windows, origin = _pick_time_windows(data)
    logger.debug("ai_summary_windows_resolved", extra={"origin": origin})
    normalized["time_windows"] = windows
    normalized.setdefault("profile_id", 0)
    normalized["engine"] = data.get("engine") or data.get("engine_name") or "unknown"
    return normalized
