"""Canonical time-window records built from loosely-typed engine/AI payloads.

Every raw window shape that reaches the summary pipeline (engine rows, AI rows,
legacy slot numbers, notes with a smuggled debug payload) goes through
:func:`normalize_time_window` exactly once. Downstream code only ever sees
:class:`NormalizedTimeWindow`.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Iterable, Mapping, Sequence

from .debug_blocks import looks_like_raw_json_data, parse_embedded_windows_json, strip_debug_blocks
from .time_format import (
    TIME_PLACEHOLDER,
    FormatOptions,
    construct_iso_from_date_and_time,
    format_card_date,
    format_time,
    is_numeric_slot,
    parse_iso_datetime,
    slot_index,
    slot_to_time_range,
)

logger = logging.getLogger(__name__)

SCORE_PLACEHOLDER = "-"
RANGE_PLACEHOLDER = f"{TIME_PLACEHOLDER} → {TIME_PLACEHOLDER}"

SEVERITY_AUSPICIOUS = "auspicious"
SEVERITY_INAUSPICIOUS = "inauspicious"
SEVERITY_NEUTRAL = "neutral"
SEVERITIES = (SEVERITY_AUSPICIOUS, SEVERITY_INAUSPICIOUS, SEVERITY_NEUTRAL)

AUSPICIOUS_SCORE = 7.0
INAUSPICIOUS_SCORE = 4.0

_NAME_KEYS = ("name", "label", "title")
_START_ISO_KEYS = ("startISO", "start_iso")
_END_ISO_KEYS = ("endISO", "end_iso")
_START_DISPLAY_KEYS = ("start_display", "startDisplay")
_END_DISPLAY_KEYS = ("end_display", "endDisplay")
_EXPLICIT_SEVERITY_KEYS = ("severity", "impact", "status", "ght_status", "pakshi_status")
_DAY_PAKSHI_KEYS = ("pakshi_day", "day_ruling_pakshi", "day_pakshi", "pakshi", "dayPakshi")
_NIGHT_PAKSHI_KEYS = ("pakshi_night", "night_ruling_pakshi", "night_pakshi", "nightPakshi")

_INAUSPICIOUS_TEXT = re.compile(
    r"highly\s+inauspicious|\binauspicious\b|\bavoid\b|unfavourable|unfavorable|\bbad\b|malefic|caution|negative"
)
_AUSPICIOUS_TEXT = re.compile(r"highly\s+auspicious|\bauspicious\b|favourable|favorable|\bgood\b|benefic|positive")
_NEUTRAL_TEXT = re.compile(r"neutral|mixed|challenging|moderate")

_INAUSPICIOUS_CATEGORY = (
    "inauspicious",
    "bad",
    "avoid",
    "negative",
    "unfavourable",
    "unfavorable",
    "malefic",
)
_AUSPICIOUS_CATEGORY = ("auspicious", "good", "favourable", "favorable", "excellent", "positive")
_NEUTRAL_CATEGORY = ("challenging", "neutral", "mixed", "moderate")

_RANGE_SPLIT = re.compile(r"\|\||\n")


@dataclass(frozen=True)
class NormalizedTimeWindow:
    index: int
    name: str
    start_display: str = TIME_PLACEHOLDER
    end_display: str = TIME_PLACEHOLDER
    start_iso: str | None = None
    end_iso: str | None = None
    category: str | None = None
    type: str | None = None
    score: float | None = None
    score_text: str = SCORE_PLACEHOLDER
    severity: str = SEVERITY_NEUTRAL
    pakshi_day: str | None = None
    pakshi_night: str | None = None
    pakshi_status: str | None = None
    short_desc: str | None = None
    note: str | None = None
    facts_html: str | None = None
    interpretation_html: str | None = None
    practical_html: str | None = None
    ai_summary: str | None = None
    card_date: str | None = None
    key: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def time_range(self) -> str:
        return f"{self.start_display} – {self.end_display}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("raw", None)
        return data


# ---------------------------------------------------------------------------
# Small coercion helpers
# ---------------------------------------------------------------------------


def _first_text(source: Mapping[str, Any], keys: Iterable[str]) -> str | None:
    for key in keys:
        value = source.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _first_present(source: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _unwrap_time(value: Any) -> Any:
    """``{"time": ...}`` / ``{"iso": ...}`` / ``{"start": ...}`` -> inner value."""
    if isinstance(value, Mapping):
        for key in ("time", "iso", "start"):
            if value.get(key) is not None:
                return value[key]
        return None
    return value


def _time_values(source: Mapping[str, Any]) -> tuple[Any, Any]:
    start = source.get("start")
    end = source.get("end")
    # span objects: {"start": {"start": .., "end": ..}} or {"time": {"start": .., "end": ..}}
    for span in (start, source.get("time")):
        if isinstance(span, Mapping) and "start" in span and "end" in span:
            if start is None or span is start:
                start = span.get("start")
            if end is None:
                end = span.get("end")
            break
    return _unwrap_time(start), _unwrap_time(end)


def _iso_or_none(value: Any) -> str | None:
    if isinstance(value, str) and parse_iso_datetime(value) is not None:
        return value.strip()
    return None


def _as_mapping(window: Any) -> Mapping[str, Any]:
    if isinstance(window, NormalizedTimeWindow):
        merged = dict(window.raw)
        merged.update({k: v for k, v in window.to_dict().items() if v is not None})
        for key in ("start_display", "end_display"):
            if merged.get(key) == TIME_PLACEHOLDER:
                merged.pop(key)
        return merged
    if isinstance(window, Mapping):
        return window
    if window is None:
        return {}
    return {"start": window}


# ---------------------------------------------------------------------------
# Score and severity
# ---------------------------------------------------------------------------


def normalize_score_value(raw_score: Any) -> float | None:
    """Coerce a score onto the 0-10 scale.

    Values at or below 1 are read as a 0-1 fraction and multiplied by 10; the
    result is clamped to ``[0, 10]``.
    """
    if raw_score is None or isinstance(raw_score, bool):
        return None
    try:
        value = float(raw_score.strip()) if isinstance(raw_score, str) else float(raw_score)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    if value <= 1:
        value *= 10
    return max(0.0, min(10.0, value))


def score_text(score: float | None) -> str:
    """Badge label: the score rounded half-up to an integer, ``-`` when absent."""
    if score is None:
        return SCORE_PLACEHOLDER
    return str(int(math.floor(score + 0.5)))


def map_severity_text(value: Any) -> str | None:
    if not value:
        return None
    text = str(value).lower()
    if _INAUSPICIOUS_TEXT.search(text):
        return SEVERITY_INAUSPICIOUS
    if _AUSPICIOUS_TEXT.search(text):
        return SEVERITY_AUSPICIOUS
    if _NEUTRAL_TEXT.search(text):
        return SEVERITY_NEUTRAL
    return None


def map_category_to_severity(category: Any) -> str | None:
    if not category or not isinstance(category, str):
        return None
    lowered = category.lower()
    if any(word in lowered for word in _INAUSPICIOUS_CATEGORY):
        return SEVERITY_INAUSPICIOUS
    if any(word in lowered for word in _AUSPICIOUS_CATEGORY):
        return SEVERITY_AUSPICIOUS
    if any(word in lowered for word in _NEUTRAL_CATEGORY):
        return SEVERITY_NEUTRAL
    return None


def map_severity_from_score(score: float | None) -> str | None:
    if score is None:
        return None
    if score >= AUSPICIOUS_SCORE:
        return SEVERITY_AUSPICIOUS
    if score <= INAUSPICIOUS_SCORE:
        return SEVERITY_INAUSPICIOUS
    return SEVERITY_NEUTRAL


def determine_severity(source: Mapping[str, Any], score: float | None) -> str:
    """Explicit severity text, then category/type keywords, then score thresholds."""
    explicit = _first_present(source, _EXPLICIT_SEVERITY_KEYS)
    mapped = map_severity_text(explicit)
    if mapped:
        return mapped
    if isinstance(explicit, str) and explicit.strip().lower() in SEVERITIES:
        return explicit.strip().lower()

    from_category = map_category_to_severity(source.get("category") or source.get("type"))
    if from_category:
        return from_category

    return map_severity_from_score(score) or SEVERITY_NEUTRAL


def normalize_pakshi(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping) and value.get("pakshi"):
        return normalize_pakshi(value["pakshi"])
    return "Unknown Pakshi"


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_time_window(
    raw: Any,
    index: int,
    options: FormatOptions | None = None,
) -> NormalizedTimeWindow:
    """Build the canonical record for one raw window. Never raises.

    ``raw`` may be a mapping, a bare slot number or a time string. Fields that
    cannot be resolved fall back to ``None`` or the ``--:--`` sentinel.
    """
    opts = options or FormatOptions()
    if isinstance(raw, NormalizedTimeWindow):
        return raw if raw.index == index else replace(raw, index=index)
    if isinstance(raw, Mapping):
        source: dict[str, Any] = dict(raw)
    elif raw is None or isinstance(raw, bool):
        source = {}
    elif isinstance(raw, (int, float, str)):
        source = {"start": raw}
    else:
        source = {}

    note_source = next(
        (source[k] for k in ("note", "short_desc", "description") if isinstance(source.get(k), str)),
        None,
    )
    embedded, cleaned_note = parse_embedded_windows_json(note_source)
    if embedded:
        source = {**embedded, **{k: v for k, v in source.items() if not _is_blank(v)}}

    name = _first_text(source, _NAME_KEYS) or f"Window {index + 1}"

    start_value, end_value = _time_values(source)
    start_iso = _first_text(source, _START_ISO_KEYS) or _iso_or_none(start_value)
    end_iso = _first_text(source, _END_ISO_KEYS) or _iso_or_none(end_value)
    start_display = _first_text(source, _START_DISPLAY_KEYS)
    end_display = _first_text(source, _END_DISPLAY_KEYS)

    if opts.date:
        if start_display and not start_iso:
            start_iso = construct_iso_from_date_and_time(opts.date, start_display, opts.tz)
        if end_display and not end_iso:
            end_iso = construct_iso_from_date_and_time(opts.date, end_display, opts.tz)

    if not start_display:
        start_display = format_time(start_iso or start_value, opts)
    if not end_display:
        start_slot = slot_index(start_value) if is_numeric_slot(start_value) else None
        if end_value is None and end_iso is None and start_slot is not None:
            # a bare slot covers the whole slot
            end_display = format_time(start_slot + 1, opts)
        else:
            end_display = format_time(end_iso or end_value, opts)

    score = normalize_score_value(source.get("score"))

    short_desc = strip_debug_blocks(
        _first_text(source, ("short_desc", "summary", "description")) or cleaned_note
    )
    note = strip_debug_blocks(cleaned_note)
    if looks_like_raw_json_data(note):
        note = short_desc

    return NormalizedTimeWindow(
        index=index,
        name=name,
        start_display=start_display or TIME_PLACEHOLDER,
        end_display=end_display or TIME_PLACEHOLDER,
        start_iso=start_iso,
        end_iso=end_iso,
        category=_optional_text(source.get("category")),
        type=_optional_text(source.get("type")),
        score=score,
        score_text=score_text(score),
        severity=determine_severity(source, score),
        pakshi_day=normalize_pakshi(_first_present(source, _DAY_PAKSHI_KEYS)),
        pakshi_night=normalize_pakshi(_first_present(source, _NIGHT_PAKSHI_KEYS)),
        pakshi_status=_optional_text(_first_present(source, ("pakshi_status", "ght_status"))),
        short_desc=short_desc or None,
        note=note or None,
        facts_html=_first_present(source, ("facts_html", "facts")),
        interpretation_html=_first_present(source, ("interpretation_html", "interpretation")),
        practical_html=_first_present(source, ("practical_html", "practical")),
        ai_summary=_optional_text(source.get("ai_summary")),
        card_date=_optional_text(source.get("card_date")) or format_card_date(start_iso),
        key=_optional_text(source.get("key")),
        raw=source,
    )


def window_dedupe_key(window: Any) -> str:
    """``name|start|end`` identity used to drop repeated raw windows."""
    if isinstance(window, NormalizedTimeWindow):
        return f"{window.name}|{window.start_iso or window.start_display}|{window.end_iso or window.end_display}"
    if not isinstance(window, Mapping):
        return f"|{window}|"
    name = window.get("name") or window.get("label") or window.get("category") or ""
    start = window.get("start")
    end = window.get("end")
    return f"{name}|{'' if start is None else start}|{'' if end is None else end}"


def dedupe_time_windows(windows: Sequence[Any] | None) -> list[Any]:
    """Keep the first occurrence of each ``name|start|end`` key, preserving order."""
    if not isinstance(windows, (list, tuple)):
        return []
    seen: set[str] = set()
    result: list[Any] = []
    for window in windows:
        key = window_dedupe_key(window)
        if key in seen:
            continue
        seen.add(key)
        result.append(window)
    return result


def _load_layers(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (json.JSONDecodeError, ValueError):
            logger.debug("time_windows_layers_unparseable")
            return None
    return value if isinstance(value, Mapping) else None


def locate_raw_time_windows(data: Any) -> list[Any]:
    """Find the raw ``time_windows`` list: ``layers`` first, then top level, then ``debug.layers``."""
    if isinstance(data, (list, tuple)):
        return list(data)
    if not isinstance(data, Mapping):
        return []

    layers = _load_layers(data.get("layers") or data.get("layer") or data.get("data"))
    if layers and isinstance(layers.get("time_windows"), list):
        return list(layers["time_windows"])
    if isinstance(data.get("time_windows"), list):
        return list(data["time_windows"])
    debug = data.get("debug")
    if isinstance(debug, Mapping):
        debug_layers = _load_layers(debug.get("layers"))
        if debug_layers and isinstance(debug_layers.get("time_windows"), list):
            return list(debug_layers["time_windows"])
    return []


def build_time_windows(data: Any, options: FormatOptions | None = None) -> list[NormalizedTimeWindow]:
    """Locate, de-duplicate and normalize the windows carried by ``data``."""
    raw_windows = dedupe_time_windows(locate_raw_time_windows(data))
    return [normalize_time_window(raw, idx, options) for idx, raw in enumerate(raw_windows)]


def coerce_windows(
    windows: Sequence[Any] | None,
    options: FormatOptions | None = None,
) -> list[NormalizedTimeWindow]:
    """Normalize a mixed list in place order; ``index`` always equals position."""
    if not windows:
        return []
    return [normalize_time_window(window, idx, options) for idx, window in enumerate(windows)]


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def window_label(window: Any, index: int) -> str:
    if window is None:
        return f"Window {index + 1}"
    source = _as_mapping(window)
    return (
        _first_text(source, ("label", "name", "category"))
        or f"Window {index + 1}"
    )


def format_time_range(window: Any, options: FormatOptions | None = None) -> str | None:
    """``start → end`` for one window; slot-aware, sentinel-safe."""
    if window is None:
        return None
    opts = options or FormatOptions()
    source = _as_mapping(window)
    start_display = _first_text(source, _START_DISPLAY_KEYS)
    end_display = _first_text(source, _END_DISPLAY_KEYS)
    start_value = _first_present(source, _START_ISO_KEYS)
    end_value = _first_present(source, _END_ISO_KEYS)
    if start_value is None or end_value is None:
        raw_start, raw_end = _time_values(source)
        start_value = raw_start if start_value is None else start_value
        end_value = raw_end if end_value is None else end_value

    if is_numeric_slot(start_value) and is_numeric_slot(end_value):
        start_slot = slot_index(start_value)
        if start_slot is not None and start_slot == slot_index(end_value):
            return slot_to_time_range(start_value, opts.slot_minutes, opts.use_ampm).replace(" – ", " → ")

    start = start_display or format_time(start_value, opts)
    end = end_display or format_time(end_value, opts)
    if not start and not end:
        return RANGE_PLACEHOLDER
    return f"{start or TIME_PLACEHOLDER} → {end or TIME_PLACEHOLDER}"


def build_window_string(window: Any, index: int, options: FormatOptions | None = None) -> str:
    label = window_label(window, index)
    time_range = format_time_range(window, options)
    return f"{label} ({time_range})" if time_range else label


def _range_time(value: Any) -> str | None:
    if value is None or is_numeric_slot(value):
        return None
    return format_time(value)


def _format_range_object(item: Mapping[str, Any]) -> str | None:
    start = _range_time(item.get("start"))
    end = _range_time(item.get("end"))
    if not start and not end:
        return None
    text = f"{start or '?'} – {end or '?'}"
    note = _optional_text(item.get("note"))
    return f"{text} ({note})" if note else text


def _collect_ranges(items: Any) -> list[str]:
    results: list[str] = []
    if not isinstance(items, (list, tuple)):
        return results
    for item in items:
        if isinstance(item, str):
            if item.strip():
                results.append(item.strip())
        elif isinstance(item, Mapping):
            formatted = _format_range_object(item)
            if formatted:
                results.append(formatted)
    return results


def normalize_ranges(window: Any) -> list[str]:
    """Every time range a window carries, as display strings.

    ``range`` (a ``||``/newline separated string or a list), ``ranges`` and
    ``time_ranges`` are all collected; without any of them the start/end pair
    is used. A window with nothing usable yields ``[]``.
    """
    source = _as_mapping(window)
    results: list[str] = []

    range_field = source.get("range")
    if isinstance(range_field, str):
        results.extend(part.strip() for part in _RANGE_SPLIT.split(range_field) if part.strip())
    else:
        results.extend(_collect_ranges(range_field))
    results.extend(_collect_ranges(source.get("ranges")))
    results.extend(_collect_ranges(source.get("time_ranges")))

    if results:
        return results

    start_display = _first_text(source, _START_DISPLAY_KEYS)
    end_display = _first_text(source, _END_DISPLAY_KEYS)
    if start_display and end_display:
        return [f"{start_display} – {end_display}"]

    start_value = _first_present(source, ("start", "start_iso", "startISO"))
    end_value = _first_present(source, ("end", "end_iso", "endISO"))
    if start_value is not None or end_value is not None:
        start = _range_time(_unwrap_time(start_value))
        end = _range_time(_unwrap_time(end_value))
        if start or end:
            return [f"{start or '?'} – {end or '?'}"]
    return []
