from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from src.content.ai_windows import (
    map_ai_windows_to_engine_windows,
    normalize_ai_summary_response,
    validate_ai_windows,
)
from src.content.dedupe import DedupeOptions, dedupe_summary
from src.content.html_text import sanitize_html
from src.content.sections import parse_sections, process_sections
from src.content.summary_source import format_selected_summary, select_summary_source
from src.content.time_format import FormatOptions
from src.content.window_normalizer import NormalizedTimeWindow, build_time_windows, normalize_ranges

logger = logging.getLogger(__name__)


SUMMARY_MIN_LENGTH = int(os.getenv("SUMMARY_MIN_LENGTH", "20"))
SUMMARY_DEDUPE_THRESHOLD = float(os.getenv("SUMMARY_DEDUPE_THRESHOLD", "0.9"))
SUMMARY_DEDUPE_MODE = os.getenv("SUMMARY_DEDUPE_MODE", "consecutive")
SUMMARY_SLOT_MINUTES = int(os.getenv("SUMMARY_SLOT_MINUTES", "90"))
SUMMARY_EXPECTED_WINDOWS = int(os.getenv("SUMMARY_EXPECTED_WINDOWS", "16"))


def format_options_from(options: Optional[Mapping[str, Any]] = None) -> FormatOptions:
    opts = dict(options or {})
    return FormatOptions(
        use_ampm=bool(opts.get("use_ampm", True)),
        slot_minutes=int(opts.get("slot_minutes") or SUMMARY_SLOT_MINUTES),
        date=opts.get("date") or None,
        tz=opts.get("tz") or None,
    )


def dedupe_options_from(options: Optional[Mapping[str, Any]] = None) -> DedupeOptions:
    opts = dict(options or {})
    phrases = opts.get("collapse_phrases")
    kwargs: Dict[str, Any] = {
        "mode": opts.get("mode") or SUMMARY_DEDUPE_MODE,
        "similarity_threshold": float(
            opts["similarity_threshold"] if opts.get("similarity_threshold") is not None else SUMMARY_DEDUPE_THRESHOLD
        ),
    }
    if phrases is not None:
        kwargs["collapse_phrases"] = tuple(phrases)
    return DedupeOptions(**kwargs)


def window_view(window: NormalizedTimeWindow) -> Dict[str, Any]:
    data = window.to_dict()
    data["ranges"] = normalize_ranges(window)
    return data


def resolve_windows(
    ai_data: Mapping[str, Any],
    engine_windows: Optional[Sequence[Mapping[str, Any]]],
    options: FormatOptions,
) -> List[NormalizedTimeWindow]:
    """Engine windows are authoritative; AI windows merge in only when they validate."""
    ai_windows = ai_data.get("time_windows")
    if engine_windows:
        if ai_windows and validate_ai_windows(ai_windows, SUMMARY_EXPECTED_WINDOWS):
            merged = map_ai_windows_to_engine_windows(ai_windows, engine_windows)
        else:
            merged = [dict(w) if isinstance(w, Mapping) else w for w in engine_windows]
        return build_time_windows({"time_windows": merged}, options)
    return build_time_windows(ai_data, options)


def build_summary_view(
    ai_summary: Any,
    day_summary: Optional[str] = None,
    engine_windows: Optional[Sequence[Mapping[str, Any]]] = None,
    options: Optional[Mapping[str, Any]] = None,
    sanitizer: Optional[Callable[[str], str]] = None,
) -> Dict[str, Any]:
    """Run the whole normalization pipeline for one AI summary payload.

    Args:
        ai_summary: Raw AI summary API response (any supported shape)
        day_summary: Legacy day-API summary text used as a fallback
        engine_windows: Engine time windows; authoritative when supplied
        options: ``use_ampm``, ``slot_minutes``, ``date``, ``tz`` plus dedupe settings
        sanitizer: Callable applied to AI html before it is returned;
            defaults to the allowlist cleaner ``sanitize_html``

    Returns:
        Dict with ``source``, ``text``, ``html``, ``structured``, ``sections`` and ``time_windows``
    """
    fmt = format_options_from(options)
    dedupe_opts = dedupe_options_from((options or {}).get("dedupe"))

    ai_data = normalize_ai_summary_response(ai_summary)
    windows = resolve_windows(ai_data, engine_windows, fmt)

    selection = select_summary_source(
        ai_data,
        day_summary,
        minimum_length=SUMMARY_MIN_LENGTH,
        sanitizer=sanitizer or sanitize_html,
    )

    text: Optional[str] = None
    if selection.structured:
        sections = parse_sections(structured=selection.structured)
    else:
        text = format_selected_summary(selection, windows, fmt, dedupe_opts) or None
        sections = parse_sections(html=selection.html, text=text)
    sections = process_sections(sections, windows, fmt)

    logger.info(
        "summary_view_built",
        extra={
            "source": selection.source,
            "sections": len(sections),
            "windows": len(windows),
        },
    )
    return {
        "source": selection.source,
        "text": text,
        "html": selection.html,
        "structured": selection.structured.to_dict() if selection.structured else None,
        "sections": [section.to_dict() for section in sections],
        "time_windows": [window_view(w) for w in windows],
    }


def build_windows_view(data: Any, options: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    return [window_view(w) for w in build_time_windows(data, format_options_from(options))]


def dedupe_text(text: str, options: Optional[Mapping[str, Any]] = None) -> str:
    return dedupe_summary(text, dedupe_options_from(options))
