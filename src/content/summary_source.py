"""Pick which candidate summary (structured layers, AI text/html, day API) to show."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from .debug_blocks import looks_like_raw_json_data, strip_debug_blocks
from .dedupe import DedupeOptions, dedupe_summary
from .html_text import strip_tags
from .time_format import FormatOptions
from .token_expander import clean_summary_with_windows
from .window_ranges import replace_window_numbers_with_time_ranges

logger = logging.getLogger(__name__)

SOURCE_SUMMARY_METADATA = "summary_metadata"
SOURCE_DAY_API = "day_api"

DEFAULT_MINIMUM_LENGTH = 20
STRUCTURED_KEYS = ("overall", "health", "money")

_WRAPPED_JSON = re.compile(r"^\s*[\[{].*[\]}]\s*$", re.S)
_ANY_WHITESPACE = re.compile(r"\s+")
_HSPACE = re.compile(r"[^\S\n]+")
_BLANK_RUN = re.compile(r"\n\s*\n\s*(?:\n\s*)+")

Sanitizer = Callable[[str], str]


@dataclass(frozen=True)
class StructuredSummarySections:
    overall: str | None = None
    health: str | None = None
    money: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {key: getattr(self, key) for key in STRUCTURED_KEYS if getattr(self, key)}


@dataclass(frozen=True)
class SummarySelection:
    text: str | None = None
    html: str | None = None
    source: str | None = None
    structured: StructuredSummarySections | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "html": self.html,
            "source": self.source,
            "structured": self.structured.to_dict() if self.structured else None,
        }


def _get_path(data: Any, *keys: str) -> Any:
    current = data
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def get_summary_layer(ai_summary_data: Any) -> Any:
    """``summary_metadata.layers.summary`` -> ``layers.summary`` -> ``debug.layers.summary``."""
    for path in (
        ("summary_metadata", "layers", "summary"),
        ("layers", "summary"),
        ("debug", "layers", "summary"),
    ):
        layer = _get_path(ai_summary_data, *path)
        if layer is not None:
            return layer
    return None


def extract_structured_sections(layer: Any) -> StructuredSummarySections | None:
    if not isinstance(layer, Mapping):
        return None
    found = {
        key: layer[key]
        for key in STRUCTURED_KEYS
        if isinstance(layer.get(key), str) and layer[key].strip()
    }
    return StructuredSummarySections(**found) if found else None


def _first_string(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return None


def _extract_candidates(ai_summary_data: Any) -> tuple[str | None, str | None]:
    """Raw (text, html) candidates from the AI payload."""
    if not isinstance(ai_summary_data, Mapping):
        return None, None
    layer = get_summary_layer(ai_summary_data)
    layer_map = layer if isinstance(layer, Mapping) else {}

    text = _first_string(
        layer_map.get("text"),
        layer_map.get("summary"),
        layer if isinstance(layer, str) else None,
        _get_path(ai_summary_data, "summary_metadata", "summary"),
        ai_summary_data.get("summary"),
    )
    html = _first_string(
        layer_map.get("html"),
        layer_map.get("html_text"),
        ai_summary_data.get("html"),
    )
    return text, html


def normalize_candidate(raw: Any, minimum_length: int = DEFAULT_MINIMUM_LENGTH) -> str:
    """Cleaned candidate text, or ``""`` when it is too short or leaked JSON.

    Line breaks survive (horizontal whitespace is collapsed) so that headings
    and numbered lines can still be sectioned later; validity is judged on the
    fully collapsed form.
    """
    if not isinstance(raw, str) or not raw:
        return ""
    cleaned = strip_tags(strip_debug_blocks(raw))
    collapsed = _ANY_WHITESPACE.sub(" ", cleaned).strip()
    if len(collapsed) < minimum_length:
        return ""
    if looks_like_raw_json_data(collapsed) or _WRAPPED_JSON.match(collapsed):
        return ""
    lines = [_HSPACE.sub(" ", line).strip() for line in cleaned.split("\n")]
    return _BLANK_RUN.sub("\n\n", "\n".join(lines)).strip()


def select_summary_source(
    ai_summary_data: Any,
    day_summary: str | None = None,
    minimum_length: int = DEFAULT_MINIMUM_LENGTH,
    sanitizer: Sanitizer | None = None,
) -> SummarySelection:
    """Choose the summary to display, first match wins.

    1. structured ``overall``/``health``/``money`` layers (text and html stay empty);
    2. AI text or html that survives cleaning;
    3. the day-API summary under the same checks;
    4. nothing.

    ``sanitizer`` is applied to AI html before it is returned.
    """
    structured = extract_structured_sections(get_summary_layer(ai_summary_data))
    if structured:
        return SummarySelection(source=SOURCE_SUMMARY_METADATA, structured=structured)

    text_candidate, html_candidate = _extract_candidates(ai_summary_data)
    ai_text = normalize_candidate(text_candidate, minimum_length)
    ai_html_text = normalize_candidate(html_candidate, minimum_length)
    if ai_text or ai_html_text:
        html = None
        if ai_html_text and html_candidate:
            html = sanitizer(html_candidate) if sanitizer else html_candidate
        return SummarySelection(
            text=ai_text or ai_html_text,
            html=html or None,
            source=SOURCE_SUMMARY_METADATA,
        )

    day_text = normalize_candidate(day_summary, minimum_length)
    if day_text:
        return SummarySelection(text=day_text, source=SOURCE_DAY_API)

    logger.info("summary_source_none", extra={"has_ai_data": bool(ai_summary_data)})
    return SummarySelection()


def format_selected_summary(
    selection: SummarySelection,
    windows: Sequence[Any] | None,
    options: FormatOptions | None = None,
    dedupe_options: DedupeOptions | None = None,
) -> str:
    """Clean, expand and de-duplicate the selected text for display."""
    if not selection.text:
        return ""
    cleaned = clean_summary_with_windows(selection.text, windows, options)
    cleaned = replace_window_numbers_with_time_ranges(cleaned, windows) or ""
    return dedupe_summary(cleaned, dedupe_options or DedupeOptions())
