"""Expansion of ``time_windows[N]`` tokens and the summary text cleaner."""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from .debug_blocks import strip_debug_blocks
from .time_format import FormatOptions, format_iso_datetimes_in_text
from .window_normalizer import coerce_windows

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"time_windows\[(\d+)\]", re.I)

BOILERPLATE_PATTERNS = (
    re.compile(r"Stay observant today\.", re.I),
    re.compile(r"Be mindful of changes\.", re.I),
    re.compile(r"Trust your intuition\.", re.I),
    re.compile(r"Focus on positive energy\.", re.I),
)
MAX_BOILERPLATE_REPEATS = 2

_METADATA_HINT = re.compile(r"\[based on\s+([^\]]+)\]", re.I)
_UPDATED_LINE = re.compile(r"^Updated:\s*[^\n]+\n*", re.I)
_BACKEND_SECTIONS = (
    re.compile(r"(?:^|\n)\s*(?:#{1,6}\s*)?Windows\s+Explanation[:\s]?[\s\S]*$", re.I),
    re.compile(r"(?:^|\n)\s*(?:#{1,6}\s*)?Appendix[:\s]?[\s\S]*$", re.I),
    re.compile(
        r"(?:^|\n)\s*(?:#{1,6}\s*)?(?:Technical\s+)?(?:Debug|Debugging)\s+(?:Info|Information|Notes?)[:\s]?[\s\S]*$",
        re.I,
    ),
    re.compile(r"(?:^|\n)\s*(?:#{1,6}\s*)?Internal\s+Notes?[:\s]?[\s\S]*$", re.I),
)
_SOURCES_FOOTER = re.compile(r"\r?\n\s*(?:Sources?|Raw sources?|References|Credits)\s*[:\-][\s\S]*$", re.I)
_HSPACE_RUN = re.compile(r"[^\S\n]{2,}")
_DOT_RUN = re.compile(r"\.{2,}")
_NEWLINE_RUN = re.compile(r"(?:\r?\n){3,}")


def expand_time_window_tokens(
    text: str | None,
    windows: Sequence[Any] | None,
    options: FormatOptions | None = None,
) -> str:
    """Replace ``time_windows[N]`` (0-based, case-insensitive) with ``start – end``.

    Tokens pointing outside ``windows`` are left in place so a gap stays
    visible instead of showing a wrong time. A second pass rewrites bare ISO
    datetimes as ``H:MM AM/PM``.
    """
    if not text:
        return ""
    normalized = coerce_windows(windows, options)
    missing: list[int] = []

    def _replace(match: re.Match[str]) -> str:
        idx = int(match.group(1))
        if 0 <= idx < len(normalized):
            return normalized[idx].time_range
        missing.append(idx)
        return match.group(0)

    out = TOKEN_PATTERN.sub(_replace, text)
    if missing:
        logger.warning(
            "time_window_token_out_of_range",
            extra={"indexes": sorted(set(missing)), "window_count": len(normalized)},
        )
    return format_iso_datetimes_in_text(out, options)


def collapse_identical_lines(text: str | None) -> str:
    """Drop a line identical to the line kept just before it; blank lines always stay."""
    if not text:
        return ""
    result: list[str] = []
    for line in text.split("\n"):
        if line.strip() == "" or not result or line != result[-1]:
            result.append(line)
    return "\n".join(result)


def collapse_boilerplate(text: str | None) -> str:
    """Keep at most two occurrences of each stock closing phrase."""
    if not text:
        return ""
    out = text
    for pattern in BOILERPLATE_PATTERNS:
        if len(pattern.findall(out)) <= MAX_BOILERPLATE_REPEATS:
            continue
        seen = 0

        def _keep_first(match: re.Match[str]) -> str:
            nonlocal seen
            seen += 1
            return match.group(0) if seen <= MAX_BOILERPLATE_REPEATS else ""

        out = pattern.sub(_keep_first, out)
    out = _HSPACE_RUN.sub(" ", out)
    out = _DOT_RUN.sub(".", out)
    return out.strip()


def convert_metadata_to_hints(text: str | None) -> str:
    """``[based on core.panchang.moon_sign]`` -> ``*(based on moon sign)*``."""
    if not text:
        return ""

    def _hint(match: re.Match[str]) -> str:
        path = match.group(1)
        last = path.split(".")[-1] or path
        return f"*(based on {last.replace('_', ' ').strip()})*"

    return _METADATA_HINT.sub(_hint, text)


def strip_metadata_sections(text: str | None) -> str:
    """Cut backend-only trailers (``Windows Explanation``, ``Appendix``, ...) and a leading ``Updated:`` line."""
    if not text:
        return ""
    out = _UPDATED_LINE.sub("", text, count=1)
    for pattern in _BACKEND_SECTIONS:
        match = pattern.search(out)
        if match:
            out = out[: match.start()].strip()
    return out


def clean_summary_with_windows(
    summary: str | None,
    windows: Sequence[Any] | None = None,
    options: FormatOptions | None = None,
) -> str:
    """Full cleanup of generated summary text before display.

    Debug payloads are removed, tokens and ISO datetimes expanded, metadata
    brackets turned into hints, repeated lines and boilerplate collapsed, and
    backend-only trailers dropped.
    """
    if not summary:
        return ""
    out = strip_debug_blocks(summary)
    if TOKEN_PATTERN.search(out):
        out = expand_time_window_tokens(out, windows, options)
    out = format_iso_datetimes_in_text(out, options)
    out = convert_metadata_to_hints(out)
    out = collapse_identical_lines(out)
    out = collapse_boilerplate(out)
    out = _SOURCES_FOOTER.sub("", out)
    out = strip_metadata_sections(out)
    out = _NEWLINE_RUN.sub("\n\n", out)
    out = _HSPACE_RUN.sub(" ", out).strip()
    return strip_debug_blocks(out)
