"""Rewrite prose references such as "Windows 3, 4 and 6" as clock ranges."""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from .window_normalizer import NormalizedTimeWindow, coerce_windows

logger = logging.getLogger(__name__)

# "window 3", "Windows 3, 4, 6", "windows 3 and 4", "Windows 3 & 4".
# The list stops before an Oxford-comma tail (", and 15"): that tail stays in the text.
# Separators stay on one line.
WINDOW_LIST_PATTERN = re.compile(
    r"\bwindows?[^\S\n]*((?:\d+(?:[^\S\n]*,[^\S\n]*|[^\S\n]+))*(?:\d+[^\S\n]*(?:and|&)[^\S\n]*)?\d+)",
    re.I,
)
_NUMBER = re.compile(r"\d+")
_CONNECTIVE = re.compile(r"\b(?:and)\b|&", re.I)


def contiguous_runs(numbers: Sequence[int]) -> list[tuple[int, int]]:
    """Sorted, de-duplicated numbers grouped into maximal ``(first, last)`` runs."""
    ordered = sorted(set(numbers))
    if not ordered:
        return []
    runs: list[tuple[int, int]] = []
    first = last = ordered[0]
    for value in ordered[1:]:
        if value == last + 1:
            last = value
            continue
        runs.append((first, last))
        first = last = value
    runs.append((first, last))
    return runs


def _run_text(windows: Sequence[NormalizedTimeWindow], first: int, last: int) -> str:
    start = windows[first - 1]
    end = windows[last - 1]
    if first == last:
        return f"{start.start_display} – {start.end_display}"
    return f"{start.start_display} to {end.end_display}"


def replace_window_numbers_with_time_ranges(text: str | None, windows: Sequence[Any] | None) -> str | None:
    """Replace 1-based window-number lists with the time ranges they cover.

    A single window renders as ``start – end``; a consecutive run renders as
    ``first start to last end``. If any number in a list is outside
    ``[1, len(windows)]`` the whole reference is left untouched.
    """
    if not text or not windows:
        return text
    normalized = coerce_windows(windows)
    count = len(normalized)

    def _replace(match: re.Match[str]) -> str:
        listed = match.group(1)
        numbers = [int(n) for n in _NUMBER.findall(listed)]
        if not numbers:
            return match.group(0)
        if any(n < 1 or n > count for n in numbers):
            logger.debug(
                "window_reference_out_of_range",
                extra={"reference": match.group(0), "window_count": count},
            )
            return match.group(0)

        parts = [_run_text(normalized, first, last) for first, last in contiguous_runs(numbers)]
        if len(parts) > 1 and _CONNECTIVE.search(listed):
            return ", ".join(parts[:-1]) + " and " + parts[-1]
        return ", ".join(parts)

    return WINDOW_LIST_PATTERN.sub(_replace, text)
