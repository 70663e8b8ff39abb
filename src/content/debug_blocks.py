"""Detection and removal of backend debug payloads leaking into prose.

Generated summaries and window notes sometimes carry the raw engine payload
that produced them: ``__windows_json__ {...}`` / ``__debug__ {...}`` markers,
fenced JSON, loose ``"key": "value"`` fragments. Everything here is a pure
string transform; malformed JSON is tolerated and only the recognisable span is
removed.
"""

from __future__ import annotations

import json
import re
from typing import Any

DEBUG_MARKERS = ("__windows_json__", "__debug__")

MAX_BLOB_SCANS = 100
MAX_BLOB_SIZE = 5000
MIN_BLOB_LENGTH = 4

_RAW_JSON_PATTERNS = (
    re.compile(r'"\w+"\s*:\s*"'),
    re.compile(r'\{\s*"\w+"'),
    re.compile(r"\[\s*\{"),
    re.compile(r"}\s*,\s*\{"),
    re.compile(r'_status"\s*:'),
    re.compile(r'_pakshi"\s*:'),
    re.compile(r"__windows_json__", re.I),
    re.compile(r"\}\}\}"),
)

_MARKER_TOKEN = re.compile(r"__windows_json__|__debug__", re.I)
_FENCED_BLOCK = re.compile(r"```(?:json|javascript|js)?[\s\S]*?```", re.I)
_STRAY_BACKTICKS = re.compile(r"``+")
_KEY_VALUE = re.compile(r'"[\w\s-]+"\s*:\s*("[^"]*"|\d+|true|false|null)\s*,?', re.I)
_EMPTY_STRUCTURE = re.compile(r"\{\s*\}|\[\s*\]")
_PARTIAL_SNAKE_KEY = re.compile(r'\w+_\w+"\s*:\s*"[^"]*"\s*,?')
_PARTIAL_QUOTED_KEY = re.compile(r'"\w+"\s*:\s*"[^"]*"\s*,?')
_CLOSER_RUN = re.compile(r'[}\]]{3,}\s*,?\s*\{?"?\w*"?:?')
_OPEN_KEY_FRAGMENT = re.compile(r'[\[{]\s*"\w+"\s*:\s*\d*\s*,?\s*"?\w*"?\s*:?\s*"?')
_TRAILING_DEBUG_LABEL = re.compile(r"(?:^|\n)[ \t]*(?:Debug|Raw payload|Raw data)\s*[:\-][\s\S]*$", re.I)

_JSON_OBJECT_KEY = re.compile(r'^[\[{]\s*"[\w-]+"\s*:')
_JSON_ARRAY_OF_OBJECTS = re.compile(r'^\[\s*\{\s*"[\w-]+"\s*:')
_JSON_STRING_ARRAY = re.compile(r'^\[\s*"')
_QUOTED_KEY = re.compile(r'"\w+"\s*:')
_OPEN_BRACKET = re.compile(r"[\[{]")


def looks_like_raw_json_data(text: str | None, min_length: int = 3) -> bool:
    """True when ``text`` is empty, too short, or shows JSON/backend leak patterns."""
    if not text:
        return True
    trimmed = text.strip()
    if len(trimmed) < min_length:
        return True
    return any(pattern.search(trimmed) for pattern in _RAW_JSON_PATTERNS)


def _find_balanced_end(text: str, start: int, limit: int | None = None) -> int | None:
    """Index just past the bracket closing ``text[start]``, or ``None`` if unclosed."""
    open_char = text[start]
    close_char = "]" if open_char == "[" else "}"
    depth = 0
    stop = len(text) if limit is None else min(len(text), start + limit)
    for pos in range(start, stop):
        char = text[pos]
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return pos + 1
    return None


def _line_end(text: str, start: int) -> int:
    newline = text.find("\n", start)
    return len(text) if newline == -1 else newline


def _remove_marker_payloads(text: str) -> str:
    out = text
    for marker in DEBUG_MARKERS:
        search_start = 0
        while search_start < len(out):
            idx = out.lower().find(marker, search_start)
            if idx == -1:
                break
            cursor = idx + len(marker)
            while cursor < len(out) and out[cursor] in " \t\r\n:":
                cursor += 1
            if cursor < len(out) and out[cursor] in "{[":
                end = _find_balanced_end(out, cursor)
                if end is None:
                    # unclosed payload: drop the rest of its line
                    end = _line_end(out, cursor)
                out = out[:idx] + out[end:]
                search_start = max(idx - 1, 0)
            else:
                out = out[:idx] + out[cursor:]
                search_start = idx
    return out


def _looks_like_json_blob(candidate: str) -> bool:
    return bool(
        _JSON_OBJECT_KEY.match(candidate)
        or _JSON_ARRAY_OF_OBJECTS.match(candidate)
        or _JSON_STRING_ARRAY.match(candidate)
        or len(_QUOTED_KEY.findall(candidate)) >= 2
    )


def strip_standalone_json_blobs(text: str | None) -> str:
    """Remove balanced ``{...}`` / ``[...]`` spans that look like raw data.

    Prose brackets such as ``time_windows[0]`` or ``[based on moon_sign]`` are
    left alone.
    """
    if not text:
        return ""
    out = text
    search_start = 0
    scans = 0
    while search_start < len(out) and scans < MAX_BLOB_SCANS:
        scans += 1
        match = _OPEN_BRACKET.search(out, search_start)
        if match is None:
            break
        start = match.start()
        end = _find_balanced_end(out, start, MAX_BLOB_SIZE)
        if end is None:
            search_start = start + 1
            continue
        candidate = out[start:end]
        if len(candidate) > MIN_BLOB_LENGTH and _looks_like_json_blob(candidate):
            out = out[:start] + out[end:]
        else:
            search_start = start + 1
    return out


def _collapse_artifacts(text: str) -> str:
    out = re.sub(r"\s+[,.]", lambda m: m.group(0).strip(), text)
    out = re.sub(r"[\t ]{2,}", " ", out)
    out = re.sub(r"[ \t]+\n", "\n", out)
    out = re.sub(r"\n{3,}", "\n\n", out)
    out = re.sub(r",+", ",", out)
    out = re.sub(r"[{}]{2,}|[\[\]]{2,}", "", out)
    return out.strip()


def strip_debug_blocks(text: str | None) -> str:
    """Remove debug markers, fenced JSON and leaked key/value fragments.

    Surrounding prose is kept; whitespace and punctuation left behind by the
    removals is collapsed.
    """
    if not text:
        return ""
    out = _remove_marker_payloads(str(text))

    out = _MARKER_TOKEN.sub("", out)
    out = _FENCED_BLOCK.sub("", out)
    out = _STRAY_BACKTICKS.sub(" ", out)

    out = strip_standalone_json_blobs(out)

    out = _KEY_VALUE.sub("", out)
    out = _EMPTY_STRUCTURE.sub("", out)

    out = _PARTIAL_SNAKE_KEY.sub("", out)
    out = _PARTIAL_QUOTED_KEY.sub("", out)
    out = _CLOSER_RUN.sub("", out)
    out = _OPEN_KEY_FRAGMENT.sub("", out)

    out = _TRAILING_DEBUG_LABEL.sub("", out)
    return _collapse_artifacts(out)


def _parse_json_candidate(candidate: str) -> dict[str, Any] | None:
    attempts = (
        candidate,
        re.sub(r"&quot;|&#34;", '"', candidate, flags=re.I),
        candidate.replace('\\"', '"'),
    )
    for attempt in attempts:
        try:
            parsed = json.loads(attempt)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _extract_first_json_object(text: str) -> tuple[dict[str, Any] | None, str]:
    match = _OPEN_BRACKET.search(text)
    if match is None:
        return None, strip_debug_blocks(text)
    start = match.start()
    end = _find_balanced_end(text, start) or len(text)
    candidate = text[start:end].strip()
    if len(candidate) < MIN_BLOB_LENGTH:
        return None, strip_debug_blocks(text)
    parsed = _parse_json_candidate(candidate)
    if parsed is None:
        return None, strip_debug_blocks(text)
    return parsed, strip_debug_blocks(text[:start] + text[end:])


def parse_embedded_windows_json(note: str | None) -> tuple[dict[str, Any] | None, str]:
    """Recover the payload smuggled into a window note.

    Returns ``(embedded, cleaned_note)``. ``embedded`` is the parsed object that
    follows a debug marker (or, without a marker, the first JSON object in the
    note), or ``None`` when nothing parses.
    """
    if not note:
        return None, ""
    text = str(note)
    lower = text.lower()
    marker_idx = -1
    marker = ""
    for candidate in DEBUG_MARKERS:
        idx = lower.find(candidate)
        if idx != -1 and (marker_idx == -1 or idx < marker_idx):
            marker_idx, marker = idx, candidate
    if marker_idx == -1:
        return _extract_first_json_object(text)

    after = marker_idx + len(marker)
    brace = _OPEN_BRACKET.search(text, after)
    if brace is None:
        return None, strip_debug_blocks(text[:marker_idx] + text[after:])

    end = _find_balanced_end(text, brace.start())
    if end is None:
        end = _line_end(text, brace.start())
    embedded = _parse_json_candidate(text[brace.start():end].strip())
    return embedded, strip_debug_blocks(text[:marker_idx] + text[end:])
