"""Near-duplicate sentence and bullet removal for generated summaries."""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Iterable

logger = logging.getLogger(__name__)

MODE_CONSECUTIVE = "consecutive"
MODE_GLOBAL = "global"

DEFAULT_COLLAPSE_PHRASES = (
    "Take ten mindful breaths, journal insights, and let compassion guide every action.",
    "Stay observant.",
)
DEFAULT_SIMILARITY_THRESHOLD = 0.9

BULLET_PATTERN = re.compile(r"^\s*(?:[-*\u2022]|\d+\.)\s+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_LINE_JOIN = re.compile(r"\s*\n\s*")
_SENTENCE = re.compile(r"[^.!?]+[.!?]?")
_WHITESPACE = re.compile(r"\s+")
_SMART_QUOTES = str.maketrans({"\u201c": '"', "\u201d": '"', "\u2018": "'", "\u2019": "'", "\u00a0": " "})


@dataclass(frozen=True)
class DedupeOptions:
    mode: str = MODE_CONSECUTIVE
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    collapse_phrases: tuple[str, ...] = field(default=DEFAULT_COLLAPSE_PHRASES)


@dataclass(frozen=True)
class DedupeUnit:
    text: str
    key: str


def normalize_for_comparison(text: str) -> str:
    """Lower-case, fold quotes, strip diacritics, punctuation/symbols to spaces."""
    lowered = text.translate(_SMART_QUOTES).lower()
    decomposed = unicodedata.normalize("NFD", lowered)
    chars = []
    for char in decomposed:
        category = unicodedata.category(char)
        if category == "Mn":
            continue
        chars.append(" " if category[0] in ("P", "S") else char)
    return _WHITESPACE.sub(" ", "".join(chars)).strip()


def jaccard_similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    tokens_a = set(a.split())
    tokens_b = set(b.split())
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def split_sentences(paragraph: str) -> list[str]:
    flattened = _LINE_JOIN.sub(" ", paragraph).strip()
    if not flattened:
        return []
    sentences = [s.strip() for s in _SENTENCE.findall(flattened)]
    return [s for s in sentences if s] or [flattened]


def _parse_paragraph(paragraph: str) -> tuple[list[DedupeUnit], bool]:
    lines = [line.strip() for line in paragraph.split("\n") if line.strip()]
    is_bullet = bool(lines) and all(BULLET_PATTERN.match(line) for line in lines)
    pieces = lines if is_bullet else split_sentences(paragraph)
    return [DedupeUnit(piece, normalize_for_comparison(piece)) for piece in pieces], is_bullet


def _is_repeat(
    unit: DedupeUnit,
    last_kept: DedupeUnit | None,
    pool: Iterable[DedupeUnit],
    threshold: float,
    collapse_keys: set[str],
) -> bool:
    if not unit.key:
        return False
    if last_kept is not None and unit.key in collapse_keys and unit.key == last_kept.key:
        return True
    for candidate in pool:
        if candidate.key and jaccard_similarity(candidate.key, unit.key) >= threshold:
            return True
    return False


def dedupe_summary(text: str | None, options: DedupeOptions | None = None) -> str:
    """Remove repeated sentences/bullets from ``text``.

    In ``consecutive`` mode a unit is compared with the unit kept just before it
    in the same paragraph; in ``global`` mode with every unit kept so far. A
    stock collapse phrase repeated back-to-back is always dropped. Running the
    function on its own output returns it unchanged.
    """
    if not text:
        return ""
    opts = options or DedupeOptions()
    global_mode = opts.mode == MODE_GLOBAL
    collapse_keys = {key for key in (normalize_for_comparison(p) for p in opts.collapse_phrases) if key}

    kept_globally: list[DedupeUnit] = []
    removed = 0
    paragraphs: list[str] = []

    for paragraph in _PARAGRAPH_SPLIT.split(text):
        units, is_bullet = _parse_paragraph(paragraph)
        kept: list[DedupeUnit] = []
        last_kept: DedupeUnit | None = None
        for unit in units:
            pool = kept_globally if global_mode else ([last_kept] if last_kept else [])
            if _is_repeat(unit, last_kept, pool, opts.similarity_threshold, collapse_keys):
                removed += 1
                continue
            kept.append(unit)
            last_kept = unit
            if global_mode:
                kept_globally.append(unit)

        joined = ("\n" if is_bullet else " ").join(unit.text for unit in kept)
        if joined.strip():
            paragraphs.append(joined)

    if removed:
        logger.debug("summary_dedupe_removed", extra={"removed": removed, "mode": opts.mode})
    return "\n\n".join(paragraphs).strip()
