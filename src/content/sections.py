"""Segment a cleaned summary into titled sections."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Sequence

from .html_text import html_to_text
from .summary_source import StructuredSummarySections
from .time_format import FormatOptions, format_iso_datetimes_in_text
from .token_expander import TOKEN_PATTERN, expand_time_window_tokens

FALLBACK_TITLE = "Summary"
STRUCTURED_TITLES = (
    ("overall", "Overall Day Summary"),
    ("health", "Health & Well-being"),
    ("money", "Money and Practical Affairs"),
)

_MARKDOWN_HEADER = re.compile(r"^(#{1,6})\s+(.+)$")
_NUMBERED_SPLIT = re.compile(r"\n+(?=\d+[.)]\s)")
# "1) Title\n-----\nBody"
_NUMBERED_WITH_RULE = re.compile(r"^(\d+)[.)]\s*([^\n]+)\s*\n[-–—]{3,}\s*\n")
# "1) Title — Body" / "1. Title – Body"; hyphens inside the title are allowed
_NUMBERED_EM_DASH = re.compile(r"^(\d+)[.)]\s*([^—–\n]+?)\s*[—–]\s*")
# "1) Title - Body"; the spaces keep compound words like "Well-being" intact
_NUMBERED_HYPHEN = re.compile(r"^(\d+)[.)]\s*([^\n]+?)\s+-\s+")


@dataclass(frozen=True)
class Section:
    title: str
    text: str | None = None
    html: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "text": self.text, "html": self.html}


def parse_markdown_sections(text: str) -> list[Section]:
    sections: list[Section] = []
    title: str | None = None
    body: list[str] = []

    def _flush() -> None:
        content = "\n".join(body).strip()
        if title and content:
            sections.append(Section(title=title, text=content))

    for line in text.split("\n"):
        match = _MARKDOWN_HEADER.match(line.strip())
        if match:
            _flush()
            title = match.group(2).strip()
            body = []
        else:
            body.append(line)
    _flush()
    return sections


def parse_numbered_sections(text: str) -> list[Section]:
    sections: list[Section] = []
    for part in _NUMBERED_SPLIT.split(text):
        chunk = part.strip()
        if not chunk:
            continue
        match = (
            _NUMBERED_WITH_RULE.match(chunk)
            or _NUMBERED_EM_DASH.match(chunk)
            or _NUMBERED_HYPHEN.match(chunk)
        )
        if not match:
            continue
        content = chunk[match.end():].strip()
        if content:
            sections.append(Section(title=match.group(2).strip(), text=content))
    return sections


def parse_sections(
    html: str | None = None,
    text: str | None = None,
    structured: StructuredSummarySections | None = None,
) -> list[Section]:
    """Cascade: structured layers, markdown headers, numbered sections, one fallback section."""
    if structured is not None:
        sections = []
        for key, title in STRUCTURED_TITLES:
            value = getattr(structured, key)
            if value and value.strip():
                sections.append(Section(title=title, text=value.strip()))
        return sections

    content = (text or html_to_text(html)).strip()
    if not content:
        return []

    return (
        parse_markdown_sections(content)
        or parse_numbered_sections(content)
        or [Section(title=FALLBACK_TITLE, text=content)]
    )


def process_sections(
    sections: Sequence[Section],
    windows: Sequence[Any] | None,
    options: FormatOptions | None = None,
) -> list[Section]:
    """Expand window tokens and ISO datetimes inside every section body."""

    def _expand(body: str | None) -> str | None:
        if not body:
            return body
        if windows and TOKEN_PATTERN.search(body):
            return expand_time_window_tokens(body, windows, options)
        return format_iso_datetimes_in_text(body, options)

    return [replace(section, text=_expand(section.text), html=_expand(section.html)) for section in sections]
