"""HTML sanitizing and plain-text conversion for summary fragments."""

from __future__ import annotations

import html
import re

import bleach

ALLOWED_TAGS = frozenset({
    "p", "br", "strong", "em", "b", "i", "u",
    "ul", "ol", "li", "a", "h1", "h2", "h3", "h4",
    "span", "div", "section",
    "table", "thead", "tbody", "tr", "th", "td",
    "time",
})
ALLOWED_ATTRIBUTES = {
    "*": [
        "class", "data-key", "data-segment", "data-severity", "data-index", "data-slot",
        "data-window", "data-window-index", "data-score", "data-pakshi",
    ],
    "a": ["href", "target", "rel"],
    "time": ["datetime"],
}

_HEADING = re.compile(r"<h([1-6])[^>]*>(.*?)</h\1\s*>", re.I | re.S)
_BREAK = re.compile(r"<br\s*/?>", re.I)
_BLOCK_CLOSE = re.compile(r"</(?:p|div|li|ul|ol|section|article|blockquote|tr|table)\s*>", re.I)
_LIST_ITEM = re.compile(r"<li[^>]*>", re.I)
_SCRIPT_STYLE = re.compile(r"<(script|style)[^>]*>.*?</\1\s*>", re.I | re.S)
_TAG = re.compile(r"<[^>]+>")
_HSPACE = re.compile(r"[^\S\n]+")
_BLANK_LINES = re.compile(r"\n\s*\n\s*(?:\n\s*)+")


def strip_tags(text: str | None) -> str:
    """Replace every tag with a space."""
    if not text:
        return ""
    return _TAG.sub(" ", text)


def html_to_text(markup: str | None) -> str:
    """Flatten ``markup`` keeping its line structure.

    Headings become ``#`` markdown lines, list items become ``-`` bullets and
    block-level closers become line breaks; entities are unescaped.
    """
    if not markup:
        return ""
    out = _SCRIPT_STYLE.sub("", markup)
    out = _HEADING.sub(
        lambda m: "\n" + "#" * int(m.group(1)) + " " + _TAG.sub("", m.group(2)).strip() + "\n",
        out,
    )
    out = _BREAK.sub("\n", out)
    out = _LIST_ITEM.sub("\n- ", out)
    out = _BLOCK_CLOSE.sub("\n", out)
    out = _TAG.sub("", out)
    out = html.unescape(out)

    lines = [_HSPACE.sub(" ", line).strip() for line in out.split("\n")]
    out = "\n".join(lines)
    out = _BLANK_LINES.sub("\n\n", out)
    return out.strip()


def sanitize_html(markup: str | None) -> str:
    """Allowlist-clean AI html: unknown tags are stripped, unknown attributes dropped."""
    if not markup or not markup.strip():
        return ""
    cleaned = _SCRIPT_STYLE.sub("", markup)
    return bleach.clean(cleaned, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)
