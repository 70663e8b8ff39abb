"""Clock, slot and ISO-8601 formatting helpers shared by the summary pipeline."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

TIME_PLACEHOLDER = "--:--"
SLOT_FALLBACK = "time window"
EMPTY_VALUE = "—"

_AMPM_TIME = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")
_CLOCK_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")
_NUMERIC_SLOT = re.compile(r"^\d+(\.\d+)?$")
_LOOSE_TIME = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)?", re.I)
_ISO_IN_TEXT = re.compile(
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?(?:\.\d+)?(?:Z|[+\-]\d{2}:?\d{2})?"
)
_OFFSET_NO_COLON = re.compile(r"([+\-]\d{2})(\d{2})$")
_FRACTION = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class FormatOptions:
    """Per-call formatting settings.

    ``date`` is an ISO date used to build ISO stamps when a window only carries
    display times. ``tz`` is an IANA zone name; ISO datetimes are converted into
    it before formatting when set.
    """

    use_ampm: bool = True
    slot_minutes: int = 90
    date: str | None = None
    tz: str | None = None


DEFAULT_FORMAT_OPTIONS = FormatOptions()


def parse_time_string(value: str | None) -> tuple[int, int] | None:
    """Parse ``9:30``, ``9:30 AM`` or ``21:10:00`` into ``(hours, minutes)``."""
    if not value:
        return None
    text = str(value).strip()

    match = _AMPM_TIME.match(text)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        meridiem = match.group(3).upper()
        if meridiem == "PM" and hours != 12:
            hours += 12
        if meridiem == "AM" and hours == 12:
            hours = 0
        if 0 <= hours < 24 and 0 <= minutes < 60:
            return hours, minutes
        return None

    match = _CLOCK_TIME.match(text)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        if hours == 24:
            return 0, minutes
        if 0 <= hours < 24 and 0 <= minutes < 60:
            return hours, minutes
    return None


def format_hours_minutes(hours: int, minutes: int, use_ampm: bool = True) -> str:
    if not use_ampm:
        return f"{hours:02d}:{minutes:02d}"
    period = "PM" if hours >= 12 else "AM"
    hours12 = 12 if hours == 0 else hours - 12 if hours > 12 else hours
    return f"{hours12}:{minutes:02d} {period}"


def is_numeric_slot(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        text = value.strip()
        return bool(_NUMERIC_SLOT.match(text)) and math.isfinite(float(text))
    return False


def slot_index(slot: Any) -> int | None:
    """Integer slot number, or ``None`` for anything non-numeric or non-finite."""
    try:
        return int(float(slot))
    except (TypeError, ValueError, OverflowError):
        return None


def _slot_start(slot: Any, slot_minutes: int, use_ampm: bool) -> str | None:
    index = slot_index(slot)
    if index is None or index < 1:
        return None
    start = (index - 1) * slot_minutes
    return format_hours_minutes((start // 60) % 24, start % 60, use_ampm)


def slot_to_time_range(slot: Any, slot_minutes: int = 90, use_ampm: bool = True) -> str:
    """Render a 1-based day slot (counted from midnight) as ``start – end``."""
    index = slot_index(slot)
    slots_per_day = (24 * 60) // slot_minutes
    if index is None or index < 1 or index > slots_per_day:
        return SLOT_FALLBACK
    start = (index - 1) * slot_minutes
    end = start + slot_minutes

    def _fmt(total: int) -> str:
        return format_hours_minutes((total // 60) % 24, total % 60, use_ampm)

    return f"{_fmt(start)} – {_fmt(end)}"


def parse_iso_datetime(value: Any) -> datetime | None:
    """Tolerant ISO-8601 parse. Returns ``None`` for anything unparseable."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if len(text) < 10 or not text[:4].isdigit():
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _OFFSET_NO_COLON.sub(r"\1:\2", text) if "T" in text or " " in text else text
    # fromisoformat accepts at most microsecond precision
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _to_zone(moment: datetime, tz: str | None) -> datetime:
    if not tz or moment.tzinfo is None:
        return moment
    try:
        return moment.astimezone(ZoneInfo(tz))
    except (ZoneInfoNotFoundError, ValueError):
        return moment


def format_time(value: Any, options: FormatOptions | None = None) -> str | None:
    """Format a time-like value as a short clock string.

    Accepts a numeric slot (number or numeric string), ``HH:MM``, ``H:MM AM/PM``,
    an ISO datetime, or a ``{"time": ...}`` / ``{"start": ...}`` mapping.
    """
    opts = options or DEFAULT_FORMAT_OPTIONS
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Mapping):
        inner = value.get("time") or value.get("start")
        return format_time(inner, opts) if inner is not None else None
    if is_numeric_slot(value):
        return _slot_start(value, opts.slot_minutes, opts.use_ampm)

    text = str(value).strip()
    if not text:
        return None

    parsed = parse_time_string(text)
    if parsed:
        return format_hours_minutes(parsed[0], parsed[1], opts.use_ampm)

    moment = parse_iso_datetime(text)
    if moment is None:
        return None
    moment = _to_zone(moment, opts.tz)
    return format_hours_minutes(moment.hour, moment.minute, opts.use_ampm)


def format_card_date(value: Any) -> str | None:
    """``2025-11-21T06:16:00+05:30`` -> ``Nov 21, 2025``."""
    moment = parse_iso_datetime(value)
    if moment is None:
        return None
    return f"{moment.strftime('%b')} {moment.day}, {moment.year}"


def format_local(value: Any, mode: str = "datetime") -> str:
    """Display helper with an em-dash for missing values.

    ``time`` -> ``11:49 AM``; ``datetime`` -> ``Nov 28, 2025, 11:49 AM``;
    ``date`` -> ``11/28/2025``. Unparseable datetimes are echoed back as text.
    """
    if value is None or value == "":
        return EMPTY_VALUE
    if mode == "time":
        return format_time(value) or EMPTY_VALUE

    moment = parse_iso_datetime(str(value))
    if moment is None:
        return str(value)
    if mode == "date":
        return f"{moment.month}/{moment.day}/{moment.year}"
    clock = format_hours_minutes(moment.hour, moment.minute)
    return f"{format_card_date(str(value))}, {clock}"


def construct_iso_from_date_and_time(date: str, time_text: str, tz: str | None = None) -> str | None:
    """Combine an ISO date and a display time (``06:24 AM``) into an ISO stamp."""
    if not date or not time_text:
        return None
    match = _LOOSE_TIME.search(str(time_text))
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2))
    meridiem = (match.group(3) or "").upper()
    if meridiem == "PM" and hours != 12:
        hours += 12
    elif meridiem == "AM" and hours == 12:
        hours = 0

    day = str(date).split("T")[0]
    try:
        moment = datetime.fromisoformat(f"{day}T{hours:02d}:{minutes:02d}:00")
    except ValueError:
        return None
    if tz:
        try:
            moment = moment.replace(tzinfo=ZoneInfo(tz))
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return moment.isoformat()


def format_iso_datetimes_in_text(text: str | None, options: FormatOptions | None = None) -> str:
    """Replace every bare ISO datetime in ``text`` with ``H:MM AM/PM``."""
    if not text:
        return ""
    opts = options or DEFAULT_FORMAT_OPTIONS

    def _replace(match: re.Match[str]) -> str:
        moment = parse_iso_datetime(match.group(0))
        if moment is None:
            return match.group(0)
        moment = _to_zone(moment, opts.tz)
        return format_hours_minutes(moment.hour, moment.minute, opts.use_ampm)

    return _ISO_IN_TEXT.sub(_replace, text)
