"""TimeRangeNormalizer - map hand-typed time ranges onto canonical slots.

Operators type busy times into spreadsheet cells in many shapes:
"8-10am", "8am-10am", "1.30-3pm", "19:30-21:30", "7:30 - 9:30pm".

The text is first parsed into a (start_minutes, end_minutes) pair, independent
of how it was written, and that pair is then matched by exact value against the
six canonical ranges. Nothing is matched by prefix, so "13:30-15:00" and
"3-5pm" can never shadow each other.

Both functions are pure: no I/O, no logging, no exceptions for bad input.
"""

import re

from src.availability.calendar import TIME_RANGES, Day, TimeRange, slot_of

# H, H:MM, H.MM or HhMM, then an optional am/pm/h suffix
_ENDPOINT = r"(\d{1,2})(?:[:.h](\d{2}))?(am|pm|h)?"
_RANGE_RE = re.compile(rf"{_ENDPOINT}(?:-|–|—|to){_ENDPOINT}")

_NOON = 12 * 60
_DAY_START_HOUR = 8  # Bare hours below this are afternoon ("3-5" is 15:00-17:00)

# Shorthand seen in teacher sheets for the early-afternoon block
_ALIASES: dict[tuple[int, int], TimeRange] = {
    (13 * 60, 15 * 60): TimeRange(13 * 60 + 30, 15 * 60),
}

_CANONICAL: dict[tuple[int, int], TimeRange] = {
    (r.start_minutes, r.end_minutes): r for r in TIME_RANGES
}


def _to_minutes(hour: int, minute: int, meridiem: str | None) -> int | None:
    if minute > 59:
        return None
    if meridiem == "am":
        if hour > 12:
            return None
        hour = 0 if hour == 12 else hour
    elif meridiem == "pm":
        if hour > 12:
            return None
        hour = hour if hour == 12 else hour + 12
    elif hour > 23:
        return None
    return hour * 60 + minute


def parse_time_range(text: str) -> tuple[int, int] | None:
    """Parse free text into (start_minutes, end_minutes), or None.

    Meridiem rules:
      - an explicit am/pm applies to its own endpoint;
      - a bare start inherits the end's am/pm unless that would put it after
        the end ("10-12pm" is 10:00-12:00, "1.30-3pm" is 13:30-15:00);
      - a bare end after an explicit start rolls into the afternoon if needed;
      - with no am/pm at all, hours 1-7 are afternoon, and an end that would
        fall before its start rolls forward twelve hours ("7.30-9.30").
    """
    if not text:
        return None
    normalized = re.sub(r"\s+", "", text).lower().rstrip(".")
    match = _RANGE_RE.fullmatch(normalized)
    if match is None:
        return None

    s_hour, s_min, s_suf, e_hour, e_min, e_suf = match.groups()
    s_hour, e_hour = int(s_hour), int(e_hour)
    s_min, e_min = int(s_min or 0), int(e_min or 0)
    s_mer = s_suf if s_suf in ("am", "pm") else None
    e_mer = e_suf if e_suf in ("am", "pm") else None

    if e_mer is not None:
        end = _to_minutes(e_hour, e_min, e_mer)
        if end is None:
            return None
        if s_mer is not None:
            start = _to_minutes(s_hour, s_min, s_mer)
        else:
            start = _to_minutes(s_hour, s_min, e_mer)
            if start is None or start >= end:
                start = _to_minutes(s_hour, s_min, None)
    else:
        if s_mer is not None:
            start = _to_minutes(s_hour, s_min, s_mer)
        elif s_suf is None and 1 <= s_hour < _DAY_START_HOUR:
            start = _to_minutes(s_hour + 12, s_min, None)
        else:
            start = _to_minutes(s_hour, s_min, None)
        end = _to_minutes(e_hour, e_min, None)
        if start is not None and end is not None and end <= start and end < _NOON:
            end += _NOON

    if start is None or end is None or end <= start:
        return None
    return start, end


def match_canonical(minutes: tuple[int, int]) -> TimeRange | None:
    """Exact-value lookup of a parsed pair among the canonical ranges."""
    return _CANONICAL.get(minutes) or _ALIASES.get(minutes)


def normalize_time_range(text: str, day: Day) -> int | None:
    """Resolve a hand-typed range on a given day to an internal slot.

    Returns:
        Internal slot (0..41), or None when the text is unparseable or does
        not denote a canonical range. Never guesses.
    """
    minutes = parse_time_range(text)
    if minutes is None:
        return None
    time_range = match_canonical(minutes)
    if time_range is None:
        return None
    return slot_of(day, time_range)
