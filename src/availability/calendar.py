"""SlotCalendar - the fixed 42-slot teaching week.

Seven days x six canonical time ranges. Slots are numbered day-major:

    internal slot = day index * 6 + range index     (0..41)
    external slot = internal slot + 1               (1..42)

The Schedule/Roster API speaks external numbers only. Everything inside this
package works on internal numbers. to_external() and to_internal() are the
single conversion point; never write the +1/-1 inline.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterator

SLOTS_PER_DAY = 6
DAYS_PER_WEEK = 7
SLOT_COUNT = SLOTS_PER_DAY * DAYS_PER_WEEK  # 42


class Day(Enum):
    """Canonical weekday, valued by its position in the week."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def label(self) -> str:
        return self.name.title()

    @property
    def short(self) -> str:
        return self.label[:3]

    @classmethod
    def from_name(cls, text: str) -> "Day | None":
        """Resolve an English day name or its 3+ letter prefix, case-insensitively."""
        key = text.strip().lower()
        if len(key) < 3:
            return None
        for day in cls:
            if day.label.lower().startswith(key):
                return day
        return None


@dataclass(frozen=True)
class TimeRange:
    """A canonical (start, end) pair, in minutes after midnight."""

    start_minutes: int
    end_minutes: int

    @property
    def label(self) -> str:
        return f"{_clock(self.start_minutes)}-{_clock(self.end_minutes)}"

    def __str__(self) -> str:
        return self.label


def _clock(minutes: int) -> str:
    return f"{minutes // 60}:{minutes % 60:02d}"


TIME_RANGES: tuple[TimeRange, ...] = (
    TimeRange(8 * 60, 10 * 60),
    TimeRange(10 * 60, 12 * 60),
    TimeRange(13 * 60 + 30, 15 * 60),
    TimeRange(15 * 60, 17 * 60),
    TimeRange(17 * 60, 19 * 60),
    TimeRange(19 * 60 + 30, 21 * 60 + 30),
)

_RANGE_INDEX: dict[TimeRange, int] = {r: i for i, r in enumerate(TIME_RANGES)}


# ---------------------------------------------------------------------------
# Index spaces
# ---------------------------------------------------------------------------
def is_valid_slot(slot: int) -> bool:
    return isinstance(slot, int) and 0 <= slot < SLOT_COUNT


def to_external(slot: int) -> int:
    """Internal slot (0..41) -> API slot number (1..42).

    Raises:
        ValueError: If slot is not a valid internal slot.
    """
    if not is_valid_slot(slot):
        raise ValueError(f"Internal slot must be 0..{SLOT_COUNT - 1}, got {slot!r}")
    return slot + 1


def to_internal(number: int) -> int:
    """API slot number (1..42) -> internal slot (0..41).

    Raises:
        ValueError: If number is not a valid external slot number.
    """
    if not isinstance(number, int) or not 1 <= number <= SLOT_COUNT:
        raise ValueError(f"External slot must be 1..{SLOT_COUNT}, got {number!r}")
    return number - 1


# ---------------------------------------------------------------------------
# Slot <-> (day, time range)
# ---------------------------------------------------------------------------
def day_of(slot: int) -> Day:
    if not is_valid_slot(slot):
        raise ValueError(f"Invalid slot {slot!r}")
    return Day(slot // SLOTS_PER_DAY)


def time_range_of(slot: int) -> TimeRange:
    if not is_valid_slot(slot):
        raise ValueError(f"Invalid slot {slot!r}")
    return TIME_RANGES[slot % SLOTS_PER_DAY]


def slot_of(day: Day, time_range: TimeRange) -> int | None:
    """Internal slot for (day, time_range), or None if the range is not canonical."""
    index = _RANGE_INDEX.get(time_range)
    if index is None:
        return None
    return day.value * SLOTS_PER_DAY + index


def slot_label(slot: int) -> str:
    """Render a slot the way the schedule listing labels it, e.g. "8:00-10:00 Monday"."""
    return f"{time_range_of(slot).label} {day_of(slot).label}"


def iter_slots() -> Iterator[int]:
    return iter(range(SLOT_COUNT))


def slots_for_day(day: Day) -> list[int]:
    first = day.value * SLOTS_PER_DAY
    return list(range(first, first + SLOTS_PER_DAY))


# ---------------------------------------------------------------------------
# Week annotation
# ---------------------------------------------------------------------------
def week_dates(week_start: date) -> dict[Day, date]:
    """Map each Day to its calendar date in the week containing week_start.

    Any date inside the week works; it is normalised back to that week's Monday.
    """
    monday = week_start - timedelta(days=week_start.weekday())
    return {day: monday + timedelta(days=day.value) for day in Day}
