from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

CLOCK_RE = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")


class Day(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"


WEEK_DAYS = list(Day)

DAY_ALIASES = {
    "m": Day.MONDAY,
    "mon": Day.MONDAY,
    "monday": Day.MONDAY,
    "t": Day.TUESDAY,
    "tu": Day.TUESDAY,
    "tue": Day.TUESDAY,
    "tues": Day.TUESDAY,
    "tuesday": Day.TUESDAY,
    "w": Day.WEDNESDAY,
    "wed": Day.WEDNESDAY,
    "weds": Day.WEDNESDAY,
    "wednesday": Day.WEDNESDAY,
    "th": Day.THURSDAY,
    "thu": Day.THURSDAY,
    "thur": Day.THURSDAY,
    "thurs": Day.THURSDAY,
    "thursday": Day.THURSDAY,
    "f": Day.FRIDAY,
    "fri": Day.FRIDAY,
    "friday": Day.FRIDAY,
    "sa": Day.SATURDAY,
    "sat": Day.SATURDAY,
    "saturday": Day.SATURDAY,
}


def normalize_day(value: str | Day) -> Day:
    if isinstance(value, Day):
        return value
    key = (value or "").strip().lower()
    day = DAY_ALIASES.get(key)
    if day is None:
        raise ValueError("Invalid day of week. Expected Monday to Saturday")
    return day


def parse_clock(value: str) -> int:
    match = CLOCK_RE.match((value or "").strip())
    if not match:
        raise ValueError("Time must be in HH:MM format")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError("Time must be in HH:MM format")
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    hours = minutes // 60
    mins = minutes % 60
    return f"{hours:02d}:{mins:02d}"


def parse_time_range(start: str, end: str) -> tuple[int, int]:
    start_minutes = parse_clock(start)
    end_minutes = parse_clock(end)
    if start_minutes >= end_minutes:
        raise ValueError("End time must be later than start time")
    return start_minutes, end_minutes


def overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and start_b < end_a


@dataclass(frozen=True)
class TimeInterval:
    """A half-open ``[start, end)`` range of minutes on one weekday."""

    day: Day
    start: int
    end: int

    @classmethod
    def from_clock(cls, day: str | Day, start: str, end: str) -> "TimeInterval":
        start_minutes, end_minutes = parse_time_range(start, end)
        return cls(normalize_day(day), start_minutes, end_minutes)

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.day == other.day and overlap(self.start, self.end, other.start, other.end)

    def label(self) -> str:
        return f"{self.day.value} {format_clock(self.start)}-{format_clock(self.end)}"
