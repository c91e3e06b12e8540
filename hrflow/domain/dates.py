"""Natural-language date parsing for time-off and scheduling requests.

Pure Python, no framework dependencies.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Tuple

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

DATE_CLARIFICATION = (
    "When would you like to take time off? Try something like "
    "\"tomorrow\", \"next Friday\", \"Dec 15 to Dec 19\" or \"Monday for 3 days\"."
)

_MONTH_PATTERN = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_WEEKDAY_PATTERN = r"(?:mon|tues|wednes|thurs|fri|satur|sun)day"

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_NUMERIC_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})(?:[/-](\d{2,4}))?$")
_MONTH_DAY_RE = re.compile(
    rf"^({_MONTH_PATTERN})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?(?:,?\s+(\d{{4}}))?$"
)
_WEEKDAY_RE = re.compile(rf"^(?:next\s+|this\s+|on\s+)?({_WEEKDAY_PATTERN})$")

# Scans free text for every date mention, in reading order
_MENTION_RE = re.compile(
    r"\b(?:"
    r"\d{4}-\d{1,2}-\d{1,2}"
    r"|\d{1,2}[/-]\d{1,2}(?:[/-]\d{2,4})?(?!\s*(?:business\s+|working\s+|work\s+)?days?\b)"
    rf"|{_MONTH_PATTERN}\.?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?"
    rf"|(?:next\s+)?{_WEEKDAY_PATTERN}"
    r"|today|tomorrow|next\s+month"
    r")\b"
)
_DURATION_RE = re.compile(r"\b(\d{1,3})\s*(?:business\s+|working\s+|work\s+)?days?\b")
_TIME_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)", re.IGNORECASE)
_AT_TIME_RE = re.compile(r"\bat\s+(\d{1,2})(?::(\d{2}))?\b(?!\s*(?:days?|[/-]))", re.IGNORECASE)


@dataclass
class DateRange:
    start: date
    end: date

    @property
    def business_days(self) -> int:
        return count_business_days(self.start, self.end)


def count_business_days(start: date, end: date) -> int:
    """Count Monday-to-Friday days in the inclusive range."""
    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


def next_monday(base: date) -> date:
    """The first Monday strictly after ``base``."""
    return base + timedelta(days=(7 - base.weekday()) or 7)


def add_months(base: date, months: int) -> date:
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _roll_forward(candidate: Optional[date], base: date, explicit_year: bool) -> Optional[date]:
    if candidate is None or explicit_year or candidate >= base:
        return candidate
    return _safe_date(candidate.year + 1, candidate.month, candidate.day)


def parse_natural_date(text: str, base: date, next_week: bool = False) -> Optional[date]:
    """Resolve a single date expression relative to ``base``.

    With ``next_week`` set, weekday names are looked up starting from
    the following Monday (that Monday itself included).
    """
    t = " ".join(text.strip().lower().split())
    if t == "today":
        return base
    if t == "tomorrow":
        return base + timedelta(days=1)
    if t == "next week":
        return base + timedelta(days=7)
    if t == "next month":
        return add_months(base, 1)

    m = _WEEKDAY_RE.match(t)
    if m:
        target = WEEKDAYS.index(m.group(1))
        if next_week:
            return next_monday(base) + timedelta(days=target)
        delta = (target - base.weekday()) % 7 or 7
        return base + timedelta(days=delta)

    m = _ISO_RE.match(t)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _NUMERIC_RE.match(t)
    if m:
        month, day, year = int(m.group(1)), int(m.group(2)), m.group(3)
        if year is None:
            return _roll_forward(_safe_date(base.year, month, day), base, False)
        full_year = int(year) + 2000 if len(year) == 2 else int(year)
        return _safe_date(full_year, month, day)

    m = _MONTH_DAY_RE.match(t)
    if m:
        month = MONTHS[m.group(1)[:3]]
        day = int(m.group(2))
        if m.group(3):
            return _safe_date(int(m.group(3)), month, day)
        return _roll_forward(_safe_date(base.year, month, day), base, False)

    return None


def find_date_mentions(text: str) -> List[str]:
    return _MENTION_RE.findall(text.lower())


def parse_date_range(text: str, today: date) -> Optional[DateRange]:
    """Extract a start/end range from free text.

    Every date mentioned is parsed on its own; the earliest becomes the
    start and the latest the end, whatever order they were written in.
    A single date plus "N days" spans N calendar days. A bare "next week"
    with no day named is the Monday to Friday of that week, not a single
    day seven days out. Returns None when nothing usable is found so the
    caller can ask instead of guessing.
    """
    lowered = text.lower()
    is_next_week = "next week" in lowered
    dates = [
        d for d in (parse_natural_date(m, today, is_next_week) for m in find_date_mentions(lowered))
        if d is not None
    ]
    duration = _DURATION_RE.search(lowered)
    span = int(duration.group(1)) if duration else 0

    if not dates:
        if not is_next_week:
            return None
        start = next_monday(today)
        end = start + timedelta(days=(span or 5) - 1)
        return DateRange(start, end)

    start, end = min(dates), max(dates)
    if start == end and span > 1:
        end = start + timedelta(days=span - 1)
    return DateRange(start, end)


def parse_time(text: str, default_hour: int = 10) -> Tuple[int, int]:
    """Pull an interview time out of text as (hour, minute).

    Bare hours 1-6 are read as afternoon. Times outside 8am-6pm are
    clamped back to the default hour.
    """
    meridiem = ""
    m = _TIME_RE.search(text)
    if m:
        meridiem = m.group(3).lower().replace(".", "")
    else:
        m = _AT_TIME_RE.search(text)
    if not m:
        return default_hour, 0
    hour = int(m.group(1))
    minute = int(m.group(2) or 0)
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    elif not meridiem and 1 <= hour <= 6:
        hour += 12
    if hour < 8 or hour > 18 or (hour == 18 and minute > 0) or minute > 59:
        return default_hour, 0
    return hour, minute
