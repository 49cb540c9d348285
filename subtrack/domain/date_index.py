"""
Integer day coordinate for the timeline.

A day number is the count of calendar days since 1970-01-01 (UTC midnight).
Conversion to calendar parts is plain proleptic Gregorian arithmetic, so there
are no timezone or DST effects. month_index is 0-based (0 = January).

Supported range is [MIN_DAY, MAX_DAY] built from settings (default 2024..2030
inclusive); day numbers used as coordinates are clamped into it.
"""
import calendar
import math
import re
from dataclasses import dataclass
from datetime import date
from functools import lru_cache

from subtrack.config import get_settings


EPOCH_ORDINAL = date(1970, 1, 1).toordinal()

_ISO_DATE_RE = re.compile(r"^([0-9]{4})-([0-9]{2})-([0-9]{2})$")


@dataclass(frozen=True)
class DateParts:
    year: int
    month_index: int  # 0..11
    day: int


@dataclass(frozen=True)
class DayRange:
    """Closed interval of day numbers."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return max(0, self.end - self.start + 1)

    def contains(self, day) -> bool:
        if not is_finite_number(day):
            return False
        return self.start <= day <= self.end

    def clamp(self, day) -> int:
        """Clamp to the interval. Non-finite input maps to the start."""
        if not is_finite_number(day):
            return self.start
        return min(self.end, max(self.start, round_day(day)))


def is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def round_day(value) -> int:
    """Round a fractional day to the nearest integer (halves round up)."""
    if isinstance(value, int):
        return value
    return math.floor(value + 0.5)


def _normalize_month(year: int, month_index: int) -> tuple[int, int]:
    return divmod(year * 12 + month_index, 12)


def days_in_month(year: int, month_index: int) -> int:
    year, month_index = _normalize_month(year, month_index)
    return calendar.monthrange(year, month_index + 1)[1]


def to_day_number(year: int, month_index: int, day: int) -> int:
    """
    Day number for a calendar date.

    Month and day overflow roll over (month_index 12 is January of the next
    year, day 0 is the last day of the previous month).
    """
    year, month_index = _normalize_month(year, month_index)
    first = date(year, month_index + 1, 1).toordinal() - EPOCH_ORDINAL
    return first + day - 1


def parts_to_day_number(parts: DateParts) -> int:
    return to_day_number(parts.year, parts.month_index, parts.day)


def day_number_to_parts(day: int) -> DateParts:
    d = date.fromordinal(int(day) + EPOCH_ORDINAL)
    return DateParts(year=d.year, month_index=d.month - 1, day=d.day)


def day_number_to_date(day: int) -> date:
    return date.fromordinal(int(day) + EPOCH_ORDINAL)


def date_to_day_number(d: date) -> int:
    return d.toordinal() - EPOCH_ORDINAL


def day_number_to_iso(day: int) -> str:
    return day_number_to_date(day).isoformat()


def add_months_clamped(parts: DateParts, delta_months: int) -> DateParts:
    """
    Shift by N months, clamping the day to the target month length.

    Jan 31 + 1 month -> Feb 28/29 (never rolls into March).
    """
    year, month_index = _normalize_month(parts.year, parts.month_index + delta_months)
    day = min(parts.day, days_in_month(year, month_index))
    return DateParts(year=year, month_index=month_index, day=day)


def add_years_clamped(parts: DateParts, delta_years: int) -> DateParts:
    """Shift by N years; Feb 29 becomes Feb 28 in non-leap years."""
    year = parts.year + delta_years
    day = min(parts.day, days_in_month(year, parts.month_index))
    return DateParts(year=year, month_index=parts.month_index, day=day)


def month_bounds(year: int, month_index: int) -> DayRange:
    """First and last day of a calendar month."""
    start = to_day_number(year, month_index, 1)
    return DayRange(start=start, end=start + days_in_month(year, month_index) - 1)


def year_bounds(year: int) -> DayRange:
    return DayRange(start=to_day_number(year, 0, 1), end=to_day_number(year, 11, 31))


def month_key(year: int, month_index: int) -> int:
    """Key used by month aggregation maps."""
    return year * 12 + month_index


def parse_iso_date(text) -> int | None:
    """
    Parse strict YYYY-MM-DD into a day number.

    Returns None for anything else: wrong shape, month outside 01..12,
    day outside the month.
    """
    if not isinstance(text, str):
        return None
    match = _ISO_DATE_RE.match(text)
    if not match:
        return None
    year = int(match.group(1))
    month_index = int(match.group(2)) - 1
    day = int(match.group(3))
    if year < 1:
        return None
    if month_index < 0 or month_index > 11:
        return None
    if day < 1 or day > days_in_month(year, month_index):
        return None
    return to_day_number(year, month_index, day)


@lru_cache
def _range_for_years(min_year: int, max_year: int) -> DayRange:
    return DayRange(start=to_day_number(min_year, 0, 1), end=to_day_number(max_year, 11, 31))


def supported_range() -> DayRange:
    """[MIN_DAY, MAX_DAY] from settings."""
    settings = get_settings()
    return _range_for_years(settings.MIN_SUPPORTED_YEAR, settings.MAX_SUPPORTED_YEAR)


def clamp_to_supported_range(day, bounds: DayRange | None = None) -> int:
    return (bounds or supported_range()).clamp(day)


def is_within_supported_range(day, bounds: DayRange | None = None) -> bool:
    return (bounds or supported_range()).contains(day)


def today(now: date | None = None) -> int:
    """Local calendar date (no time of day) as a day number."""
    if now is None:
        now = date.today()
    return date_to_day_number(now)
