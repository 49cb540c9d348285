"""
Subscription record and billing-cycle stepping.

Cycles:
- weekly: every 7 days from start_day
- monthly: same day of month, clamped to short months (Jan 31 -> Feb 28 -> Mar 31)
- yearly: same month/day, Feb 29 clamped to Feb 28 in non-leap years

Step N is always computed from start_day (never from the previous charge),
so a Jan 31 anchor returns to the 31st after February.
"""
from dataclasses import dataclass
from datetime import datetime

from subtrack.domain.date_index import (
    add_months_clamped, add_years_clamped, day_number_to_parts, parts_to_day_number,
)


CYCLE_WEEKLY = "weekly"
CYCLE_MONTHLY = "monthly"
CYCLE_YEARLY = "yearly"
VALID_CYCLES = frozenset({CYCLE_WEEKLY, CYCLE_MONTHLY, CYCLE_YEARLY})

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class Subscription:
    """
    Immutable subscription snapshot.

    Ingestion (application.subscriptions) guarantees a known cycle,
    a finite price >= 0 and end_day >= start_day; the engine still
    tolerates records that break these rules and skips them.
    """
    id: str
    name: str
    price: float
    currency: str
    cycle: str
    start_day: int
    end_day: int | None = None
    color: str = ""
    link: str = ""
    created_at: datetime | None = None

    @property
    def is_degenerate(self) -> bool:
        return self.end_day is not None and self.end_day < self.start_day

    def charge_day(self, step: int) -> int:
        return cycle_step_day(self.start_day, self.cycle, step)


def normalize_cycle(cycle) -> str:
    """Unknown cycle values behave as monthly."""
    value = str(cycle or "").strip().lower()
    if value in VALID_CYCLES:
        return value
    return CYCLE_MONTHLY


def cycle_step_day(start_day: int, cycle: str, step: int) -> int:
    """Day number of the step-th charge (step 0 = start_day)."""
    cycle = normalize_cycle(cycle)
    if cycle == CYCLE_WEEKLY:
        return start_day + step * DAYS_PER_WEEK
    parts = day_number_to_parts(start_day)
    if cycle == CYCLE_YEARLY:
        return parts_to_day_number(add_years_clamped(parts, step))
    return parts_to_day_number(add_months_clamped(parts, step))


def estimate_step(start_day: int, cycle: str, target_day: int) -> int:
    """
    Closed-form step estimate for target_day.

    The estimated step's charge day lands in the same week/month/year as
    target_day, so it is either the last step on or before target_day or
    exactly one step past it. Callers refine linearly.
    """
    if target_day <= start_day:
        return 0
    cycle = normalize_cycle(cycle)
    if cycle == CYCLE_WEEKLY:
        return (target_day - start_day) // DAYS_PER_WEEK
    start = day_number_to_parts(start_day)
    target = day_number_to_parts(target_day)
    if cycle == CYCLE_YEARLY:
        return max(0, target.year - start.year)
    return max(0, (target.year - start.year) * 12 + (target.month_index - start.month_index))
