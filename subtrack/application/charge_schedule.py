"""
Previous / next charge day of a subscription relative to "today", and the
row ordering built on top of it.

Sort modes:
- next-charge (default), next-charge-desc
- recent-charge (latest previous charge first), recent-charge-asc
- price-asc, price-desc
- start-asc, start-desc

Ties: next charge ascending, start ascending, newest created_at first, id,
then original position.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from functools import cmp_to_key

from subtrack.domain.subscription import (
    CYCLE_WEEKLY, DAYS_PER_WEEK, Subscription, cycle_step_day, estimate_step, normalize_cycle,
)

SORT_NEXT_CHARGE = "next-charge"
SORT_NEXT_CHARGE_DESC = "next-charge-desc"
SORT_RECENT_CHARGE = "recent-charge"
SORT_RECENT_CHARGE_ASC = "recent-charge-asc"
SORT_PRICE_ASC = "price-asc"
SORT_PRICE_DESC = "price-desc"
SORT_START_ASC = "start-asc"
SORT_START_DESC = "start-desc"
VALID_SORT_MODES = frozenset({
    SORT_NEXT_CHARGE, SORT_NEXT_CHARGE_DESC, SORT_RECENT_CHARGE, SORT_RECENT_CHARGE_ASC,
    SORT_PRICE_ASC, SORT_PRICE_DESC, SORT_START_ASC, SORT_START_DESC,
})


@dataclass(frozen=True)
class ChargeSchedule:
    prev_charge_day: int | None
    next_charge_day: int | None


_EMPTY = ChargeSchedule(prev_charge_day=None, next_charge_day=None)


def compute_charge_schedule(sub: Subscription, today: int) -> ChargeSchedule:
    """
    Last charge on or before the reference day and first charge on or after it.

    The reference day is today, or end_day when the subscription already
    ended. next is dropped once the subscription has ended or when it would
    fall after end_day.
    """
    start_day, end_day = sub.start_day, sub.end_day
    if sub.is_degenerate:
        return _EMPTY

    # not started yet: the only known charge is the first one
    if start_day > today:
        return ChargeSchedule(prev_charge_day=None, next_charge_day=start_day)

    reference = end_day if end_day is not None and end_day < today else today
    if start_day > reference:
        return _EMPTY

    cycle = normalize_cycle(sub.cycle)
    if cycle == CYCLE_WEEKLY:
        delta = reference - start_day
        prev = start_day + (delta // DAYS_PER_WEEK) * DAYS_PER_WEEK
        next_ = start_day + math.ceil(delta / DAYS_PER_WEEK) * DAYS_PER_WEEK
    else:
        step = estimate_step(start_day, cycle, reference)
        while step > 0 and cycle_step_day(start_day, cycle, step) > reference:
            step -= 1
        prev = cycle_step_day(start_day, cycle, step)
        next_ = prev if prev >= reference else cycle_step_day(start_day, cycle, step + 1)

    if end_day is not None:
        if end_day < today or next_ > end_day:
            next_ = None
        if prev > end_day:
            prev = None
    return ChargeSchedule(prev_charge_day=prev, next_charge_day=next_)


def normalize_sort_mode(value) -> str:
    mode = str(value or "").strip().lower()
    if mode in VALID_SORT_MODES:
        return mode
    return SORT_NEXT_CHARGE


def _created_at_ms(value) -> float:
    if isinstance(value, datetime):
        return value.timestamp() * 1000
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).timestamp() * 1000
        except ValueError:
            return 0.0
    return 0.0


@dataclass(frozen=True)
class SortRow:
    """A subscription decorated with its sort keys."""
    sub: Subscription
    index: int
    price: float
    schedule: ChargeSchedule
    created_at_ms: float


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _key(value, missing: float) -> float:
    return missing if value is None else value


def _compare_primary(mode: str, a: SortRow, b: SortRow) -> int:
    inf = math.inf
    if mode == SORT_PRICE_DESC:
        return _cmp(b.price if math.isfinite(b.price) else -inf, a.price if math.isfinite(a.price) else -inf)
    if mode == SORT_PRICE_ASC:
        return _cmp(a.price if math.isfinite(a.price) else inf, b.price if math.isfinite(b.price) else inf)
    if mode == SORT_START_ASC:
        return _cmp(a.sub.start_day, b.sub.start_day)
    if mode == SORT_START_DESC:
        return _cmp(b.sub.start_day, a.sub.start_day)
    if mode == SORT_RECENT_CHARGE:
        return _cmp(_key(b.schedule.prev_charge_day, -inf), _key(a.schedule.prev_charge_day, -inf))
    if mode == SORT_RECENT_CHARGE_ASC:
        return _cmp(_key(a.schedule.prev_charge_day, inf), _key(b.schedule.prev_charge_day, inf))
    if mode == SORT_NEXT_CHARGE_DESC:
        return _cmp(_key(b.schedule.next_charge_day, -inf), _key(a.schedule.next_charge_day, -inf))
    return _cmp(_key(a.schedule.next_charge_day, inf), _key(b.schedule.next_charge_day, inf))


def build_sort_rows(subscriptions, today: int, price_of=None) -> list[SortRow]:
    """
    Decorate subscriptions with sort keys.

    price_of: optional callable Subscription -> float | None (e.g. price in USD);
    None / non-finite prices sort last.
    """
    rows = []
    for index, sub in enumerate(subscriptions):
        price = price_of(sub) if price_of is not None else sub.price
        if price is None or not isinstance(price, (int, float)) or not math.isfinite(price):
            price = math.nan
        rows.append(SortRow(
            sub=sub,
            index=index,
            price=float(price),
            schedule=compute_charge_schedule(sub, today),
            created_at_ms=_created_at_ms(sub.created_at),
        ))
    return rows


def sort_rows(rows: list[SortRow], mode) -> list[SortRow]:
    mode = normalize_sort_mode(mode)

    def compare(a: SortRow, b: SortRow) -> int:
        result = _compare_primary(mode, a, b)
        if result:
            return result
        result = _cmp(_key(a.schedule.next_charge_day, math.inf), _key(b.schedule.next_charge_day, math.inf))
        if result:
            return result
        result = _cmp(a.sub.start_day, b.sub.start_day)
        if result:
            return result
        result = _cmp(b.created_at_ms, a.created_at_ms)
        if result:
            return result
        result = _cmp(str(a.sub.id), str(b.sub.id))
        if result:
            return result
        return a.index - b.index

    return sorted(rows, key=cmp_to_key(compare))


def sort_subscriptions(subscriptions, mode, today: int, price_of=None) -> list[Subscription]:
    """Visible row order for the given sort mode."""
    return [row.sub for row in sort_rows(build_sort_rows(subscriptions, today, price_of), mode)]
