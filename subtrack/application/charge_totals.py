"""
Charge aggregation over a closed day range.

Every billing period's price is spread evenly over the days of that period
(no partial-period discount when a subscription starts or ends mid-period)
and summed per currency into three maps:
- day_totals:   day number          -> {currency: amount}
- month_totals: year * 12 + month   -> {currency: amount}
- year_totals:  year                -> {currency: amount}

A subscription that cannot be aggregated is logged and skipped; it never
blanks out the whole pass.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import timedelta

from subtrack.config import get_settings
from subtrack.domain.date_index import day_number_to_date, is_finite_number, month_key
from subtrack.domain.subscription import Subscription, cycle_step_day, estimate_step, normalize_cycle

logger = logging.getLogger(__name__)

CurrencyBucket = dict[str, float]


@dataclass
class ChargeTotals:
    range_start: int
    range_end: int
    day_totals: dict[int, CurrencyBucket] = field(default_factory=dict)
    month_totals: dict[int, CurrencyBucket] = field(default_factory=dict)
    year_totals: dict[int, CurrencyBucket] = field(default_factory=dict)

    def for_day(self, day: int) -> CurrencyBucket:
        return dict(self.day_totals.get(day, {}))

    def for_month(self, year: int, month_index: int) -> CurrencyBucket:
        return dict(self.month_totals.get(month_key(year, month_index), {}))

    def for_year(self, year: int) -> CurrencyBucket:
        return dict(self.year_totals.get(year, {}))


def _add_to(buckets: dict, key: int, currency: str, delta: float) -> None:
    if not math.isfinite(delta) or delta == 0:
        return
    inner = buckets.setdefault(key, {})
    inner[currency] = inner.get(currency, 0.0) + delta


def _calendar_keys(range_start: int, range_end: int) -> list[tuple[int, int]]:
    """(month_key, year) for every day of the range, by offset from range_start."""
    keys = []
    d = day_number_to_date(range_start)
    for _ in range(range_end - range_start + 1):
        keys.append((month_key(d.year, d.month - 1), d.year))
        d += timedelta(days=1)
    return keys


def _first_step_for(start_day: int, cycle: str, range_start: int) -> int:
    """Last step whose period starts on or before range_start (0 if none)."""
    if start_day >= range_start:
        return 0
    step = estimate_step(start_day, cycle, range_start)
    while step > 0 and cycle_step_day(start_day, cycle, step) > range_start:
        step -= 1
    return step


def _accumulate(
    sub: Subscription,
    totals: ChargeTotals,
    keys: list[tuple[int, int]],
    max_periods: int,
) -> None:
    price = sub.price
    if not is_finite_number(price) or price <= 0:
        return
    if sub.is_degenerate:
        logger.debug("Skipping subscription id=%s: end_day before start_day", sub.id)
        return

    range_start, range_end = totals.range_start, totals.range_end
    start_day, end_day = sub.start_day, sub.end_day
    effective_end = range_end if end_day is None else min(range_end, end_day)
    if effective_end < range_start or effective_end < start_day:
        return

    cycle = normalize_cycle(sub.cycle)
    currency = sub.currency
    step = _first_step_for(start_day, cycle, range_start)
    period_start = cycle_step_day(start_day, cycle, step)
    periods = 0

    while period_start <= effective_end:
        if periods >= max_periods:
            logger.warning(
                "Subscription id=%s hit the billing period cap (%d), totals truncated",
                sub.id, max_periods,
            )
            break

        next_start = cycle_step_day(start_day, cycle, step + 1)
        period_end = next_start - 1
        if end_day is not None:
            period_end = min(period_end, end_day)

        if period_end >= range_start:
            overlap_start = max(period_start, range_start)
            overlap_end = min(period_end, effective_end)
            if overlap_end >= overlap_start:
                per_day = price / max(1, period_end - period_start + 1)
                for day in range(overlap_start, overlap_end + 1):
                    m_key, year = keys[day - range_start]
                    _add_to(totals.day_totals, day, currency, per_day)
                    _add_to(totals.month_totals, m_key, currency, per_day)
                    _add_to(totals.year_totals, year, currency, per_day)

        if end_day is not None and period_end >= end_day:
            break
        step += 1
        periods += 1
        period_start = next_start


def compute_charge_totals(
    subscriptions,
    range_start: int,
    range_end: int,
    max_periods: int | None = None,
) -> ChargeTotals:
    """
    Aggregate prorated charges of a subscription snapshot over
    [range_start, range_end] (inclusive).

    Args:
        subscriptions: iterable of Subscription
        range_start: first day of the range
        range_end: last day of the range
        max_periods: per-subscription billing period cap (settings default)

    Returns:
        ChargeTotals with day/month/year buckets
    """
    if max_periods is None:
        max_periods = get_settings().MAX_BILLING_PERIODS
    totals = ChargeTotals(range_start=range_start, range_end=range_end)
    if range_end < range_start:
        return totals

    keys = _calendar_keys(range_start, range_end)
    for sub in subscriptions:
        try:
            _accumulate(sub, totals, keys, max_periods)
        except Exception:
            logger.exception("Charge aggregation failed for subscription id=%s", getattr(sub, "id", None))
    return totals


def combine_day_totals(spans, day_totals: dict[int, CurrencyBucket], clip_start: int, clip_end: int) -> CurrencyBucket:
    """
    Sum day buckets over the union of spans, clipped to [clip_start, clip_end].

    A day covered by several spans is counted once.
    """
    combined: CurrencyBucket = {}
    counted: set[int] = set()
    for span in spans:
        start = max(span.start_day, clip_start)
        end = min(span.end_day, clip_end)
        for day in range(start, end + 1):
            if day in counted:
                continue
            counted.add(day)
            for currency, value in day_totals.get(day, {}).items():
                if not math.isfinite(value) or value == 0:
                    continue
                combined[currency] = combined.get(currency, 0.0) + value
    return {currency: value for currency, value in combined.items() if value != 0}


def iter_charge_days(sub: Subscription, range_start: int, range_end: int, max_steps: int | None = None):
    """
    Yield the exact charge days of sub inside [range_start, range_end],
    never past its end_day.
    """
    if max_steps is None:
        max_steps = get_settings().MAX_BILLING_PERIODS
    if sub.is_degenerate:
        return
    last = range_end if sub.end_day is None else min(range_end, sub.end_day)
    if last < range_start:
        return

    cycle = normalize_cycle(sub.cycle)
    step = _first_step_for(sub.start_day, cycle, range_start)
    for _ in range(max_steps):
        day = cycle_step_day(sub.start_day, cycle, step)
        if day > last:
            return
        if day >= range_start:
            yield day
        step += 1


class ChargeTotalsCache:
    """
    Single-entry memo of the last aggregation pass.

    Keyed by (version, range_start, range_end); the owner bumps version
    whenever the subscription snapshot changes.
    """

    def __init__(self):
        self._key = None
        self._totals: ChargeTotals | None = None

    def get(self, version, subscriptions, range_start: int, range_end: int) -> ChargeTotals:
        key = (version, range_start, range_end)
        if self._totals is None or self._key != key:
            self._totals = compute_charge_totals(subscriptions, range_start, range_end)
            self._key = key
        return self._totals

    def invalidate(self) -> None:
        self._key = None
        self._totals = None
