"""
Dashboard statistics: cost estimates, active subscriptions, USD conversion
and the today / month / year summary read from aggregated totals.
"""
import math
from dataclasses import dataclass, replace

from subtrack.application.charge_totals import ChargeTotals, CurrencyBucket
from subtrack.config import get_settings
from subtrack.domain.date_index import day_number_to_parts, is_finite_number
from subtrack.domain.subscription import CYCLE_MONTHLY, CYCLE_WEEKLY, CYCLE_YEARLY, Subscription

WEEKS_PER_YEAR = 52
MONTHS_PER_YEAR = 12


def estimate_monthly_cost(sub: Subscription) -> float:
    """Average monthly cost; nan for an unusable price."""
    price = sub.price
    if not is_finite_number(price) or price < 0:
        return math.nan
    if sub.cycle == CYCLE_WEEKLY:
        return price * WEEKS_PER_YEAR / MONTHS_PER_YEAR
    if sub.cycle == CYCLE_YEARLY:
        return price / MONTHS_PER_YEAR
    if sub.cycle == CYCLE_MONTHLY:
        return price
    return price


def estimate_yearly_cost(sub: Subscription) -> float:
    monthly = estimate_monthly_cost(sub)
    if not math.isfinite(monthly):
        return math.nan
    return monthly * MONTHS_PER_YEAR


def group_totals_by_currency(subscriptions, estimator) -> CurrencyBucket:
    """Sum estimator(sub) per currency, skipping non-finite values."""
    default_currency = get_settings().DEFAULT_CURRENCY
    totals: CurrencyBucket = {}
    for sub in subscriptions:
        currency = (sub.currency or default_currency).upper()
        value = estimator(sub)
        if not is_finite_number(value):
            continue
        totals[currency] = totals.get(currency, 0.0) + value
    return totals


def active_subscriptions(subscriptions, today: int) -> list[Subscription]:
    """Started on or before today and not ended before today."""
    return [
        sub for sub in subscriptions
        if sub.start_day <= today and (sub.end_day is None or sub.end_day >= today)
    ]


# ============================================================================
# USD conversion
# ============================================================================


def convert_to_usd(amount, currency, rates) -> float | None:
    """
    Convert an amount into USD.

    Args:
        amount: value in `currency`
        currency: ISO code (default currency when empty)
        rates: {code: units of that currency per 1 USD}

    Returns:
        USD value, or None when the amount or the rate is unusable
    """
    if not is_finite_number(amount):
        return None
    code = str(currency or get_settings().DEFAULT_CURRENCY).upper()
    if code == "USD":
        return float(amount)
    rate = (rates or {}).get(code)
    if not is_finite_number(rate) or rate <= 0:
        return None
    return float(amount) / rate


def usd_price_getter(rates):
    """Price callable for sort_subscriptions: the price in USD (None if unknown)."""
    def price_of(sub: Subscription) -> float | None:
        return convert_to_usd(sub.price, sub.currency, rates)
    return price_of


def to_display_subscriptions(subscriptions, rates) -> list[Subscription]:
    """Copies priced in USD; the price is nan when no rate is known."""
    out = []
    for sub in subscriptions:
        converted = convert_to_usd(sub.price, sub.currency, rates)
        out.append(replace(sub, price=math.nan if converted is None else converted, currency="USD"))
    return out


# ============================================================================
# Summary
# ============================================================================


@dataclass(frozen=True)
class Summary:
    active_count: int
    today_totals: CurrencyBucket
    month_totals: CurrencyBucket
    year_totals: CurrencyBucket
    monthly_estimate: CurrencyBucket
    yearly_estimate: CurrencyBucket


def build_summary(subscriptions, totals: ChargeTotals | None, today: int) -> Summary:
    """
    Header statistics for "today".

    today/month/year totals come from the aggregated ChargeTotals (empty when
    today lies outside the aggregated range); estimates come from the active
    subscriptions' cycles.
    """
    active = active_subscriptions(subscriptions, today)
    parts = day_number_to_parts(today)
    if totals is not None:
        today_totals = totals.for_day(today)
        month_totals = totals.for_month(parts.year, parts.month_index)
        year_totals = totals.for_year(parts.year)
    else:
        today_totals, month_totals, year_totals = {}, {}, {}
    return Summary(
        active_count=len(active),
        today_totals=today_totals,
        month_totals=month_totals,
        year_totals=year_totals,
        monthly_estimate=group_totals_by_currency(active, estimate_monthly_cost),
        yearly_estimate=group_totals_by_currency(active, estimate_yearly_cost),
    )
