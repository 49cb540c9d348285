"""Tests for dashboard statistics"""
import math

import pytest

from subtrack.application.charge_schedule import sort_subscriptions
from subtrack.application.charge_totals import compute_charge_totals
from subtrack.application.stats import (
    active_subscriptions, build_summary, convert_to_usd, estimate_monthly_cost,
    estimate_yearly_cost, group_totals_by_currency, to_display_subscriptions, usd_price_getter,
)
from subtrack.domain.date_index import parse_iso_date

RATES = {"CNY": 7.2, "EUR": 0.9}


def _d(text):
    return parse_iso_date(text)


class TestEstimates:
    def test_monthly_cost_by_cycle(self, make_sub):
        assert estimate_monthly_cost(make_sub(price=12.0, cycle="weekly")) == pytest.approx(52.0)
        assert estimate_monthly_cost(make_sub(price=12.0, cycle="monthly")) == 12.0
        assert estimate_monthly_cost(make_sub(price=12.0, cycle="yearly")) == 1.0

    def test_yearly_cost(self, make_sub):
        assert estimate_yearly_cost(make_sub(price=10.0)) == 120.0

    def test_invalid_price(self, make_sub):
        assert math.isnan(estimate_monthly_cost(make_sub(price=-1.0)))
        assert math.isnan(estimate_yearly_cost(make_sub(price=math.nan)))

    def test_group_totals_by_currency(self, make_sub):
        subs = [
            make_sub("a", price=10.0),
            make_sub("b", price=5.0, currency="usd"),
            make_sub("c", price=2.0),
            make_sub("d", price=-3.0),
        ]
        assert group_totals_by_currency(subs, estimate_monthly_cost) == {"CNY": 12.0, "USD": 5.0}


class TestActive:
    def test_active_at_today(self, make_sub):
        subs = [
            make_sub("running", start="2025-01-01"),
            make_sub("future", start="2025-04-01"),
            make_sub("ended", start="2025-01-01", end="2025-02-28"),
            make_sub("ends-today", start="2025-01-01", end="2025-03-01"),
        ]
        assert [s.id for s in active_subscriptions(subs, _d("2025-03-01"))] == ["running", "ends-today"]


class TestUsd:
    def test_convert(self):
        assert convert_to_usd(72.0, "cny", RATES) == pytest.approx(10.0)
        assert convert_to_usd(5.0, "USD", None) == 5.0

    def test_missing_rate(self):
        assert convert_to_usd(1.0, "JPY", RATES) is None
        assert convert_to_usd(1.0, "CNY", {"CNY": 0}) is None
        assert convert_to_usd(math.nan, "USD", RATES) is None

    def test_empty_currency_uses_default(self):
        assert convert_to_usd(7.2, "", RATES) == pytest.approx(1.0)

    def test_display_subscriptions(self, make_sub):
        shown = to_display_subscriptions([make_sub(price=72.0), make_sub("j", price=1.0, currency="JPY")], RATES)
        assert shown[0].currency == "USD"
        assert shown[0].price == pytest.approx(10.0)
        assert math.isnan(shown[1].price)

    def test_sort_by_usd_price(self, make_sub):
        subs = [make_sub("cny", price=72.0), make_sub("eur", price=0.9, currency="EUR")]
        ordered = sort_subscriptions(subs, "price-asc", _d("2025-03-01"), usd_price_getter(RATES))
        assert [s.id for s in ordered] == ["eur", "cny"]


class TestSummary:
    def test_summary_from_totals(self, make_sub):
        subs = [make_sub(price=31.0, start="2025-01-01"), make_sub("late", price=10.0, start="2025-06-01")]
        totals = compute_charge_totals(subs, _d("2025-01-01"), _d("2025-12-31"))
        summary = build_summary(subs, totals, _d("2025-03-01"))

        assert summary.active_count == 1
        assert summary.today_totals["CNY"] == pytest.approx(1.0)
        assert summary.month_totals["CNY"] == pytest.approx(31.0)
        assert summary.year_totals["CNY"] == pytest.approx(31.0 * 12 + 10.0 * 7, rel=1e-6)
        assert summary.monthly_estimate == {"CNY": 31.0}
        assert summary.yearly_estimate == {"CNY": 372.0}

    def test_summary_without_totals(self, make_sub):
        summary = build_summary([make_sub()], None, _d("2025-03-01"))
        assert summary.today_totals == {}
        assert summary.active_count == 1
