"""Tests for previous/next charge days and row sorting"""
import math
from datetime import datetime, timezone

import pytest

from subtrack.application.charge_schedule import (
    compute_charge_schedule, normalize_sort_mode, sort_subscriptions,
)
from subtrack.domain.date_index import day_number_to_iso, parse_iso_date


def _d(text):
    return parse_iso_date(text)


def _iso_schedule(sub, today):
    schedule = compute_charge_schedule(sub, _d(today))
    return (
        day_number_to_iso(schedule.prev_charge_day) if schedule.prev_charge_day is not None else None,
        day_number_to_iso(schedule.next_charge_day) if schedule.next_charge_day is not None else None,
    )


class TestChargeSchedule:
    def test_month_end_anchor(self, make_sub):
        sub = make_sub(start="2025-01-31")
        assert _iso_schedule(sub, "2025-03-01") == ("2025-02-28", "2025-03-31")

    def test_charge_today(self, make_sub):
        sub = make_sub(start="2025-01-15")
        assert _iso_schedule(sub, "2025-03-15") == ("2025-03-15", "2025-03-15")

    def test_not_started(self, make_sub):
        sub = make_sub(start="2025-06-01")
        assert _iso_schedule(sub, "2025-03-01") == (None, "2025-06-01")

    def test_weekly(self, make_sub):
        sub = make_sub(cycle="weekly", start="2025-01-01")
        assert _iso_schedule(sub, "2025-01-10") == ("2025-01-08", "2025-01-15")
        assert _iso_schedule(sub, "2025-01-15") == ("2025-01-15", "2025-01-15")

    def test_yearly_leap_day(self, make_sub):
        sub = make_sub(cycle="yearly", start="2024-02-29")
        assert _iso_schedule(sub, "2025-03-01") == ("2025-02-28", "2026-02-28")

    def test_ended(self, make_sub):
        sub = make_sub(start="2025-01-10", end="2025-02-20")
        assert _iso_schedule(sub, "2025-03-01") == ("2025-02-10", None)

    def test_next_after_end_dropped(self, make_sub):
        sub = make_sub(start="2025-01-10", end="2025-03-05")
        assert _iso_schedule(sub, "2025-03-01") == ("2025-02-10", None)

    def test_degenerate(self, make_sub):
        sub = make_sub(start="2025-02-01", end="2025-01-01")
        assert _iso_schedule(sub, "2025-03-01") == (None, None)

    def test_prev_not_after_today_and_next_not_before(self, make_sub):
        sub = make_sub(start="2024-03-31")
        for offset in range(0, 400, 7):
            today = _d("2024-04-01") + offset
            schedule = compute_charge_schedule(sub, today)
            assert schedule.prev_charge_day <= today <= schedule.next_charge_day


class TestSorting:
    @pytest.fixture
    def subs(self, make_sub):
        return [
            make_sub("a", price=10.0, start="2025-01-20"),  # next 2025-03-20
            make_sub("b", price=5.0, start="2025-02-03"),  # next 2025-03-03
            make_sub("c", price=50.0, cycle="yearly", start="2024-06-01"),  # next 2025-06-01
            make_sub("d", price=7.0, start="2025-01-01", end="2025-02-15"),  # ended
        ]

    def _ids(self, subs, mode, price_of=None):
        return [s.id for s in sort_subscriptions(subs, mode, _d("2025-03-01"), price_of)]

    def test_next_charge_default(self, subs):
        assert self._ids(subs, None) == ["b", "a", "c", "d"]

    def test_next_charge_desc(self, subs):
        assert self._ids(subs, "next-charge-desc") == ["c", "a", "b", "d"]

    def test_recent_charge(self, subs):
        # prev: a 02-20, b 02-03, c 2024-06-01, d 02-01
        assert self._ids(subs, "recent-charge") == ["a", "b", "d", "c"]
        assert self._ids(subs, "recent-charge-asc") == ["c", "d", "b", "a"]

    def test_price(self, subs):
        assert self._ids(subs, "price-asc") == ["b", "d", "a", "c"]
        assert self._ids(subs, "price-desc") == ["c", "a", "d", "b"]

    def test_start(self, subs):
        assert self._ids(subs, "start-asc") == ["c", "d", "a", "b"]
        assert self._ids(subs, "start-desc") == ["b", "a", "d", "c"]

    def test_unknown_price_sorts_last(self, subs):
        prices = {"a": 1.0, "b": None, "c": 3.0, "d": math.nan}
        ids = self._ids(subs, "price-asc", price_of=lambda s: prices[s.id])
        assert ids[:2] == ["a", "c"]
        ids = self._ids(subs, "price-desc", price_of=lambda s: prices[s.id])
        assert ids[:2] == ["c", "a"]

    def test_tie_break_newest_created_first(self, make_sub):
        older = make_sub("x", start="2025-01-05", created_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
        newer = make_sub("y", start="2025-01-05", created_at=datetime(2025, 2, 1, tzinfo=timezone.utc))
        result = sort_subscriptions([older, newer], "price-asc", _d("2025-03-01"))
        assert [s.id for s in result] == ["y", "x"]

    def test_normalize_sort_mode(self):
        assert normalize_sort_mode("PRICE-DESC") == "price-desc"
        assert normalize_sort_mode("nope") == "next-charge"
        assert normalize_sort_mode(None) == "next-charge"
