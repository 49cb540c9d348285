"""Tests for money formatting"""
import math
from decimal import Decimal

import pytest

from subtrack.utils.money import format_money, format_totals_inline, format_totals_title


@pytest.mark.parametrize("amount,expected", [
    (15000, "15 000"),
    (1200.5, "1 200.5"),
    (9.999, "10"),
    (0, "0"),
    (-0.001, "0"),
    (1234567.891, "1 234 567.89"),
    ("42.10", "42.1"),
    (Decimal("3.00"), "3"),
])
def test_format_money(amount, expected):
    assert format_money(amount) == expected


def test_format_money_with_currency():
    assert format_money(4.99, "USD") == "4.99 USD"


def test_format_money_non_numeric():
    assert format_money(math.nan) == "-"
    assert format_money(None) == "-"
    assert format_money("abc") == "-"


def test_inline_single_currency():
    assert format_totals_inline({"CNY": 30.0}) == "30"


def test_inline_several_currencies_sorted():
    assert format_totals_inline({"USD": 4.5, "CNY": 30.0, "EUR": 0.0}) == "CNY 30.00 +1"


def test_inline_empty():
    assert format_totals_inline({}) == ""
    assert format_totals_inline(None) == ""
    assert format_totals_inline({"CNY": 0.0}) == ""


def test_title():
    assert format_totals_title({"USD": 4.99, "CNY": 30.0}) == "30 CNY / 4.99 USD"
    assert format_totals_title({}) == ""
