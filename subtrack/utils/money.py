"""
Unified money formatting for the whole project.

Usage:
    from subtrack.utils.money import format_money

    format_money(15000)            -> "15 000"
    format_money(1200.5, "USD")    -> "1 200.5 USD"
    format_money(9.999)            -> "10"
"""
import math
from decimal import Decimal, InvalidOperation


def _as_float(amount) -> float:
    try:
        if isinstance(amount, str):
            amount = Decimal(amount.strip() or "NaN")
        return float(amount)
    except (TypeError, ValueError, InvalidOperation):
        return math.nan


def format_money(amount, currency: str | None = None) -> str:
    """
    Отформатировать сумму: пробелы-разделители тысяч, не больше 2 знаков
    после точки, хвостовые нули убираются.

    Args:
        amount: число (int / float / Decimal / str)
        currency: ISO-код валюты; если передан, добавляется суффиксом

    Returns:
        "15 000" / "9.5 USD"; "-" для нечисловых значений
    """
    value = _as_float(amount)
    if not math.isfinite(value):
        return "-"
    formatted = f"{value:,.2f}".replace(",", " ")
    if "." in formatted:
        formatted = formatted.rstrip("0").rstrip(".")
    if formatted in ("-0", ""):
        formatted = "0"
    if currency:
        return f"{formatted} {currency}"
    return formatted


def _sorted_entries(totals) -> list[tuple[str, float]]:
    if not totals:
        return []
    entries = [
        (str(code), float(value))
        for code, value in totals.items()
        if isinstance(value, (int, float)) and math.isfinite(value) and value != 0
    ]
    return sorted(entries, key=lambda item: item[0])


def format_totals_inline(totals) -> str:
    """
    Short label for a {currency: amount} bucket.

    One currency -> "30"; several -> "CNY 30.00 +1" (codes sorted); empty -> "".
    """
    entries = _sorted_entries(totals)
    if not entries:
        return ""
    if len(entries) == 1:
        return format_money(entries[0][1])
    code, value = entries[0]
    return f"{code} {value:.2f} +{len(entries) - 1}"


def format_totals_title(totals) -> str:
    """Full text of a bucket: "30 CNY / 4.99 USD"."""
    return " / ".join(format_money(value, code) for code, value in _sorted_entries(totals))
