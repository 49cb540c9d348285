"""
Validation utilities
"""
import math
import re


_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def normalize_decimal_input(value: str) -> str:
    """
    Normalize a typed amount: comma decimal separator becomes a dot

    Example:
        >>> normalize_decimal_input("100,50")
        "100.50"
    """
    return value.replace(",", ".")


def parse_price(value) -> float:
    """
    Parse a subscription price

    Args:
        value: number or string ("9.99", "9,99")

    Returns:
        Finite float >= 0

    Raises:
        ValueError: empty, not a number, non-finite or negative
    """
    if isinstance(value, bool):
        raise ValueError("Price must be a number")
    if isinstance(value, (int, float)):
        price = float(value)
    else:
        text = str(value if value is not None else "").strip()
        if not text:
            raise ValueError("Price is required")
        try:
            price = float(normalize_decimal_input(text))
        except ValueError:
            raise ValueError(f"Price must be a number, got: {text}") from None
    if not math.isfinite(price) or price < 0:
        raise ValueError("Price must be a finite number >= 0")
    return price


def normalize_currency_code(code) -> str:
    return str(code or "").strip().upper()


def is_iso4217_like(code) -> bool:
    """Three upper-case ASCII letters (USD, EUR, CNY ...)"""
    return bool(_CURRENCY_RE.match(str(code or "")))
