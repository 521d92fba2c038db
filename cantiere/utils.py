"""Data helpers: numeric coercion, string normalization, value formatting."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from decimal import InvalidOperation
from typing import Any

from .constants import (
    CURRENCY_SUFFIX,
    DECIMAL_SEPARATOR,
    EMPTY_DISPLAY_VALUE,
    PERCENT_SUFFIX,
    THOUSANDS_SEPARATOR,
)


def _normalize_number_text(raw: str) -> str:
    """Rewrite Italian or English grouped notation into a plain decimal string."""
    raw = raw.removesuffix(CURRENCY_SUFFIX.strip()).strip()
    has_comma = DECIMAL_SEPARATOR in raw
    has_dot = THOUSANDS_SEPARATOR in raw
    if has_comma and has_dot:
        if raw.rfind(DECIMAL_SEPARATOR) > raw.rfind(THOUSANDS_SEPARATOR):
            # 1.950,00
            return raw.replace(THOUSANDS_SEPARATOR, "").replace(DECIMAL_SEPARATOR, ".")
        # 1,950.00
        return raw.replace(DECIMAL_SEPARATOR, "")
    if has_comma:
        return raw.replace(DECIMAL_SEPARATOR, ".")
    return raw


def to_float(value: Any) -> float | None:
    """Safely convert a loosely typed value into a finite float.

    Args:
        value: None, int, float, Decimal or str. Strings may use Italian
            notation (``"12,5"``, ``"1.950,00"``, ``"1.950,00 €"``).

    Returns:
        The float, or None when the value is absent, not numeric, NaN, infinite
        or too large to represent.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        raw = _normalize_number_text(value.strip())
        if not raw:
            return None
        try:
            result = float(raw)
        except ValueError:
            return None
    else:
        try:
            result = float(value)
        except (TypeError, ValueError, OverflowError, InvalidOperation):
            return None

    if math.isnan(result) or math.isinf(result):
        return None
    return result


def to_amount(value: Any) -> float:
    """Parse a decimal amount, defaulting to zero.

    This is the only coercion point for costs and hours coming from forms or
    the database: anything missing or malformed counts as 0.
    """
    result = to_float(value)
    return 0.0 if result is None else result


def normalize_string(value: Any, default: str = "") -> str:
    """Strip a value to a string, returning ``default`` for empty values."""
    if value is None:
        return default
    result = str(value).strip()
    return result if result else default


def safe_get_from_dict(
    data: dict[str, Any],
    *keys: str,
    default: Any = None,
) -> Any:
    """Return the first non-empty value found under ``keys``, in priority order.

    Args:
        data: Dictionary to search.
        *keys: Candidate keys, most specific first.
        default: Value returned when no key holds a non-empty value.

    Returns:
        The first non-empty value or ``default``.
    """
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return default


def as_date(value: Any) -> date | None:
    """Read a date from a date, a datetime or an ISO string; None otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def get_month_start(month_date: date) -> date:
    """Normalize a date to the first day of its month."""
    return month_date.replace(day=1)


def get_next_month_start(month_start: date) -> date:
    """Return the first day of the following month."""
    # Day 28 plus 4 days always lands in the next month
    return (month_start.replace(day=28) + timedelta(days=4)).replace(day=1)


def _group_thousands(integer_part: str) -> str:
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return THOUSANDS_SEPARATOR.join(groups)


def format_money(value: float | None, decimals: int = 2) -> str:
    """Format an amount the Italian way, e.g. ``1.950,00 €``.

    Returns EMPTY_DISPLAY_VALUE for None, so a missing margin is never shown
    as ``0,00 €``.
    """
    if value is None:
        return EMPTY_DISPLAY_VALUE
    sign = "-" if value < 0 else ""
    formatted = f"{abs(value):.{decimals}f}"
    integer_part, _, fraction = formatted.partition(".")
    result = _group_thousands(integer_part)
    if fraction:
        result = f"{result}{DECIMAL_SEPARATOR}{fraction}"
    return f"{sign}{result}{CURRENCY_SUFFIX}"


def format_percent(value: float | None, decimals: int = 1) -> str:
    """Format a percentage already expressed in the 0-100 range."""
    if value is None:
        return EMPTY_DISPLAY_VALUE
    formatted = f"{value:.{decimals}f}".replace(".", DECIMAL_SEPARATOR)
    return f"{formatted}{PERCENT_SUFFIX}"
