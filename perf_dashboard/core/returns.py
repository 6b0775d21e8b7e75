"""Percentage return calculation with sentinel propagation."""

from __future__ import annotations

import math
from typing import Any, Mapping

from .models import PriceQuote, ReturnResult, Sentinel


def _coerce_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def _is_no_data(value: Any) -> bool:
    return value is Sentinel.NO_DATA or (isinstance(value, str) and value == Sentinel.NO_DATA)


def compute_return(current: Any, past: Any) -> str:
    """Return ``current`` relative to ``past`` as a signed percentage string.

    ``NO_DATA`` on either side wins; anything that cannot be turned into a
    finite number, or a zero base, yields ``CALC_ERROR``. Identical prices
    produce exactly ``0.00%``.
    """

    if isinstance(current, PriceQuote):
        current = current.value
    if isinstance(past, PriceQuote):
        past = past.value
    if _is_no_data(current) or _is_no_data(past):
        return Sentinel.NO_DATA

    current_value = _coerce_number(current)
    past_value = _coerce_number(past)
    if current_value is None or past_value is None or past_value == 0:
        return Sentinel.CALC_ERROR
    if current_value == past_value:
        return "0.00%"

    change = (current_value / past_value - 1.0) * 100.0
    sign = "+" if change > 0 else ""
    return f"{sign}{change:.2f}%"


def compute_returns(quotes: Mapping[str, PriceQuote | Any]) -> ReturnResult:
    """Turn the five resolved price slots into the four dashboard returns."""

    current = quotes.get("current", Sentinel.NO_DATA)
    return ReturnResult(
        weekly=compute_return(current, quotes.get("week_ago", Sentinel.NO_DATA)),
        monthly=compute_return(current, quotes.get("month_ago", Sentinel.NO_DATA)),
        ytd=compute_return(current, quotes.get("ytd", Sentinel.NO_DATA)),
        high=compute_return(current, quotes.get("high", Sentinel.NO_DATA)),
    )


__all__ = ["compute_return", "compute_returns"]
