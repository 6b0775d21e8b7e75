"""Closest-date matching for historical price series."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Iterable

_DATE_PREFIX = re.compile(r"^\s*(\d{4})[.\-/]?(\d{2})[.\-/]?(\d{2})")
KST = timezone(timedelta(hours=9))


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Candidate accepted by :func:`match_closest`."""

    day: date
    price: float
    distance_days: int

    @property
    def exact(self) -> bool:
        return self.distance_days == 0


def days_back(target: date, today: date) -> int:
    return max(0, (today - target).days)


def tolerance_days(target: date, today: date) -> int:
    """Maximum accepted distance between a candidate and ``target``.

    Older queries run against sparser feeds, so the window widens with age.
    """

    age = days_back(target, today)
    if age <= 30:
        return 7
    if age <= 90:
        return 10
    return 15


def timeframe_for(age_days: int) -> str:
    """Series length to request for a lookup ``age_days`` in the past."""

    if age_days <= 30:
        return "1d"
    if age_days <= 90:
        return "3m"
    if age_days <= 180:
        return "6m"
    return "1y"


def match_closest(
    candidates: Iterable[tuple[date, Any]],
    target: date,
    today: date,
) -> MatchResult | None:
    """Pick the candidate price for ``target``.

    An exact date wins immediately. Otherwise the nearest candidate is kept
    and accepted only inside :func:`tolerance_days`.
    """

    best: MatchResult | None = None
    for day, raw_price in candidates:
        price = _as_price(raw_price)
        if day is None or price is None:
            continue
        if day == target:
            return MatchResult(day, price, 0)
        distance = abs((day - target).days)
        if best is None or distance < best.distance_days:
            best = MatchResult(day, price, distance)
    if best is None:
        return None
    if best.distance_days > tolerance_days(target, today):
        return None
    return best


def parse_loose_date(value: Any, tz: tzinfo = KST) -> date | None:
    """Parse the date formats the upstream feeds emit.

    Handles ``2025.03.21``, ``20250321``, ISO timestamps and epoch seconds
    or milliseconds (interpreted in ``tz``).
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        seconds = value / 1000.0 if value > 1e11 else float(value)
        if seconds > 1e9:
            try:
                return datetime.fromtimestamp(seconds, tz).date()
            except (ValueError, OverflowError, OSError):
                return None
        value = str(int(value))
    match = _DATE_PREFIX.match(str(value))
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def _as_price(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).replace(",", ""))
        except ValueError:
            return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


__all__ = [
    "KST",
    "MatchResult",
    "days_back",
    "match_closest",
    "parse_loose_date",
    "timeframe_for",
    "tolerance_days",
]
