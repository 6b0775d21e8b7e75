"""Reference date parsing and lookup-window resolution."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

from .calendar import MarketCalendar
from .clock import AppClock, app_clock
from .models import ReferenceWindow

LOGGER = logging.getLogger(__name__)

WEEKEND = frozenset({5, 6})
MAX_SNAP_ATTEMPTS = 7
WEEKLY_DAYS = 7


def parse_reference_date(value: Any, clock: AppClock = app_clock) -> date:
    """Coerce an externally supplied reference date, defaulting to today."""

    if value is None:
        return clock.today()
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return clock.today()
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return clock.today()
    normalised = text.replace(".", "-").replace("/", "-")
    parsed = pd.to_datetime(normalised, errors="coerce")
    if parsed is None or pd.isna(parsed):
        LOGGER.warning("Unparseable reference date %r; using today instead", value)
        return clock.today()
    return parsed.date()


class ReferenceDateResolver:
    """Compute the weekly, monthly and year-to-date lookup dates.

    "Now" is captured once when the resolver is built. Every offset that
    would land after it is recomputed from "now" instead of the reference
    date, which keeps a reference date whose year is ahead of the system
    clock from producing future lookups.
    """

    def __init__(
        self,
        reference: Any = None,
        *,
        clock: AppClock = app_clock,
        calendar: MarketCalendar | None = None,
        adjust_for_business_day: bool = False,
    ) -> None:
        self._now = clock.today()
        resolved = parse_reference_date(reference, clock)
        if adjust_for_business_day:
            calendar = calendar or MarketCalendar(clock=clock)
            adjusted = calendar.last_business_day(resolved)
            if adjusted != resolved:
                LOGGER.info(
                    "Reference date %s is not a business day; using %s",
                    resolved,
                    adjusted,
                )
            resolved = adjusted
        self.reference = resolved

    @property
    def now(self) -> date:
        return self._now

    def days_ago(self, days: int) -> date:
        """Fixed calendar-day offset from the reference date, not snapped."""

        candidate = self.reference - timedelta(days=days)
        if candidate > self._now:
            candidate = self._now - timedelta(days=days)
        return candidate

    def week_ago(self) -> date:
        return self.snap(self.days_ago(WEEKLY_DAYS))

    def month_ago(self) -> date:
        candidate = self._minus_month(self.reference)
        if candidate > self._now:
            candidate = self._minus_month(self._now)
        return self.snap(candidate)

    def year_start(self) -> date:
        year = self.reference.year
        if year > self._now.year:
            year = self._now.year
        return self.snap(date(year, 1, 1))

    def window(self) -> ReferenceWindow:
        return ReferenceWindow(
            reference_date=self.reference,
            week_ago=self.week_ago(),
            month_ago=self.month_ago(),
            ytd=self.year_start(),
        )

    @staticmethod
    def snap(day: date) -> date:
        """Walk back over weekend days to the closest earlier weekday."""

        for _ in range(MAX_SNAP_ATTEMPTS):
            if day.weekday() not in WEEKEND:
                break
            day -= timedelta(days=1)
        return day

    @staticmethod
    def _minus_month(day: date) -> date:
        return (pd.Timestamp(day) - pd.DateOffset(months=1)).date()


__all__ = ["ReferenceDateResolver", "WEEKEND", "parse_reference_date"]
