"""Centralized time source for live and pinned-date runs."""

from __future__ import annotations

from datetime import date, datetime, time as dt_time, tzinfo


class AppClock:
    """Provide effective timestamps for live runs and pinned test dates."""

    def __init__(self) -> None:
        self._override_date: date | None = None
        self._override_time: dt_time = dt_time(16, 0)
        self._override_timezone: tzinfo | None = None

    @property
    def is_override(self) -> bool:
        return self._override_date is not None

    @property
    def override_date(self) -> date | None:
        return self._override_date

    def set_test_date(
        self,
        value: date | datetime,
        *,
        tz: tzinfo | None = None,
        time_of_day: dt_time | None = None,
    ) -> None:
        """Pin "now" to the supplied date (and optionally time of day)."""

        if isinstance(value, datetime):
            if time_of_day is None:
                time_of_day = value.time()
            if tz is None and value.tzinfo is not None:
                tz = value.tzinfo
            value = value.date()
        self._override_date = value
        if time_of_day is not None:
            self._override_time = time_of_day
        if tz is not None:
            self._override_timezone = tz

    def clear_test_date(self) -> None:
        """Return to real system time."""

        self._override_date = None
        self._override_timezone = None

    def now(self, tz: tzinfo | None = None) -> datetime:
        if self._override_date is None:
            return datetime.now(tz) if tz is not None else datetime.now()
        base = datetime.combine(self._override_date, self._override_time)
        if self._override_timezone is not None:
            base = base.replace(tzinfo=self._override_timezone)
        if tz is None:
            return base
        if base.tzinfo is None:
            return base.replace(tzinfo=tz)
        return base.astimezone(tz)

    def today(self, tz: tzinfo | None = None) -> date:
        return self.now(tz).date()


app_clock = AppClock()


__all__ = ["AppClock", "app_clock"]
