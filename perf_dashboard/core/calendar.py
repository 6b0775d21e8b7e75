"""Market regions, trading hours and session resolution."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Mapping

from .clock import AppClock, app_clock
from .models import MarketRegion, SessionInfo, SourceName

LOGGER = logging.getLogger(__name__)

WEEKDAYS = frozenset({0, 1, 2, 3, 4})
MAX_SESSION_LOOKBACK = 10

# Exchange closures are maintained by hand and need a yearly update.
DOMESTIC_HOLIDAYS = frozenset(
    date.fromisoformat(value)
    for value in (
        "2023-01-01", "2023-01-21", "2023-01-22", "2023-01-23", "2023-01-24",
        "2023-03-01", "2023-05-05", "2023-05-27", "2023-06-06", "2023-08-15",
        "2023-09-28", "2023-09-29", "2023-09-30", "2023-10-03", "2023-10-09",
        "2023-12-25",
        "2024-01-01", "2024-02-09", "2024-02-10", "2024-02-11", "2024-02-12",
        "2024-03-01", "2024-04-10", "2024-05-05", "2024-05-15", "2024-06-06",
        "2024-08-15", "2024-09-16", "2024-09-17", "2024-09-18", "2024-10-03",
        "2024-10-09", "2024-12-25",
        "2025-01-01", "2025-01-28", "2025-01-29", "2025-01-30", "2025-01-31",
        "2025-03-01", "2025-05-05", "2025-06-06", "2025-08-15", "2025-10-03",
        "2025-10-05", "2025-10-06", "2025-10-07", "2025-10-09", "2025-12-25",
    )
)


@dataclass(frozen=True, slots=True)
class MarketProfile:
    """Static trading-hours description of one market region."""

    region: MarketRegion
    utc_offset_hours: float
    open_time: float
    close_time: float
    trading_days: frozenset[int] = WEEKDAYS
    holidays: frozenset[date] = field(default_factory=frozenset)

    @property
    def tzinfo(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))

    def is_trading_day(self, day: date) -> bool:
        return day.weekday() in self.trading_days and day not in self.holidays


MARKET_PROFILES: Mapping[MarketRegion, MarketProfile] = {
    MarketRegion.DOMESTIC: MarketProfile(
        MarketRegion.DOMESTIC, 9.0, 9.0, 15.5, holidays=DOMESTIC_HOLIDAYS
    ),
    MarketRegion.US: MarketProfile(MarketRegion.US, -5.0, 9.5, 16.0),
    MarketRegion.CN: MarketProfile(MarketRegion.CN, 8.0, 9.5, 15.0),
    MarketRegion.EU: MarketProfile(MarketRegion.EU, 1.0, 9.0, 17.5),
}

_DOMESTIC_CODE = re.compile(r"^\d{6}$")
_DOMESTIC_MARKERS = (".KS", ".KQ", "KRX:", "^KS11", "^KQ11", "KOSPI", "KOSDAQ", "KPI200")
_CN_SUFFIXES = (".SS", ".SZ")
_CN_PREFIXES = ("SHA:", "SHE:")
_EU_SUFFIXES = (".L", ".DE", ".PA", ".AS", ".MI", ".MC", ".SW")
_EU_INDICES = ("^FTSE", "^GDAXI", "^FCHI", "^STOXX50E")


def region_of(source: SourceName | str | None, symbol: str) -> MarketRegion:
    """Map a source and symbol to the market the symbol trades on.

    The mapping is total: anything that matches no rule is treated as a US
    listing.
    """

    if SourceName.parse(source) is SourceName.NAVER:
        return MarketRegion.DOMESTIC
    token = (symbol or "").strip().upper()
    if _DOMESTIC_CODE.match(token):
        return MarketRegion.DOMESTIC
    if any(marker in token for marker in _DOMESTIC_MARKERS):
        return MarketRegion.DOMESTIC
    if token.endswith(_CN_SUFFIXES) or token.startswith(_CN_PREFIXES):
        return MarketRegion.CN
    if token.endswith(_EU_SUFFIXES) or token in _EU_INDICES:
        return MarketRegion.EU
    return MarketRegion.US


class MarketCalendar:
    """Answer open/closed and last-session questions per market region."""

    def __init__(
        self,
        profiles: Mapping[MarketRegion, MarketProfile] | None = None,
        *,
        clock: AppClock = app_clock,
    ) -> None:
        self._profiles = dict(profiles or MARKET_PROFILES)
        self._clock = clock

    def profile(self, region: MarketRegion) -> MarketProfile:
        try:
            return self._profiles[region]
        except KeyError:
            LOGGER.warning("No market profile for %s; using US hours", region)
            return self._profiles[MarketRegion.US]

    def is_trading_day(self, region: MarketRegion, day: date) -> bool:
        return self.profile(region).is_trading_day(day)

    def local_time(self, region: MarketRegion, instant: datetime | None = None) -> datetime:
        """Express ``instant`` in the market's local time.

        Naive instants are interpreted in the host's local timezone.
        """

        if instant is None:
            instant = self._clock.now()
        return instant.astimezone(self.profile(region).tzinfo)

    def is_open(self, region: MarketRegion, instant: datetime | None = None) -> bool:
        profile = self.profile(region)
        local = self.local_time(region, instant)
        if not profile.is_trading_day(local.date()):
            return False
        hour = local.hour + local.minute / 60.0
        return profile.open_time <= hour < profile.close_time

    def previous_trading_day(self, region: MarketRegion, day: date) -> date:
        """Return the last trading day strictly before ``day``."""

        profile = self.profile(region)
        cursor = day
        for _ in range(MAX_SESSION_LOOKBACK):
            cursor -= timedelta(days=1)
            if profile.is_trading_day(cursor):
                return cursor
        LOGGER.warning(
            "No trading day found within %s days before %s for %s",
            MAX_SESSION_LOOKBACK,
            day,
            region,
        )
        return cursor

    def most_recent_session(
        self, region: MarketRegion, instant: datetime | None = None
    ) -> SessionInfo:
        """Return the latest session whose closing price is final."""

        profile = self.profile(region)
        local = self.local_time(region, instant)
        today = local.date()
        hour = local.hour + local.minute / 60.0

        if not profile.is_trading_day(today):
            session = self.previous_trading_day(region, today)
            reason = "holiday" if today in profile.holidays else "non-trading day"
            return SessionInfo(
                session,
                False,
                f"{today.isoformat()} is a {reason}; using the {session.isoformat()} session.",
            )
        if hour < profile.open_time:
            session = self.previous_trading_day(region, today)
            return SessionInfo(
                session,
                False,
                f"Market has not opened yet; using the {session.isoformat()} session.",
            )
        if hour < profile.close_time:
            session = self.previous_trading_day(region, today)
            return SessionInfo(
                session,
                False,
                f"Session in progress; using the {session.isoformat()} close.",
            )
        return SessionInfo(today, True, f"Using today's {today.isoformat()} close.")

    def market_memo(self, region: MarketRegion, instant: datetime | None = None) -> str:
        """Short note describing whether the market is open."""

        if self.is_open(region, instant):
            return f"{region.value} market is open."
        session = self.most_recent_session(region, instant)
        return (
            f"{region.value} market is closed; "
            f"using {session.date.isoformat()} trading day data."
        )

    def last_business_day(
        self, day: date, region: MarketRegion = MarketRegion.DOMESTIC
    ) -> date:
        """Return ``day`` itself or the closest earlier trading day."""

        if self.is_trading_day(region, day):
            return day
        return self.previous_trading_day(region, day)


__all__ = [
    "DOMESTIC_HOLIDAYS",
    "MARKET_PROFILES",
    "MarketCalendar",
    "MarketProfile",
    "region_of",
]
