"""Value objects shared by the price resolution engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict


class Sentinel(StrEnum):
    """Distinguished non-numeric outcomes used instead of exceptions."""

    NO_DATA = "NO_DATA"
    CALC_ERROR = "CALC_ERROR"
    ERROR = "ERROR"


class SourceName(StrEnum):
    """Configured upstream price sources."""

    GOOGLE = "google"
    YAHOO = "yahoo"
    NAVER = "naver"

    @classmethod
    def parse(cls, value: Any) -> "SourceName | None":
        """Return the source for ``value`` or ``None`` when it is not recognised.

        Both the full names and the single-letter aliases used by the ticker
        sheet (``A``/``B``/``C``) are accepted, case-insensitively.
        """

        if isinstance(value, cls):
            return value
        if value is None:
            return None
        token = str(value).strip().lower()
        if not token:
            return None
        token = _SOURCE_ALIASES.get(token, token)
        try:
            return cls(token)
        except ValueError:
            return None


_SOURCE_ALIASES = {"a": "google", "b": "yahoo", "c": "naver"}


class MarketRegion(StrEnum):
    """Market a symbol trades on, derived from its source and symbol."""

    DOMESTIC = "domestic"
    US = "us"
    CN = "cn"
    EU = "eu"


PRICE_SLOTS: tuple[str, ...] = ("current", "week_ago", "month_ago", "ytd", "high")
RETURN_FIELDS: tuple[str, ...] = ("weekly", "monthly", "ytd", "high")


@dataclass(frozen=True, slots=True)
class Ticker:
    """Instrument row loaded from the ticker configuration."""

    name: str
    symbol: str
    source: SourceName


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """Single price observation produced by a price source."""

    value: float | Sentinel
    source_date: date | None = None
    is_estimated: bool = False
    method: str = ""
    note: str = ""

    @property
    def is_valid(self) -> bool:
        """Whether the quote carries a usable, strictly positive price."""

        value = self.value
        if isinstance(value, (Sentinel, bool)) or not isinstance(value, (int, float)):
            return False
        return math.isfinite(value) and value > 0

    @classmethod
    def no_data(
        cls,
        source_date: date | None = None,
        *,
        method: str = "",
        note: str = "",
    ) -> "PriceQuote":
        return cls(Sentinel.NO_DATA, source_date, False, method, note)


@dataclass(frozen=True, slots=True)
class ReferenceWindow:
    """Trading-day snapped lookup dates for one aggregation pass."""

    reference_date: date
    week_ago: date
    month_ago: date
    ytd: date

    def as_dict(self) -> dict[str, str]:
        return {
            "reference_date": self.reference_date.isoformat(),
            "week_ago": self.week_ago.isoformat(),
            "month_ago": self.month_ago.isoformat(),
            "ytd": self.ytd.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ReturnResult:
    """Formatted returns, each a signed percentage string or a sentinel."""

    weekly: str
    monthly: str
    ytd: str
    high: str

    @classmethod
    def filled(cls, value: Sentinel) -> "ReturnResult":
        return cls(value, value, value, value)

    def as_dict(self) -> dict[str, str]:
        return {name: str(getattr(self, name)) for name in RETURN_FIELDS}


@dataclass(frozen=True, slots=True)
class SessionInfo:
    """Most recent completed trading session for a market."""

    date: date
    is_current_session: bool
    explanation: str


class AuditRecord(BaseModel):
    """Row written to the audit trail for every resolved ticker."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    symbol: str
    name: str
    source: str
    fetch_date: datetime
    session_date: date | None = None
    reference_date: date | None = None
    method: str = ""
    current_price: float | str = Sentinel.NO_DATA.value
    week_ago_price: float | str = Sentinel.NO_DATA.value
    month_ago_price: float | str = Sentinel.NO_DATA.value
    ytd_price: float | str = Sentinel.NO_DATA.value
    high_price: float | str = Sentinel.NO_DATA.value
    weekly_return: str = Sentinel.NO_DATA.value
    monthly_return: str = Sentinel.NO_DATA.value
    ytd_return: str = Sentinel.NO_DATA.value
    high_return: str = Sentinel.NO_DATA.value
    estimated: bool = False
    notes: str = ""

    def as_record(self) -> dict[str, Any]:
        return {
            "Timestamp": self.fetch_date,
            "Symbol": self.symbol,
            "Name": self.name,
            "Source": self.source,
            "SessionDate": self.session_date,
            "ReferenceDate": self.reference_date,
            "Method": self.method,
            "Current": self.current_price,
            "WeekAgo": self.week_ago_price,
            "MonthAgo": self.month_ago_price,
            "YTD": self.ytd_price,
            "High52w": self.high_price,
            "WeeklyReturn": self.weekly_return,
            "MonthlyReturn": self.monthly_return,
            "YTDReturn": self.ytd_return,
            "HighReturn": self.high_return,
            "Estimated": self.estimated,
            "Notes": self.notes,
        }


@dataclass(frozen=True, slots=True)
class TickerReport:
    """Everything resolved for one ticker in one dashboard run."""

    ticker: Ticker
    returns: ReturnResult
    audit: AuditRecord
    window: ReferenceWindow | None = None
    quotes: Mapping[str, PriceQuote] = field(default_factory=dict)
    session: SessionInfo | None = None
    status: str = "ok"
    error: str | None = None

    @property
    def is_estimated(self) -> bool:
        return any(quote.is_estimated for quote in self.quotes.values())

    @classmethod
    def failed(
        cls,
        ticker: Ticker,
        error: str,
        *,
        fetched_at: datetime,
        reference_date: date | None = None,
    ) -> "TickerReport":
        """Build the all-sentinel row used when a ticker could not be resolved."""

        marker = Sentinel.ERROR.value
        audit = AuditRecord(
            symbol=ticker.symbol,
            name=ticker.name,
            source=str(ticker.source),
            fetch_date=fetched_at,
            reference_date=reference_date,
            method="failed",
            current_price=marker,
            week_ago_price=marker,
            month_ago_price=marker,
            ytd_price=marker,
            high_price=marker,
            weekly_return=marker,
            monthly_return=marker,
            ytd_return=marker,
            high_return=marker,
            notes=error,
        )
        return cls(
            ticker=ticker,
            returns=ReturnResult.filled(Sentinel.ERROR),
            audit=audit,
            status="error",
            error=error,
        )

    def as_payload(self) -> dict[str, Any]:
        """JSON-friendly summary of the report."""

        prices: dict[str, Any] = {}
        for slot in PRICE_SLOTS:
            quote = self.quotes.get(slot)
            if quote is None:
                prices[slot] = Sentinel.ERROR.value if self.status == "error" else None
                continue
            value = quote.value
            prices[slot] = value.value if isinstance(value, Sentinel) else value
        return {
            "name": self.ticker.name,
            "symbol": self.ticker.symbol,
            "source": str(self.ticker.source),
            "status": self.status,
            "error": self.error,
            "returns": self.returns.as_dict(),
            "prices": prices,
            "estimated": self.is_estimated,
            "window": self.window.as_dict() if self.window else None,
            "session": (
                {
                    "date": self.session.date.isoformat(),
                    "is_current_session": self.session.is_current_session,
                    "explanation": self.session.explanation,
                }
                if self.session
                else None
            ),
        }


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Progress notification emitted after each ticker completes."""

    completed: int
    total: int
    symbol: str
    status: str

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0
        return self.completed / self.total


__all__ = [
    "AuditRecord",
    "MarketRegion",
    "PRICE_SLOTS",
    "PriceQuote",
    "ProgressEvent",
    "RETURN_FIELDS",
    "ReferenceWindow",
    "ReturnResult",
    "Sentinel",
    "SessionInfo",
    "SourceName",
    "Ticker",
    "TickerReport",
]
