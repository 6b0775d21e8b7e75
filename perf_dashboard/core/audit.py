"""Audit trail records and tabular exports."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping

import pandas as pd

from .models import (
    AuditRecord,
    PriceQuote,
    ReferenceWindow,
    ReturnResult,
    Sentinel,
    SessionInfo,
    SourceName,
    Ticker,
    TickerReport,
)

LOGGER = logging.getLogger(__name__)

_SLOT_LABELS = {
    "current": "current",
    "week_ago": "weekly",
    "month_ago": "monthly",
    "ytd": "year-start",
    "high": "52-week high",
}
AUDIT_COLUMNS = (
    "Timestamp",
    "Symbol",
    "Name",
    "Source",
    "SessionDate",
    "ReferenceDate",
    "Method",
    "Current",
    "WeekAgo",
    "MonthAgo",
    "YTD",
    "High52w",
    "WeeklyReturn",
    "MonthlyReturn",
    "YTDReturn",
    "HighReturn",
    "Estimated",
    "Notes",
)
_SOURCE_NOTES = {
    SourceName.GOOGLE: "Data retrieved through Google Finance expressions.",
    SourceName.YAHOO: "Data retrieved from the Yahoo Finance API.",
    SourceName.NAVER: "Data parsed from Naver Finance.",
}


def _price_value(quote: PriceQuote | None) -> float | str:
    if quote is None:
        return Sentinel.NO_DATA.value
    value = quote.value
    return value.value if isinstance(value, Sentinel) else float(value)


def describe_notes(
    source: SourceName,
    quotes: Mapping[str, PriceQuote],
    session: SessionInfo | None,
    market_memo: str = "",
) -> str:
    """Free-text audit notes: market state, missing windows and estimation."""

    notes: list[str] = []
    if market_memo:
        notes.append(market_memo)
    if session is not None and not session.is_current_session:
        notes.append(session.explanation)
    missing = [
        _SLOT_LABELS[slot]
        for slot in ("week_ago", "month_ago", "ytd")
        if slot in quotes and not quotes[slot].is_valid
    ]
    if missing:
        notes.append(f"No {', '.join(missing)} price data available.")
    estimated = [
        f"{_SLOT_LABELS.get(slot, slot)} ({quote.method or 'estimate'})"
        for slot, quote in quotes.items()
        if quote.is_estimated
    ]
    if estimated:
        notes.append(f"Estimated prices used: {', '.join(estimated)}.")
    source_note = _SOURCE_NOTES.get(source)
    if source_note:
        notes.append(source_note)
    return " ".join(notes)


def build_audit_record(
    ticker: Ticker,
    *,
    symbol: str,
    source: SourceName,
    window: ReferenceWindow,
    quotes: Mapping[str, PriceQuote],
    returns: ReturnResult,
    session: SessionInfo | None,
    fetched_at: datetime,
    market_memo: str = "",
) -> AuditRecord:
    methods = [
        f"{slot}={quotes[slot].method}"
        for slot in ("current", "week_ago", "month_ago", "ytd", "high")
        if slot in quotes and quotes[slot].method
    ]
    return AuditRecord(
        symbol=symbol,
        name=ticker.name,
        source=str(source),
        fetch_date=fetched_at,
        session_date=session.date if session else None,
        reference_date=window.reference_date,
        method="; ".join(methods),
        current_price=_price_value(quotes.get("current")),
        week_ago_price=_price_value(quotes.get("week_ago")),
        month_ago_price=_price_value(quotes.get("month_ago")),
        ytd_price=_price_value(quotes.get("ytd")),
        high_price=_price_value(quotes.get("high")),
        weekly_return=str(returns.weekly),
        monthly_return=str(returns.monthly),
        ytd_return=str(returns.ytd),
        high_return=str(returns.high),
        estimated=any(quote.is_estimated for quote in quotes.values()),
        notes=describe_notes(source, quotes, session, market_memo),
    )


def audit_frame(records: Iterable[AuditRecord]) -> pd.DataFrame:
    rows = [record.as_record() for record in records]
    return pd.DataFrame(rows, columns=list(AUDIT_COLUMNS))


def write_audit_csv(records: Iterable[AuditRecord], path: str | Path) -> Path:
    """Write audit records to ``path`` as UTF-8 CSV (with BOM for spreadsheets)."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    frame = audit_frame(records)
    frame.to_csv(target, index=False, encoding="utf-8-sig")
    LOGGER.info("Wrote %s audit rows to %s", len(frame), target)
    return target


def reports_to_frame(reports: Iterable[TickerReport]) -> pd.DataFrame:
    """Dashboard table: one row of formatted returns per ticker."""

    rows = [
        {
            "Name": report.ticker.name,
            "Symbol": report.ticker.symbol,
            "Weekly": str(report.returns.weekly),
            "Monthly": str(report.returns.monthly),
            "YTD": str(report.returns.ytd),
            "High": str(report.returns.high),
            "Estimated": report.is_estimated,
        }
        for report in reports
    ]
    return pd.DataFrame(
        rows,
        columns=["Name", "Symbol", "Weekly", "Monthly", "YTD", "High", "Estimated"],
    )


__all__ = [
    "AUDIT_COLUMNS",
    "audit_frame",
    "build_audit_record",
    "describe_notes",
    "reports_to_frame",
    "write_audit_csv",
]
