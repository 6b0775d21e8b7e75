"""Tests for ticker loading and audit exports."""

from __future__ import annotations

from datetime import date, datetime
import logging
from pathlib import Path
import sys

import pandas as pd
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from perf_dashboard.core.audit import (
    AUDIT_COLUMNS,
    describe_notes,
    reports_to_frame,
    write_audit_csv,
)
from perf_dashboard.core.config import ConfigurationError
from perf_dashboard.core.models import (
    PriceQuote,
    SessionInfo,
    SourceName,
    Ticker,
    TickerReport,
)
from perf_dashboard.core.tickers import load_tickers


def test_load_tickers_keeps_codes_and_skips_bad_rows(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    csv_path = tmp_path / "tickers.csv"
    csv_path.write_text(
        "Name, Symbol, Source\n"
        "Samsung Electronics,005930,C\n"
        "Apple,AAPL,yahoo\n"
        ",,\n"
        "Mystery,XYZ,bloomberg\n"
        "No Symbol,,google\n"
        "Microsoft,MSFT,A\n",
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING):
        tickers = load_tickers(csv_path)

    assert tickers == [
        Ticker("Samsung Electronics", "005930", SourceName.NAVER),
        Ticker("Apple", "AAPL", SourceName.YAHOO),
        Ticker("Microsoft", "MSFT", SourceName.GOOGLE),
    ]
    assert "unrecognised source 'bloomberg'" in caplog.text
    assert "missing fields" in caplog.text


def test_load_tickers_requires_file_and_columns(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_tickers(tmp_path / "missing.csv")

    bad = tmp_path / "bad.csv"
    bad.write_text("name,ticker\nApple,AAPL\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="symbol"):
        load_tickers(bad)


def test_describe_notes_lists_session_gaps_and_estimates() -> None:
    notes = describe_notes(
        SourceName.NAVER,
        {
            "current": PriceQuote(100.0),
            "week_ago": PriceQuote.no_data(),
            "month_ago": PriceQuote(90.0, is_estimated=True, method="time_decay"),
        },
        SessionInfo(date(2025, 6, 27), False, "Session in progress; using the 2025-06-27 close."),
        "domestic market is open.",
    )

    assert notes.startswith("domestic market is open.")
    assert "Session in progress" in notes
    assert "No weekly price data available." in notes
    assert "monthly (time_decay)" in notes
    assert "Naver" in notes


def test_write_audit_csv_and_dashboard_frame(tmp_path: Path) -> None:
    failed = TickerReport.failed(
        Ticker("Broken", "XYZ", SourceName.YAHOO),
        "RuntimeError: boom",
        fetched_at=datetime(2025, 6, 30, 16, 0),
        reference_date=date(2025, 6, 30),
    )

    path = write_audit_csv([failed.audit], tmp_path / "out" / "audit.csv")

    frame = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
    assert list(frame.columns) == list(AUDIT_COLUMNS)
    assert frame.loc[0, "Symbol"] == "XYZ"
    assert frame.loc[0, "WeeklyReturn"] == "ERROR"

    table = reports_to_frame([failed])
    assert table.loc[0, "Weekly"] == "ERROR"
    assert bool(table.loc[0, "Estimated"]) is False


def test_empty_audit_still_has_header(tmp_path: Path) -> None:
    path = write_audit_csv([], tmp_path / "audit.csv")

    assert pd.read_csv(path, encoding="utf-8-sig").columns.tolist() == list(AUDIT_COLUMNS)
