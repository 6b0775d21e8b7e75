"""Tests for the application facade and its output modes."""

from __future__ import annotations

from datetime import date
from pathlib import Path
import sys
import tempfile
from unittest import TestCase

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from perf_dashboard.app import DashboardApplication
from perf_dashboard.core.clock import AppClock
from perf_dashboard.core.config import DashboardConfig
from perf_dashboard.core.models import PriceQuote, SourceName, Ticker
from perf_dashboard.providers.router import PriceSourceRouter

TODAY = date(2025, 6, 30)


class _FakeSource:
    """Source with flat prices; a symbol listed in ``broken`` raises."""

    def __init__(self, broken: tuple[str, ...] = ()) -> None:
        self.broken = broken
        self.closed = False

    async def current_price(self, symbol: str) -> PriceQuote:
        if symbol in self.broken:
            raise RuntimeError("scraper broke")
        return PriceQuote(110.0, TODAY)

    async def price_near(self, symbol: str, target: date) -> PriceQuote:
        return PriceQuote(100.0, target)

    async def high_52w(self, symbol: str) -> PriceQuote:
        return PriceQuote(120.0, TODAY)

    async def aclose(self) -> None:
        self.closed = True


class DashboardApplicationTests(TestCase):
    """Exercise report, returns and audit modes against a fake source."""

    def setUp(self) -> None:
        self.source = _FakeSource(broken=("BAD",))
        self.clock = AppClock()
        self.clock.set_test_date(TODAY)
        self.tickers = [
            Ticker("Apple", "AAPL", SourceName.YAHOO),
            Ticker("Broken", "BAD", SourceName.YAHOO),
        ]

    def _app(self, tmp_path: Path) -> DashboardApplication:
        config = DashboardConfig(
            tickers_path=tmp_path / "tickers.csv",
            audit_path=tmp_path / "audit.csv",
            reference_date="2025-06-30",
        )
        return DashboardApplication(
            config,
            router_factory=lambda cfg: PriceSourceRouter(
                {SourceName.YAHOO: self.source}  # type: ignore[dict-item]
            ),
            clock=self.clock,
        )

    def test_report_mode_payload(self) -> None:
        app = self._app(Path("unused"))
        result = app.run("report", tickers=self.tickers)

        self.assertEqual(result.status, "partial")
        self.assertEqual(result.payload["reference_date"], "2025-06-30")
        first, second = result.payload["tickers"]
        self.assertEqual(first["returns"]["weekly"], "+10.00%")
        self.assertEqual(first["returns"]["high"], "-8.33%")
        self.assertEqual(first["prices"]["current"], 110.0)
        self.assertEqual(second["status"], "error")
        self.assertEqual(second["returns"]["ytd"], "ERROR")
        self.assertTrue(self.source.closed)

    def test_returns_mode_rows(self) -> None:
        result = self._app(Path("unused")).run("returns", tickers=self.tickers[:1])

        self.assertEqual(result.status, "ok")
        self.assertEqual(
            result.payload["rows"],
            [
                {
                    "Name": "Apple",
                    "Symbol": "AAPL",
                    "Weekly": "+10.00%",
                    "Monthly": "+10.00%",
                    "YTD": "+10.00%",
                    "High": "-8.33%",
                    "Estimated": False,
                }
            ],
        )

    def test_audit_mode_writes_csv(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            tmp_path = Path(tmp)
            (tmp_path / "tickers.csv").write_text(
                "name,symbol,source\nApple,AAPL,B\nBroken,BAD,yahoo\n", encoding="utf-8"
            )
            result = self._app(tmp_path).run("audit")

            self.assertEqual(result.payload["rows"], 2)
            self.assertEqual(result.payload["audit_path"], str(tmp_path / "audit.csv"))
            frame = pd.read_csv(tmp_path / "audit.csv", encoding="utf-8-sig", dtype=str)
            self.assertEqual(frame["Symbol"].tolist(), ["AAPL", "BAD"])
            self.assertEqual(frame.loc[1, "Current"], "ERROR")

    def test_unknown_mode_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self._app(Path("unused")).run("predict")


if __name__ == "__main__":  # pragma: no cover - test harness
    import unittest

    unittest.main()
