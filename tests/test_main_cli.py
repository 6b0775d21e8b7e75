"""Tests for the command line entry point."""

from __future__ import annotations

import io
import json
import os
import sys
from pathlib import Path
from unittest import TestCase
from unittest.mock import MagicMock, patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import main as cli_main  # pylint: disable=wrong-import-position
from perf_dashboard.app import RunResult  # pylint: disable=wrong-import-position


class ParseArgsTests(TestCase):
    """Verify the CLI argument parsing behaviour."""

    def test_defaults(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            args = cli_main.parse_args([])
        self.assertEqual(args.mode, "report")
        self.assertIsNone(args.tickers)
        self.assertIsNone(args.reference_date)
        self.assertFalse(args.adjust_business_day)
        self.assertEqual(args.log_level, "INFO")

    def test_custom_values(self) -> None:
        args = cli_main.parse_args(
            [
                "--mode",
                "audit",
                "--tickers",
                "portfolio.csv",
                "--reference-date",
                "2025.03.21",
                "--audit-path",
                "out.csv",
                "--max-concurrency",
                "6",
                "--adjust-business-day",
                "--log-level",
                "debug",
            ]
        )
        self.assertEqual(args.mode, "audit")
        self.assertEqual(args.tickers, "portfolio.csv")
        self.assertEqual(args.reference_date, "2025.03.21")
        self.assertEqual(args.audit_path, "out.csv")
        self.assertEqual(args.max_concurrency, 6)
        self.assertTrue(args.adjust_business_day)


class MainDispatchTests(TestCase):
    """Ensure the CLI forwards overrides and reports results as JSON."""

    def setUp(self) -> None:
        patcher = patch("main.configure_logging")
        self.addCleanup(patcher.stop)
        self.configure_logging = patcher.start()

    def test_report_printed_as_json(self) -> None:
        app = MagicMock()
        app.run.return_value = RunResult(
            status="ok", payload={"reference_date": "2025-03-21", "tickers": []}
        )
        stdout = io.StringIO()

        with patch(
            "main.DashboardApplication.from_environment", return_value=app
        ) as mock_factory, patch("sys.stdout", stdout):
            exit_code = cli_main.main(
                ["--reference-date", "2025.03.21", "--tickers", "portfolio.csv"]
            )

        self.assertEqual(exit_code, 0)
        overrides = mock_factory.call_args.kwargs
        self.assertEqual(overrides["reference_date"], "2025.03.21")
        self.assertEqual(overrides["tickers_path"], "portfolio.csv")
        self.assertNotIn("adjust_for_business_day", overrides)
        mode = app.run.call_args.args[0]
        self.assertEqual(mode, "report")
        printed = json.loads(stdout.getvalue())
        self.assertEqual(printed["status"], "ok")
        self.assertEqual(printed["reference_date"], "2025-03-21")

    def test_dotenv_values_feed_argument_defaults(self) -> None:
        def _load_dotenv() -> None:
            os.environ["PERF_DASHBOARD_DEFAULT_MODE"] = "returns"
            os.environ["PERF_DASHBOARD_LOG_LEVEL"] = "DEBUG"

        app = MagicMock()
        app.run.return_value = RunResult(status="ok", payload={"rows": []})

        with patch.dict("os.environ", {}, clear=True), patch(
            "main.load_environment", side_effect=_load_dotenv
        ), patch("main.DashboardApplication.from_environment", return_value=app), patch(
            "sys.stdout", io.StringIO()
        ):
            exit_code = cli_main.main([])

        self.assertEqual(exit_code, 0)
        self.assertEqual(app.run.call_args.args[0], "returns")
        self.configure_logging.assert_called_once_with("DEBUG")

    def test_missing_ticker_file_reports_error(self) -> None:
        stderr = io.StringIO()

        with patch("sys.stderr", stderr), patch.dict("os.environ", {}, clear=True):
            exit_code = cli_main.main(["--tickers", str(PROJECT_ROOT / "does-not-exist.csv")])

        self.assertEqual(exit_code, 1)
        message = json.loads(stderr.getvalue())
        self.assertEqual(message["status"], "error")
        self.assertIn("Ticker file not found", message["message"])


if __name__ == "__main__":  # pragma: no cover - test harness
    import unittest

    unittest.main()
