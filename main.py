"""Command line entry point for the performance dashboard."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any

from perf_dashboard.app import DashboardApplication, log_progress
from perf_dashboard.core.config import ConfigurationError, load_environment


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    default_mode = os.getenv("PERF_DASHBOARD_DEFAULT_MODE", "report")

    parser = argparse.ArgumentParser(
        description="Resolve weekly, monthly, YTD and 52-week-high returns for a ticker list.",
    )
    parser.add_argument(
        "--mode",
        choices=["report", "returns", "audit"],
        default=default_mode,
        help="Output to produce (default: %(default)s).",
    )
    parser.add_argument("--tickers", help="CSV file with name,symbol,source columns.")
    parser.add_argument(
        "--reference-date",
        help="Date to measure returns against (YYYY-MM-DD, YYYY.MM.DD or YYYY/MM/DD).",
    )
    parser.add_argument("--audit-path", help="Destination of the audit CSV in audit mode.")
    parser.add_argument(
        "--max-concurrency",
        type=int,
        help="Number of tickers resolved at the same time.",
    )
    parser.add_argument(
        "--adjust-business-day",
        action="store_true",
        help="Move the reference date back to the last domestic business day.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("PERF_DASHBOARD_LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING, ...).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_environment()
    args = parse_args(argv)
    configure_logging(args.log_level)

    overrides: dict[str, Any] = {
        "tickers_path": args.tickers,
        "audit_path": args.audit_path,
        "reference_date": args.reference_date,
        "max_concurrency": args.max_concurrency,
    }
    if args.adjust_business_day:
        overrides["adjust_for_business_day"] = True

    try:
        app = DashboardApplication.from_environment(**overrides)
        result = app.run(args.mode, audit_path=args.audit_path, progress=log_progress)
    except ConfigurationError as exc:
        print(json.dumps({"status": "error", "message": str(exc)}), file=sys.stderr)
        return 1

    print(json.dumps({"status": result.status, **result.payload}, indent=2, default=str))
    return 0 if result.status != "error" else 1


if __name__ == "__main__":
    raise SystemExit(main())
