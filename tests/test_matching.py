"""Tests for closest-date matching used by the historical lookups."""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from perf_dashboard.providers.matching import (
    match_closest,
    parse_loose_date,
    timeframe_for,
    tolerance_days,
)

TODAY = date(2025, 6, 30)


def test_exact_date_wins_over_closer_candidates() -> None:
    """An exact date is returned even when listed after other candidates."""

    target = TODAY - timedelta(days=10)
    candidates = [
        (target - timedelta(days=1), 99.0),
        (target, 101.0),
        (target + timedelta(days=1), 102.0),
    ]

    match = match_closest(candidates, target, TODAY)

    assert match is not None
    assert match.exact
    assert match.price == 101.0


def test_tolerance_rejects_distant_candidate_for_recent_target() -> None:
    """A candidate eight days away is rejected when the target is 20 days back."""

    target = TODAY - timedelta(days=20)
    candidate = (target - timedelta(days=8), 100.0)

    assert tolerance_days(target, TODAY) == 7
    assert match_closest([candidate], target, TODAY) is None


def test_tolerance_widens_for_older_targets() -> None:
    """The same eight-day gap is accepted when the target is 45 days back."""

    target = TODAY - timedelta(days=45)
    candidate = (target - timedelta(days=8), 100.0)

    match = match_closest([candidate], target, TODAY)

    assert tolerance_days(target, TODAY) == 10
    assert match is not None
    assert match.distance_days == 8
    assert tolerance_days(TODAY - timedelta(days=200), TODAY) == 15


def test_invalid_prices_are_skipped() -> None:
    target = TODAY - timedelta(days=5)
    candidates = [(target, 0), (target, None), (target - timedelta(days=1), "1,234.5")]

    match = match_closest(candidates, target, TODAY)

    assert match is not None
    assert match.price == 1234.5
    assert match.distance_days == 1


def test_timeframe_grows_with_age() -> None:
    assert timeframe_for(10) == "1d"
    assert timeframe_for(60) == "3m"
    assert timeframe_for(150) == "6m"
    assert timeframe_for(200) == "1y"


def test_parse_loose_date_formats() -> None:
    """Dotted, compact, ISO and epoch dates are all understood."""

    assert parse_loose_date("2025.03.21") == date(2025, 3, 21)
    assert parse_loose_date("20250321") == date(2025, 3, 21)
    assert parse_loose_date("2025-03-21T15:30:00+09:00") == date(2025, 3, 21)
    assert parse_loose_date(20250321) == date(2025, 3, 21)
    # 2025-03-21 00:00 KST expressed in seconds and milliseconds.
    assert parse_loose_date(1742482800) == date(2025, 3, 21)
    assert parse_loose_date(1742482800000) == date(2025, 3, 21)
    assert parse_loose_date("not a date") is None
    assert parse_loose_date(None) is None
    assert parse_loose_date(10**20) is None
