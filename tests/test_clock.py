"""Tests for the centralized application clock."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from perf_dashboard.core.clock import AppClock

KST = timezone(timedelta(hours=9))


def test_pinned_date_defaults_to_afternoon() -> None:
    clock = AppClock()
    clock.set_test_date(date(2024, 5, 3))

    assert clock.is_override
    assert clock.today() == date(2024, 5, 3)
    assert clock.now() == datetime(2024, 5, 3, 16, 0)


def test_pinned_datetime_keeps_time_and_zone() -> None:
    clock = AppClock()
    clock.set_test_date(datetime(2024, 5, 3, 10, 15, tzinfo=KST))

    now = clock.now()
    assert now.tzinfo is KST
    assert now.time() == time(10, 15)
    assert clock.now(timezone.utc) == datetime(2024, 5, 3, 1, 15, tzinfo=timezone.utc)


def test_clear_returns_to_system_time() -> None:
    clock = AppClock()
    clock.set_test_date(date(2001, 1, 1))
    clock.clear_test_date()

    assert not clock.is_override
    assert clock.today() >= date(2024, 1, 1)
