"""Tests for percentage return formatting and sentinel propagation."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from perf_dashboard.core.models import PriceQuote, ReturnResult, Sentinel
from perf_dashboard.core.returns import compute_return, compute_returns


@pytest.mark.parametrize(
    ("current", "past", "expected"),
    [
        (110.0, 100.0, "+10.00%"),
        (110.0, 95.0, "+15.79%"),
        (110.0, 90.0, "+22.22%"),
        (110.0, 120.0, "-8.33%"),
    ],
)
def test_compute_return_formats_signed_percentages(
    current: float, past: float, expected: str
) -> None:
    """Gains carry a plus sign, losses a minus sign, two decimals each."""

    assert compute_return(current, past) == expected


def test_identical_prices_are_exactly_zero() -> None:
    """Equal prices never render as a signed zero."""

    assert compute_return(2500.5, 2500.5) == "0.00%"
    assert compute_return("1,000", 1000) == "0.00%"


def test_no_data_wins_on_either_side() -> None:
    """A missing price on either side yields NO_DATA rather than an error."""

    assert compute_return(Sentinel.NO_DATA, 100) == Sentinel.NO_DATA
    assert compute_return(100, Sentinel.NO_DATA) == Sentinel.NO_DATA
    assert compute_return("NO_DATA", "abc") == Sentinel.NO_DATA


def test_zero_base_and_garbage_are_calc_errors() -> None:
    """Division by zero and non-numeric inputs produce CALC_ERROR."""

    assert compute_return(110, 0) == Sentinel.CALC_ERROR
    assert compute_return("abc", 100) == Sentinel.CALC_ERROR
    assert compute_return(110, None) == Sentinel.CALC_ERROR
    assert compute_return(True, 100) == Sentinel.CALC_ERROR
    assert compute_return(float("nan"), 100) == Sentinel.CALC_ERROR


def test_numeric_strings_with_separators_are_accepted() -> None:
    """Scraped values such as ``71,300`` are treated as numbers."""

    assert compute_return("71,300", "62,000") == "+15.00%"


def test_compute_return_unwraps_quotes() -> None:
    """PriceQuote values are unwrapped, including NO_DATA quotes."""

    assert compute_return(PriceQuote(110.0), PriceQuote(100.0)) == "+10.00%"
    assert compute_return(PriceQuote(110.0), PriceQuote.no_data()) == Sentinel.NO_DATA


def test_compute_returns_maps_all_four_windows() -> None:
    """The five price slots map onto weekly, monthly, YTD and high returns."""

    result = compute_returns(
        {
            "current": PriceQuote(110.0),
            "week_ago": PriceQuote(100.0),
            "month_ago": PriceQuote(95.0),
            "ytd": PriceQuote(90.0),
            "high": PriceQuote(120.0),
        }
    )

    assert result == ReturnResult("+10.00%", "+15.79%", "+22.22%", "-8.33%")
    assert result.as_dict() == {
        "weekly": "+10.00%",
        "monthly": "+15.79%",
        "ytd": "+22.22%",
        "high": "-8.33%",
    }


def test_compute_returns_missing_slots_are_no_data() -> None:
    """Slots absent from the mapping behave like NO_DATA."""

    result = compute_returns({"current": PriceQuote(50.0), "week_ago": PriceQuote(40.0)})

    assert result.weekly == "+25.00%"
    assert result.monthly == Sentinel.NO_DATA
    assert result.ytd == Sentinel.NO_DATA
    assert result.high == Sentinel.NO_DATA
