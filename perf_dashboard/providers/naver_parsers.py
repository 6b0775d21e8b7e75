"""Pattern lists and payload parsers for Naver Finance pages and APIs.

Naver changes its markup frequently, so every data point is extracted with
an ordered list of patterns: structural patterns first, then (where one
exists) a loose last-resort pattern.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Pattern, Sequence

from .matching import parse_loose_date

_FLAGS = re.IGNORECASE | re.DOTALL


def _compile(*patterns: str) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(pattern, _FLAGS) for pattern in patterns)


STOCK_PRICE_PATTERNS = _compile(
    r'<p class="no_today">\s*<em[^>]*>\s*<span class="blind">([\d,]+)</span>',
    r'<span id="_nowVal"[^>]*>([\d,]+)</span>',
    r'<dd class="no_today">\s*<span class="no_\w+">\s*<span class="blind">현재가</span>'
    r'\s*<span class="no_\w+">\s*([\d,]+)',
    r"<dd>현재가\s*([\d,]+)",
    r'<dd class="stock_price">\s*([\d,]+)',
    r'<strong class="current">([\d,]+)</strong>',
)
STOCK_PRICE_LOOSE = re.compile(r"(?:현재가|종가)[^0-9]{0,200}?([0-9][0-9,]*)", _FLAGS)

INDEX_PRICE_PATTERNS = _compile(
    r'<em id="now_value">([\d,.]+)</em>',
    r'<span class="num">([\d,.]+)</span>',
    r'<strong class="number">([\d,.]+)</strong>',
    r'<em id="_nowVal"[^>]*>([\d,.]+)</em>',
    r'<dd class="stock_price">\s*([\d,.]+)',
)
INDEX_PRICE_LOOSE = re.compile(r"(?:현재지수|종가)[^0-9]{0,200}?([0-9][0-9,.]*)", _FLAGS)

MOBILE_INDEX_PRICE_PATTERNS = _compile(
    r'"symbolCode":"[^"]*","name":"[^"]*","price":"?([\d,.]+)',
    r'"closePrice":"([\d,.]+)"',
    r'stockItemDetailPriceContainer.{0,400}?price">([\d,.]+)<',
)

STOCK_HIGH_PATTERNS = _compile(
    r"52주최고(?:<[^>]*>|[^<]){0,80}?</th>\s*<td[^>]*>\s*<em[^>]*>([\d,]+)",
    r"52주고</th>\s*<td>\s*<em[^>]*>([\d,]+)",
    r"52주고</th>\s*<td[^>]*>([\d,]+)",
    r"52주\s*고\s*</th>[^<]*<td[^>]*>([\d,]+)",
    r'<td class="first">52주고</td>\s*<td>\s*([\d,]+)',
    r'<span class="text">52주고</span>.*?<td class="num">([\d,]+)',
    r"52주\s*높은가격\s*</th>\s*<td[^>]*>\s*([\d,]+)",
)
STOCK_HIGH_LOOSE = re.compile(r"52주[^0-9]*([0-9,]+)", _FLAGS)

INDEX_HIGH_PATTERNS = _compile(
    r"연중최고\s*<span[^>]*>([\d,.]+)",
    r"52주고\s*(?:<[^>]*>)?\s*([\d,.]+)",
    r"52주\s*최고\s*(?:<[^>]*>)?\s*([\d,.]+)",
    r"52주\s*고가\s*(?:<[^>]*>)?\s*([\d,.]+)",
    r"1년\s*최고\s*(?:<[^>]*>)?\s*([\d,.]+)",
)

STOCK_DAILY_ROW_PATTERNS = _compile(
    r"<span[^>]*>\s*(\d{4}\.\d{2}\.\d{2})\s*</span>\s*</td>\s*"
    r"<td[^>]*>\s*<span[^>]*>\s*([\d,]+)\s*</span>",
    r'<td[^>]*class="date"[^>]*>\s*(\d{4}\.\d{2}\.\d{2})\s*</td>\s*'
    r'<td[^>]*class="num"[^>]*>\s*(?:<span[^>]*>)?\s*([\d,]+)',
)
STOCK_DAILY_ROW_LOOSE = re.compile(
    r"<tr[^>]*>.*?<td[^>]*>.*?<span[^>]*>(\d{4}.\d{2}.\d{2}).*?</span>.*?</td>"
    r".*?<td[^>]*>.*?<span[^>]*>([\d,]+)</span>",
    _FLAGS,
)
INDEX_DAILY_ROW_PATTERNS = _compile(
    r'<td[^>]*class="date"[^>]*>\s*(\d{4}\.\d{2}\.\d{2})\s*</td>\s*'
    r'<td[^>]*class="number_1"[^>]*>\s*(?:<a[^>]*>)?([\d,.]+)',
    r'<td[^>]*class="date"[^>]*>\s*(\d{4}\.\d{2}\.\d{2})\s*</td>\s*'
    r"<td[^>]*>\s*(?:<span[^>]*>)?\s*([\d,.]+)",
)


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Value extracted by one entry of a pattern list."""

    value: float
    index: int
    loose: bool = False

    @property
    def label(self) -> str:
        return "loose" if self.loose else f"pattern{self.index + 1}"


def parse_number(text: Any) -> float | None:
    """Parse a positive number written with thousands separators."""

    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        number = float(text)
    else:
        cleaned = str(text).strip().replace(",", "")
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def first_match(
    content: str,
    patterns: Sequence[Pattern[str]],
    *,
    loose: Pattern[str] | None = None,
) -> PatternMatch | None:
    """Apply ``patterns`` in order, then ``loose``, returning the first hit."""

    for index, pattern in enumerate(patterns):
        found = pattern.search(content)
        if found:
            value = parse_number(found.group(1))
            if value is not None:
                return PatternMatch(value, index)
    if loose is not None:
        found = loose.search(content)
        if found:
            value = parse_number(found.group(1))
            if value is not None:
                return PatternMatch(value, len(patterns), loose=True)
    return None


def _table_rows(
    content: str,
    patterns: Sequence[Pattern[str]],
    *,
    loose: Pattern[str] | None = None,
) -> list[tuple[date, float]]:
    """Rows found by the first entry of ``patterns`` (then ``loose``) that matches."""

    candidates = list(patterns)
    if loose is not None:
        candidates.append(loose)
    for pattern in candidates:
        rows: list[tuple[date, float]] = []
        for raw_date, raw_price in pattern.findall(content):
            day = parse_loose_date(raw_date)
            price = parse_number(raw_price)
            if day is not None and price is not None:
                rows.append((day, price))
        if rows:
            return rows
    return []


def parse_daily_table(content: str) -> list[tuple[date, float]]:
    """Rows of the stock daily quote table (``item/sise_day``), newest first."""

    return _table_rows(content, STOCK_DAILY_ROW_PATTERNS, loose=STOCK_DAILY_ROW_LOOSE)


def parse_index_daily_table(content: str) -> list[tuple[date, float]]:
    """Rows of the index daily quote table (``sise/sise_index_day``), newest first."""

    return _table_rows(content, INDEX_DAILY_ROW_PATTERNS)


def _entries(payload: Any, keys: Iterable[str]) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def parse_price_series(payload: Any) -> list[tuple[date, float]]:
    """Parse the mobile index price API (``/api/index/{code}/price``).

    Entries carry their date in ``localTradedAt`` or ``dt`` and the close in
    ``closePrice`` or ``ncv``; dates may be ``2025.03.21`` or ISO formatted.
    """

    series: list[tuple[date, float]] = []
    for entry in _entries(payload, ("result", "priceInfos", "items")):
        if not isinstance(entry, dict):
            continue
        day = parse_loose_date(entry.get("localTradedAt") or entry.get("dt"))
        price = parse_number(entry.get("closePrice") or entry.get("ncv"))
        if day is not None and price is not None:
            series.append((day, price))
    return series


@dataclass(frozen=True, slots=True)
class ChartRow:
    """One ``[timestamp, open, high, low, close, volume]`` chart entry."""

    day: date
    close: float | None
    high: float | None


def parse_chart_series(payload: Any) -> list[ChartRow]:
    """Parse ``priceValues`` rows from the mobile chart API."""

    rows: list[ChartRow] = []
    for entry in _entries(payload, ("priceValues",)):
        if isinstance(entry, (list, tuple)):
            if len(entry) < 5:
                continue
            day = parse_loose_date(entry[0])
            high = parse_number(entry[2])
            close = parse_number(entry[4])
        elif isinstance(entry, dict):
            day = parse_loose_date(
                entry.get("localDate") or entry.get("localTradedAt") or entry.get("dt")
            )
            high = parse_number(entry.get("highPrice"))
            close = parse_number(entry.get("closePrice") or entry.get("ncv"))
        else:
            continue
        if day is not None:
            rows.append(ChartRow(day, close, high))
    return rows


__all__ = [
    "ChartRow",
    "INDEX_DAILY_ROW_PATTERNS",
    "INDEX_HIGH_PATTERNS",
    "INDEX_PRICE_LOOSE",
    "INDEX_PRICE_PATTERNS",
    "MOBILE_INDEX_PRICE_PATTERNS",
    "PatternMatch",
    "STOCK_DAILY_ROW_LOOSE",
    "STOCK_DAILY_ROW_PATTERNS",
    "STOCK_HIGH_LOOSE",
    "STOCK_HIGH_PATTERNS",
    "STOCK_PRICE_LOOSE",
    "STOCK_PRICE_PATTERNS",
    "first_match",
    "parse_chart_series",
    "parse_daily_table",
    "parse_index_daily_table",
    "parse_number",
    "parse_price_series",
]
