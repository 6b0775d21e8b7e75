"""Google Finance price source built around formula-style expressions.

Prices are requested by evaluating ``GOOGLEFINANCE`` expressions through an
:class:`ExpressionEvaluator`. A spreadsheet integration can plug in its own
scratch-cell evaluator; :class:`GoogleFinanceEvaluator` answers the subset of
expressions that the public quote page exposes.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date
from typing import Any, Protocol

from ..core.models import PriceQuote, SourceName
from .base import (
    DESKTOP_USER_AGENT,
    PriceSource,
    PriceSourceError,
    Strategy,
    parse_float,
    run_chain,
)

LOGGER = logging.getLogger(__name__)

QUOTE_URL = "https://www.google.com/finance/quote/{path}"
ERROR_MARKERS = ("#N/A", "#REF", "#NAME", "#DIV/0", "#NULL", "#VALUE", "#NUM", "ERROR")
NOT_AVAILABLE = "#N/A"
# Exchanges tried, in order, for symbols given without one.
DEFAULT_EXCHANGES = ("NASDAQ", "NYSE", "NYSEARCA")

_EXPRESSION = re.compile(
    r'^=GOOGLEFINANCE\(\s*"(?P<symbol>[^"]+)"\s*,\s*"(?P<attribute>[^"]+)"'
    r"(?:\s*,\s*DATE\(\s*(?P<year>\d+)\s*,\s*(?P<month>\d+)\s*,\s*(?P<day>\d+)\s*\))?\s*\)$",
    re.IGNORECASE,
)
_LAST_PRICE = re.compile(r'data-last-price="([\d.,]+)"')
_YEAR_RANGE = re.compile(
    r"Year range(?:<[^>]+>|\s)*[^\d<]*([\d,.]+)\s*-\s*[^\d<]*([\d,.]+)", re.IGNORECASE
)


class ExpressionEvaluator(Protocol):
    """Scratch cell capable of evaluating a price-lookup expression."""

    async def evaluate(self, expression: str) -> Any:
        """Return a number, an error marker string, or a 2D result table."""


def build_expression(symbol: str, attribute: str = "price", day: date | None = None) -> str:
    if day is None:
        return f'=GOOGLEFINANCE("{symbol}","{attribute}")'
    return (
        f'=GOOGLEFINANCE("{symbol}","{attribute}",'
        f"DATE({day.year},{day.month},{day.day}))"
    )


def read_cell(result: Any) -> float | None:
    """Interpret an evaluated cell as a usable price.

    Historical expressions return a table whose first row is a header; the
    value sits in the second row, second column.
    """

    if isinstance(result, (list, tuple)):
        if len(result) > 1 and isinstance(result[1], (list, tuple)) and len(result[1]) > 1:
            return read_cell(result[1][1])
        return None
    if isinstance(result, str):
        token = result.strip().upper()
        if not token or any(marker in token for marker in ERROR_MARKERS):
            return None
    value = parse_float(result)
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return value


def quote_paths(symbol: str) -> list[str]:
    """Quote page paths (``TICKER:EXCHANGE``) to try for a Google symbol."""

    token = symbol.strip().upper()
    if ":" in token:
        exchange, ticker = token.split(":", 1)
        return [f"{ticker}:{exchange}"]
    return [f"{token}:{exchange}" for exchange in DEFAULT_EXCHANGES]


class GoogleFinanceEvaluator:
    """Evaluate current-price expressions against the Google Finance quote page."""

    def __init__(self, source: "GoogleFinanceSource") -> None:
        self._source = source

    async def evaluate(self, expression: str) -> Any:
        match = _EXPRESSION.match(expression.strip())
        if not match:
            return "#NAME?"
        if match.group("year"):
            return NOT_AVAILABLE
        attribute = match.group("attribute").lower()
        if attribute not in {"price", "high52"}:
            return NOT_AVAILABLE

        last_error: PriceSourceError | None = None
        fetched = False
        for path in quote_paths(match.group("symbol")):
            try:
                html = await self._source._get_text(
                    QUOTE_URL.format(path=path),
                    headers={"User-Agent": DESKTOP_USER_AGENT},
                    symbol=path,
                )
            except PriceSourceError as exc:
                last_error = exc
                continue
            fetched = True
            if attribute == "price":
                found = _LAST_PRICE.search(html)
                if found:
                    return parse_float(found.group(1))
            else:
                found = _YEAR_RANGE.search(html)
                if found:
                    return parse_float(found.group(2))
        if not fetched and last_error is not None:
            raise last_error
        return NOT_AVAILABLE


class GoogleFinanceSource(PriceSource):
    """Source A: price-lookup expressions evaluated through a scratch cell."""

    name = SourceName.GOOGLE

    def __init__(self, *, evaluator: ExpressionEvaluator | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.evaluator: ExpressionEvaluator = evaluator or GoogleFinanceEvaluator(self)
        self._substitution_warned = False

    async def _evaluate(self, expression: str) -> float | None:
        result = await self.evaluator.evaluate(expression)
        value = read_cell(result)
        if value is None:
            LOGGER.debug("Expression %s returned %r", expression, result)
        return value

    def _step(self, expression: str, source_date: date, **quote_kwargs: Any) -> Strategy:
        async def _run() -> PriceQuote | None:
            value = await self._evaluate(expression)
            if value is None:
                return None
            return PriceQuote(value, source_date, **quote_kwargs)

        return Strategy(expression, _run)

    async def current_price(self, symbol: str) -> PriceQuote:
        today = self.today()
        return await run_chain(
            [self._step(build_expression(symbol, "price"), today, method="price")],
            label=f"google current {symbol}",
            target=today,
        )

    async def price_near(self, symbol: str, target: date) -> PriceQuote:
        today = self.today()
        steps = [
            self._step(build_expression(symbol, "price", target), target, method="price@date"),
            self._step(build_expression(symbol, "close", target), target, method="close@date"),
        ]
        historical = target < today
        steps.append(
            self._step(
                build_expression(symbol, "price"),
                today,
                method="current price",
                is_estimated=historical,
                note="current price substituted for historical date" if historical else "",
            )
        )
        quote = await run_chain(
            steps, label=f"google {symbol}@{target.isoformat()}", target=target
        )
        if quote.is_estimated and quote.method == "current price":
            self._warn_substituted(symbol, target)
        return quote

    def _warn_substituted(self, symbol: str, target: date) -> None:
        if self._substitution_warned:
            LOGGER.debug("Google history for %s@%s substituted by current price", symbol, target)
            return
        self._substitution_warned = True
        LOGGER.warning(
            "Google Finance returned no historical price for %s@%s; historical windows "
            "for Google tickers use the current price and their returns are estimates",
            symbol,
            target,
        )

    async def high_52w(self, symbol: str) -> PriceQuote:
        today = self.today()

        async def _current_as_high() -> PriceQuote | None:
            value = await self._evaluate(build_expression(symbol, "price"))
            if value is None:
                return None
            return PriceQuote(
                value,
                today,
                is_estimated=True,
                method="current price",
                note="52-week high unavailable; using current price",
            )

        return await run_chain(
            [
                self._step(build_expression(symbol, "high52"), today, method="high52"),
                Strategy("current price", _current_as_high),
            ],
            label=f"google high {symbol}",
            target=today,
        )


__all__ = [
    "ExpressionEvaluator",
    "GoogleFinanceEvaluator",
    "GoogleFinanceSource",
    "build_expression",
    "quote_paths",
    "read_cell",
]
