"""Yahoo Finance price source backed by the public chart and quote APIs."""

from __future__ import annotations

import logging
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Any, List

from pydantic import BaseModel, ValidationError

from ..core.models import PriceQuote, SourceName
from .base import (
    LazyFetch,
    PriceSource,
    PriceSourceError,
    Strategy,
    parse_float,
    run_chain,
)
from .matching import match_closest, tolerance_days

LOGGER = logging.getLogger(__name__)

CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
QUOTE_URL = "https://query1.finance.yahoo.com/v7/finance/quote"
_DAY_SECONDS = 86_400


class ChartBar(BaseModel):
    """Daily bar extracted from a chart payload."""

    day: date
    close: float | None = None
    adj_close: float | None = None
    high: float | None = None


class ChartSeries(BaseModel):
    """Parsed ``chart.result[0]`` payload."""

    meta: dict[str, Any] = {}
    bars: List[ChartBar] = []

    @property
    def is_empty(self) -> bool:
        return not self.meta and not self.bars


def parse_chart(payload: Any) -> ChartSeries:
    """Extract metadata and daily bars from a v8 chart response."""

    if not isinstance(payload, dict):
        raise ValueError("chart payload is not an object")
    results = payload.get("chart", {}).get("result") or []
    if not results:
        return ChartSeries()
    chart = results[0] or {}
    meta = chart.get("meta") or {}
    offset = int(meta.get("gmtoffset") or 0)
    timestamps = chart.get("timestamp") or []
    indicators = chart.get("indicators") or {}
    quote = (indicators.get("quote") or [{}])[0] or {}
    adjclose = (indicators.get("adjclose") or [{}])[0] or {}
    closes = quote.get("close") or []
    highs = quote.get("high") or []
    adj_closes = adjclose.get("adjclose") or []

    bars: list[ChartBar] = []
    for idx, ts in enumerate(timestamps):
        try:
            day = datetime.fromtimestamp(int(ts) + offset, tz=timezone.utc).date()
        except (TypeError, ValueError, OverflowError, OSError):
            continue
        bars.append(
            ChartBar(
                day=day,
                close=parse_float(closes[idx] if idx < len(closes) else None),
                adj_close=parse_float(adj_closes[idx] if idx < len(adj_closes) else None),
                high=parse_float(highs[idx] if idx < len(highs) else None),
            )
        )
    return ChartSeries(meta=meta, bars=bars)


def _epoch(day: date) -> int:
    return int(datetime.combine(day, dt_time(0), tzinfo=timezone.utc).timestamp())


class YahooFinanceSource(PriceSource):
    """Source B: REST/JSON quotes and daily ranges."""

    name = SourceName.YAHOO

    async def _chart(self, symbol: str, params: dict[str, Any]) -> ChartSeries:
        payload = await self._get_json(
            CHART_URL.format(symbol=symbol), params=params, symbol=symbol
        )
        try:
            return parse_chart(payload)
        except (AttributeError, TypeError, ValueError, ValidationError) as exc:
            raise PriceSourceError(f"Unreadable Yahoo chart for {symbol}: {exc}") from exc

    def _meta_date(self, series: ChartSeries) -> date:
        market_time = series.meta.get("regularMarketTime")
        if market_time:
            offset = int(series.meta.get("gmtoffset") or 0)
            try:
                return datetime.fromtimestamp(int(market_time) + offset, tz=timezone.utc).date()
            except (TypeError, ValueError, OverflowError, OSError):
                LOGGER.debug("Ignoring out-of-range regularMarketTime %r", market_time)
        if series.bars:
            return series.bars[-1].day
        return self.today()

    async def current_price(self, symbol: str) -> PriceQuote:
        chart = LazyFetch(lambda: self._chart(symbol, {"range": "5d", "interval": "1d"}))

        async def _meta_price() -> PriceQuote | None:
            series: ChartSeries = await chart()
            value = parse_float(series.meta.get("regularMarketPrice"))
            if value is None:
                return None
            return PriceQuote(value, self._meta_date(series))

        async def _last_close() -> PriceQuote | None:
            series: ChartSeries = await chart()
            for bar in reversed(series.bars):
                if bar.close is not None:
                    return PriceQuote(bar.close, bar.day)
            return None

        async def _previous_close() -> PriceQuote | None:
            series: ChartSeries = await chart()
            value = parse_float(
                series.meta.get("chartPreviousClose") or series.meta.get("previousClose")
            )
            if value is None:
                return None
            return PriceQuote(value, self._meta_date(series), note="previous close")

        return await run_chain(
            [
                Strategy("meta.regularMarketPrice", _meta_price),
                Strategy("quote.close.last", _last_close),
                Strategy("meta.chartPreviousClose", _previous_close),
            ],
            label=f"yahoo current {symbol}",
            target=self.today(),
        )

    async def price_near(self, symbol: str, target: date) -> PriceQuote:
        today = self.today()
        exact = LazyFetch(
            lambda: self._chart(
                symbol,
                {
                    "period1": _epoch(target),
                    "period2": _epoch(target) + _DAY_SECONDS,
                    "interval": "1d",
                },
            )
        )
        tolerance = tolerance_days(target, today)
        widened = LazyFetch(
            lambda: self._chart(
                symbol,
                {
                    "period1": _epoch(target - timedelta(days=tolerance)),
                    "period2": _epoch(target) + _DAY_SECONDS,
                    "interval": "1d",
                },
            )
        )

        async def _first(field: str) -> PriceQuote | None:
            series: ChartSeries = await exact()
            for bar in series.bars:
                value = getattr(bar, field)
                if value is not None:
                    return PriceQuote(value, bar.day)
            return None

        async def _adjusted() -> PriceQuote | None:
            return await _first("adj_close")

        async def _close() -> PriceQuote | None:
            return await _first("close")

        async def _closest() -> PriceQuote | None:
            series: ChartSeries = await widened()
            candidates = [
                (bar.day, bar.adj_close if bar.adj_close is not None else bar.close)
                for bar in series.bars
            ]
            match = match_closest(candidates, target, today)
            if match is None:
                return None
            return PriceQuote(
                match.price,
                match.day,
                note=f"closest trading day {match.distance_days}d from {target.isoformat()}",
            )

        return await run_chain(
            [
                Strategy("range.adjclose", _adjusted),
                Strategy("range.close", _close),
                Strategy("range.closest", _closest),
            ],
            label=f"yahoo {symbol}@{target.isoformat()}",
            target=target,
        )

    async def high_52w(self, symbol: str) -> PriceQuote:
        yearly = LazyFetch(lambda: self._chart(symbol, {"range": "1y", "interval": "1d"}))

        async def _quote_field() -> PriceQuote | None:
            payload = await self._get_json(
                QUOTE_URL, params={"symbols": symbol}, symbol=symbol
            )
            results = (payload.get("quoteResponse") or {}).get("result") or []
            if not results:
                return None
            value = parse_float(results[0].get("fiftyTwoWeekHigh"))
            return PriceQuote(value, self.today()) if value is not None else None

        async def _meta_high() -> PriceQuote | None:
            series: ChartSeries = await yearly()
            value = parse_float(series.meta.get("fiftyTwoWeekHigh"))
            return PriceQuote(value, self.today()) if value is not None else None

        async def _series_max() -> PriceQuote | None:
            series: ChartSeries = await yearly()
            highs = [bar for bar in series.bars if bar.high is not None]
            if not highs:
                return None
            best = max(highs, key=lambda bar: bar.high)
            return PriceQuote(best.high, best.day)

        return await run_chain(
            [
                Strategy("quote.fiftyTwoWeekHigh", _quote_field),
                Strategy("chart.meta.fiftyTwoWeekHigh", _meta_high),
                Strategy("chart.max_high", _series_max),
            ],
            label=f"yahoo high {symbol}",
        )


__all__ = ["ChartSeries", "YahooFinanceSource", "parse_chart"]
