"""Naver Finance price source for the domestic market.

Index lookups escalate from the mobile price API to the chart API and the
desktop daily table, and finally to estimation (cross-index scaling, then
a time-decay haircut). Estimated quotes are always flagged with
``is_estimated``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Awaitable, Callable

from ..core.config import DEFAULT_MAX_HISTORY_PAGES
from ..core.models import PriceQuote, SourceName
from .base import DESKTOP_USER_AGENT, LazyFetch, PriceSource, Strategy, run_chain
from .matching import days_back, match_closest, timeframe_for
from .naver_parsers import (
    INDEX_HIGH_PATTERNS,
    INDEX_PRICE_LOOSE,
    INDEX_PRICE_PATTERNS,
    MOBILE_INDEX_PRICE_PATTERNS,
    STOCK_HIGH_LOOSE,
    STOCK_HIGH_PATTERNS,
    STOCK_PRICE_LOOSE,
    STOCK_PRICE_PATTERNS,
    ChartRow,
    first_match,
    parse_chart_series,
    parse_daily_table,
    parse_index_daily_table,
    parse_price_series,
)

LOGGER = logging.getLogger(__name__)

STOCK_MAIN_URL = "https://finance.naver.com/item/main.naver"
STOCK_DAILY_URL = "https://finance.naver.com/item/sise_day.naver"
INDEX_DESKTOP_URL = "https://finance.naver.com/sise/sise_index.naver"
INDEX_DAILY_URL = "https://finance.naver.com/sise/sise_index_day.naver"
INDEX_MOBILE_PAGE_URL = "https://m.stock.naver.com/domestic/index/{code}/total"
INDEX_PRICE_API_URL = "https://m.stock.naver.com/api/index/{code}/price"
INDEX_CHART_API_URL = "https://m.stock.naver.com/api/chart/domestic/index/{code}"
MOBILE_REFERER = "https://m.stock.naver.com/domestic/index/{code}/chart"
MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
)

INDEX_CODES = {"KOSPI": "KOSPI", "KOSDAQ": "KOSDAQ", "KPI200": "KPI200", "KOSPI200": "KPI200"}
# Correlated index and empirical volatility multiplier used for estimation.
PROXY_INDEX: dict[str, tuple[str, float]] = {
    "KOSDAQ": ("KOSPI", 1.2),
    "KPI200": ("KOSPI", 1.0),
}


def time_decay_factor(age_days: int) -> float:
    """Haircut applied to the current price for an unobtainable past price."""

    if age_days <= 7:
        return 0.98
    if age_days <= 30:
        return 0.95
    return 0.90


def cross_index_estimate(
    current: float, proxy_past: float, proxy_current: float, factor: float
) -> float:
    """Scale ``current`` by the proxy index's move, amplified by ``factor``."""

    ratio = proxy_past / proxy_current
    return current * (1.0 - (1.0 - ratio) * factor)


class NaverFinanceSource(PriceSource):
    """Source C: HTML scraping with ordered pattern fallbacks."""

    name = SourceName.NAVER

    def __init__(
        self,
        *,
        max_history_pages: int = DEFAULT_MAX_HISTORY_PAGES,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.max_history_pages = max(1, int(max_history_pages))

    @staticmethod
    def index_code(symbol: str) -> str | None:
        return INDEX_CODES.get(symbol.strip().upper())

    @staticmethod
    def _desktop_headers() -> dict[str, str]:
        return {"User-Agent": DESKTOP_USER_AGENT, "Referer": "https://finance.naver.com/"}

    @staticmethod
    def _mobile_headers(code: str, accept: str = "application/json") -> dict[str, str]:
        return {
            "User-Agent": MOBILE_USER_AGENT,
            "Accept": accept,
            "Accept-Language": "ko-KR,ko;q=0.9",
            "Referer": MOBILE_REFERER.format(code=code),
        }

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------
    async def current_price(self, symbol: str) -> PriceQuote:
        code = self.index_code(symbol)
        if code:
            return await self._index_current(code)
        return await self._stock_current(symbol.strip())

    async def price_near(self, symbol: str, target: date) -> PriceQuote:
        code = self.index_code(symbol)
        if code:
            return await self._index_history(code, target)
        return await self._stock_history(symbol.strip(), target)

    async def high_52w(self, symbol: str) -> PriceQuote:
        code = self.index_code(symbol)
        if code:
            return await self._index_high(code)
        return await self._stock_high(symbol.strip())

    # ------------------------------------------------------------------
    # Stocks
    # ------------------------------------------------------------------
    def _main_page(self, code: str) -> LazyFetch:
        return LazyFetch(
            lambda: self._get_text(
                STOCK_MAIN_URL,
                params={"code": code},
                headers=self._desktop_headers(),
                symbol=code,
            )
        )

    async def _daily_rows(self, code: str, page: int) -> list[tuple[date, float]]:
        content = await self._get_text(
            STOCK_DAILY_URL,
            params={"code": code, "page": page},
            headers=self._desktop_headers(),
            symbol=code,
        )
        return parse_daily_table(content)

    async def _paged_rows(
        self,
        fetch_page: Callable[[int], Awaitable[list[tuple[date, float]]]],
        code: str,
        target: date,
    ) -> list[tuple[date, float]]:
        """Walk a newest-first daily table until it covers ``target``."""

        rows: list[tuple[date, float]] = []
        previous: list[tuple[date, float]] | None = None
        for page in range(1, self.max_history_pages + 1):
            page_rows = await fetch_page(page)
            # Past the last page Naver keeps serving the final page.
            if not page_rows or page_rows == previous:
                break
            rows.extend(page_rows)
            previous = page_rows
            if min(day for day, _ in page_rows) <= target:
                break
        else:
            LOGGER.debug(
                "Naver daily table for %s did not reach %s within %s pages",
                code,
                target,
                self.max_history_pages,
            )
        return rows

    async def _stock_current(self, code: str, page: LazyFetch | None = None) -> PriceQuote:
        today = self.today()
        main_page = page or self._main_page(code)

        async def _from_main() -> PriceQuote | None:
            found = first_match(await main_page(), STOCK_PRICE_PATTERNS, loose=STOCK_PRICE_LOOSE)
            if found is None:
                return None
            return PriceQuote(found.value, today, method=f"main.{found.label}")

        async def _from_daily() -> PriceQuote | None:
            rows = await self._daily_rows(code, 1)
            if not rows:
                return None
            day, price = max(rows, key=lambda row: row[0])
            return PriceQuote(price, day, note="latest daily close")

        return await run_chain(
            [Strategy("main_page", _from_main), Strategy("sise_day.latest", _from_daily)],
            label=f"naver current {code}",
            target=today,
        )

    async def _stock_history(self, code: str, target: date) -> PriceQuote:
        today = self.today()

        async def _paged_table() -> PriceQuote | None:
            rows = await self._paged_rows(
                lambda page: self._daily_rows(code, page), code, target
            )
            match = match_closest(rows, target, today)
            if match is None:
                return None
            return PriceQuote(
                match.price,
                match.day,
                note="" if match.exact else f"closest trading day {match.day.isoformat()}",
            )

        return await run_chain(
            [Strategy("sise_day", _paged_table)],
            label=f"naver {code}@{target.isoformat()}",
            target=target,
        )

    async def _stock_high(self, code: str) -> PriceQuote:
        today = self.today()
        page = self._main_page(code)

        async def _from_main() -> PriceQuote | None:
            found = first_match(await page(), STOCK_HIGH_PATTERNS, loose=STOCK_HIGH_LOOSE)
            if found is None:
                return None
            return PriceQuote(found.value, today, method=f"main.{found.label}")

        async def _current_as_high() -> PriceQuote | None:
            quote = await self._stock_current(code, page)
            return _as_estimated_high(quote)

        return await run_chain(
            [Strategy("main_page", _from_main), Strategy("current price", _current_as_high)],
            label=f"naver high {code}",
            target=today,
        )

    # ------------------------------------------------------------------
    # Indices
    # ------------------------------------------------------------------
    async def _price_series(self, code: str, timeframe: str) -> list[tuple[date, float]]:
        payload = await self._get_json(
            INDEX_PRICE_API_URL.format(code=code),
            params={"timeframe": timeframe},
            headers=self._mobile_headers(code),
            symbol=code,
        )
        return parse_price_series(payload)

    async def _chart_series(self, code: str, timeframe: str) -> list[ChartRow]:
        payload = await self._get_json(
            INDEX_CHART_API_URL.format(code=code),
            params={"timeframe": timeframe},
            headers=self._mobile_headers(code),
            symbol=code,
        )
        return parse_chart_series(payload)

    async def _index_current(self, code: str) -> PriceQuote:
        today = self.today()

        async def _mobile_page() -> PriceQuote | None:
            content = await self._get_text(
                INDEX_MOBILE_PAGE_URL.format(code=code),
                headers=self._mobile_headers(
                    code, "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
                ),
                symbol=code,
            )
            found = first_match(content, MOBILE_INDEX_PRICE_PATTERNS)
            if found is None:
                return None
            return PriceQuote(found.value, today, method=f"mobile.{found.label}")

        async def _desktop_page() -> PriceQuote | None:
            content = await self._get_text(
                INDEX_DESKTOP_URL,
                params={"code": code},
                headers=self._desktop_headers(),
                symbol=code,
            )
            found = first_match(content, INDEX_PRICE_PATTERNS, loose=INDEX_PRICE_LOOSE)
            if found is None:
                return None
            return PriceQuote(found.value, today, method=f"desktop.{found.label}")

        async def _latest_from_api() -> PriceQuote | None:
            series = await self._price_series(code, "1d")
            if not series:
                return None
            day, price = max(series, key=lambda row: row[0])
            return PriceQuote(price, day, note="latest close from price API")

        return await run_chain(
            [
                Strategy("mobile_page", _mobile_page),
                Strategy("desktop_page", _desktop_page),
                Strategy("price_api.latest", _latest_from_api),
            ],
            label=f"naver index current {code}",
            target=today,
        )

    async def _index_high(self, code: str) -> PriceQuote:
        today = self.today()

        async def _desktop_page() -> PriceQuote | None:
            content = await self._get_text(
                INDEX_DESKTOP_URL,
                params={"code": code},
                headers=self._desktop_headers(),
                symbol=code,
            )
            found = first_match(content, INDEX_HIGH_PATTERNS)
            if found is None:
                return None
            return PriceQuote(found.value, today, method=f"desktop.{found.label}")

        async def _yearly_chart_max() -> PriceQuote | None:
            rows = await self._chart_series(code, "1y")
            points = [
                (row.day, row.high if row.high is not None else row.close)
                for row in rows
                if row.high is not None or row.close is not None
            ]
            if not points:
                return None
            day, value = max(points, key=lambda point: point[1])
            return PriceQuote(value, day, note="max of one-year chart")

        async def _current_as_high() -> PriceQuote | None:
            return _as_estimated_high(await self._index_current(code))

        return await run_chain(
            [
                Strategy("desktop_page", _desktop_page),
                Strategy("chart_api.max", _yearly_chart_max),
                Strategy("current price", _current_as_high),
            ],
            label=f"naver index high {code}",
            target=today,
        )

    async def _match_price_api(
        self, code: str, target: date, timeframe: str, today: date
    ) -> PriceQuote | None:
        match = match_closest(await self._price_series(code, timeframe), target, today)
        if match is None:
            return None
        return PriceQuote(match.price, match.day, note=f"price API timeframe={timeframe}")

    async def _match_chart_api(
        self, code: str, target: date, timeframe: str, today: date
    ) -> PriceQuote | None:
        rows = await self._chart_series(code, timeframe)
        match = match_closest(((row.day, row.close) for row in rows), target, today)
        if match is None:
            return None
        return PriceQuote(match.price, match.day, note=f"chart API timeframe={timeframe}")

    async def _index_daily_rows(self, code: str, page: int) -> list[tuple[date, float]]:
        content = await self._get_text(
            INDEX_DAILY_URL,
            params={"code": code, "page": page},
            headers=self._desktop_headers(),
            symbol=code,
        )
        return parse_index_daily_table(content)

    async def _match_daily_table(
        self, code: str, target: date, today: date
    ) -> PriceQuote | None:
        rows = await self._paged_rows(
            lambda page: self._index_daily_rows(code, page), code, target
        )
        match = match_closest(rows, target, today)
        if match is None:
            return None
        return PriceQuote(match.price, match.day, note="sise_index_day table")

    def _measured_steps(self, code: str, target: date, today: date) -> list[Strategy]:
        timeframe = timeframe_for(days_back(target, today))
        return [
            Strategy(
                "price_api",
                lambda: self._match_price_api(code, target, timeframe, today),
            ),
            Strategy(
                "chart_api",
                lambda: self._match_chart_api(code, target, timeframe, today),
            ),
            Strategy(
                "sise_index_day",
                lambda: self._match_daily_table(code, target, today),
            ),
        ]

    async def _index_history(self, code: str, target: date) -> PriceQuote:
        today = self.today()
        current = LazyFetch(lambda: self._index_current(code))

        async def _cross_index() -> PriceQuote | None:
            proxy = PROXY_INDEX.get(code)
            if proxy is None:
                return None
            proxy_code, factor = proxy
            proxy_past = await run_chain(
                self._measured_steps(proxy_code, target, today),
                label=f"naver proxy {proxy_code}@{target.isoformat()}",
                target=target,
            )
            if not proxy_past.is_valid:
                return None
            proxy_now = await self._index_current(proxy_code)
            current_quote: PriceQuote = await current()
            if not proxy_now.is_valid or not current_quote.is_valid:
                return None
            value = cross_index_estimate(
                current_quote.value, proxy_past.value, proxy_now.value, factor
            )
            LOGGER.info(
                "Estimated %s on %s from %s movement (factor %.1f)",
                code,
                target,
                proxy_code,
                factor,
            )
            return PriceQuote(
                round(value, 2),
                target,
                is_estimated=True,
                note=(
                    f"estimated from {proxy_code} ratio "
                    f"{proxy_past.value / proxy_now.value:.4f} x {factor}"
                ),
            )

        async def _time_decay() -> PriceQuote | None:
            current_quote: PriceQuote = await current()
            if not current_quote.is_valid:
                return None
            factor = time_decay_factor(days_back(target, today))
            LOGGER.info("Estimated %s on %s with time decay x%.2f", code, target, factor)
            return PriceQuote(
                round(current_quote.value * factor, 2),
                target,
                is_estimated=True,
                note=f"current price x {factor:.2f}",
            )

        return await run_chain(
            [
                *self._measured_steps(code, target, today),
                Strategy("cross_index", _cross_index),
                Strategy("time_decay", _time_decay),
            ],
            label=f"naver index {code}@{target.isoformat()}",
            target=target,
        )


def _as_estimated_high(quote: PriceQuote) -> PriceQuote | None:
    if not quote.is_valid:
        return None
    return replace(
        quote,
        is_estimated=True,
        method="current price",
        note="52-week high unavailable; using current price",
    )


__all__ = [
    "INDEX_CODES",
    "NaverFinanceSource",
    "PROXY_INDEX",
    "cross_index_estimate",
    "time_decay_factor",
]
