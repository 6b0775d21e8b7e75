"""Resolve the five dashboard prices for a single ticker."""

from __future__ import annotations

import logging
from datetime import date
from functools import partial
from typing import Any, Awaitable, Callable

from ..providers.base import PriceSourceError
from ..providers.router import PriceSourceRouter
from .audit import build_audit_record
from .calendar import MarketCalendar, region_of
from .clock import AppClock, app_clock
from .dates import ReferenceDateResolver
from .models import PriceQuote, Ticker, TickerReport
from .returns import compute_returns

LOGGER = logging.getLogger(__name__)


class PriceAggregator:
    """Combine the date resolver, router and return calculator for one ticker.

    Each price slot is isolated: a transport failure for one window becomes
    ``NO_DATA`` for that slot only.
    """

    def __init__(
        self,
        router: PriceSourceRouter,
        *,
        calendar: MarketCalendar | None = None,
        clock: AppClock = app_clock,
        adjust_for_business_day: bool = False,
    ) -> None:
        self.router = router
        self.clock = clock
        self.calendar = calendar or MarketCalendar(clock=clock)
        self.adjust_for_business_day = adjust_for_business_day

    def resolver(self, reference: Any = None) -> ReferenceDateResolver:
        return ReferenceDateResolver(
            reference,
            clock=self.clock,
            calendar=self.calendar,
            adjust_for_business_day=self.adjust_for_business_day,
        )

    async def resolve(self, ticker: Ticker, reference: Any = None) -> TickerReport:
        window = self.resolver(reference).window()
        source_name = self.router.resolve_name(ticker.source)
        source = self.router.route(source_name)
        symbol = self.router.normalize_symbol(ticker.symbol, source_name)
        fetched_at = self.clock.now()
        today = fetched_at.date()

        region = region_of(source_name, symbol)
        session = self.calendar.most_recent_session(region, fetched_at)
        memo = self.calendar.market_memo(region, fetched_at)

        if window.reference_date < today:
            current_call = partial(source.price_near, symbol, window.reference_date)
        else:
            current_call = partial(source.current_price, symbol)

        quotes: dict[str, PriceQuote] = {}
        quotes["current"] = await self._slot("current", symbol, window.reference_date, current_call)
        for slot, target in (
            ("week_ago", window.week_ago),
            ("month_ago", window.month_ago),
            ("ytd", window.ytd),
        ):
            quotes[slot] = await self._slot(
                slot, symbol, target, partial(source.price_near, symbol, target)
            )
        quotes["high"] = await self._slot("high", symbol, today, partial(source.high_52w, symbol))

        returns = compute_returns(quotes)
        audit = build_audit_record(
            ticker,
            symbol=symbol,
            source=source_name,
            window=window,
            quotes=quotes,
            returns=returns,
            session=session,
            fetched_at=fetched_at,
            market_memo=memo,
        )
        if audit.estimated:
            LOGGER.info("%s resolved with estimated prices: %s", symbol, audit.notes)
        return TickerReport(
            ticker=ticker,
            returns=returns,
            audit=audit,
            window=window,
            quotes=quotes,
            session=session,
        )

    async def _slot(
        self,
        slot: str,
        symbol: str,
        target: date,
        call: Callable[[], Awaitable[PriceQuote]],
    ) -> PriceQuote:
        try:
            return await call()
        except PriceSourceError as exc:
            LOGGER.warning("No %s price for %s (%s): %s", slot, symbol, target, exc)
            return PriceQuote.no_data(target, method="failed", note=str(exc))


__all__ = ["PriceAggregator"]
