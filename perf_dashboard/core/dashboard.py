"""Concurrent resolution of a full ticker list."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Sequence

from .aggregator import PriceAggregator
from .clock import AppClock, app_clock
from .config import DEFAULT_MAX_CONCURRENCY
from .dates import parse_reference_date
from .models import ProgressEvent, Ticker, TickerReport

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class DashboardService:
    """Resolve many tickers with bounded concurrency.

    Tickers are independent, so they fan out across a semaphore-limited set
    of tasks; a failing ticker yields an ``ERROR`` row instead of aborting the
    run. Results keep the input order.
    """

    def __init__(
        self,
        aggregator: PriceAggregator,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        clock: AppClock = app_clock,
    ) -> None:
        self.aggregator = aggregator
        self.max_concurrency = max(1, int(max_concurrency))
        self.clock = clock

    async def run(
        self,
        tickers: Sequence[Ticker],
        reference: Any = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> list[TickerReport]:
        total = len(tickers)
        if total == 0:
            LOGGER.info("No tickers to resolve")
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)
        completed = 0

        async def _resolve(ticker: Ticker) -> TickerReport:
            nonlocal completed
            async with semaphore:
                report = await self._resolve_safely(ticker, reference)
            completed += 1
            if progress is not None:
                try:
                    progress(ProgressEvent(completed, total, ticker.symbol, report.status))
                except Exception:  # pylint: disable=broad-except
                    LOGGER.exception("Progress callback failed for %s", ticker.symbol)
            return report

        LOGGER.info(
            "Resolving %s tickers with up to %s concurrent lookups",
            total,
            self.max_concurrency,
        )
        reports = await asyncio.gather(*(_resolve(ticker) for ticker in tickers))
        failures = sum(1 for report in reports if report.status != "ok")
        if failures:
            LOGGER.warning("%s of %s tickers failed", failures, total)
        return list(reports)

    async def _resolve_safely(self, ticker: Ticker, reference: Any) -> TickerReport:
        try:
            return await self.aggregator.resolve(ticker, reference)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.exception("Failed to resolve %s (%s)", ticker.name, ticker.symbol)
            return TickerReport.failed(
                ticker,
                f"{type(exc).__name__}: {exc}",
                fetched_at=self.clock.now(),
                reference_date=parse_reference_date(reference, self.clock),
            )


__all__ = ["DashboardService", "ProgressCallback"]
