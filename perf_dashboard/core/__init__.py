"""Core date, return and orchestration components of the dashboard."""

from perf_dashboard.core.calendar import MarketCalendar, MarketProfile, region_of
from perf_dashboard.core.clock import AppClock, app_clock
from perf_dashboard.core.config import (
    ConfigurationError,
    DashboardConfig,
    build_config,
    load_environment,
)
from perf_dashboard.core.dates import ReferenceDateResolver, parse_reference_date
from perf_dashboard.core.models import (
    AuditRecord,
    MarketRegion,
    PriceQuote,
    ProgressEvent,
    ReferenceWindow,
    ReturnResult,
    Sentinel,
    SessionInfo,
    SourceName,
    Ticker,
    TickerReport,
)
from perf_dashboard.core.returns import compute_return, compute_returns
from perf_dashboard.core.tickers import load_tickers, parse_ticker_rows

__all__ = [
    "AppClock",
    "AuditRecord",
    "ConfigurationError",
    "DashboardConfig",
    "MarketCalendar",
    "MarketProfile",
    "MarketRegion",
    "PriceQuote",
    "ProgressEvent",
    "ReferenceDateResolver",
    "ReferenceWindow",
    "ReturnResult",
    "Sentinel",
    "SessionInfo",
    "SourceName",
    "Ticker",
    "TickerReport",
    "app_clock",
    "build_config",
    "compute_return",
    "compute_returns",
    "load_environment",
    "load_tickers",
    "parse_reference_date",
    "parse_ticker_rows",
    "region_of",
]

# The orchestration layer depends on the providers package, which itself
# imports from core; expose it lazily.
__all__ += ["DashboardService", "PriceAggregator"]


def __getattr__(name: str):  # pragma: no cover - thin convenience wrapper
    if name == "PriceAggregator":
        from perf_dashboard.core.aggregator import PriceAggregator

        return PriceAggregator
    if name == "DashboardService":
        from perf_dashboard.core.dashboard import DashboardService

        return DashboardService
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
