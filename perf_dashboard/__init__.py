"""Multi-source price resolution and return calculation for a performance dashboard."""

from perf_dashboard.app import DashboardApplication, RunResult
from perf_dashboard.core import (
    DashboardConfig,
    PriceQuote,
    ReturnResult,
    Sentinel,
    SourceName,
    Ticker,
    build_config,
    compute_return,
    load_environment,
)

__all__ = [
    "DashboardApplication",
    "DashboardConfig",
    "PriceQuote",
    "ReturnResult",
    "RunResult",
    "Sentinel",
    "SourceName",
    "Ticker",
    "build_config",
    "compute_return",
    "load_environment",
]
