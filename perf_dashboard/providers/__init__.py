"""Upstream price sources and the router that selects between them."""

from __future__ import annotations

from typing import Any

__all__ = [
    "GoogleFinanceSource",
    "NaverFinanceSource",
    "PriceSource",
    "PriceSourceError",
    "PriceSourceRouter",
    "YahooFinanceSource",
]


def __getattr__(name: str) -> Any:  # pragma: no cover - trivial passthrough
    if name in {"PriceSource", "PriceSourceError"}:
        from perf_dashboard.providers import base as _base

        return getattr(_base, name)
    if name == "GoogleFinanceSource":
        from perf_dashboard.providers.google import GoogleFinanceSource as _Google

        return _Google
    if name == "YahooFinanceSource":
        from perf_dashboard.providers.yahoo import YahooFinanceSource as _Yahoo

        return _Yahoo
    if name == "NaverFinanceSource":
        from perf_dashboard.providers.naver import NaverFinanceSource as _Naver

        return _Naver
    if name == "PriceSourceRouter":
        from perf_dashboard.providers.router import PriceSourceRouter as _Router

        return _Router
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
