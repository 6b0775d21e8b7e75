"""Route tickers to price sources and normalise symbols per source."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Dict, Mapping

import httpx

from ..core.clock import AppClock, app_clock
from ..core.models import SourceName
from .base import PriceSource, SourceConfigurationError
from .google import GoogleFinanceSource
from .naver import NaverFinanceSource
from .yahoo import YahooFinanceSource

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..core.config import DashboardConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_SOURCE = SourceName.YAHOO

_DOMESTIC_CODE = re.compile(r"^\d{6}$")

INDEX_ALIASES: Mapping[SourceName, Mapping[str, str]] = {
    SourceName.GOOGLE: {
        "DJI": "INDEXDJX:.DJI",
        "DJIA": "INDEXDJX:.DJI",
        "DOW": "INDEXDJX:.DJI",
        "SPX": "INDEXSP:.INX",
        "S&P500": "INDEXSP:.INX",
        "S&P": "INDEXSP:.INX",
        "NASDAQ": "INDEXNASDAQ:.IXIC",
        "KOSPI": "KRX:KOSPI",
    },
    SourceName.YAHOO: {
        "KOSPI": "^KS11",
        "KOSDAQ": "^KQ11",
        "SPX": "^GSPC",
        "S&P500": "^GSPC",
        "DJI": "^DJI",
        "DJIA": "^DJI",
        "NASDAQ": "^IXIC",
    },
    SourceName.NAVER: {
        "KOSPI": "KOSPI",
        "KOSDAQ": "KOSDAQ",
        "KPI200": "KPI200",
        "KOSPI200": "KPI200",
    },
}


class PriceSourceRouter:
    """Select the price source for a ticker and format its symbol."""

    def __init__(
        self,
        sources: Mapping[SourceName, PriceSource],
        *,
        default: SourceName = DEFAULT_SOURCE,
    ) -> None:
        if default not in sources:
            raise SourceConfigurationError(f"Default source {default} is not registered.")
        self._sources: Dict[SourceName, PriceSource] = dict(sources)
        self._default = default

    @classmethod
    def from_config(
        cls,
        config: "DashboardConfig",
        *,
        client: httpx.AsyncClient | None = None,
        clock: AppClock = app_clock,
    ) -> "PriceSourceRouter":
        """Build the three sources with the configured retry and rate settings."""

        options: dict[str, Any] = {"client": client, "clock": clock, **config.source_options()}
        return cls(
            {
                SourceName.GOOGLE: GoogleFinanceSource(
                    rate_limit_per_sec=config.google_rate_limit, **options
                ),
                SourceName.YAHOO: YahooFinanceSource(
                    rate_limit_per_sec=config.yahoo_rate_limit, **options
                ),
                SourceName.NAVER: NaverFinanceSource(
                    rate_limit_per_sec=config.naver_rate_limit,
                    max_history_pages=config.max_history_pages,
                    **options,
                ),
            }
        )

    def resolve_name(self, source: Any) -> SourceName:
        """Map a configured source string to a registered source.

        Unknown names never raise; they are logged and replaced with the
        default source.
        """

        name = SourceName.parse(source)
        if name is None or name not in self._sources:
            LOGGER.warning("Unknown price source %r; falling back to %s", source, self._default)
            return self._default
        return name

    def route(self, source: Any) -> PriceSource:
        return self._sources[self.resolve_name(source)]

    def normalize_symbol(self, symbol: str, source: Any) -> str:
        """Rewrite ``symbol`` to the conventions of ``source``."""

        name = self.resolve_name(source)
        token = (symbol or "").strip()
        alias = INDEX_ALIASES.get(name, {}).get(token.upper())
        if alias:
            return alias
        if _DOMESTIC_CODE.match(token):
            if name is SourceName.GOOGLE:
                return f"KRX:{token}"
            if name is SourceName.YAHOO:
                return f"{token}.KS"
            return token
        if name is SourceName.NAVER:
            upper = token.upper()
            for suffix in (".KS", ".KQ"):
                if upper.endswith(suffix) and _DOMESTIC_CODE.match(token[: -len(suffix)]):
                    return token[: -len(suffix)]
            if upper.startswith("KRX:") and _DOMESTIC_CODE.match(token[4:]):
                return token[4:]
        return token

    async def aclose(self) -> None:
        for source in self._sources.values():
            await source.aclose()

    async def __aenter__(self) -> "PriceSourceRouter":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = ["DEFAULT_SOURCE", "INDEX_ALIASES", "PriceSourceRouter"]
