"""Top-level application orchestration for the performance dashboard."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

from perf_dashboard.core import (
    DashboardConfig,
    ProgressEvent,
    Ticker,
    TickerReport,
    app_clock,
    build_config,
    load_environment,
    load_tickers,
    parse_reference_date,
)
from perf_dashboard.core.aggregator import PriceAggregator
from perf_dashboard.core.audit import reports_to_frame, write_audit_csv
from perf_dashboard.core.calendar import MarketCalendar
from perf_dashboard.core.clock import AppClock
from perf_dashboard.core.dashboard import DashboardService, ProgressCallback
from perf_dashboard.providers.router import PriceSourceRouter

LOGGER = logging.getLogger(__name__)

RouterFactory = Callable[[DashboardConfig], PriceSourceRouter]


@dataclass(slots=True)
class RunResult:
    """Wrapper used by the application to provide consistent responses."""

    status: str
    payload: dict[str, Any]


class DashboardApplication:
    """Coordinate configuration, price sources and report generation."""

    def __init__(
        self,
        config: DashboardConfig,
        *,
        router_factory: RouterFactory | None = None,
        clock: AppClock = app_clock,
    ) -> None:
        self.config = config
        self.clock = clock
        self.calendar = MarketCalendar(clock=clock)
        self._router_factory = router_factory or (
            lambda cfg: PriceSourceRouter.from_config(cfg, clock=clock)
        )

    @classmethod
    def from_environment(cls, **overrides: Any) -> "DashboardApplication":
        """Create an application instance using environment variables and overrides."""

        load_environment()
        config = build_config(**overrides)
        LOGGER.debug("Initialised configuration with tickers from %s", config.tickers_path)
        return cls(config)

    # ------------------------------------------------------------------
    # High level orchestration helpers
    # ------------------------------------------------------------------
    def load_tickers(self, path: str | Path | None = None) -> list[Ticker]:
        return load_tickers(path or self.config.tickers_path)

    async def refresh(
        self,
        tickers: Sequence[Ticker],
        reference: Any = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> list[TickerReport]:
        """Resolve every ticker against ``reference`` (or the configured date)."""

        reference = reference if reference is not None else self.config.reference_date
        router = self._router_factory(self.config)
        async with router:
            aggregator = PriceAggregator(
                router,
                calendar=self.calendar,
                clock=self.clock,
                adjust_for_business_day=self.config.adjust_for_business_day,
            )
            service = DashboardService(
                aggregator,
                max_concurrency=self.config.max_concurrency,
                clock=self.clock,
            )
            return await service.run(tickers, reference, progress=progress)

    def build_report(
        self,
        reference: Any = None,
        *,
        tickers: Sequence[Ticker] | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[TickerReport]:
        selected = list(tickers) if tickers is not None else self.load_tickers()
        return asyncio.run(self.refresh(selected, reference, progress=progress))

    # ------------------------------------------------------------------
    # Mode handlers
    # ------------------------------------------------------------------
    def _reference_payload(self, reference: Any) -> dict[str, Any]:
        resolved = parse_reference_date(
            reference if reference is not None else self.config.reference_date, self.clock
        )
        return {"reference_date": resolved.isoformat()}

    def _report(self, **kwargs: Any) -> RunResult:
        reference = kwargs.get("reference")
        reports = self.build_report(
            reference, tickers=kwargs.get("tickers"), progress=kwargs.get("progress")
        )
        payload = self._reference_payload(reference)
        payload["tickers"] = [report.as_payload() for report in reports]
        return RunResult(status=_status_for(reports), payload=payload)

    def _returns(self, **kwargs: Any) -> RunResult:
        reference = kwargs.get("reference")
        reports = self.build_report(
            reference, tickers=kwargs.get("tickers"), progress=kwargs.get("progress")
        )
        frame = reports_to_frame(reports)
        payload = self._reference_payload(reference)
        payload["rows"] = frame.to_dict(orient="records")
        return RunResult(status=_status_for(reports), payload=payload)

    def _audit(self, **kwargs: Any) -> RunResult:
        reference = kwargs.get("reference")
        reports = self.build_report(
            reference, tickers=kwargs.get("tickers"), progress=kwargs.get("progress")
        )
        path = write_audit_csv(
            (report.audit for report in reports),
            kwargs.get("audit_path") or self.config.audit_path,
        )
        payload = self._reference_payload(reference)
        payload.update(
            {
                "audit_path": str(path),
                "rows": len(reports),
                "estimated": sum(1 for report in reports if report.is_estimated),
            }
        )
        return RunResult(status=_status_for(reports), payload=payload)

    def run(self, mode: str = "report", **kwargs: Any) -> RunResult:
        handlers = {
            "report": self._report,
            "returns": self._returns,
            "audit": self._audit,
        }
        if mode not in handlers:
            raise ValueError(f"Unknown mode: {mode}")
        LOGGER.info("Running dashboard mode %s", mode)
        return handlers[mode](**kwargs)


def _status_for(reports: Sequence[TickerReport]) -> str:
    if reports and all(report.status != "ok" for report in reports):
        return "error"
    if any(report.status != "ok" for report in reports):
        return "partial"
    return "ok"


def log_progress(event: ProgressEvent) -> None:
    """Progress callback that reports through the module logger."""

    LOGGER.info(
        "[%s/%s] %s %s (%.0f%%)",
        event.completed,
        event.total,
        event.symbol,
        event.status,
        event.fraction * 100,
    )


__all__ = ["DashboardApplication", "RunResult", "log_progress"]
