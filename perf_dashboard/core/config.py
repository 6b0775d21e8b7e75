"""Configuration utilities for the performance dashboard."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_TICKERS_PATH = PROJECT_ROOT / "tickers.csv"
DEFAULT_AUDIT_PATH = PROJECT_ROOT / "audit.csv"

DEFAULT_MAX_CONCURRENCY = 4
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5
DEFAULT_MAX_RETRY_WAIT = 30.0
# Conservative per-source throttles; the scraped sources tolerate less.
DEFAULT_YAHOO_RATE_LIMIT = 2.0
DEFAULT_GOOGLE_RATE_LIMIT = 1.0
DEFAULT_NAVER_RATE_LIMIT = 2.0
DEFAULT_MAX_HISTORY_PAGES = 30

_ENV_PREFIX = "PERF_DASHBOARD_"


class ConfigurationError(ValueError):
    """Raised when configuration values cannot be used."""


@dataclass
class DashboardConfig:
    """Runtime configuration for :class:`DashboardApplication`."""

    tickers_path: Path = DEFAULT_TICKERS_PATH
    audit_path: Path = DEFAULT_AUDIT_PATH
    reference_date: Optional[str] = None
    adjust_for_business_day: bool = False
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    retries: int = DEFAULT_RETRIES
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    max_retry_wait: float = DEFAULT_MAX_RETRY_WAIT
    yahoo_rate_limit: float = DEFAULT_YAHOO_RATE_LIMIT
    google_rate_limit: float = DEFAULT_GOOGLE_RATE_LIMIT
    naver_rate_limit: float = DEFAULT_NAVER_RATE_LIMIT
    max_history_pages: int = DEFAULT_MAX_HISTORY_PAGES

    def __post_init__(self) -> None:
        self.tickers_path = Path(self.tickers_path).expanduser()
        self.audit_path = Path(self.audit_path).expanduser()
        if self.reference_date is not None:
            self.reference_date = str(self.reference_date).strip() or None
        self.adjust_for_business_day = _coerce_bool(
            self.adjust_for_business_day, default=False
        )
        self.max_concurrency = int(self.max_concurrency)
        if self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1.")
        self.request_timeout = float(self.request_timeout)
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive.")
        self.retries = max(1, int(self.retries))
        self.backoff_factor = max(0.0, float(self.backoff_factor))
        self.max_retry_wait = max(0.0, float(self.max_retry_wait))
        for name in ("yahoo_rate_limit", "google_rate_limit", "naver_rate_limit"):
            value = float(getattr(self, name))
            if value < 0:
                raise ConfigurationError(f"{name} must not be negative.")
            setattr(self, name, value)
        self.max_history_pages = int(self.max_history_pages)
        if self.max_history_pages < 1:
            raise ConfigurationError("max_history_pages must be at least 1.")

    def source_options(self) -> dict[str, Any]:
        """Keyword arguments shared by every price source."""

        return {
            "timeout": self.request_timeout,
            "retries": self.retries,
            "backoff_factor": self.backoff_factor,
            "max_retry_wait": self.max_retry_wait,
        }


def load_environment() -> None:
    """Load configuration from an optional ``.env`` file."""

    load_dotenv()


def build_config(
    tickers_path: Optional[str | Path] = None,
    audit_path: Optional[str | Path] = None,
    reference_date: Optional[str] = None,
    adjust_for_business_day: Optional[bool] = None,
    max_concurrency: Optional[int] = None,
    request_timeout: Optional[float] = None,
    retries: Optional[int] = None,
    backoff_factor: Optional[float] = None,
    max_retry_wait: Optional[float] = None,
    yahoo_rate_limit: Optional[float] = None,
    google_rate_limit: Optional[float] = None,
    naver_rate_limit: Optional[float] = None,
    max_history_pages: Optional[int] = None,
) -> DashboardConfig:
    """Build a :class:`DashboardConfig` from overrides and the environment."""

    load_environment()

    return DashboardConfig(
        tickers_path=tickers_path or _env("TICKERS_PATH") or DEFAULT_TICKERS_PATH,
        audit_path=audit_path or _env("AUDIT_PATH") or DEFAULT_AUDIT_PATH,
        reference_date=reference_date or _env("REFERENCE_DATE"),
        adjust_for_business_day=_coerce_bool(
            adjust_for_business_day
            if adjust_for_business_day is not None
            else _env("ADJUST_FOR_BUSINESS_DAY"),
            default=False,
        ),
        max_concurrency=_coerce_int(
            max_concurrency, "MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY
        ),
        request_timeout=_coerce_float(
            request_timeout, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT
        ),
        retries=_coerce_int(retries, "RETRIES", DEFAULT_RETRIES),
        backoff_factor=_coerce_float(
            backoff_factor, "BACKOFF_FACTOR", DEFAULT_BACKOFF_FACTOR
        ),
        max_retry_wait=_coerce_float(
            max_retry_wait, "MAX_RETRY_WAIT", DEFAULT_MAX_RETRY_WAIT
        ),
        yahoo_rate_limit=_coerce_float(
            yahoo_rate_limit, "YAHOO_RATE_LIMIT", DEFAULT_YAHOO_RATE_LIMIT
        ),
        google_rate_limit=_coerce_float(
            google_rate_limit, "GOOGLE_RATE_LIMIT", DEFAULT_GOOGLE_RATE_LIMIT
        ),
        naver_rate_limit=_coerce_float(
            naver_rate_limit, "NAVER_RATE_LIMIT", DEFAULT_NAVER_RATE_LIMIT
        ),
        max_history_pages=_coerce_int(
            max_history_pages, "MAX_HISTORY_PAGES", DEFAULT_MAX_HISTORY_PAGES
        ),
    )


def _env(name: str) -> Optional[str]:
    value = os.getenv(f"{_ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _coerce_int(value: Optional[object], env_name: str, default: int) -> int:
    candidate = value if value is not None else _env(env_name)
    if candidate is None:
        return default
    try:
        return int(candidate)
    except (TypeError, ValueError):
        return default


def _coerce_float(value: Optional[object], env_name: str, default: float) -> float:
    candidate = value if value is not None else _env(env_name)
    if candidate is None:
        return default
    try:
        return float(candidate)
    except (TypeError, ValueError):
        return default


def _coerce_bool(value: Optional[object], *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "y", "on"}:
            return True
        if normalized in {"false", "0", "no", "n", "off"}:
            return False
    return bool(value)


__all__ = [
    "ConfigurationError",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_MAX_HISTORY_PAGES",
    "DashboardConfig",
    "build_config",
    "load_environment",
]
