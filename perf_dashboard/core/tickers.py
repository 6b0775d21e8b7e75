"""Load the ticker list from tabular configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd

from .config import ConfigurationError
from .models import SourceName, Ticker

LOGGER = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("name", "symbol", "source")


def _cell(row: Mapping[str, Any], key: str) -> str:
    value = row.get(key)
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def parse_ticker_rows(rows: Iterable[Mapping[str, Any]]) -> list[Ticker]:
    """Build tickers from ``{name, symbol, source}`` rows, skipping bad rows."""

    tickers: list[Ticker] = []
    for position, row in enumerate(rows, start=1):
        name = _cell(row, "name")
        symbol = _cell(row, "symbol")
        raw_source = _cell(row, "source")
        if not name and not symbol and not raw_source:
            continue
        if not name or not symbol or not raw_source:
            LOGGER.warning("Skipping ticker row %s with missing fields: %s", position, dict(row))
            continue
        source = SourceName.parse(raw_source)
        if source is None:
            LOGGER.warning(
                "Skipping ticker row %s (%s): unrecognised source %r",
                position,
                symbol,
                raw_source,
            )
            continue
        tickers.append(Ticker(name=name, symbol=symbol, source=source))
    return tickers


def load_tickers(path: str | Path) -> list[Ticker]:
    """Read a ``name,symbol,source`` CSV file into tickers."""

    csv_path = Path(path)
    if not csv_path.exists():
        raise ConfigurationError(f"Ticker file not found: {csv_path}")
    # Symbols such as 005930 must keep their leading zeros.
    frame = pd.read_csv(csv_path, dtype=str, keep_default_na=False, skipinitialspace=True)
    frame.columns = [str(column).strip().lower() for column in frame.columns]
    missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
    if missing:
        raise ConfigurationError(
            f"Ticker file {csv_path} is missing columns: {', '.join(missing)}"
        )
    tickers = parse_ticker_rows(frame.to_dict("records"))
    LOGGER.info("Loaded %s tickers from %s", len(tickers), csv_path)
    return tickers


__all__ = ["REQUIRED_COLUMNS", "load_tickers", "parse_ticker_rows"]
