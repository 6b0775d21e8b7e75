"""Tests for the shared retry loop and the fallback chain runner."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from pathlib import Path
import sys
from typing import Any

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from perf_dashboard.core.models import PriceQuote, Sentinel
from perf_dashboard.providers.base import (
    LazyFetch,
    PriceSource,
    PriceSourceError,
    SourceCooldownError,
    Strategy,
    run_chain,
)


class _StubSource(PriceSource):
    name = "stub"

    async def current_price(self, symbol: str) -> PriceQuote:  # pragma: no cover
        raise NotImplementedError

    async def price_near(self, symbol: str, target: date) -> PriceQuote:  # pragma: no cover
        raise NotImplementedError

    async def high_52w(self, symbol: str) -> PriceQuote:  # pragma: no cover
        raise NotImplementedError


class _SequenceClient:
    """Async client replaying a fixed list of status codes."""

    def __init__(self, statuses: list[int], body: str = "{}") -> None:
        self._statuses = list(statuses)
        self._body = body
        self.calls = 0

    async def get(self, url: str, *_: Any, **__: Any) -> httpx.Response:
        self.calls += 1
        status = self._statuses.pop(0) if self._statuses else 200
        return httpx.Response(status, text=self._body, request=httpx.Request("GET", url))

    async def aclose(self) -> None:  # pragma: no cover - interface parity
        return None


def _source(client: _SequenceClient, retries: int = 3) -> _StubSource:
    return _StubSource(
        client=client,  # type: ignore[arg-type]
        retries=retries,
        backoff_factor=0.0,
        jitter=0.0,
        rate_limit_per_sec=0,
    )


def _fixed(value: Any) -> Strategy:
    async def _call() -> PriceQuote | None:
        return None if value is None else PriceQuote(value)

    return Strategy(f"fixed {value}", _call)


def _failing(message: str) -> Strategy:
    async def _call() -> PriceQuote | None:
        raise PriceSourceError(message)

    return Strategy(f"failing {message}", _call)


def test_run_chain_returns_first_valid_quote() -> None:
    """Later steps are never awaited once a valid quote is found."""

    calls: list[str] = []

    async def _tracked() -> PriceQuote | None:
        calls.append("tracked")
        return PriceQuote(5.0)

    async def _runner() -> None:
        quote = await run_chain(
            [_fixed(None), _failing("down"), _fixed(42.0), Strategy("tracked", _tracked)],
            label="test",
            target=date(2025, 1, 2),
        )
        assert quote.value == 42.0
        assert quote.method == "fixed 42.0"
        assert quote.source_date == date(2025, 1, 2)
        assert calls == []

    asyncio.run(_runner())


def test_run_chain_skips_non_positive_values() -> None:
    async def _runner() -> None:
        quote = await run_chain([_fixed(0.0), _fixed(7.5)], label="test")
        assert quote.value == 7.5

    asyncio.run(_runner())


def test_run_chain_returns_no_data_when_nothing_matched() -> None:
    """Empty results from every step yield NO_DATA rather than an error."""

    async def _runner() -> None:
        quote = await run_chain([_fixed(None), _failing("down")], label="test")
        assert quote.value is Sentinel.NO_DATA
        assert "fixed None" in quote.note

    asyncio.run(_runner())


def test_run_chain_raises_when_every_step_failed() -> None:
    async def _runner() -> None:
        with pytest.raises(PriceSourceError, match="every fallback failed"):
            await run_chain([_failing("a"), _failing("b")], label="test")

    asyncio.run(_runner())


def test_malformed_payload_is_a_step_error() -> None:
    """Parsing errors inside a step are reported as source errors."""

    async def _broken() -> PriceQuote | None:
        return {}["missing"]  # type: ignore[return-value]

    async def _runner() -> None:
        outcome = await Strategy("broken", _broken).attempt()
        assert isinstance(outcome.error, PriceSourceError)
        assert not outcome.ok

    asyncio.run(_runner())


def test_out_of_range_timestamp_stays_inside_its_step() -> None:
    async def _overflowing() -> PriceQuote | None:
        return PriceQuote(1.0, datetime.fromtimestamp(10**20, tz=timezone.utc).date())

    async def _runner() -> None:
        outcome = await Strategy("overflow", _overflowing).attempt()
        assert isinstance(outcome.error, PriceSourceError)
        quote = await run_chain(
            [Strategy("overflow", _overflowing), _fixed(12.5)], label="test"
        )
        assert quote.value == 12.5

    asyncio.run(_runner())


def test_lazy_fetch_awaits_factory_once() -> None:
    calls = 0

    async def _factory() -> str:
        nonlocal calls
        calls += 1
        return "payload"

    async def _runner() -> None:
        fetch = LazyFetch(_factory)
        assert await fetch() == "payload"
        assert await fetch() == "payload"

    asyncio.run(_runner())
    assert calls == 1


def test_lazy_fetch_replays_any_failure_without_refetching() -> None:
    calls = 0

    async def _factory() -> str:
        nonlocal calls
        calls += 1
        raise ValueError("unexpected payload shape")

    async def _runner() -> None:
        fetch = LazyFetch(_factory)
        for _ in range(3):
            with pytest.raises(ValueError, match="unexpected payload shape"):
                await fetch()

    asyncio.run(_runner())
    assert calls == 1


def test_request_retries_server_errors() -> None:
    client = _SequenceClient([503, 502, 200], body='{"ok": true}')

    async def _runner() -> None:
        payload = await _source(client)._get_json("https://example.com/data")
        assert payload == {"ok": True}

    asyncio.run(_runner())
    assert client.calls == 3


def test_request_does_not_retry_client_errors() -> None:
    client = _SequenceClient([404])

    async def _runner() -> None:
        with pytest.raises(PriceSourceError, match="HTTP 404"):
            await _source(client)._get_text("https://example.com/missing")

    asyncio.run(_runner())
    assert client.calls == 1


def test_persistent_rate_limit_raises_cooldown() -> None:
    client = _SequenceClient([429, 429])

    async def _runner() -> None:
        with pytest.raises(SourceCooldownError) as excinfo:
            await _source(client, retries=2)._get_text("https://example.com/quote", symbol="AAPL")
        assert excinfo.value.symbol == "AAPL"
        assert excinfo.value.attempts == 2

    asyncio.run(_runner())
    assert client.calls == 2


def test_transport_errors_exhaust_into_source_error() -> None:
    class _BrokenClient:
        calls = 0

        async def get(self, url: str, *_: Any, **__: Any) -> httpx.Response:
            _BrokenClient.calls += 1
            raise httpx.ConnectError("refused", request=httpx.Request("GET", url))

    async def _runner() -> None:
        source = _StubSource(
            client=_BrokenClient(),  # type: ignore[arg-type]
            retries=2,
            backoff_factor=0.0,
            jitter=0.0,
        )
        with pytest.raises(PriceSourceError, match="refused"):
            await source._get_text("https://example.com")

    asyncio.run(_runner())
    assert _BrokenClient.calls == 2


def test_malformed_json_raises_source_error() -> None:
    client = _SequenceClient([200], body="<html>not json</html>")

    async def _runner() -> None:
        with pytest.raises(PriceSourceError, match="malformed JSON"):
            await _source(client)._get_json("https://example.com/api")

    asyncio.run(_runner())
