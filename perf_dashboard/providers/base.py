"""Asynchronous price source interface, retries and fallback chains."""

from __future__ import annotations

import abc
import asyncio
import logging
import random
import time
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Mapping, Sequence

import httpx

from ..core.clock import AppClock, app_clock
from ..core.models import PriceQuote, SourceName

LOGGER = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})
DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class PriceSourceError(RuntimeError):
    """Transport or payload failure raised at the price source boundary."""


class SourceConfigurationError(PriceSourceError):
    """Raised when a source is constructed or routed with unsupported values."""


class SourceCooldownError(PriceSourceError):
    """Raised when an upstream keeps rate limiting after every retry."""

    def __init__(
        self,
        source: str,
        symbol: str,
        retry_after: float,
        attempts: int,
        message: str | None = None,
    ) -> None:
        detail = message or f"{source} rate limited requests for {symbol}."
        super().__init__(detail)
        self.source = source
        self.symbol = symbol
        self.retry_after = retry_after
        self.attempts = attempts


class _AsyncRateLimiter:
    """Simple coroutine based rate limiter."""

    def __init__(self, rate_per_sec: float) -> None:
        self._interval = 1.0 / rate_per_sec if rate_per_sec > 0 else 0.0
        self._lock = asyncio.Lock()
        self._last_call = 0.0

    async def acquire(self) -> None:
        if self._interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            wait_for = self._interval - (now - self._last_call)
            if wait_for > 0:
                await asyncio.sleep(wait_for)
            self._last_call = time.monotonic()


@dataclass(slots=True)
class StrategyOutcome:
    """Uniform result of one fallback step: a quote, an error, or neither."""

    name: str
    quote: PriceQuote | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.quote is not None and self.quote.is_valid


@dataclass(frozen=True, slots=True)
class Strategy:
    """Named fallback step producing a quote (or ``None`` when nothing matched)."""

    name: str
    call: Callable[[], Awaitable[PriceQuote | None]]

    async def attempt(self) -> StrategyOutcome:
        try:
            quote = await self.call()
        except PriceSourceError as exc:
            return StrategyOutcome(self.name, error=exc)
        except (
            AttributeError,
            KeyError,
            IndexError,
            TypeError,
            ValueError,
            OverflowError,
            OSError,
        ) as exc:
            return StrategyOutcome(
                self.name, error=PriceSourceError(f"malformed payload: {exc}")
            )
        return StrategyOutcome(self.name, quote=quote)


async def run_chain(
    strategies: Sequence[Strategy],
    *,
    label: str,
    target: date | None = None,
) -> PriceQuote:
    """Try ``strategies`` in order and return the first valid quote.

    When nothing matched, a ``NO_DATA`` quote is returned, unless every step
    failed with an error, in which case the last error is raised as a
    :class:`PriceSourceError`.
    """

    outcomes: list[StrategyOutcome] = []
    for strategy in strategies:
        outcome = await strategy.attempt()
        outcomes.append(outcome)
        if outcome.ok:
            quote = outcome.quote
            assert quote is not None
            if not quote.method:
                quote = replace(quote, method=strategy.name)
            if quote.source_date is None and target is not None:
                quote = replace(quote, source_date=target)
            LOGGER.debug("%s resolved via %s: %s", label, quote.method, quote.value)
            return quote
        if outcome.error is not None:
            LOGGER.debug("%s step %s failed: %s", label, strategy.name, outcome.error)
        else:
            LOGGER.debug("%s step %s found nothing", label, strategy.name)

    errors = [outcome.error for outcome in outcomes if outcome.error is not None]
    attempted = ", ".join(outcome.name for outcome in outcomes)
    if outcomes and len(errors) == len(outcomes):
        raise PriceSourceError(
            f"{label}: every fallback failed ({attempted}): {errors[-1]}"
        ) from errors[-1]
    return PriceQuote.no_data(target, method="none", note=f"tried {attempted}")


class LazyFetch:
    """Await an upstream fetch at most once and replay its outcome.

    Several fallback steps usually read the same payload; this keeps them
    from issuing the request again while still surfacing its error to each.
    """

    def __init__(self, factory: Callable[[], Awaitable[Any]]) -> None:
        self._factory = factory
        self._done = False
        self._value: Any = None
        self._error: Exception | None = None

    async def __call__(self) -> Any:
        if not self._done:
            try:
                self._value = await self._factory()
            except Exception as exc:  # pylint: disable=broad-except
                self._error = exc
            self._done = True
        if self._error is not None:
            raise self._error
        return self._value


class PriceSource(abc.ABC):
    """Base class for asynchronous price sources with defensive retries."""

    name: SourceName

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        clock: AppClock = app_clock,
        rate_limit_per_sec: float = 5.0,
        retries: int = 3,
        backoff_factor: float = 0.5,
        max_retry_wait: float = 30.0,
        jitter: float = 0.3,
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._client_owner = client is None
        self._clock = clock
        self._rate_limiter = _AsyncRateLimiter(rate_limit_per_sec)
        self._retries = max(1, retries)
        self._backoff_factor = max(0.0, backoff_factor)
        self._max_retry_wait = float(max(0.0, max_retry_wait))
        self._jitter = float(max(0.0, jitter))
        self._timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    def today(self) -> date:
        return self._clock.today()

    @abc.abstractmethod
    async def current_price(self, symbol: str) -> PriceQuote:
        """Latest available price for ``symbol``."""

    @abc.abstractmethod
    async def price_near(self, symbol: str, target: date) -> PriceQuote:
        """Price on ``target`` or the closest acceptable trading day."""

    @abc.abstractmethod
    async def high_52w(self, symbol: str) -> PriceQuote:
        """Highest price over the trailing 52 weeks."""

    async def _request(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        symbol: str = "",
    ) -> httpx.Response:
        attempt_errors: list[str] = []
        last_error: Exception | None = None

        for attempt in range(1, self._retries + 1):
            await self._rate_limiter.acquire()
            wait = 0.0
            try:
                response = await self.client.get(url, params=params, headers=headers)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                last_error = exc
                status = exc.response.status_code
                attempt_errors.append(f"HTTP {status}")
                if status not in RETRYABLE_STATUS:
                    raise PriceSourceError(
                        f"{self.name} returned HTTP {status} for {url}"
                    ) from exc
                retry_after_hint = self._retry_after_header(exc.response)
                wait = self._retry_delay(attempt, retry_after=retry_after_hint)
                if status == 429 and attempt >= self._retries:
                    LOGGER.warning(
                        "Source %s hit rate limits for %s after %s attempts",
                        self.name,
                        symbol or url,
                        attempt,
                    )
                    raise SourceCooldownError(
                        str(self.name), symbol or url, wait, attempt, str(exc)
                    ) from exc
            except httpx.HTTPError as exc:
                last_error = exc
                attempt_errors.append(f"{type(exc).__name__}: {exc}")
                wait = self._retry_delay(attempt)

            if attempt >= self._retries:
                break

            if wait > 0:
                LOGGER.debug(
                    "Source %s retrying %s (%s/%s) in %.2fs because %s",
                    self.name,
                    symbol or url,
                    attempt,
                    self._retries,
                    wait,
                    attempt_errors[-1],
                )
                await asyncio.sleep(wait)

        LOGGER.warning(
            "Source %s exhausted retries for %s: %s",
            self.name,
            symbol or url,
            "; ".join(attempt_errors) or str(last_error),
        )
        raise PriceSourceError(str(last_error)) from last_error

    async def _get_text(self, url: str, **kwargs: Any) -> str:
        response = await self._request(url, **kwargs)
        return response.text

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self._request(url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise PriceSourceError(f"{self.name} returned malformed JSON for {url}") from exc

    async def aclose(self) -> None:
        if self._client_owner and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "PriceSource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _retry_delay(self, attempt: int, *, retry_after: float | None = None) -> float:
        base_delay = self._backoff_factor * (2 ** (attempt - 1))
        if retry_after is not None:
            base_delay = max(base_delay, retry_after)
        jitter = random.uniform(0.0, self._jitter * base_delay) if base_delay > 0 else 0.0
        total_delay = base_delay + jitter
        if retry_after is not None:
            return total_delay
        return min(self._max_retry_wait, total_delay)

    @staticmethod
    def _retry_after_header(response: httpx.Response) -> float | None:
        header = response.headers.get("Retry-After")
        if not header:
            return None
        try:
            return float(header)
        except ValueError:
            try:
                retry_time = parsedate_to_datetime(header)
            except (TypeError, ValueError):
                return None
            if retry_time is None:
                return None
            return max(
                0.0,
                (retry_time - datetime.now(timezone.utc)).total_seconds(),
            )


def parse_float(value: Any) -> float | None:
    """Best-effort numeric conversion that tolerates thousands separators."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


__all__ = [
    "LazyFetch",
    "PriceSource",
    "PriceSourceError",
    "SourceConfigurationError",
    "SourceCooldownError",
    "Strategy",
    "StrategyOutcome",
    "parse_float",
    "run_chain",
]
