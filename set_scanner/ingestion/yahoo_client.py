"""
Yahoo Finance quote source for SET-listed symbols.

Endpoints (no credentials):
  Daily chart (quote + close history):
    GET {base_url}/v8/finance/chart/{SYMBOL}.BK?interval=1d&range=3mo
  Fundamentals (dividend yield):
    GET {base_url}/v10/finance/quoteSummary/{SYMBOL}.BK?modules=summaryDetail

Chart parsing:
  price          = meta.regularMarketPrice, else the last close
  previous_close = meta.previousClose, else meta.chartPreviousClose, else the
                   prior close, else price
  change_percent = (price − previous_close) / previous_close × 100 (0 when
                   previous_close is 0)
  avg_volume     = mean of the last 20 session volumes (missing volumes
                   count as 0)
  closes         = non-null closes, oldest → newest
  indicators     = ``indicators_from_history(closes)``

Fan-out:
  ``fetch_quotes`` runs one request per symbol under an ``asyncio.Semaphore``
  (``max_concurrency``). Transport errors, 429 and 5xx responses are retried
  with exponential backoff; any symbol that still fails is logged at
  WARNING and dropped from the batch. Cancellation is never swallowed.

Fixture mode:
  ``YahooQuoteClient.get_fixture_quotes()`` returns canned quotes for
  offline runs (``set-scanner scan --fixture``) and tests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, ClassVar, Iterable, Optional

import httpx

from set_scanner.config import QuoteSourceConfig
from set_scanner.exceptions import QuoteFetchError
from set_scanner.indicators.technical import indicators_from_history
from set_scanner.models.quote import Quote

logger = logging.getLogger(__name__)

AVG_VOLUME_WINDOW = 20
_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


# ── Parsing ───────────────────────────────────────────────────────────────────

def parse_chart(symbol: str, payload: dict[str, Any]) -> Quote:
    """Build a ``Quote`` from a v8 chart response.

    Raises:
        QuoteFetchError: When the payload holds no chart result or no price.
    """
    chart = payload.get("chart") or {}
    results = chart.get("result") or []
    if not results:
        error = chart.get("error") or {}
        raise QuoteFetchError(symbol, error.get("description") or "empty chart result")

    result = results[0]
    meta = result.get("meta") or {}
    quote_block = ((result.get("indicators") or {}).get("quote") or [{}])[0]

    raw_closes = quote_block.get("close") or []
    volumes = quote_block.get("volume") or []
    closes = tuple(float(c) for c in raw_closes if c is not None)

    price = meta.get("regularMarketPrice") or _last(raw_closes) or 0.0
    if not price:
        raise QuoteFetchError(symbol, "no price in chart response")

    previous_close = (
        meta.get("previousClose")
        or meta.get("chartPreviousClose")
        or _last(raw_closes, offset=2)
        or price
    )
    change_percent = (
        (price - previous_close) / previous_close * 100.0 if previous_close > 0 else 0.0
    )

    window = volumes[-AVG_VOLUME_WINDOW:]
    avg_volume = sum(v or 0 for v in window) / len(window) if window else 0.0

    return Quote(
        symbol=symbol,
        name=meta.get("shortName") or meta.get("longName") or symbol,
        price=float(price),
        high=float(_last(quote_block.get("high") or [], strict=True) or meta.get("regularMarketDayHigh") or 0.0),
        low=float(_last(quote_block.get("low") or [], strict=True) or meta.get("regularMarketDayLow") or 0.0),
        open=float(_last(quote_block.get("open") or [], strict=True) or meta.get("regularMarketOpen") or 0.0),
        previous_close=float(previous_close),
        change_percent=change_percent,
        volume=float(_last(volumes, strict=True) or 0.0),
        avg_volume=round(avg_volume),
        closes=closes,
        indicators=indicators_from_history(closes),
    )


def parse_dividend_yield(payload: dict[str, Any]) -> Optional[float]:
    """Dividend yield in percent from a quoteSummary response, or ``None``.

    Prefers ``dividendYield``, falls back to ``trailingAnnualDividendYield``.
    Yahoo reports a fraction (0.05); the result is a percent (5.0).
    """
    results = (payload.get("quoteSummary") or {}).get("result") or []
    if not results:
        return None
    summary = results[0].get("summaryDetail")
    if not summary:
        return None
    for key in ("dividendYield", "trailingAnnualDividendYield"):
        raw = (summary.get(key) or {}).get("raw")
        if raw:
            return round(float(raw) * 100.0, 4)
    return 0.0


def _last(values: list, offset: int = 1, strict: bool = False) -> Optional[float]:
    """Value ``offset`` places from the end.

    With ``strict`` only the exact position is considered; otherwise the
    search walks back past trailing nulls (Yahoo leaves the live session's
    close null until the bar completes).
    """
    if strict:
        return values[-offset] if len(values) >= offset else None
    present = [v for v in values if v is not None]
    return present[-offset] if len(present) >= offset else None


# ── Client ─────────────────────────────────────────────────────────────────────

class YahooQuoteClient:
    """Async Yahoo Finance client.

    Usage::

        async with YahooQuoteClient(config.quote_source) as client:
            quotes = await client.fetch_quotes(["PTT", "AOT"])

    Pass ``client=`` to share an ``httpx.AsyncClient`` (tests pass one built
    on ``httpx.MockTransport``); a shared client is not closed on exit.
    """

    FIXTURE_QUOTES: ClassVar[list[dict[str, Any]]] = [
        {
            "symbol": "PTT", "name": "PTT PCL", "price": 35.25,
            "previous_close": 34.50, "high": 35.50, "low": 34.50, "open": 34.50,
            "volume": 62_000_000, "avg_volume": 31_000_000, "dividend_yield": 5.8,
        },
        {
            "symbol": "AOT", "name": "Airports of Thailand", "price": 64.75,
            "previous_close": 63.50, "high": 65.00, "low": 63.75, "open": 63.75,
            "volume": 28_500_000, "avg_volume": 17_000_000, "dividend_yield": 1.1,
        },
        {
            "symbol": "CPALL", "name": "CP All", "price": 58.00,
            "previous_close": 58.25, "high": 58.50, "low": 57.75, "open": 58.25,
            "volume": 9_800_000, "avg_volume": 14_000_000, "dividend_yield": 2.4,
        },
        {
            "symbol": "KBANK", "name": "Kasikornbank", "price": 132.50,
            "previous_close": 130.00, "high": 133.00, "low": 130.00, "open": 130.50,
            "volume": 8_200_000, "avg_volume": 5_100_000, "dividend_yield": 4.5,
        },
        {
            "symbol": "DELTA", "name": "Delta Electronics", "price": 118.00,
            "previous_close": 111.00, "high": 119.00, "low": 110.50, "open": 111.50,
            "volume": 15_000_000, "avg_volume": 6_000_000, "dividend_yield": 0.4,
        },
        {
            "symbol": "BDMS", "name": "Bangkok Dusit Medical", "price": 26.75,
            "previous_close": 26.75, "high": 26.75, "low": 26.75, "open": 26.75,
            "volume": 4_000_000, "avg_volume": 9_000_000, "dividend_yield": 2.9,
        },
    ]

    def __init__(
        self,
        config: QuoteSourceConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "YahooQuoteClient":
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.timeout_seconds,
            )
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Quotes ────────────────────────────────────────────────────────────────

    async def fetch_quote(self, symbol: str) -> Quote:
        """Fetch one symbol's chart and parse it.

        Raises:
            QuoteFetchError: On HTTP failure (after retries) or an unusable payload.
        """
        symbol = symbol.strip().upper()
        payload = await self._get_json(
            f"/v8/finance/chart/{self._yahoo_symbol(symbol)}",
            params={"interval": "1d", "range": self.config.history_range},
            symbol=symbol,
        )
        try:
            return parse_chart(symbol, payload)
        except (TypeError, ValueError, IndexError, AttributeError) as exc:
            raise QuoteFetchError(symbol, f"malformed chart payload: {exc}") from exc

    async def fetch_quotes(self, symbols: Iterable[str]) -> list[Quote]:
        """Fetch every symbol concurrently; failed symbols are dropped.

        Returns:
            Quotes in the order of ``symbols`` (minus failures).
        """
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def _one(sym: str) -> Optional[Quote]:
            async with semaphore:
                try:
                    return await self.fetch_quote(sym)
                except QuoteFetchError as exc:
                    logger.warning(
                        "Dropping %s: %s", exc.symbol, exc.reason, extra={"symbol": exc.symbol}
                    )
                    return None

        symbols = list(symbols)
        results = await asyncio.gather(*(_one(s) for s in symbols))
        quotes = [q for q in results if q is not None]
        logger.info("Fetched %d/%d quotes.", len(quotes), len(symbols))
        return quotes

    # ── Fundamentals ──────────────────────────────────────────────────────────

    async def fetch_dividend_yield(self, symbol: str) -> Optional[float]:
        symbol = symbol.strip().upper()
        payload = await self._get_json(
            f"/v10/finance/quoteSummary/{self._yahoo_symbol(symbol)}",
            params={"modules": "summaryDetail"},
            symbol=symbol,
        )
        try:
            return parse_dividend_yield(payload)
        except (TypeError, ValueError, AttributeError) as exc:
            raise QuoteFetchError(symbol, f"malformed quoteSummary payload: {exc}") from exc

    async def fetch_dividend_yields(self, symbols: Iterable[str]) -> dict[str, float]:
        """Dividend yields for every symbol that reported one."""
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def _one(sym: str) -> tuple[str, Optional[float]]:
            async with semaphore:
                try:
                    return sym, await self.fetch_dividend_yield(sym)
                except QuoteFetchError as exc:
                    logger.warning(
                        "No fundamentals for %s: %s", exc.symbol, exc.reason,
                        extra={"symbol": exc.symbol},
                    )
                    return sym, None

        pairs = await asyncio.gather(*(_one(s.strip().upper()) for s in symbols))
        return {sym: value for sym, value in pairs if value is not None}

    # ── Fixtures ──────────────────────────────────────────────────────────────

    @classmethod
    def get_fixture_quotes(cls, symbols: Optional[Iterable[str]] = None) -> list[Quote]:
        """Canned snapshot quotes (no history, so indicators are estimated)."""
        wanted = {s.strip().upper() for s in symbols} if symbols is not None else None
        quotes: list[Quote] = []
        for row in cls.FIXTURE_QUOTES:
            if wanted is not None and row["symbol"] not in wanted:
                continue
            prev = row["previous_close"]
            quotes.append(
                Quote(
                    **row,
                    change_percent=(row["price"] - prev) / prev * 100.0 if prev else 0.0,
                )
            )
        logger.info("Loaded %d fixture quotes.", len(quotes))
        return quotes

    # ── HTTP ──────────────────────────────────────────────────────────────────

    def _yahoo_symbol(self, symbol: str) -> str:
        return symbol if "." in symbol else f"{symbol}{self.config.symbol_suffix}"

    async def _get_json(
        self, path: str, params: dict[str, str], symbol: str
    ) -> dict[str, Any]:
        if self._client is None:
            raise RuntimeError("YahooQuoteClient must be used as an async context manager.")

        attempts = self.config.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                resp = await self._client.get(path, params=params)
            except httpx.TransportError as exc:
                reason = f"{type(exc).__name__}: {exc}"
            else:
                if resp.status_code == 200:
                    try:
                        return resp.json()
                    except ValueError as exc:
                        raise QuoteFetchError(symbol, f"invalid JSON: {exc}") from exc
                reason = f"HTTP {resp.status_code}"
                if resp.status_code not in _RETRYABLE_STATUS:
                    raise QuoteFetchError(symbol, reason)

            if attempt < attempts:
                delay = self.config.retry_backoff_seconds * (2 ** (attempt - 1))
                logger.debug("%s: %s; retry %d/%d in %.2fs", symbol, reason, attempt, attempts - 1, delay)
                await asyncio.sleep(delay)

        raise QuoteFetchError(symbol, f"{reason} after {attempts} attempt(s)")


class FixtureQuoteSource:
    """Offline quote source serving ``YahooQuoteClient.FIXTURE_QUOTES``.

    Symbols without a fixture row are skipped, as a failed fetch would be.
    An empty selection falls back to every fixture row.
    """

    async def __aenter__(self) -> "FixtureQuoteSource":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def fetch_quotes(self, symbols: Iterable[str]) -> list[Quote]:
        quotes = YahooQuoteClient.get_fixture_quotes(symbols)
        return quotes or YahooQuoteClient.get_fixture_quotes()
