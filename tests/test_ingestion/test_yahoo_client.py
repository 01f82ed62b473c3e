"""
Tests for set_scanner/ingestion/yahoo_client.py.

What we test
------------
parse_chart():
  - Price, previous close and change percent from the chart meta block.
  - Fallbacks: last close for price, prior close for previous close.
  - avg_volume is the mean of the last 20 volumes, nulls counted as 0.
  - Enough history → ComputedIndicators; short history → NeedsEstimate.
  - Empty result or missing price → QuoteFetchError.

parse_dividend_yield():
  - Fraction → percent; trailing yield fallback; 0.0 / None cases.

YahooQuoteClient (httpx.MockTransport):
  - Request path uses the .BK suffix and the configured range.
  - 429 / 5xx / transport errors are retried, 404 is not.
  - fetch_quotes drops failed symbols, keeps order, and respects
    max_concurrency.
  - fetch_dividend_yields skips symbols without data.
  - Must be used as an async context manager.

Fixtures:
  - get_fixture_quotes() filters by symbol; FixtureQuoteSource falls back
    to every fixture row when nothing matches.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
import pytest

from set_scanner.config import QuoteSourceConfig
from set_scanner.exceptions import QuoteFetchError
from set_scanner.ingestion.yahoo_client import (
    FixtureQuoteSource,
    YahooQuoteClient,
    parse_chart,
    parse_dividend_yield,
)
from set_scanner.models.quote import ComputedIndicators, NeedsEstimate

BASE_URL = "https://query1.finance.yahoo.com"


# ── Helpers ───────────────────────────────────────────────────────────────────

def _chart_payload(
    closes: list[Optional[float]],
    volumes: Optional[list[Optional[float]]] = None,
    price: Optional[float] = 35.25,
    previous_close: Optional[float] = 34.50,
    name: str = "PTT PCL",
) -> dict[str, Any]:
    n = len(closes)
    meta: dict[str, Any] = {"shortName": name}
    if price is not None:
        meta["regularMarketPrice"] = price
    if previous_close is not None:
        meta["previousClose"] = previous_close
    return {
        "chart": {
            "result": [
                {
                    "meta": meta,
                    "indicators": {
                        "quote": [
                            {
                                "close": closes,
                                "high": [35.50] * n,
                                "low": [34.50] * n,
                                "open": [34.50] * n,
                                "volume": volumes if volumes is not None else [1_000_000] * n,
                            }
                        ]
                    },
                }
            ],
            "error": None,
        }
    }


def _summary_payload(detail: Optional[dict[str, Any]]) -> dict[str, Any]:
    return {"quoteSummary": {"result": [{"summaryDetail": detail}], "error": None}}


def _config(**overrides) -> QuoteSourceConfig:
    fields = dict(base_url=BASE_URL, retries=2, retry_backoff_seconds=0.0, max_concurrency=4)
    fields.update(overrides)
    return QuoteSourceConfig(**fields)


def _symbol_from(request: httpx.Request) -> str:
    return request.url.path.rsplit("/", 1)[-1].removesuffix(".BK")


def _run_with(handler, coro_fn, **config_overrides):
    """Run ``coro_fn(client)`` against a MockTransport-backed YahooQuoteClient."""

    async def _main():
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
        try:
            async with YahooQuoteClient(_config(**config_overrides), client=http) as client:
                return await coro_fn(client)
        finally:
            await http.aclose()

    return asyncio.run(_main())


# ── parse_chart ───────────────────────────────────────────────────────────────

class TestParseChart:
    def test_meta_fields(self):
        quote = parse_chart("PTT", _chart_payload([34.0, 34.5, 35.25]))
        assert quote.symbol == "PTT"
        assert quote.name == "PTT PCL"
        assert quote.price == 35.25
        assert quote.previous_close == 34.50
        assert quote.change_percent == pytest.approx((35.25 - 34.5) / 34.5 * 100)
        assert quote.high == 35.50
        assert quote.low == 34.50

    def test_price_falls_back_to_last_close(self):
        quote = parse_chart("PTT", _chart_payload([34.0, 34.5, 35.0, None], price=None))
        assert quote.price == 35.0

    def test_previous_close_falls_back_to_prior_close(self):
        quote = parse_chart("PTT", _chart_payload([34.0, 34.5, 35.0], previous_close=None))
        assert quote.previous_close == 34.5

    def test_average_volume_counts_nulls_as_zero(self):
        volumes = [1_000.0] * 5 + [100.0] * 19 + [None]
        quote = parse_chart("PTT", _chart_payload([35.0] * 25, volumes=volumes))
        assert quote.avg_volume == 95
        assert quote.volume == 0.0

    def test_history_gives_computed_indicators(self):
        closes = [30.0 + 0.1 * i for i in range(40)]
        quote = parse_chart("PTT", _chart_payload(closes))
        assert isinstance(quote.indicators, ComputedIndicators)
        assert quote.closes == tuple(closes)

    def test_short_history_needs_estimate(self):
        quote = parse_chart("PTT", _chart_payload([35.0] * 10))
        assert isinstance(quote.indicators, NeedsEstimate)

    def test_null_closes_dropped(self):
        quote = parse_chart("PTT", _chart_payload([34.0, None, 35.0]))
        assert quote.closes == (34.0, 35.0)

    def test_empty_result(self):
        payload = {"chart": {"result": None, "error": {"description": "No data found"}}}
        with pytest.raises(QuoteFetchError, match="No data found"):
            parse_chart("XYZ", payload)

    def test_no_price(self):
        with pytest.raises(QuoteFetchError):
            parse_chart("XYZ", _chart_payload([None, None], price=None))


class TestParseDividendYield:
    def test_fraction_to_percent(self):
        assert parse_dividend_yield(_summary_payload({"dividendYield": {"raw": 0.058}})) == pytest.approx(5.8)

    def test_trailing_fallback(self):
        detail = {"dividendYield": {}, "trailingAnnualDividendYield": {"raw": 0.031}}
        assert parse_dividend_yield(_summary_payload(detail)) == pytest.approx(3.1)

    def test_no_yield_reported(self):
        assert parse_dividend_yield(_summary_payload({"beta": {"raw": 1.1}})) == 0.0

    def test_no_result(self):
        assert parse_dividend_yield({"quoteSummary": {"result": []}}) is None
        assert parse_dividend_yield(_summary_payload(None)) is None


# ── Client ────────────────────────────────────────────────────────────────────

class TestYahooQuoteClient:
    def test_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_chart_payload([34.5, 35.25]))

        quote = _run_with(handler, lambda c: c.fetch_quote("ptt"))
        assert quote.symbol == "PTT"
        (request,) = seen
        assert request.url.path == "/v8/finance/chart/PTT.BK"
        assert request.url.params["interval"] == "1d"
        assert request.url.params["range"] == "3mo"

    def test_retries_server_errors(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=_chart_payload([34.5, 35.25]))

        quote = _run_with(handler, lambda c: c.fetch_quote("PTT"))
        assert quote.price == 35.25
        assert calls["n"] == 3

    def test_retries_transport_errors(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=_chart_payload([34.5, 35.25]))

        assert _run_with(handler, lambda c: c.fetch_quote("PTT")).price == 35.25
        assert calls["n"] == 2

    def test_gives_up_after_retries(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(429)

        with pytest.raises(QuoteFetchError, match="after 2 attempt"):
            _run_with(handler, lambda c: c.fetch_quote("PTT"), retries=1)
        assert calls["n"] == 2

    def test_404_not_retried(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(404)

        with pytest.raises(QuoteFetchError, match="HTTP 404"):
            _run_with(handler, lambda c: c.fetch_quote("NOPE"))
        assert calls["n"] == 1

    def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        with pytest.raises(QuoteFetchError, match="invalid JSON"):
            _run_with(handler, lambda c: c.fetch_quote("PTT"))

    def test_fetch_quotes_drops_failures(self, caplog):
        def handler(request: httpx.Request) -> httpx.Response:
            symbol = _symbol_from(request)
            if symbol == "GONE":
                return httpx.Response(404)
            return httpx.Response(200, json=_chart_payload([34.5, 35.25], name=symbol))

        with caplog.at_level(logging.WARNING, logger="set_scanner.ingestion.yahoo_client"):
            quotes = _run_with(handler, lambda c: c.fetch_quotes(["KBANK", "GONE", "AOT"]))
        assert [q.symbol for q in quotes] == ["KBANK", "AOT"]
        assert any("GONE" in r.message for r in caplog.records)

    def test_concurrency_limit(self):
        state = {"in_flight": 0, "peak": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            state["in_flight"] += 1
            state["peak"] = max(state["peak"], state["in_flight"])
            await asyncio.sleep(0.01)
            state["in_flight"] -= 1
            return httpx.Response(200, json=_chart_payload([34.5, 35.25]))

        symbols = [f"S{i}" for i in range(8)]
        quotes = _run_with(handler, lambda c: c.fetch_quotes(symbols), max_concurrency=2)
        assert len(quotes) == 8
        assert state["peak"] <= 2

    def test_fetch_dividend_yields(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["modules"] == "summaryDetail"
            symbol = _symbol_from(request)
            if symbol == "PTT":
                return httpx.Response(200, json=_summary_payload({"dividendYield": {"raw": 0.058}}))
            if symbol == "AOT":
                return httpx.Response(200, json={"quoteSummary": {"result": []}})
            return httpx.Response(404)

        yields = _run_with(handler, lambda c: c.fetch_dividend_yields(["ptt", "AOT", "XYZ"]))
        assert yields == {"PTT": pytest.approx(5.8)}

    def test_requires_context_manager(self):
        client = YahooQuoteClient(_config())
        with pytest.raises(RuntimeError):
            asyncio.run(client.fetch_quote("PTT"))


# ── Fixtures ──────────────────────────────────────────────────────────────────

class TestFixtures:
    def test_all_fixture_quotes(self):
        quotes = YahooQuoteClient.get_fixture_quotes()
        assert len(quotes) == len(YahooQuoteClient.FIXTURE_QUOTES)
        assert all(isinstance(q.indicators, NeedsEstimate) for q in quotes)

    def test_filtered(self):
        (ptt,) = YahooQuoteClient.get_fixture_quotes(["ptt"])
        assert ptt.price == 35.25
        assert ptt.change_percent == pytest.approx(2.1739, abs=1e-4)

    def test_fixture_source_falls_back(self):
        async def _main():
            async with FixtureQuoteSource() as source:
                return await source.fetch_quotes(["NOT_A_SYMBOL"])

        assert len(asyncio.run(_main())) == len(YahooQuoteClient.FIXTURE_QUOTES)

    def test_fixture_source_selection(self):
        async def _main():
            async with FixtureQuoteSource() as source:
                return await source.fetch_quotes(["AOT", "PTT"])

        assert {q.symbol for q in asyncio.run(_main())} == {"AOT", "PTT"}
