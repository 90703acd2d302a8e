"""Unit tests for provider payload shaping and embedded-error detection."""
import pytest

from conftest import GLOBAL_QUOTE, ok
from market_gateway.services.errors import (
    AuthenticationError,
    InvalidResponseError,
    RateLimitError,
    UpstreamError,
)

AV = "av.test"
POLYGON = "polygon.test"
COINGECKO = "coingecko.test"
FMP = "fmp.test"
FX = "fx.test"
NEWS = "news.test"


def _bar(o, h, l, c, v):
    return {"1. open": o, "2. high": h, "3. low": l, "4. close": c, "5. volume": v}


# ── Alpha Vantage ────────────────────────────────────────────────────────


class TestAlphaVantageSource:

    @pytest.mark.asyncio
    async def test_quote_is_normalized(self, gateway, upstream):
        upstream.reply(AV, "/query", ok(GLOBAL_QUOTE))

        quote = await gateway.alpha_vantage.fetch_quote("AAPL")

        assert quote.symbol == "AAPL"
        assert quote.price == 190.64
        assert quote.volume == 48794400
        assert quote.change_percent == pytest.approx(0.7345)
        request = upstream.requests[0]
        assert request.url.params["function"] == "GLOBAL_QUOTE"
        assert request.url.params["apikey"] == "av-key"

    @pytest.mark.asyncio
    async def test_empty_global_quote_is_invalid(self, gateway, upstream):
        upstream.reply(AV, "/query", ok({"Global Quote": {}}))

        with pytest.raises(InvalidResponseError):
            await gateway.alpha_vantage.fetch_quote("ZZZZ")

    @pytest.mark.asyncio
    async def test_intraday_is_oldest_first(self, gateway, upstream):
        upstream.reply(
            AV,
            "/query",
            ok(
                {
                    "Meta Data": {},
                    "Time Series (5min)": {
                        "2024-06-13 16:00:00": _bar("3", "3", "3", "3", "30"),
                        "2024-06-13 15:55:00": _bar("2", "2", "2", "2", "20"),
                        "2024-06-13 15:50:00": _bar("1", "1", "1", "1", "10"),
                    },
                }
            ),
        )

        bars = await gateway.alpha_vantage.fetch_intraday("AAPL", "5min")

        assert [b.date for b in bars] == [
            "2024-06-13 15:50:00",
            "2024-06-13 15:55:00",
            "2024-06-13 16:00:00",
        ]
        assert [b.close for b in bars] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_note_is_rate_limit(self, gateway, upstream):
        upstream.reply(AV, "/query", ok({"Note": "Thank you for using Alpha Vantage!"}))

        with pytest.raises(RateLimitError) as excinfo:
            await gateway.alpha_vantage.fetch_quote("AAPL")
        assert excinfo.value.retry_after == 60

    @pytest.mark.asyncio
    async def test_information_with_api_key_is_auth(self, gateway, upstream):
        upstream.reply(
            AV, "/query", ok({"Information": "The **demo** API key is for demo purposes only."})
        )

        with pytest.raises(AuthenticationError):
            await gateway.alpha_vantage.fetch_quote("AAPL")
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_error_message_is_not_retried(self, gateway, upstream):
        upstream.reply(
            AV, "/query", ok({"Error Message": "Invalid API call. Please retry or visit the documentation."})
        )

        with pytest.raises(UpstreamError):
            await gateway.alpha_vantage.fetch_daily("ZZZZ")
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_overview_requires_symbol(self, gateway, upstream):
        upstream.reply(AV, "/query", ok({}))

        with pytest.raises(InvalidResponseError):
            await gateway.alpha_vantage.fetch_overview("ZZZZ")

    @pytest.mark.asyncio
    async def test_exchange_rate(self, gateway, upstream):
        upstream.reply(
            AV,
            "/query",
            ok(
                {
                    "Realtime Currency Exchange Rate": {
                        "1. From_Currency Code": "BTC",
                        "2. From_Currency Name": "Bitcoin",
                        "3. To_Currency Code": "USD",
                        "4. To_Currency Name": "United States Dollar",
                        "5. Exchange Rate": "66000.12",
                        "6. Last Refreshed": "2024-06-14 10:00:01",
                        "7. Time Zone": "UTC",
                        "8. Bid Price": "66000.00",
                        "9. Ask Price": "-",
                    }
                }
            ),
        )

        rate = await gateway.alpha_vantage.fetch_exchange_rate("BTC", "USD")

        assert rate.exchange_rate == 66000.12
        assert rate.bid_price == 66000.0
        assert rate.ask_price is None

    @pytest.mark.asyncio
    async def test_exchange_rate_that_is_not_an_object_is_invalid(self, gateway, upstream):
        upstream.reply(AV, "/query", ok({"Realtime Currency Exchange Rate": ["BTC", "USD"]}))

        with pytest.raises(InvalidResponseError):
            await gateway.alpha_vantage.fetch_exchange_rate("BTC", "USD")

    @pytest.mark.asyncio
    async def test_series_bar_that_is_not_an_object_is_invalid(self, gateway, upstream):
        upstream.reply(AV, "/query", ok({"Time Series (5min)": {"2024-06-13 16:00:00": "3"}}))

        with pytest.raises(InvalidResponseError):
            await gateway.alpha_vantage.fetch_intraday("AAPL", "5min")


# ── Polygon ──────────────────────────────────────────────────────────────


class TestPolygonSource:

    @pytest.mark.asyncio
    async def test_last_quote_maps_bid_and_ask_sides(self, gateway, upstream):
        upstream.reply(
            POLYGON,
            "/v2/last/nbbo/AAPL",
            ok(
                {
                    "status": "OK",
                    "results": {
                        "T": "AAPL",
                        "p": 190.5,
                        "s": 3,
                        "P": 190.6,
                        "S": 5,
                        "t": 1718366400000000000,
                    },
                }
            ),
        )

        quote = await gateway.polygon.fetch_last_quote("AAPL")

        assert (quote.bid, quote.bid_size) == (190.5, 3)
        assert (quote.ask, quote.ask_size) == (190.6, 5)
        assert quote.timestamp == "2024-06-14T12:00:00.000Z"

    @pytest.mark.asyncio
    async def test_aggregates(self, gateway, upstream):
        upstream.reply(
            POLYGON,
            "/v2/aggs/ticker/AAPL/range/1/day/2024-01-02/2024-01-03",
            ok(
                {
                    "status": "OK",
                    "resultsCount": 2,
                    "results": [
                        {"t": 1704171600000, "o": 1, "h": 2, "l": 0.5, "c": 1.5, "v": 100, "n": 7, "vw": 1.2},
                        {"t": 1704258000000, "o": 1.5, "h": 2.5, "l": 1, "c": 2, "v": 200},
                    ],
                }
            ),
        )

        bars = await gateway.polygon.fetch_aggregates("AAPL", 1, "day", "2024-01-02", "2024-01-03")

        assert len(bars) == 2
        assert bars[0].date < bars[1].date
        assert bars[0].transactions == 7
        assert bars[1].vwap is None
        assert upstream.requests[0].url.params["sort"] == "asc"

    @pytest.mark.asyncio
    async def test_no_results_is_empty_list(self, gateway, upstream):
        upstream.reply(
            POLYGON,
            "/v2/aggs/ticker/AAPL/range/1/day/2024-01-06/2024-01-07",
            ok({"status": "OK", "resultsCount": 0}),
        )

        assert await gateway.polygon.fetch_aggregates("AAPL", 1, "day", "2024-01-06", "2024-01-07") == []

    @pytest.mark.asyncio
    async def test_previous_close_not_found(self, gateway, upstream):
        upstream.reply(POLYGON, "/v2/aggs/ticker/ZZZZ/prev", ok({"status": "OK", "resultsCount": 0}))

        with pytest.raises(UpstreamError, match="No previous close data found for ZZZZ"):
            await gateway.polygon.fetch_previous_close("ZZZZ")

    @pytest.mark.asyncio
    async def test_not_authorized_status(self, gateway, upstream):
        upstream.reply(
            POLYGON, "/v2/last/nbbo/AAPL", ok({"status": "NOT_AUTHORIZED", "message": "plan"})
        )

        with pytest.raises(AuthenticationError):
            await gateway.polygon.fetch_last_quote("AAPL")

    @pytest.mark.asyncio
    async def test_last_quote_results_as_list_is_invalid(self, gateway, upstream):
        upstream.reply(
            POLYGON,
            "/v2/last/nbbo/AAPL",
            ok({"status": "OK", "results": [{"T": "AAPL", "p": 190.6, "P": 190.7}]}),
        )

        with pytest.raises(InvalidResponseError):
            await gateway.polygon.fetch_last_quote("AAPL")

    @pytest.mark.asyncio
    async def test_aggregate_bar_that_is_not_an_object_is_invalid(self, gateway, upstream):
        upstream.reply(
            POLYGON,
            "/v2/aggs/ticker/AAPL/range/1/day/2024-01-02/2024-01-03",
            ok({"status": "OK", "results": [[1704171600000, 187.15]]}),
        )

        with pytest.raises(InvalidResponseError):
            await gateway.polygon.fetch_aggregates("AAPL", 1, "day", "2024-01-02", "2024-01-03")

    @pytest.mark.asyncio
    async def test_news_publisher_without_object_shape(self, gateway, upstream):
        upstream.reply(
            POLYGON,
            "/v2/reference/news",
            ok(
                {
                    "status": "OK",
                    "results": [
                        {
                            "id": "abc",
                            "title": "Apple ships",
                            "published_utc": "2024-06-14T10:00:00Z",
                            "article_url": "https://example.com/a",
                            "publisher": "Benzinga",
                        }
                    ],
                }
            ),
        )

        items = await gateway.polygon.fetch_ticker_news("AAPL", 1)

        assert items[0].publisher is None
        assert items[0].title == "Apple ships"


# ── CoinGecko ────────────────────────────────────────────────────────────


class TestCoinGeckoSource:

    @pytest.mark.asyncio
    async def test_history_pairs_series_by_position(self, gateway, upstream):
        upstream.reply(
            COINGECKO,
            "/api/v3/coins/bitcoin/market_chart",
            ok(
                {
                    "prices": [[1718323200000, 66000.0], [1718409600000, 67000.0]],
                    "market_caps": [[1718323200000, 1.30e12], [1718409600000, 1.32e12]],
                    "total_volumes": [[1718323200000, 2.0e10]],
                }
            ),
        )

        points = await gateway.coingecko.fetch_history("bitcoin", "usd", 2)

        assert [p.price for p in points] == [66000.0, 67000.0]
        assert [p.market_cap for p in points] == [1.30e12, 1.32e12]
        assert [p.volume for p in points] == [2.0e10, None]
        assert points[0].date == "2024-06-14T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_markets_passes_ids(self, gateway, upstream):
        upstream.reply(
            COINGECKO,
            "/api/v3/coins/markets",
            ok([{"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "current_price": 66000}]),
        )

        markets = await gateway.coingecko.fetch_markets("usd", ["bitcoin", "ethereum"], 10)

        assert markets[0].current_price == 66000
        assert upstream.requests[0].url.params["ids"] == "bitcoin,ethereum"
        assert "apiKey" not in upstream.requests[0].url.params

    @pytest.mark.asyncio
    async def test_error_code_429_is_rate_limit(self, gateway, upstream):
        upstream.reply(
            COINGECKO,
            "/api/v3/global",
            ok({"status": {"error_code": 429, "error_message": "You've exceeded the Rate Limit"}}),
        )

        with pytest.raises(RateLimitError):
            await gateway.coingecko.fetch_global()

    @pytest.mark.asyncio
    async def test_global_requires_data(self, gateway, upstream):
        upstream.reply(COINGECKO, "/api/v3/global", ok({}))

        with pytest.raises(InvalidResponseError):
            await gateway.coingecko.fetch_global()

    @pytest.mark.asyncio
    async def test_global_data_as_list_is_invalid(self, gateway, upstream):
        upstream.reply(COINGECKO, "/api/v3/global", ok({"data": [1, 2]}))

        with pytest.raises(InvalidResponseError):
            await gateway.coingecko.fetch_global()

    @pytest.mark.asyncio
    async def test_global_totals_without_currency_map(self, gateway, upstream):
        upstream.reply(
            COINGECKO,
            "/api/v3/global",
            ok({"data": {"total_market_cap": 2.4e12, "total_volume": None, "markets": 1000}}),
        )

        stats = await gateway.coingecko.fetch_global()

        assert stats.total_market_cap == 0
        assert stats.total_volume == 0
        assert stats.markets == 1000

    @pytest.mark.asyncio
    async def test_history_ignores_side_series_that_are_not_lists(self, gateway, upstream):
        upstream.reply(
            COINGECKO,
            "/api/v3/coins/bitcoin/market_chart",
            ok(
                {
                    "prices": [[1718323200000, 66000.0]],
                    "market_caps": {"usd": 1.3e12},
                    "total_volumes": "n/a",
                }
            ),
        )

        points = await gateway.coingecko.fetch_history("bitcoin", "usd", 1)

        assert points[0].price == 66000.0
        assert points[0].market_cap is None
        assert points[0].volume is None

    @pytest.mark.asyncio
    async def test_history_with_text_timestamp_is_invalid(self, gateway, upstream):
        upstream.reply(
            COINGECKO,
            "/api/v3/coins/bitcoin/market_chart",
            ok({"prices": [["yesterday", 66000.0]]}),
        )

        with pytest.raises(InvalidResponseError):
            await gateway.coingecko.fetch_history("bitcoin", "usd", 1)

    @pytest.mark.asyncio
    async def test_market_entry_that_is_not_an_object_is_invalid(self, gateway, upstream):
        upstream.reply(COINGECKO, "/api/v3/coins/markets", ok(["bitcoin"]))

        with pytest.raises(InvalidResponseError):
            await gateway.coingecko.fetch_markets("usd", None, 10)

    @pytest.mark.asyncio
    async def test_price_map(self, gateway, upstream):
        upstream.reply(
            COINGECKO,
            "/api/v3/simple/price",
            ok({"bitcoin": {"usd": 66000, "usd_24h_change": None}}),
        )

        prices = await gateway.coingecko.fetch_price(["bitcoin"], ["usd"])

        assert prices == {"bitcoin": {"usd": 66000.0, "usd_24h_change": None}}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{"bitcoin": "oops"}, {"bitcoin": {"usd": "a lot"}}, [{"bitcoin": {"usd": 1}}]],
    )
    async def test_malformed_price_map_is_invalid(self, gateway, upstream, payload):
        upstream.reply(COINGECKO, "/api/v3/simple/price", ok(payload))

        with pytest.raises(InvalidResponseError):
            await gateway.coingecko.fetch_price(["bitcoin"], ["usd"])


# ── FMP / ExchangeRate-API / NewsAPI ─────────────────────────────────────


class TestFmpSource:

    @pytest.mark.asyncio
    async def test_quote(self, gateway, upstream):
        upstream.reply(
            FMP,
            "/api/v3/quote/AAPL",
            ok([{"symbol": "AAPL", "name": "Apple Inc.", "price": 190.64, "marketCap": 2.9e12, "pe": 29.6}]),
        )

        quote = await gateway.fmp.fetch_quote("AAPL")

        assert quote.price == 190.64
        assert quote.market_cap == 2.9e12
        assert upstream.requests[0].url.params["apikey"] == "fmp-key"

    @pytest.mark.asyncio
    async def test_empty_profile_is_not_found(self, gateway, upstream):
        upstream.reply(FMP, "/api/v3/profile/ZZZZ", ok([]))

        with pytest.raises(UpstreamError, match="No company profile found for ZZZZ"):
            await gateway.fmp.fetch_profile("ZZZZ")

    @pytest.mark.asyncio
    async def test_error_message_limit_reach(self, gateway, upstream):
        upstream.reply(
            FMP, "/api/v3/quote/AAPL", ok({"Error Message": "Limit Reach . Please upgrade your plan"})
        )

        with pytest.raises(RateLimitError):
            await gateway.fmp.fetch_quote("AAPL")

    @pytest.mark.asyncio
    async def test_quote_entry_that_is_not_an_object_is_invalid(self, gateway, upstream):
        upstream.reply(FMP, "/api/v3/quote/AAPL", ok(["AAPL"]))

        with pytest.raises(InvalidResponseError):
            await gateway.fmp.fetch_quote("AAPL")


class TestExchangeRateSource:

    @pytest.mark.asyncio
    async def test_latest(self, gateway, upstream):
        upstream.reply(
            FX,
            "/v4/latest/USD",
            ok({"base": "USD", "date": "2024-06-14", "rates": {"USD": 1, "EUR": 0.93}}),
        )

        rates = await gateway.exchange_rate.fetch_latest("USD")

        assert rates.rates["EUR"] == 0.93
        assert rates.date == "2024-06-14"

    @pytest.mark.asyncio
    async def test_missing_rates_is_invalid(self, gateway, upstream):
        upstream.reply(FX, "/v4/latest/USD", ok({"base": "USD"}))

        with pytest.raises(InvalidResponseError):
            await gateway.exchange_rate.fetch_latest("USD")


class TestNewsAPISource:

    @pytest.mark.asyncio
    async def test_headlines(self, gateway, upstream):
        upstream.reply(
            NEWS,
            "/v2/top-headlines",
            ok(
                {
                    "status": "ok",
                    "articles": [
                        {
                            "source": {"id": None, "name": "Reuters"},
                            "title": "Markets rally",
                            "url": "https://example.com/a",
                            "urlToImage": None,
                            "publishedAt": "2024-06-14T10:00:00Z",
                        }
                    ],
                }
            ),
        )

        articles = await gateway.news.fetch_headlines("business", "us", 5)

        assert articles[0].source == "Reuters"
        params = upstream.requests[0].url.params
        assert params["category"] == "business"
        assert params["pageSize"] == "5"
        assert params["apiKey"] == "news-key"

    @pytest.mark.asyncio
    async def test_api_key_invalid_code(self, gateway, upstream):
        upstream.reply(
            NEWS, "/v2/everything", ok({"status": "error", "code": "apiKeyInvalid", "message": "bad"})
        )

        with pytest.raises(AuthenticationError):
            await gateway.news.search("apple")

    @pytest.mark.asyncio
    async def test_source_given_as_text_is_unknown(self, gateway, upstream):
        upstream.reply(
            NEWS,
            "/v2/top-headlines",
            ok(
                {
                    "status": "ok",
                    "articles": [
                        {
                            "source": "Reuters",
                            "title": "Markets rally",
                            "url": "https://example.com/a",
                            "publishedAt": "2024-06-14T10:00:00Z",
                        }
                    ],
                }
            ),
        )

        articles = await gateway.news.fetch_headlines(None, "us", 5)

        assert articles[0].source == "Unknown"

    @pytest.mark.asyncio
    async def test_article_that_is_not_an_object_is_invalid(self, gateway, upstream):
        upstream.reply(NEWS, "/v2/everything", ok({"status": "ok", "articles": ["Markets rally"]}))

        with pytest.raises(InvalidResponseError):
            await gateway.news.search("apple")
