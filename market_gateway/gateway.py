"""
MarketDataGateway - every exposed operation, served read-through.

Each operation canonicalizes its parameters, picks the TTL of its data
class and goes through ReadThroughCache; provider failures arrive here as
ClassifiedError and are forwarded unchanged.
"""

import asyncio
import math
from datetime import date, timedelta
from typing import Any, Callable

from loguru import logger
from pydantic import TypeAdapter

from market_gateway.datasource.crypto import (
    CoinGeckoSource,
    CryptoGlobalStats,
    CryptoMarket,
    CryptoPricePoint,
    CryptoPrices,
)
from market_gateway.datasource.fx import (
    CurrencyConversion,
    ExchangeRateSource,
    ExchangeRates,
)
from market_gateway.datasource.markets import (
    AlphaVantageSource,
    CurrencyExchangeRate,
    FinancialStatements,
    FmpQuote,
    FmpSource,
    LastQuote,
    PolygonSource,
    PreviousClose,
    StockQuote,
)
from market_gateway.datasource.markets.alpha_vantage import INTERVALS, OUTPUT_SIZES
from market_gateway.datasource.markets.polygon import TIMESPANS
from market_gateway.datasource.news import NewsAPISource
from market_gateway.datasource.news.newsapi import CATEGORIES, SORT_OPTIONS
from market_gateway.datasource.types import AggregateBar, NewsArticle, OHLCBar, TickerNewsItem
from market_gateway.exceptions import BadRequestError
from market_gateway.services.cache import CacheStore, create_cache_store
from market_gateway.services.classifier import classify_error
from market_gateway.services.client import ProviderClient, ProviderConfig, RateLimit
from market_gateway.services.errors import UpstreamError
from market_gateway.services.read_through import ReadThroughCache
from market_gateway.settings import Settings


class TTL:
    """Cache TTLs in seconds per data class."""

    REALTIME_QUOTE = 300
    INTRADAY_SERIES = 300
    DAILY_SERIES = 3600
    PREVIOUS_CLOSE = 3600
    EARNINGS_CALENDAR = 3600
    CRYPTO_MARKETS = 120
    CRYPTO_GLOBAL = 300
    COMPANY_DATA = 86400
    NEWS = 900
    FX_LATEST = 3600
    FX_HISTORICAL = 86400
    IMMUTABLE_HISTORY = 86400

    @staticmethod
    def crypto_history(days: int | str) -> int:
        """Short windows still move; long windows are mostly settled."""
        if days == "max":
            return 86400
        if int(days) <= 1:
            return 300
        if int(days) <= 90:
            return 3600
        return 86400


_quote_adapter = TypeAdapter(StockQuote)
_bars_adapter = TypeAdapter(list[OHLCBar])
_aggregates_adapter = TypeAdapter(list[AggregateBar])
_dict_adapter = TypeAdapter(dict[str, Any])
_records_adapter = TypeAdapter(list[dict[str, Any]])
_exchange_rate_adapter = TypeAdapter(CurrencyExchangeRate)
_fmp_quote_adapter = TypeAdapter(FmpQuote)
_previous_close_adapter = TypeAdapter(PreviousClose)
_last_quote_adapter = TypeAdapter(LastQuote)
_ticker_news_adapter = TypeAdapter(list[TickerNewsItem])
_markets_adapter = TypeAdapter(list[CryptoMarket])
_prices_adapter = TypeAdapter(CryptoPrices)
_history_adapter = TypeAdapter(list[CryptoPricePoint])
_global_adapter = TypeAdapter(CryptoGlobalStats)
_rates_adapter = TypeAdapter(ExchangeRates)
_articles_adapter = TypeAdapter(list[NewsArticle])


def build_provider_configs(settings: Settings) -> dict[str, ProviderConfig]:
    """Provider table, built once at startup and read-only afterwards."""
    common = {
        "timeout": settings.request_timeout,
        "max_attempts": settings.max_attempts,
        "backoff": settings.retry_backoff,
    }
    configs = [
        ProviderConfig(
            service_id=AlphaVantageSource.SERVICE_ID,
            name="Alpha Vantage",
            base_url=settings.alpha_vantage_base_url,
            rate_limit=RateLimit(5, "minute"),
            api_key=settings.alpha_vantage_key,
            api_key_param="apikey",
            **common,
        ),
        ProviderConfig(
            service_id=PolygonSource.SERVICE_ID,
            name="Polygon",
            base_url=settings.polygon_base_url,
            rate_limit=RateLimit(5, "minute"),
            api_key=settings.polygon_key,
            api_key_param="apiKey",
            **common,
        ),
        ProviderConfig(
            service_id=CoinGeckoSource.SERVICE_ID,
            name="CoinGecko",
            base_url=settings.coingecko_base_url,
            rate_limit=RateLimit(50, "minute"),
            **common,
        ),
        ProviderConfig(
            service_id=FmpSource.SERVICE_ID,
            name="Financial Modeling Prep",
            base_url=settings.fmp_base_url,
            rate_limit=RateLimit(250, "day"),
            api_key=settings.fmp_key,
            api_key_param="apikey",
            **common,
        ),
        ProviderConfig(
            service_id=ExchangeRateSource.SERVICE_ID,
            name="ExchangeRate-API",
            base_url=settings.exchange_rate_base_url,
            rate_limit=RateLimit(1500, "month"),
            **common,
        ),
        ProviderConfig(
            service_id=NewsAPISource.SERVICE_ID,
            name="NewsAPI",
            base_url=settings.news_api_base_url,
            rate_limit=RateLimit(100, "day"),
            api_key=settings.news_api_key,
            api_key_param="apiKey",
            **common,
        ),
    ]
    return {config.service_id: config for config in configs}


def _required(value: str | None, name: str) -> str:
    if value is None or not str(value).strip():
        raise BadRequestError(f"Missing required parameter: {name}")
    return str(value).strip()


def _symbol(value: str | None, name: str = "symbol") -> str:
    return _required(value, name).upper()


def _coin_ids(values: list[str] | str | None, name: str = "ids") -> list[str]:
    if isinstance(values, str):
        values = values.split(",")
    ids = sorted({v.strip().lower() for v in values or [] if v and v.strip()})
    if not ids:
        raise BadRequestError(f"Missing required parameter: {name}")
    return ids


def _iso_date(value: str | date | None, name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(_required(value, name))
    except ValueError:
        raise BadRequestError(f"Invalid date for {name}, expected YYYY-MM-DD") from None


def _choice(value: str, choices: tuple[str, ...], name: str) -> str:
    if value not in choices:
        raise BadRequestError(f"Invalid {name}, expected one of: {', '.join(choices)}")
    return value


def _positive(value: int, name: str, maximum: int | None = None) -> int:
    if maximum is not None and not 1 <= value <= maximum:
        raise BadRequestError(f"Invalid {name}, expected a number between 1 and {maximum}")
    if value < 1:
        raise BadRequestError(f"Invalid {name}, expected a positive number")
    return value


class MarketDataGateway:
    """
    Read-through facade over all provider data sources.

    Usage:
        gateway = MarketDataGateway.from_settings(global_settings)
        quote = await gateway.get_stock_quote("aapl")
        await gateway.close()
    """

    def __init__(
        self,
        cache: CacheStore,
        alpha_vantage: AlphaVantageSource,
        polygon: PolygonSource,
        coingecko: CoinGeckoSource,
        fmp: FmpSource,
        exchange_rate: ExchangeRateSource,
        news: NewsAPISource,
        today: Callable[[], date] = date.today,
    ):
        self.cache = cache
        self.read_through = ReadThroughCache(cache)
        self.alpha_vantage = alpha_vantage
        self.polygon = polygon
        self.coingecko = coingecko
        self.fmp = fmp
        self.exchange_rate = exchange_rate
        self.news = news
        self._today = today

    @classmethod
    def from_settings(cls, settings: Settings, cache: CacheStore | None = None) -> "MarketDataGateway":
        """Construct the gateway and its clients once per process."""
        configs = build_provider_configs(settings)
        gateway = cls(
            cache=cache or create_cache_store(settings.redis_url),
            alpha_vantage=AlphaVantageSource(ProviderClient(configs["alphavantage"])),
            polygon=PolygonSource(ProviderClient(configs["polygon"])),
            coingecko=CoinGeckoSource(ProviderClient(configs["coingecko"])),
            fmp=FmpSource(ProviderClient(configs["fmp"])),
            exchange_rate=ExchangeRateSource(ProviderClient(configs["exchangerate"])),
            news=NewsAPISource(ProviderClient(configs["newsapi"])),
        )
        logger.info(
            "Providers: "
            + ", ".join(
                f"{c.name} ({c.rate_limit}, {'ready' if c.is_configured() else 'no key'})"
                for c in configs.values()
            )
        )
        return gateway

    @property
    def sources(self) -> list:
        return [
            self.alpha_vantage,
            self.polygon,
            self.coingecko,
            self.fmp,
            self.exchange_rate,
            self.news,
        ]

    # Stocks (Alpha Vantage)

    async def get_stock_quote(self, symbol: str) -> StockQuote:
        symbol = _symbol(symbol)
        return await self.read_through.fetch(
            namespace="alphavantage:quote",
            params={"symbol": symbol},
            ttl=TTL.REALTIME_QUOTE,
            loader=lambda: self.alpha_vantage.fetch_quote(symbol),
            adapter=_quote_adapter,
            service_id=self.alpha_vantage.service_id,
        )

    async def get_intraday(self, symbol: str, interval: str = "5min") -> list[OHLCBar]:
        symbol = _symbol(symbol)
        interval = _choice(interval, INTERVALS, "interval")
        return await self.read_through.fetch(
            namespace="alphavantage:intraday",
            params={"symbol": symbol, "interval": interval},
            ttl=TTL.INTRADAY_SERIES,
            loader=lambda: self.alpha_vantage.fetch_intraday(symbol, interval),
            adapter=_bars_adapter,
            service_id=self.alpha_vantage.service_id,
        )

    async def get_daily(self, symbol: str, outputsize: str = "compact") -> list[OHLCBar]:
        symbol = _symbol(symbol)
        outputsize = _choice(outputsize, OUTPUT_SIZES, "outputsize")
        return await self.read_through.fetch(
            namespace="alphavantage:daily",
            params={"symbol": symbol, "outputsize": outputsize},
            ttl=TTL.DAILY_SERIES,
            loader=lambda: self.alpha_vantage.fetch_daily(symbol, outputsize),
            adapter=_bars_adapter,
            service_id=self.alpha_vantage.service_id,
        )

    async def get_company_overview(self, symbol: str) -> dict[str, Any]:
        symbol = _symbol(symbol)
        return await self.read_through.fetch(
            namespace="alphavantage:overview",
            params={"symbol": symbol},
            ttl=TTL.COMPANY_DATA,
            loader=lambda: self.alpha_vantage.fetch_overview(symbol),
            adapter=_dict_adapter,
            service_id=self.alpha_vantage.service_id,
        )

    async def get_exchange_rate(self, from_currency: str, to_currency: str = "USD") -> CurrencyExchangeRate:
        from_currency = _symbol(from_currency, "from")
        to_currency = _symbol(to_currency, "to")
        return await self.read_through.fetch(
            namespace="alphavantage:exchange-rate",
            params={"from": from_currency, "to": to_currency},
            ttl=TTL.REALTIME_QUOTE,
            loader=lambda: self.alpha_vantage.fetch_exchange_rate(from_currency, to_currency),
            adapter=_exchange_rate_adapter,
            service_id=self.alpha_vantage.service_id,
        )

    async def get_crypto_intraday(
        self,
        symbol: str,
        market: str = "USD",
        interval: str = "5min",
    ) -> list[OHLCBar]:
        symbol = _symbol(symbol)
        market = _symbol(market, "market")
        interval = _choice(interval, INTERVALS, "interval")
        return await self.read_through.fetch(
            namespace="alphavantage:crypto-intraday",
            params={"symbol": symbol, "market": market, "interval": interval},
            ttl=TTL.INTRADAY_SERIES,
            loader=lambda: self.alpha_vantage.fetch_crypto_intraday(symbol, market, interval),
            adapter=_bars_adapter,
            service_id=self.alpha_vantage.service_id,
        )

    # Stocks (Financial Modeling Prep)

    async def get_fmp_quote(self, symbol: str) -> FmpQuote:
        symbol = _symbol(symbol)
        return await self.read_through.fetch(
            namespace="fmp:quote",
            params={"symbol": symbol},
            ttl=TTL.REALTIME_QUOTE,
            loader=lambda: self.fmp.fetch_quote(symbol),
            adapter=_fmp_quote_adapter,
            service_id=self.fmp.service_id,
        )

    async def get_company_profile(self, symbol: str) -> dict[str, Any]:
        symbol = _symbol(symbol)
        return await self.read_through.fetch(
            namespace="fmp:profile",
            params={"symbol": symbol},
            ttl=TTL.COMPANY_DATA,
            loader=lambda: self.fmp.fetch_profile(symbol),
            adapter=_dict_adapter,
            service_id=self.fmp.service_id,
        )

    async def _get_statement(self, statement: str, symbol: str, limit: int, loader) -> list[dict[str, Any]]:
        return await self.read_through.fetch(
            namespace=f"fmp:{statement}",
            params={"symbol": symbol, "limit": limit},
            ttl=TTL.COMPANY_DATA,
            loader=lambda: loader(symbol, limit),
            adapter=_records_adapter,
            service_id=self.fmp.service_id,
        )

    async def get_financial_statements(self, symbol: str, limit: int = 5) -> FinancialStatements:
        symbol = _symbol(symbol)
        limit = _positive(limit, "limit", maximum=120)
        income, balance_sheet, cash_flow = await asyncio.gather(
            self._get_statement("income", symbol, limit, self.fmp.fetch_income_statement),
            self._get_statement("balance-sheet", symbol, limit, self.fmp.fetch_balance_sheet),
            self._get_statement("cash-flow", symbol, limit, self.fmp.fetch_cash_flow),
        )
        return FinancialStatements(
            income_statement=income,
            balance_sheet=balance_sheet,
            cash_flow_statement=cash_flow,
        )

    async def get_earnings_calendar(
        self,
        from_date: str | date | None = None,
        to_date: str | date | None = None,
    ) -> list[dict[str, Any]]:
        today = self._today()
        start = _iso_date(from_date, "from") if from_date else today
        end = _iso_date(to_date, "to") if to_date else today + timedelta(days=30)
        if end < start:
            raise BadRequestError("Invalid date range: 'to' is before 'from'")
        return await self.read_through.fetch(
            namespace="fmp:earnings",
            params={"from": start.isoformat(), "to": end.isoformat()},
            ttl=TTL.EARNINGS_CALENDAR,
            loader=lambda: self.fmp.fetch_earnings_calendar(start.isoformat(), end.isoformat()),
            adapter=_records_adapter,
            service_id=self.fmp.service_id,
        )

    # Stocks (Polygon)

    async def get_aggregates(
        self,
        ticker: str,
        from_date: str | date | None,
        to_date: str | date | None,
        multiplier: int = 1,
        timespan: str = "day",
    ) -> list[AggregateBar]:
        ticker = _symbol(ticker, "ticker")
        multiplier = _positive(multiplier, "multiplier")
        timespan = _choice(timespan, TIMESPANS, "timespan")
        start = _iso_date(from_date, "from")
        end = _iso_date(to_date, "to")
        if end < start:
            raise BadRequestError("Invalid date range: 'to' is before 'from'")

        # A window that ended before today will not change anymore
        ttl = TTL.IMMUTABLE_HISTORY if end < self._today() else TTL.INTRADAY_SERIES
        return await self.read_through.fetch(
            namespace="polygon:aggregates",
            params={
                "ticker": ticker,
                "multiplier": multiplier,
                "timespan": timespan,
                "from": start.isoformat(),
                "to": end.isoformat(),
            },
            ttl=ttl,
            loader=lambda: self.polygon.fetch_aggregates(
                ticker, multiplier, timespan, start.isoformat(), end.isoformat()
            ),
            adapter=_aggregates_adapter,
            service_id=self.polygon.service_id,
        )

    async def get_previous_close(self, ticker: str) -> PreviousClose:
        ticker = _symbol(ticker, "ticker")
        return await self.read_through.fetch(
            namespace="polygon:prev-close",
            params={"ticker": ticker},
            ttl=TTL.PREVIOUS_CLOSE,
            loader=lambda: self.polygon.fetch_previous_close(ticker),
            adapter=_previous_close_adapter,
            service_id=self.polygon.service_id,
        )

    async def get_last_quote(self, ticker: str) -> LastQuote:
        ticker = _symbol(ticker, "ticker")
        return await self.read_through.fetch(
            namespace="polygon:last-quote",
            params={"ticker": ticker},
            ttl=TTL.REALTIME_QUOTE,
            loader=lambda: self.polygon.fetch_last_quote(ticker),
            adapter=_last_quote_adapter,
            service_id=self.polygon.service_id,
        )

    async def get_ticker_news(self, ticker: str, limit: int = 10) -> list[TickerNewsItem]:
        ticker = _symbol(ticker, "ticker")
        limit = _positive(limit, "limit", maximum=1000)
        return await self.read_through.fetch(
            namespace="polygon:news",
            params={"ticker": ticker, "limit": limit},
            ttl=TTL.NEWS,
            loader=lambda: self.polygon.fetch_ticker_news(ticker, limit),
            adapter=_ticker_news_adapter,
            service_id=self.polygon.service_id,
        )

    # Crypto (CoinGecko)

    async def get_crypto_markets(
        self,
        vs_currency: str = "usd",
        ids: list[str] | str | None = None,
        limit: int = 100,
    ) -> list[CryptoMarket]:
        vs_currency = _required(vs_currency, "vs_currency").lower()
        coin_ids = _coin_ids(ids) if ids else None
        limit = _positive(limit, "limit", maximum=250)
        return await self.read_through.fetch(
            namespace="coingecko:markets",
            params={"vs_currency": vs_currency, "ids": coin_ids, "limit": limit},
            ttl=TTL.CRYPTO_MARKETS,
            loader=lambda: self.coingecko.fetch_markets(vs_currency, coin_ids, limit),
            adapter=_markets_adapter,
            service_id=self.coingecko.service_id,
        )

    async def get_crypto_price(
        self,
        ids: list[str] | str,
        vs_currencies: list[str] | str = "usd",
    ) -> CryptoPrices:
        coin_ids = _coin_ids(ids)
        currencies = _coin_ids(vs_currencies, "vs_currencies")
        return await self.read_through.fetch(
            namespace="coingecko:price",
            params={"ids": coin_ids, "vs_currencies": currencies},
            ttl=TTL.CRYPTO_MARKETS,
            loader=lambda: self.coingecko.fetch_price(coin_ids, currencies),
            adapter=_prices_adapter,
            service_id=self.coingecko.service_id,
        )

    async def get_crypto_history(
        self,
        coin_id: str,
        vs_currency: str = "usd",
        days: int | str = 30,
    ) -> list[CryptoPricePoint]:
        coin_id = _required(coin_id, "id").lower()
        vs_currency = _required(vs_currency, "vs_currency").lower()
        if str(days).lower() == "max":
            days = "max"
        else:
            try:
                days = _positive(int(days), "days")
            except ValueError:
                raise BadRequestError("Invalid days, expected a number or 'max'") from None
        return await self.read_through.fetch(
            namespace="coingecko:history",
            params={"id": coin_id, "vs_currency": vs_currency, "days": days},
            ttl=TTL.crypto_history(days),
            loader=lambda: self.coingecko.fetch_history(coin_id, vs_currency, days),
            adapter=_history_adapter,
            service_id=self.coingecko.service_id,
        )

    async def get_crypto_global(self) -> CryptoGlobalStats:
        return await self.read_through.fetch(
            namespace="coingecko:global",
            params={},
            ttl=TTL.CRYPTO_GLOBAL,
            loader=self.coingecko.fetch_global,
            adapter=_global_adapter,
            service_id=self.coingecko.service_id,
        )

    # FX (ExchangeRate-API)

    async def get_latest_rates(self, base: str = "USD") -> ExchangeRates:
        base = _symbol(base, "base")
        return await self.read_through.fetch(
            namespace="exchangerate:latest",
            params={"base": base},
            ttl=TTL.FX_LATEST,
            loader=lambda: self.exchange_rate.fetch_latest(base),
            adapter=_rates_adapter,
            service_id=self.exchange_rate.service_id,
        )

    async def get_historical_rates(self, base: str, on_date: str | date) -> ExchangeRates:
        base = _symbol(base, "base")
        day = _iso_date(on_date, "date")
        if day > self._today():
            raise BadRequestError("Invalid date: historical rates cannot be in the future")

        # Today's rates may still be revised
        ttl = TTL.FX_HISTORICAL if day < self._today() else TTL.FX_LATEST
        return await self.read_through.fetch(
            namespace="exchangerate:history",
            params={"base": base, "date": day.isoformat()},
            ttl=ttl,
            loader=lambda: self.exchange_rate.fetch_historical(base, day.isoformat()),
            adapter=_rates_adapter,
            service_id=self.exchange_rate.service_id,
        )

    async def convert_currency(
        self,
        amount: float | None,
        from_currency: str | None,
        to_currency: str | None,
    ) -> CurrencyConversion:
        """Convert using the (cached) latest rates of the source currency."""
        if (
            amount is None
            or not from_currency
            or not to_currency
            or math.isnan(amount)
            or amount <= 0
        ):
            raise BadRequestError("Missing required parameters: amount, from, to")

        source = _symbol(from_currency, "from")
        target = _symbol(to_currency, "to")
        rates = await self.get_latest_rates(source)

        rate = rates.rates.get(target)
        if rate is None:
            raise classify_error(
                UpstreamError(
                    f"Exchange rate not found for {target}",
                    service_id=self.exchange_rate.service_id,
                    retryable=False,
                    expose=True,
                )
            )

        return CurrencyConversion(
            from_currency=source,
            to_currency=target,
            amount=amount,
            converted=amount * rate,
            rate=rate,
            date=rates.date,
        )

    # News (NewsAPI)

    async def get_headlines(
        self,
        category: str | None = None,
        country: str = "us",
        page_size: int = 20,
    ) -> list[NewsArticle]:
        if category and category.strip():
            category = _choice(category.strip().lower(), CATEGORIES, "category")
        else:
            category = None
        country = _required(country, "country").lower()
        page_size = _positive(page_size, "pageSize", maximum=100)
        return await self.read_through.fetch(
            namespace="newsapi:headlines",
            params={"category": category, "country": country, "page_size": page_size},
            ttl=TTL.NEWS,
            loader=lambda: self.news.fetch_headlines(category, country, page_size),
            adapter=_articles_adapter,
            service_id=self.news.service_id,
        )

    async def search_news(
        self,
        query: str | None,
        language: str = "en",
        sort_by: str = "publishedAt",
        page_size: int = 20,
    ) -> list[NewsArticle]:
        query = _required(query, "q (query)")
        language = _required(language, "language").lower()
        sort_by = _choice(sort_by, SORT_OPTIONS, "sortBy")
        page_size = _positive(page_size, "pageSize", maximum=100)
        return await self.read_through.fetch(
            namespace="newsapi:search",
            params={
                "q": query,
                "language": language,
                "sort_by": sort_by,
                "page_size": page_size,
            },
            ttl=TTL.NEWS,
            loader=lambda: self.news.search(query, language, sort_by, page_size),
            adapter=_articles_adapter,
            service_id=self.news.service_id,
        )

    async def get_business_news(self, page_size: int = 20) -> list[NewsArticle]:
        return await self.get_headlines("business", "us", page_size)

    # Lifecycle and status

    def get_health_status(self) -> dict[str, Any]:
        return {
            "cache": self.cache.get_stats().to_dict(),
            "providers": {
                source.service_id: {
                    "name": source.name,
                    "configured": source.is_configured(),
                    "rate_limit": str(source.client.config.rate_limit),
                }
                for source in self.sources
            },
        }

    async def close(self) -> None:
        """Close all provider clients and the cache connection."""
        for source in self.sources:
            await source.client.close()
        await self.cache.close()
        logger.debug("MarketDataGateway closed")
