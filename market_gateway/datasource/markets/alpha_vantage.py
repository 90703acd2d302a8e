"""
Alpha Vantage data source for stock quotes, time series and currency rates.

API Documentation: https://www.alphavantage.co/documentation/
Free tier: 5 calls/minute
Get API key at: https://www.alphavantage.co/support/#api-key

Alpha Vantage reports most errors inside HTTP 200 bodies ("Note",
"Information", "Error Message"), so every payload goes through
``detect_error`` before it is shaped.
"""

from typing import Any

from pydantic import BaseModel

from market_gateway.datasource.base import BaseDataSource
from market_gateway.datasource.types import OHLCBar
from market_gateway.services.classifier import AUTH_PHRASES, RATE_LIMIT_PHRASES
from market_gateway.services.errors import (
    AuthenticationError,
    RateLimitError,
    UpstreamError,
)

INTERVALS: tuple[str, ...] = ("1min", "5min", "15min", "30min", "60min")
OUTPUT_SIZES: tuple[str, ...] = ("compact", "full")

RATE_LIMIT_RETRY_AFTER = 60


class StockQuote(BaseModel):
    """Real-time quote for one symbol."""

    symbol: str
    open: float
    high: float
    low: float
    price: float
    volume: int
    latest_trading_day: str
    previous_close: float
    change: float
    change_percent: float


class CurrencyExchangeRate(BaseModel):
    """Realtime rate between two (fiat or crypto) currencies."""

    from_currency: str
    to_currency: str
    exchange_rate: float
    last_refreshed: str
    time_zone: str
    bid_price: float | None = None
    ask_price: float | None = None


class AlphaVantageSource(BaseDataSource):
    """
    Alpha Vantage API data source.

    All endpoints share one URL; the ``function`` query parameter selects
    the operation.
    """

    SERVICE_ID = "alphavantage"

    def detect_error(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            return

        note = payload.get("Note")
        if note:
            raise RateLimitError(self.service_id, RATE_LIMIT_RETRY_AFTER)

        for field in ("Information", "Error Message"):
            message = payload.get(field)
            if not message:
                continue
            text = str(message).lower()
            if any(p in text for p in RATE_LIMIT_PHRASES):
                raise RateLimitError(self.service_id, RATE_LIMIT_RETRY_AFTER)
            if any(p in text for p in AUTH_PHRASES):
                raise AuthenticationError(
                    "Alpha Vantage rejected the API key", service_id=self.service_id
                )
            # Invalid symbol, premium endpoint, ...: retrying will not help
            raise UpstreamError(
                f"Alpha Vantage rejected the request ({field})",
                service_id=self.service_id,
                status_code=400,
                retryable=False,
            )

    async def fetch_quote(self, symbol: str) -> StockQuote:
        """Fetch a real-time quote (GLOBAL_QUOTE)."""
        data = await self._get(params={"function": "GLOBAL_QUOTE", "symbol": symbol})

        quote = self._require_mapping(data, "Global Quote")
        if not quote:
            raise self._invalid("empty 'Global Quote'")

        return StockQuote(
            symbol=self._require(quote, "01. symbol"),
            open=self._float(quote, "02. open"),
            high=self._float(quote, "03. high"),
            low=self._float(quote, "04. low"),
            price=self._float(quote, "05. price"),
            volume=self._int(quote, "06. volume"),
            latest_trading_day=self._require(quote, "07. latest trading day"),
            previous_close=self._float(quote, "08. previous close"),
            change=self._float(quote, "09. change"),
            change_percent=self._float(quote, "10. change percent"),
        )

    async def fetch_intraday(self, symbol: str, interval: str = "5min") -> list[OHLCBar]:
        """Fetch intraday bars, oldest first."""
        data = await self._get(
            params={
                "function": "TIME_SERIES_INTRADAY",
                "symbol": symbol,
                "interval": interval,
                "outputsize": "compact",
            }
        )
        return self._parse_series(data, f"Time Series ({interval})")

    async def fetch_daily(self, symbol: str, outputsize: str = "compact") -> list[OHLCBar]:
        """Fetch daily bars, oldest first."""
        data = await self._get(
            params={
                "function": "TIME_SERIES_DAILY",
                "symbol": symbol,
                "outputsize": outputsize,
            }
        )
        return self._parse_series(data, "Time Series (Daily)")

    async def fetch_overview(self, symbol: str) -> dict[str, Any]:
        """Fetch company fundamentals (passed through as returned)."""
        data = await self._get(params={"function": "OVERVIEW", "symbol": symbol})
        self._require(data, "Symbol")
        return data

    async def fetch_exchange_rate(
        self, from_currency: str, to_currency: str = "USD"
    ) -> CurrencyExchangeRate:
        """Fetch a realtime exchange rate (CURRENCY_EXCHANGE_RATE)."""
        data = await self._get(
            params={
                "function": "CURRENCY_EXCHANGE_RATE",
                "from_currency": from_currency,
                "to_currency": to_currency,
            }
        )
        rate = self._require_mapping(data, "Realtime Currency Exchange Rate")

        return CurrencyExchangeRate(
            from_currency=self._require(rate, "1. From_Currency Code"),
            to_currency=self._require(rate, "3. To_Currency Code"),
            exchange_rate=self._float(rate, "5. Exchange Rate"),
            last_refreshed=self._require(rate, "6. Last Refreshed"),
            time_zone=self._require(rate, "7. Time Zone"),
            bid_price=self._optional_float(rate, "8. Bid Price"),
            ask_price=self._optional_float(rate, "9. Ask Price"),
        )

    async def fetch_crypto_intraday(
        self,
        symbol: str,
        market: str = "USD",
        interval: str = "5min",
    ) -> list[OHLCBar]:
        """Fetch crypto intraday bars, oldest first."""
        data = await self._get(
            params={
                "function": "CRYPTO_INTRADAY",
                "symbol": symbol,
                "market": market,
                "interval": interval,
            }
        )
        return self._parse_series(data, f"Time Series Crypto ({interval})")

    def _parse_series(self, data: Any, series_key: str) -> list[OHLCBar]:
        series = self._require_mapping(data, series_key)

        bars = [
            OHLCBar(
                date=timestamp,
                open=self._float(values, "1. open"),
                high=self._float(values, "2. high"),
                low=self._float(values, "3. low"),
                close=self._float(values, "4. close"),
                volume=self._float(values, "5. volume"),
            )
            for timestamp, values in series.items()
        ]
        # Alpha Vantage lists newest first
        bars.sort(key=lambda bar: bar.date)
        return bars

    def _optional_float(self, data: dict[str, Any], key: str) -> float | None:
        try:
            return float(data.get(key))
        except (TypeError, ValueError):
            return None
