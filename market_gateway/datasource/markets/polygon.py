"""
Polygon.io data source for aggregates, previous close, NBBO quotes and news.

API Documentation: https://polygon.io/docs/stocks
Free tier: 5 calls/minute
"""

from typing import Any

from pydantic import BaseModel

from market_gateway.datasource.base import BaseDataSource, iso_from_millis
from market_gateway.datasource.types import AggregateBar, TickerNewsItem
from market_gateway.services.errors import (
    AuthenticationError,
    RateLimitError,
    UpstreamError,
)

TIMESPANS: tuple[str, ...] = ("minute", "hour", "day", "week", "month")


class PreviousClose(BaseModel):
    """Previous trading day's bar for a ticker."""

    ticker: str
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float


class LastQuote(BaseModel):
    """Latest national best bid and offer."""

    ticker: str
    bid: float
    ask: float
    bid_size: float
    ask_size: float
    timestamp: str


def _iso_from_nanos(value: int | float) -> str:
    return iso_from_millis(value / 1_000_000)


def _publisher_name(item: Any) -> str | None:
    publisher = item.get("publisher")
    return publisher.get("name") if isinstance(publisher, dict) else None


class PolygonSource(BaseDataSource):
    """
    Polygon.io API data source.

    Polygon reports failures as ``{"status": "ERROR", "error": ...}`` or
    ``{"status": "NOT_AUTHORIZED", ...}`` bodies in addition to HTTP codes.
    """

    SERVICE_ID = "polygon"

    def detect_error(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            return

        status = str(payload.get("status", "")).upper()
        if status == "NOT_AUTHORIZED":
            raise AuthenticationError(
                "Polygon rejected the API key", service_id=self.service_id
            )
        if status != "ERROR":
            return

        message = str(payload.get("error") or payload.get("message") or "")
        lowered = message.lower()
        if "exceeded the maximum requests" in lowered or "rate limit" in lowered:
            raise RateLimitError(self.service_id)
        if "api key" in lowered or "apikey" in lowered:
            raise AuthenticationError(
                "Polygon rejected the API key", service_id=self.service_id
            )
        raise UpstreamError(
            "Polygon.io API error",
            service_id=self.service_id,
            status_code=400,
            retryable=False,
        )

    def _results(self, data: Any) -> list[Any]:
        # Polygon omits ``results`` when a query matched nothing
        if isinstance(data, dict) and "results" not in data:
            if data.get("resultsCount") == 0 or data.get("count") == 0:
                return []
        return self._require_list(data, "results")

    async def fetch_aggregates(
        self,
        ticker: str,
        multiplier: int,
        timespan: str,
        from_date: str,
        to_date: str,
    ) -> list[AggregateBar]:
        """Fetch aggregate bars between two dates, oldest first."""
        data = await self._get(
            f"/v2/aggs/ticker/{ticker}/range/{multiplier}/{timespan}/{from_date}/{to_date}",
            params={"sort": "asc"},
        )

        bars = [
            AggregateBar(
                date=iso_from_millis(self._float(bar, "t")),
                open=self._float(bar, "o"),
                high=self._float(bar, "h"),
                low=self._float(bar, "l"),
                close=self._float(bar, "c"),
                volume=self._float(bar, "v"),
                transactions=bar.get("n"),
                vwap=bar.get("vw"),
            )
            for bar in map(self._require_mapping, self._results(data))
        ]
        bars.sort(key=lambda bar: bar.date)
        return bars

    async def fetch_previous_close(self, ticker: str) -> PreviousClose:
        """Fetch the previous day's bar."""
        data = await self._get(f"/v2/aggs/ticker/{ticker}/prev")

        results = self._results(data)
        if not results:
            raise UpstreamError(
                f"No previous close data found for {ticker}",
                service_id=self.service_id,
                retryable=False,
                expose=True,
            )
        bar = self._require_mapping(results[0])

        return PreviousClose(
            ticker=bar.get("T") or ticker,
            date=iso_from_millis(self._float(bar, "t")),
            open=self._float(bar, "o"),
            high=self._float(bar, "h"),
            low=self._float(bar, "l"),
            close=self._float(bar, "c"),
            volume=self._float(bar, "v"),
        )

    async def fetch_last_quote(self, ticker: str) -> LastQuote:
        """Fetch the latest NBBO quote."""
        data = await self._get(f"/v2/last/nbbo/{ticker}")
        result = self._require_mapping(data, "results")

        return LastQuote(
            ticker=result.get("T") or ticker,
            bid=self._float(result, "p"),
            ask=self._float(result, "P"),
            bid_size=self._float(result, "s"),
            ask_size=self._float(result, "S"),
            timestamp=_iso_from_nanos(self._float(result, "t")),
        )

    async def fetch_ticker_news(self, ticker: str, limit: int = 10) -> list[TickerNewsItem]:
        """Fetch the latest news for a ticker, newest first."""
        data = await self._get(
            "/v2/reference/news",
            params={"ticker": ticker, "limit": str(limit), "order": "desc"},
        )

        return [
            TickerNewsItem(
                id=str(self._require(item, "id")),
                title=self._require(item, "title"),
                description=item.get("description"),
                author=item.get("author"),
                published_utc=self._require(item, "published_utc"),
                article_url=self._require(item, "article_url"),
                image_url=item.get("image_url"),
                publisher=_publisher_name(item),
            )
            for item in map(self._require_mapping, self._results(data))
        ]