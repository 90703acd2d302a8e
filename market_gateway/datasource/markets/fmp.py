"""
Financial Modeling Prep data source for quotes, profiles and statements.

API Documentation: https://site.financialmodelingprep.com/developer/docs
Free tier: 250 calls/day
"""

from typing import Any

from pydantic import BaseModel

from market_gateway.datasource.base import BaseDataSource
from market_gateway.services.classifier import AUTH_PHRASES, RATE_LIMIT_PHRASES
from market_gateway.services.errors import (
    AuthenticationError,
    RateLimitError,
    UpstreamError,
)


class FmpQuote(BaseModel):
    """Quote with valuation fields."""

    symbol: str
    name: str | None = None
    price: float
    changes_percentage: float | None = None
    change: float | None = None
    day_low: float | None = None
    day_high: float | None = None
    year_high: float | None = None
    year_low: float | None = None
    market_cap: float | None = None
    price_avg_50: float | None = None
    price_avg_200: float | None = None
    volume: float | None = None
    avg_volume: float | None = None
    exchange: str | None = None
    open: float | None = None
    previous_close: float | None = None
    eps: float | None = None
    pe: float | None = None
    earnings_announcement: str | None = None
    shares_outstanding: float | None = None
    timestamp: int | None = None


class FinancialStatements(BaseModel):
    """The three statements of a company, most recent period first."""

    income_statement: list[dict[str, Any]]
    balance_sheet: list[dict[str, Any]]
    cash_flow_statement: list[dict[str, Any]]


class FmpSource(BaseDataSource):
    """Financial Modeling Prep API data source."""

    SERVICE_ID = "fmp"

    def detect_error(self, payload: Any) -> None:
        if not isinstance(payload, dict) or not payload.get("Error Message"):
            return

        text = str(payload["Error Message"]).lower()
        if any(p in text for p in RATE_LIMIT_PHRASES):
            raise RateLimitError(self.service_id)
        if any(p in text for p in AUTH_PHRASES):
            raise AuthenticationError(
                "Financial Modeling Prep rejected the API key",
                service_id=self.service_id,
            )
        raise UpstreamError(
            "Financial Modeling Prep rejected the request",
            service_id=self.service_id,
            status_code=400,
            retryable=False,
        )

    def _first(self, data: Any, what: str, symbol: str) -> dict[str, Any]:
        items = self._require_list(data)
        if not items:
            raise UpstreamError(
                f"No {what} found for {symbol}",
                service_id=self.service_id,
                retryable=False,
                expose=True,
            )
        return dict(self._require_mapping(items[0]))

    async def fetch_quote(self, symbol: str) -> FmpQuote:
        """Fetch a real-time quote."""
        quote = self._first(await self._get(f"/quote/{symbol}"), "quote data", symbol)

        return FmpQuote(
            symbol=self._require(quote, "symbol"),
            name=quote.get("name"),
            price=self._float(quote, "price"),
            changes_percentage=quote.get("changesPercentage"),
            change=quote.get("change"),
            day_low=quote.get("dayLow"),
            day_high=quote.get("dayHigh"),
            year_high=quote.get("yearHigh"),
            year_low=quote.get("yearLow"),
            market_cap=quote.get("marketCap"),
            price_avg_50=quote.get("priceAvg50"),
            price_avg_200=quote.get("priceAvg200"),
            volume=quote.get("volume"),
            avg_volume=quote.get("avgVolume"),
            exchange=quote.get("exchange"),
            open=quote.get("open"),
            previous_close=quote.get("previousClose"),
            eps=quote.get("eps"),
            pe=quote.get("pe"),
            earnings_announcement=quote.get("earningsAnnouncement"),
            shares_outstanding=quote.get("sharesOutstanding"),
            timestamp=quote.get("timestamp"),
        )

    async def fetch_profile(self, symbol: str) -> dict[str, Any]:
        """Fetch the company profile (passed through as returned)."""
        return self._first(
            await self._get(f"/profile/{symbol}"), "company profile", symbol
        )

    async def _fetch_statement(self, path: str, symbol: str, limit: int) -> list[dict[str, Any]]:
        data = await self._get(f"/{path}/{symbol}", params={"limit": str(limit)})
        return self._require_list(data)

    async def fetch_income_statement(self, symbol: str, limit: int = 5) -> list[dict[str, Any]]:
        return await self._fetch_statement("income-statement", symbol, limit)

    async def fetch_balance_sheet(self, symbol: str, limit: int = 5) -> list[dict[str, Any]]:
        return await self._fetch_statement("balance-sheet-statement", symbol, limit)

    async def fetch_cash_flow(self, symbol: str, limit: int = 5) -> list[dict[str, Any]]:
        return await self._fetch_statement("cash-flow-statement", symbol, limit)

    async def fetch_earnings_calendar(self, from_date: str, to_date: str) -> list[dict[str, Any]]:
        """Fetch earnings announcements between two dates."""
        data = await self._get(
            "/earnings-calendar", params={"from": from_date, "to": to_date}
        )
        return self._require_list(data)
