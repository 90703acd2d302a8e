"""
ExchangeRate-API data source for fiat exchange rates.

API Documentation: https://www.exchangerate-api.com/docs/free
Free tier: 1500 calls/month (no API key required on v4)
"""

from typing import Any

from pydantic import BaseModel

from market_gateway.datasource.base import BaseDataSource
from market_gateway.services.errors import UpstreamError


class ExchangeRates(BaseModel):
    """Rates of every supported currency against one base."""

    base: str
    date: str
    rates: dict[str, float]


class CurrencyConversion(BaseModel):
    """Amount converted between two currencies."""

    from_currency: str
    to_currency: str
    amount: float
    converted: float
    rate: float
    date: str


class ExchangeRateSource(BaseDataSource):
    """ExchangeRate-API data source."""

    SERVICE_ID = "exchangerate"

    def detect_error(self, payload: Any) -> None:
        if isinstance(payload, dict) and payload.get("result") == "error":
            raise UpstreamError(
                "ExchangeRate-API rejected the request",
                service_id=self.service_id,
                status_code=400,
                retryable=False,
            )

    def _to_rates(self, data: Any) -> ExchangeRates:
        rates = self._require(data, "rates")
        if not isinstance(rates, dict):
            raise self._invalid("'rates' is not an object")
        return ExchangeRates(
            base=self._require(data, "base"),
            date=str(self._require(data, "date")),
            rates=rates,
        )

    async def fetch_latest(self, base: str = "USD") -> ExchangeRates:
        """Fetch the latest rates for a base currency."""
        return self._to_rates(await self._get(f"/latest/{base}"))

    async def fetch_historical(self, base: str, date: str) -> ExchangeRates:
        """Fetch rates for a base currency on a past date (YYYY-MM-DD)."""
        return self._to_rates(await self._get(f"/history/{base}/{date}"))
