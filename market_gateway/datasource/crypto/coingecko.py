"""
CoinGecko API data source for cryptocurrency markets and prices.

API Documentation: https://www.coingecko.com/en/api/documentation
Free tier: 10-50 calls/minute (no API key required)
"""

from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from market_gateway.datasource.base import BaseDataSource, iso_from_millis
from market_gateway.services.errors import RateLimitError, UpstreamError


class CryptoMarket(BaseModel):
    """Market snapshot of one coin."""

    id: str
    symbol: str
    name: str
    image: str | None = None
    current_price: float | None = None
    market_cap: float | None = None
    market_cap_rank: int | None = None
    fully_diluted_valuation: float | None = None
    total_volume: float | None = None
    high_24h: float | None = None
    low_24h: float | None = None
    price_change_24h: float | None = None
    price_change_percentage_24h: float | None = None
    market_cap_change_24h: float | None = None
    market_cap_change_percentage_24h: float | None = None
    circulating_supply: float | None = None
    total_supply: float | None = None
    max_supply: float | None = None
    ath: float | None = None
    ath_change_percentage: float | None = None
    ath_date: str | None = None
    atl: float | None = None
    atl_change_percentage: float | None = None
    atl_date: str | None = None
    last_updated: str | None = None


class CryptoPricePoint(BaseModel):
    """One point of a coin's market chart."""

    date: str
    price: float
    market_cap: float | None = None
    volume: float | None = None


class CryptoGlobalStats(BaseModel):
    """Global cryptocurrency market statistics (USD)."""

    total_market_cap: float
    total_volume: float
    market_cap_percentage: dict[str, float]
    market_cap_change_percentage_24h_usd: float
    active_cryptocurrencies: int
    markets: int


# coin id -> vs currency -> value (price, <vs>_market_cap, <vs>_24h_vol, ...)
CryptoPrices = dict[str, dict[str, float | None]]

_prices_adapter = TypeAdapter(CryptoPrices)

_MARKET_FIELDS = tuple(
    name for name in CryptoMarket.model_fields if name not in ("id", "symbol", "name")
)


def _usd(values: Any) -> float:
    return (values.get("usd") if isinstance(values, dict) else None) or 0


class CoinGeckoSource(BaseDataSource):
    """
    CoinGecko API data source.

    No API key required for basic usage.
    """

    SERVICE_ID = "coingecko"

    def detect_error(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            return

        status = payload.get("status")
        if isinstance(status, dict) and status.get("error_code"):
            if status["error_code"] == 429:
                raise RateLimitError(self.service_id)
            raise UpstreamError(
                "CoinGecko API error",
                service_id=self.service_id,
                status_code=status["error_code"],
                retryable=status["error_code"] >= 500,
            )

        if isinstance(payload.get("error"), str):
            raise UpstreamError(
                "CoinGecko rejected the request",
                service_id=self.service_id,
                status_code=400,
                retryable=False,
            )

    async def fetch_markets(
        self,
        vs_currency: str = "usd",
        ids: list[str] | None = None,
        limit: int = 100,
    ) -> list[CryptoMarket]:
        """Fetch market data ordered by market cap."""
        params = {
            "vs_currency": vs_currency,
            "order": "market_cap_desc",
            "per_page": str(limit),
            "page": "1",
            "sparkline": "false",
        }
        if ids:
            params["ids"] = ",".join(ids)

        data = await self._get("/coins/markets", params=params)

        return [
            CryptoMarket(
                id=self._require(coin, "id"),
                symbol=self._require(coin, "symbol"),
                name=self._require(coin, "name"),
                **{name: coin.get(name) for name in _MARKET_FIELDS},
            )
            for coin in map(self._require_mapping, self._require_list(data))
        ]

    async def fetch_price(
        self,
        ids: list[str],
        vs_currencies: list[str],
        include_market_cap: bool = True,
        include_24hr_vol: bool = True,
        include_24hr_change: bool = True,
    ) -> CryptoPrices:
        """Fetch simple prices for coins in one or more currencies."""
        data = await self._get(
            "/simple/price",
            params={
                "ids": ",".join(ids),
                "vs_currencies": ",".join(vs_currencies),
                "include_market_cap": str(include_market_cap).lower(),
                "include_24hr_vol": str(include_24hr_vol).lower(),
                "include_24hr_change": str(include_24hr_change).lower(),
            },
        )
        try:
            return _prices_adapter.validate_python(data)
        except ValidationError:
            raise self._invalid("malformed price map") from None

    async def fetch_history(
        self,
        coin_id: str,
        vs_currency: str = "usd",
        days: int | str = 30,
    ) -> list[CryptoPricePoint]:
        """
        Fetch a coin's market chart.

        ``prices``, ``market_caps`` and ``total_volumes`` are parallel arrays
        of ``[timestamp_ms, value]``; they are paired by position.
        """
        data = await self._get(
            f"/coins/{coin_id}/market_chart",
            params={"vs_currency": vs_currency, "days": str(days)},
        )

        prices = self._require_list(data, "prices")
        market_caps = data.get("market_caps")
        volumes = data.get("total_volumes")

        def value_at(series: Any, index: int) -> float | None:
            if not isinstance(series, list):
                return None
            if index < len(series) and isinstance(series[index], list) and len(series[index]) > 1:
                return series[index][1]
            return None

        points = []
        for index, point in enumerate(prices):
            if not isinstance(point, list) or len(point) < 2:
                raise self._invalid("malformed price point")
            timestamp, price = point[0], point[1]
            if not isinstance(timestamp, (int, float)):
                raise self._invalid("malformed price timestamp")
            points.append(
                CryptoPricePoint(
                    date=iso_from_millis(timestamp),
                    price=price,
                    market_cap=value_at(market_caps, index),
                    volume=value_at(volumes, index),
                )
            )
        return points

    async def fetch_global(self) -> CryptoGlobalStats:
        """Fetch global market statistics."""
        data = await self._get("/global")
        stats = self._require_mapping(data, "data")

        return CryptoGlobalStats(
            total_market_cap=_usd(stats.get("total_market_cap")),
            total_volume=_usd(stats.get("total_volume")),
            market_cap_percentage=stats.get("market_cap_percentage") or {},
            market_cap_change_percentage_24h_usd=(
                stats.get("market_cap_change_percentage_24h_usd") or 0
            ),
            active_cryptocurrencies=stats.get("active_cryptocurrencies") or 0,
            markets=stats.get("markets") or 0,
        )
