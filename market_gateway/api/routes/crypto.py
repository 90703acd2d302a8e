"""Cryptocurrency routes (CoinGecko, Alpha Vantage)."""

from fastapi import APIRouter, Depends

from market_gateway.api import dependencies as cache
from market_gateway.api.dependencies import get_gateway
from market_gateway.datasource.crypto import (
    CryptoGlobalStats,
    CryptoMarket,
    CryptoPricePoint,
    CryptoPrices,
)
from market_gateway.datasource.markets import CurrencyExchangeRate
from market_gateway.datasource.types import OHLCBar
from market_gateway.gateway import MarketDataGateway

router = APIRouter(prefix="/api/crypto", tags=["crypto"])


@router.get(
    "/markets",
    response_model=list[CryptoMarket],
    dependencies=[Depends(cache.market_data)],
)
async def get_markets(
    vs_currency: str = "usd",
    ids: str | None = None,
    limit: int = 100,
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Market data ordered by market cap; ``ids`` is comma separated."""
    return await gateway.get_crypto_markets(vs_currency, ids, limit)


@router.get(
    "/price/{ids}",
    response_model=CryptoPrices,
    dependencies=[Depends(cache.realtime)],
)
async def get_price(
    ids: str,
    vs_currencies: str = "usd",
    gateway: MarketDataGateway = Depends(get_gateway),
):
    return await gateway.get_crypto_price(ids, vs_currencies)


@router.get(
    "/history/{coin_id}",
    response_model=list[CryptoPricePoint],
    dependencies=[Depends(cache.historical)],
)
async def get_history(
    coin_id: str,
    vs_currency: str = "usd",
    days: str = "30",
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Market chart; ``days`` is a number or ``max``."""
    return await gateway.get_crypto_history(coin_id, vs_currency, days)


@router.get(
    "/global",
    response_model=CryptoGlobalStats,
    dependencies=[Depends(cache.market_data)],
)
async def get_global(gateway: MarketDataGateway = Depends(get_gateway)):
    return await gateway.get_crypto_global()


@router.get(
    "/intraday/{symbol}",
    response_model=list[OHLCBar],
    dependencies=[Depends(cache.realtime)],
)
async def get_intraday(
    symbol: str,
    market: str = "USD",
    interval: str = "5min",
    gateway: MarketDataGateway = Depends(get_gateway),
):
    return await gateway.get_crypto_intraday(symbol, market, interval)


@router.get(
    "/exchange-rate/{from_currency}/{to_currency}",
    response_model=CurrencyExchangeRate,
    dependencies=[Depends(cache.realtime)],
)
async def get_exchange_rate(
    from_currency: str,
    to_currency: str,
    gateway: MarketDataGateway = Depends(get_gateway),
):
    return await gateway.get_exchange_rate(from_currency, to_currency)
