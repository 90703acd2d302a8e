"""Foreign exchange routes (ExchangeRate-API, Alpha Vantage)."""

from fastapi import APIRouter, Depends, Query

from market_gateway.api import dependencies as cache
from market_gateway.api.dependencies import get_gateway
from market_gateway.datasource.fx import CurrencyConversion, ExchangeRates
from market_gateway.datasource.markets import CurrencyExchangeRate
from market_gateway.gateway import MarketDataGateway

router = APIRouter(prefix="/api/fx", tags=["fx"])


@router.get(
    "/latest",
    response_model=ExchangeRates,
    dependencies=[Depends(cache.market_data)],
)
async def get_latest(base: str = "USD", gateway: MarketDataGateway = Depends(get_gateway)):
    return await gateway.get_latest_rates(base)


@router.get(
    "/history/{base}/{on_date}",
    response_model=ExchangeRates,
    dependencies=[Depends(cache.historical)],
)
async def get_history(
    base: str,
    on_date: str,
    gateway: MarketDataGateway = Depends(get_gateway),
):
    return await gateway.get_historical_rates(base, on_date)


@router.get(
    "/convert",
    response_model=CurrencyConversion,
    dependencies=[Depends(cache.market_data)],
)
async def convert(
    amount: float | None = None,
    from_currency: str | None = Query(default=None, alias="from"),
    to_currency: str | None = Query(default=None, alias="to"),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Convert an amount using the latest rates of ``from``."""
    return await gateway.convert_currency(amount, from_currency, to_currency)


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
