"""Stock routes (Alpha Vantage, Financial Modeling Prep, Polygon)."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from market_gateway.api import dependencies as cache
from market_gateway.api.dependencies import get_gateway
from market_gateway.datasource.markets import (
    FinancialStatements,
    LastQuote,
    PreviousClose,
    StockQuote,
)
from market_gateway.datasource.types import AggregateBar, OHLCBar, TickerNewsItem
from market_gateway.gateway import MarketDataGateway

router = APIRouter(prefix="/api/stocks", tags=["stocks"])


@router.get(
    "/quote/{symbol}",
    response_model=StockQuote,
    dependencies=[Depends(cache.realtime)],
)
async def get_quote(symbol: str, gateway: MarketDataGateway = Depends(get_gateway)):
    """Real-time stock quote."""
    return await gateway.get_stock_quote(symbol)


@router.get(
    "/intraday/{symbol}",
    response_model=list[OHLCBar],
    dependencies=[Depends(cache.realtime)],
)
async def get_intraday(
    symbol: str,
    interval: str = "5min",
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Intraday time series, oldest bar first."""
    return await gateway.get_intraday(symbol, interval)


@router.get(
    "/daily/{symbol}",
    response_model=list[OHLCBar],
    dependencies=[Depends(cache.market_data)],
)
async def get_daily(
    symbol: str,
    outputsize: str = "compact",
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Daily time series, oldest bar first."""
    return await gateway.get_daily(symbol, outputsize)


@router.get("/overview/{symbol}", dependencies=[Depends(cache.corporate_data)])
async def get_overview(
    symbol: str, gateway: MarketDataGateway = Depends(get_gateway)
) -> dict[str, Any]:
    """Company overview/fundamentals."""
    return await gateway.get_company_overview(symbol)


@router.get("/profile/{symbol}", dependencies=[Depends(cache.corporate_data)])
async def get_profile(
    symbol: str, gateway: MarketDataGateway = Depends(get_gateway)
) -> dict[str, Any]:
    """Company profile."""
    return await gateway.get_company_profile(symbol)


@router.get(
    "/financials/{symbol}",
    response_model=FinancialStatements,
    dependencies=[Depends(cache.corporate_data)],
)
async def get_financials(
    symbol: str,
    limit: int = 5,
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """Income statement, balance sheet and cash flow statement."""
    return await gateway.get_financial_statements(symbol, limit)


@router.get("/news/{symbol}", response_model=list[TickerNewsItem])
async def get_news(
    symbol: str,
    limit: int = 10,
    gateway: MarketDataGateway = Depends(get_gateway),
):
    return await gateway.get_ticker_news(symbol, limit)


@router.get("/earnings-calendar", dependencies=[Depends(cache.corporate_data)])
async def get_earnings_calendar(
    from_date: str | None = Query(default=None, alias="from"),
    to_date: str | None = Query(default=None, alias="to"),
    gateway: MarketDataGateway = Depends(get_gateway),
) -> list[dict[str, Any]]:
    """Earnings announcements; defaults to the next 30 days."""
    return await gateway.get_earnings_calendar(from_date, to_date)


@router.get(
    "/aggregates/{symbol}",
    response_model=list[AggregateBar],
    dependencies=[Depends(cache.historical)],
)
async def get_aggregates(
    symbol: str,
    from_date: str | None = Query(default=None, alias="from"),
    to_date: str | None = Query(default=None, alias="to"),
    multiplier: int = 1,
    timespan: str = "day",
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """OHLC aggregate bars between two dates."""
    return await gateway.get_aggregates(symbol, from_date, to_date, multiplier, timespan)


@router.get(
    "/previous-close/{symbol}",
    response_model=PreviousClose,
    dependencies=[Depends(cache.market_data)],
)
async def get_previous_close(
    symbol: str, gateway: MarketDataGateway = Depends(get_gateway)
):
    return await gateway.get_previous_close(symbol)


@router.get(
    "/last-quote/{symbol}",
    response_model=LastQuote,
    dependencies=[Depends(cache.realtime)],
)
async def get_last_quote(symbol: str, gateway: MarketDataGateway = Depends(get_gateway)):
    return await gateway.get_last_quote(symbol)
