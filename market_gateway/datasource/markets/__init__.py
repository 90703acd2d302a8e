"""
Stock market data sources (Alpha Vantage, Polygon, Financial Modeling Prep).
"""

from market_gateway.datasource.markets.alpha_vantage import (
    AlphaVantageSource,
    CurrencyExchangeRate,
    StockQuote,
)
from market_gateway.datasource.markets.fmp import (
    FinancialStatements,
    FmpQuote,
    FmpSource,
)
from market_gateway.datasource.markets.polygon import (
    LastQuote,
    PolygonSource,
    PreviousClose,
)

__all__ = [
    "AlphaVantageSource",
    "CurrencyExchangeRate",
    "StockQuote",
    "FinancialStatements",
    "FmpQuote",
    "FmpSource",
    "LastQuote",
    "PolygonSource",
    "PreviousClose",
]
