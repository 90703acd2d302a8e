"""
ExchangeRate-API data source for fiat exchange rates.
"""

from market_gateway.datasource.fx.exchange_rate import (
    CurrencyConversion,
    ExchangeRateSource,
    ExchangeRates,
)

__all__ = ["CurrencyConversion", "ExchangeRateSource", "ExchangeRates"]
