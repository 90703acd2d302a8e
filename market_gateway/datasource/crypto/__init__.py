"""
CoinGecko data source for cryptocurrency markets and prices.
"""

from market_gateway.datasource.crypto.coingecko import (
    CoinGeckoSource,
    CryptoGlobalStats,
    CryptoMarket,
    CryptoPricePoint,
    CryptoPrices,
)

__all__ = [
    "CoinGeckoSource",
    "CryptoGlobalStats",
    "CryptoMarket",
    "CryptoPricePoint",
    "CryptoPrices",
]
