"""
NewsAPI data source.
"""

from market_gateway.datasource.news.newsapi import NewsAPISource

__all__ = ["NewsAPISource"]
