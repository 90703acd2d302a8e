"""
Normalized record types shared by several providers.
"""

from pydantic import BaseModel


class OHLCBar(BaseModel):
    """One open/high/low/close bar of a price series."""

    date: str  # ISO timestamp or YYYY-MM-DD
    open: float
    high: float
    low: float
    close: float
    volume: float


class AggregateBar(OHLCBar):
    """OHLC bar with Polygon's extra aggregate fields."""

    transactions: int | None = None
    vwap: float | None = None


class NewsArticle(BaseModel):
    """Headline or search result from a news provider."""

    source: str
    author: str | None = None
    title: str
    description: str | None = None
    url: str
    url_to_image: str | None = None
    published_at: str
    content: str | None = None


class TickerNewsItem(BaseModel):
    """News item attached to a single ticker."""

    id: str
    title: str
    description: str | None = None
    author: str | None = None
    published_utc: str
    article_url: str
    image_url: str | None = None
    publisher: str | None = None
